from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from labtrack.database import Base


class Sheet(Base):
    """A named table and its header row (JSON list of column names)."""

    __tablename__ = "sheets"

    name: Mapped[str] = mapped_column(String, primary_key=True)
    headers: Mapped[str] = mapped_column(Text, default="[]")
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())


class SheetRow(Base):
    """One data row; cells is a JSON list aligned with the sheet headers.

    Row order is insertion order (autoincrement id), so a row's position is
    its index among the sheet's rows ordered by id.
    """

    __tablename__ = "sheet_rows"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    sheet: Mapped[str] = mapped_column(String, ForeignKey("sheets.name"), nullable=False, index=True)
    cells: Mapped[str] = mapped_column(Text, default="[]")
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())
