"""Row-store adapters.

The ledger only sees named tables with a header row and positional data rows
(0-based, header excluded). Row cells are plain JSON values: strings, numbers,
booleans or None.
"""
import json
import logging
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Iterator

from sqlalchemy.orm import Session, sessionmaker

from labtrack.models.sheet import Sheet, SheetRow
from labtrack.models.sheets import LAYOUTS

logger = logging.getLogger(__name__)

Row = list[Any]


class TableStore(ABC):
    def __init__(self):
        self._locks: dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    @contextmanager
    def lock(self, name: str) -> Iterator[None]:
        """Serialize scan-then-mutate sequences on one table."""
        with self._locks_guard:
            table_lock = self._locks.setdefault(name, threading.RLock())
        with table_lock:
            yield

    @abstractmethod
    def ensure_table(self, name: str, headers: list[str]) -> None:
        """Create the table, or append any header columns it is missing."""

    @abstractmethod
    def headers(self, name: str) -> list[str]: ...

    @abstractmethod
    def rows(self, name: str) -> list[Row]: ...

    @abstractmethod
    def append(self, name: str, row: Row) -> None: ...

    @abstractmethod
    def update(self, name: str, position: int, row: Row) -> None: ...

    @abstractmethod
    def delete(self, name: str, position: int) -> None: ...


def _merge_headers(existing: list[str], wanted: list[str]) -> list[str]:
    return existing + [h for h in wanted if h not in existing]


class MemoryTableStore(TableStore):
    def __init__(self):
        super().__init__()
        self._headers: dict[str, list[str]] = {}
        self._rows: dict[str, list[Row]] = {}

    def _check(self, name: str) -> None:
        if name not in self._headers:
            raise KeyError(f"Unknown table {name!r}")

    def ensure_table(self, name: str, headers: list[str]) -> None:
        if name not in self._headers:
            self._headers[name] = list(headers)
            self._rows[name] = []
        else:
            self._headers[name] = _merge_headers(self._headers[name], headers)

    def headers(self, name: str) -> list[str]:
        self._check(name)
        return list(self._headers[name])

    def rows(self, name: str) -> list[Row]:
        self._check(name)
        return [list(r) for r in self._rows[name]]

    def append(self, name: str, row: Row) -> None:
        self._check(name)
        self._rows[name].append(list(row))

    def update(self, name: str, position: int, row: Row) -> None:
        self._check(name)
        if not 0 <= position < len(self._rows[name]):
            raise IndexError(f"{name} has no row at position {position}")
        self._rows[name][position] = list(row)

    def delete(self, name: str, position: int) -> None:
        self._check(name)
        if not 0 <= position < len(self._rows[name]):
            raise IndexError(f"{name} has no row at position {position}")
        del self._rows[name][position]


class SqlTableStore(TableStore):
    """Tables persisted through SQLAlchemy, one session per call."""

    def __init__(self, session_factory: sessionmaker):
        super().__init__()
        self._session_factory = session_factory

    def _session(self) -> Session:
        return self._session_factory()

    @staticmethod
    def _sheet(db: Session, name: str) -> Sheet:
        sheet = db.get(Sheet, name)
        if not sheet:
            raise KeyError(f"Unknown table {name!r}")
        return sheet

    @staticmethod
    def _row_at(db: Session, name: str, position: int) -> SheetRow:
        row = None
        if position >= 0:
            row = (
                db.query(SheetRow)
                .filter(SheetRow.sheet == name)
                .order_by(SheetRow.id)
                .offset(position)
                .first()
            )
        if not row:
            raise IndexError(f"{name} has no row at position {position}")
        return row

    def ensure_table(self, name: str, headers: list[str]) -> None:
        db = self._session()
        try:
            sheet = db.get(Sheet, name)
            if not sheet:
                db.add(Sheet(name=name, headers=json.dumps(headers)))
                logger.info("Created table %s", name)
            else:
                existing = json.loads(sheet.headers)
                merged = _merge_headers(existing, headers)
                if merged != existing:
                    sheet.headers = json.dumps(merged)
                    logger.info("Added columns %s to %s", merged[len(existing):], name)
            db.commit()
        finally:
            db.close()

    def headers(self, name: str) -> list[str]:
        db = self._session()
        try:
            return json.loads(self._sheet(db, name).headers)
        finally:
            db.close()

    def rows(self, name: str) -> list[Row]:
        db = self._session()
        try:
            self._sheet(db, name)
            rows = db.query(SheetRow).filter(SheetRow.sheet == name).order_by(SheetRow.id).all()
            return [json.loads(r.cells) for r in rows]
        finally:
            db.close()

    def append(self, name: str, row: Row) -> None:
        db = self._session()
        try:
            self._sheet(db, name)
            db.add(SheetRow(sheet=name, cells=json.dumps(row, default=str)))
            db.commit()
        finally:
            db.close()

    def update(self, name: str, position: int, row: Row) -> None:
        db = self._session()
        try:
            self._row_at(db, name, position).cells = json.dumps(row, default=str)
            db.commit()
        finally:
            db.close()

    def delete(self, name: str, position: int) -> None:
        db = self._session()
        try:
            db.delete(self._row_at(db, name, position))
            db.commit()
        finally:
            db.close()


def init_tables(store: TableStore) -> None:
    for name, headers in LAYOUTS.items():
        store.ensure_table(name, headers)
