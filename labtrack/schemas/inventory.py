from typing import Any

from pydantic import BaseModel, Field, field_validator

from labtrack.models.sheets import STATUS_AVAILABLE

Quantity = int | float | None


def blank_to_none(v: Any) -> Any:
    if isinstance(v, str) and not v.strip():
        return None
    return v


def check_non_negative(v: Quantity) -> Quantity:
    if v is not None and v < 0:
        raise ValueError("quantity cannot be negative")
    return v


class RecordModel(BaseModel):
    """Field aliases are the table column names, so records dump straight to rows."""

    model_config = {"populate_by_name": True, "coerce_numbers_to_str": True}

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


# --- Item schemas ---

class ItemCreate(RecordModel):
    """New item. ``usedBy`` always starts empty; only checkouts fill it."""

    id: str = ""
    name: str
    category: str = Field("", alias="cat")
    quantity: Quantity = Field(None, alias="qty")
    unit: str = ""
    location: str = Field("", alias="loc")
    min_quantity: Quantity = Field(None, alias="minQty")
    image: str = Field("", alias="img")
    description: str = Field("", alias="desc")
    status: str = STATUS_AVAILABLE
    serial: str = ""

    @field_validator("quantity", "min_quantity", mode="before")
    @classmethod
    def blank_quantities(cls, v):
        return blank_to_none(v)

    @field_validator("quantity", "min_quantity")
    @classmethod
    def non_negative(cls, v):
        return check_non_negative(v)


class ItemUpdate(RecordModel):
    """Partial update: only the fields sent by the client are written.

    ``usedBy`` is derived from checkouts and cannot be set here.
    """

    id: str
    name: str | None = None
    category: str | None = Field(None, alias="cat")
    quantity: Quantity = Field(None, alias="qty")
    unit: str | None = None
    location: str | None = Field(None, alias="loc")
    min_quantity: Quantity = Field(None, alias="minQty")
    image: str | None = Field(None, alias="img")
    description: str | None = Field(None, alias="desc")
    status: str | None = None
    serial: str | None = None

    @field_validator("quantity", "min_quantity", mode="before")
    @classmethod
    def blank_quantities(cls, v):
        return blank_to_none(v)

    @field_validator("quantity", "min_quantity")
    @classmethod
    def non_negative(cls, v):
        return check_non_negative(v)

    def changes(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_unset=True, exclude={"id"})


# --- Delivery schemas ---

class DeliveryCreate(RecordModel):
    id: str = ""
    item: str
    quantity: Quantity = Field(None, alias="qty")
    unit: str = ""
    source: str = Field("", alias="from")
    received_by: str = Field("", alias="receivedBy")
    date: str = ""
    tracking: str = ""
    status: str = "Received"

    @field_validator("quantity", mode="before")
    @classmethod
    def blank_quantity(cls, v):
        return blank_to_none(v)

    @field_validator("quantity")
    @classmethod
    def non_negative(cls, v):
        return check_non_negative(v)


# --- Checkout schemas ---

class CheckoutCreate(RecordModel):
    id: str = ""
    item_id: str = Field("", alias="itemId")
    item: str
    user: str
    out_date: str = Field("", alias="out")
    return_date: str = Field("", alias="ret")
