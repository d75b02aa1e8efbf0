from pydantic import Field, field_validator

from labtrack.schemas.inventory import Quantity, RecordModel, blank_to_none, check_non_negative


class OrderCreate(RecordModel):
    id: str = ""
    item: str
    quantity: Quantity = Field(None, alias="qty")
    unit: str = ""
    requested_by: str = Field("", alias="requestedBy")
    reason: str = ""
    urgency: str = "Normal"  # Normal, High, Urgent or free text
    date: str = ""
    status: str = "Pending"  # Pending -> Approved -> Ordered -> Received, not enforced
    price: float | str | None = None
    link: str = ""
    category: str = Field("", alias="cat")
    store: str = ""

    @field_validator("quantity", mode="before")
    @classmethod
    def blank_quantity(cls, v):
        return blank_to_none(v)

    @field_validator("quantity")
    @classmethod
    def non_negative(cls, v):
        return check_non_negative(v)
