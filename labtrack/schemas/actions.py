"""Payloads of the POST actions, keyed the way clients send them."""
from typing import Any

from pydantic import BaseModel, Field

from labtrack.schemas.inventory import CheckoutCreate, DeliveryCreate, ItemCreate, ItemUpdate
from labtrack.schemas.order import OrderCreate

_CONFIG = {"populate_by_name": True, "coerce_numbers_to_str": True}


class AddItemPayload(BaseModel):
    item: ItemCreate


class UpdateItemPayload(BaseModel):
    item: ItemUpdate


class DeleteItemPayload(BaseModel):
    item_id: str = Field(alias="itemId")

    model_config = _CONFIG


class AddDeliveryPayload(BaseModel):
    delivery: DeliveryCreate


class AddCheckoutPayload(BaseModel):
    checkout: CheckoutCreate


class ReturnItemPayload(BaseModel):
    checkout_id: str = Field(alias="checkoutId")

    model_config = _CONFIG


class AddOrderPayload(BaseModel):
    order: OrderCreate


class UpdateOrderStatusPayload(BaseModel):
    order_id: str = Field(alias="orderId")
    status: str

    model_config = _CONFIG


class DeleteOrderPayload(BaseModel):
    order_id: str = Field(alias="orderId")

    model_config = _CONFIG


class SaveSettingsPayload(BaseModel):
    key: str
    value: Any = ""

    model_config = _CONFIG


class SendDigestPayload(BaseModel):
    pass
