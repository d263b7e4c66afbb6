# cubecart/schemas/orders.py
from typing import List, Optional
from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from ..models import OrderStatus, PaymentStatus, ShippingAddress


class CartItemIn(BaseModel):
    # price/name/image sent by the storefront are dropped here, never priced
    model_config = ConfigDict(extra="ignore")

    productId: str = Field(..., min_length=1, validation_alias=AliasChoices("productId", "_id"))
    qty: int = Field(..., ge=1, le=1000, validation_alias=AliasChoices("qty", "quantity"))


class PaymentIntentIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    items: List[CartItemIn] = Field(..., min_length=1, max_length=100)
    shippingAddress: ShippingAddress


class PaymentIntentOut(BaseModel):
    clientSecret: str
    paymentIntentId: str
    amountMinorUnits: int
    currency: str


class ConfirmOrderIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    paymentIntentId: str = Field(..., min_length=1)
    # optional; when sent it must match the address recorded at checkout
    shippingAddress: Optional[ShippingAddress] = None


class OrderStatusUpdateIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    status: OrderStatus


class PaymentStatusUpdateIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    status: PaymentStatus
