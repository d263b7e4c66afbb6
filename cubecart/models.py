# cubecart/models.py
"""Domain values shared by the services, stores and routes.

Money is always ``Decimal`` in major units (e.g. ``Decimal("10.00")``) until
the payment broker converts it to integer minor units. JSON output uses
camelCase aliases to match what the storefront already consumes.
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _Camel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class _FrozenCamel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True,
    )


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


# ---- Identity ----------------------------------------------------------------

class Principal(_FrozenCamel):
    """Who a token is issued for."""
    subject_id: str
    email: str
    role: Role = Role.USER


class Claims(Principal):
    """Verified token payload. ``expires_at`` is a unix timestamp (seconds)."""
    expires_at: int


class Address(_Camel):
    """Saved profile address; every part is optional."""
    street: Optional[str] = Field(default=None, max_length=200)
    city: Optional[str] = Field(default=None, max_length=100)
    state: Optional[str] = Field(default=None, max_length=100)
    zip_code: Optional[str] = Field(default=None, max_length=20)
    country: Optional[str] = Field(default=None, max_length=100)


class User(_Camel):
    id: str
    name: str
    email: str
    role: Role = Role.USER
    phone: Optional[str] = None
    address: Optional[Address] = None
    password_hash: str = Field(exclude=True, repr=False)
    created_at: Optional[datetime] = None

    def principal(self) -> Principal:
        return Principal(subject_id=self.id, email=self.email, role=self.role)


# ---- Catalog / pricing -------------------------------------------------------

class CatalogItem(_FrozenCamel):
    id: str
    name: str = ""
    image: Optional[str] = None
    unit_price: Decimal = Field(ge=0)
    available_stock: int = Field(ge=0)


class CartLine(_FrozenCamel):
    product_id: str
    requested_qty: int = Field(ge=1)


class ValidatedLine(_FrozenCamel):
    product_id: str
    name: str = ""
    image: Optional[str] = None
    unit_price_at_auth: Decimal
    qty: int

    @property
    def line_total(self) -> Decimal:
        return self.unit_price_at_auth * self.qty


class AuthoritativeOrderTotal(_FrozenCamel):
    total_amount: Decimal
    validated_lines: List[ValidatedLine]


# ---- Payments ----------------------------------------------------------------

class PaymentAuthorization(_FrozenCamel):
    provider_reference: str
    client_secret: str = Field(repr=False)
    amount_minor_units: int
    currency: str
    correlation_metadata: Dict[str, str] = Field(default_factory=dict)


# ---- Orders ------------------------------------------------------------------

class ShippingAddress(_Camel):
    name: str = Field(min_length=1, max_length=200)
    street: str = Field(min_length=1, max_length=200)
    city: str = Field(min_length=1, max_length=100)
    state: str = Field(min_length=1, max_length=100)
    zip_code: str = Field(min_length=1, max_length=20)
    country: str = Field(min_length=1, max_length=100)
    phone: str = Field(min_length=1, max_length=40)

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="forbid",
    )


class OrderLine(_Camel):
    product_id: str
    product_name: str
    product_image: Optional[str] = None
    unit_price_at_auth: Decimal
    qty: int


class Order(_Camel):
    id: str
    owner_id: str
    owner_email: Optional[str] = None
    line_item_snapshot: List[OrderLine]
    total_amount: Decimal
    currency: str = "usd"
    payment_status: PaymentStatus = PaymentStatus.PENDING
    order_status: OrderStatus = OrderStatus.PENDING
    shipping_address: ShippingAddress
    payment_provider_reference: Optional[str] = None
    created_at: datetime
    updated_at: datetime
