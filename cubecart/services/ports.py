# cubecart/services/ports.py
"""Persistence contracts the services depend on.

Postgres implementations live in ``cubecart/db``; tests swap in in-memory
fakes. Services never import a concrete store.
"""
from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Protocol

from ..models import (
    Address,
    CatalogItem,
    Order,
    OrderStatus,
    PaymentStatus,
    User,
    ValidatedLine,
)


class CatalogStore(Protocol):
    async def get_many(self, product_ids: Iterable[str]) -> Dict[str, CatalogItem]: ...


class OrderStore(Protocol):
    async def get(self, order_id: str) -> Optional[Order]: ...

    async def get_by_payment_reference(self, reference: str) -> Optional[Order]: ...

    async def list_all(self) -> List[Order]: ...

    async def list_for_owner(self, owner_id: str) -> List[Order]: ...

    async def create(self, order: Order, stock_lines: List[ValidatedLine]) -> Order:
        """
        Persist ``order`` and decrement catalog stock for ``stock_lines`` as one
        atomic unit (compare-and-decrement per line, all or nothing).

        Raises ``InsufficientStock`` and writes nothing if any line exceeds the
        stock available at commit time. If an order with the same payment
        reference already exists, returns it and leaves stock untouched.
        """
        ...

    async def save_status(
        self,
        order_id: str,
        *,
        order_status: Optional[OrderStatus] = None,
        payment_status: Optional[PaymentStatus] = None,
    ) -> Optional[Order]:
        """Persist one status axis; last write wins. Returns None if the order vanished."""
        ...


class UserStore(Protocol):
    async def get(self, user_id: str) -> Optional[User]: ...

    async def get_by_email(self, email: str) -> Optional[User]: ...

    async def create(self, user: User) -> User:
        """Raise ``Conflict`` if the email is already registered."""
        ...

    async def update_password_hash(self, user_id: str, password_hash: str) -> None: ...

    async def update_profile(
        self,
        user_id: str,
        *,
        name: str,
        phone: Optional[str],
        address: Address,
    ) -> Optional[User]:
        """Returns None if there is no such user."""
        ...
