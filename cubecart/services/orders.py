# cubecart/services/orders.py
"""Order visibility, status transitions and post-payment order creation.

``orderStatus`` and ``paymentStatus`` are separate axes with their own
adjacency tables. Every operation here authorizes the caller before it
touches an order; nothing is cached between requests.
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, FrozenSet, List, Optional

from ..errors import Conflict, Forbidden, InvalidTransition, NotFound, ValidationFailed
from ..models import (
    Claims,
    Order,
    OrderLine,
    OrderStatus,
    PaymentStatus,
    Role,
    ShippingAddress,
)
from ..security.guard import require_owner_or_role, require_role
from .payments import (
    parse_authorized_lines,
    parse_shipping_address,
    retrieve_payment,
    to_minor_units,
)
from .ports import CatalogStore, OrderStore

logger = logging.getLogger(__name__)

ORDER_STATUS_EDGES: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

PAYMENT_STATUS_EDGES: Dict[PaymentStatus, FrozenSet[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.COMPLETED, PaymentStatus.FAILED}),
    PaymentStatus.COMPLETED: frozenset({PaymentStatus.REFUNDED}),
    PaymentStatus.FAILED: frozenset(),
    PaymentStatus.REFUNDED: frozenset(),
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _oid() -> str:
    return uuid.uuid4().hex[:24]


def can_transition_order(current: OrderStatus, target: OrderStatus) -> bool:
    return target in ORDER_STATUS_EDGES[current]


def can_transition_payment(current: PaymentStatus, target: PaymentStatus) -> bool:
    return target in PAYMENT_STATUS_EDGES[current]


# ---- pure state machine ------------------------------------------------------

def transition(order: Order, target: OrderStatus, actor: Optional[Claims]) -> Order:
    """Return a copy of ``order`` moved to ``target``; admin only, adjacent edges only."""
    require_role(actor, Role.ADMIN)
    if not can_transition_order(order.order_status, target):
        raise InvalidTransition("orderStatus", order.order_status.value, target.value)
    return order.model_copy(update={"order_status": target, "updated_at": _now()})


def transition_payment(order: Order, target: PaymentStatus, actor: Optional[Claims]) -> Order:
    require_role(actor, Role.ADMIN)
    if not can_transition_payment(order.payment_status, target):
        raise InvalidTransition("paymentStatus", order.payment_status.value, target.value)
    return order.model_copy(update={"payment_status": target, "updated_at": _now()})


# ---- store-backed operations -------------------------------------------------

async def get_order(store: OrderStore, order_id: str, actor: Optional[Claims]) -> Order:
    order = await store.get(order_id)
    if order is None:
        raise NotFound("order", order_id)
    require_owner_or_role(actor, order.owner_id, Role.ADMIN)
    return order


async def list_orders(store: OrderStore, actor: Claims) -> List[Order]:
    """Admins see every order, everyone else only their own; newest first."""
    if actor.role == Role.ADMIN:
        orders = await store.list_all()
    else:
        orders = await store.list_for_owner(actor.subject_id)
        # don't rely on the store's filter alone
        orders = [o for o in orders if o.owner_id == actor.subject_id]
    return sorted(orders, key=lambda o: o.created_at, reverse=True)


async def update_order_status(
    store: OrderStore, order_id: str, target: OrderStatus, actor: Optional[Claims],
) -> Order:
    # role check comes before the lookup so non-admins learn nothing about ids
    require_role(actor, Role.ADMIN)
    order = await store.get(order_id)
    if order is None:
        raise NotFound("order", order_id)
    updated = transition(order, target, actor)
    saved = await store.save_status(order_id, order_status=updated.order_status)
    if saved is None:
        raise NotFound("order", order_id)
    logger.info(
        f"order status {order.order_status.value} -> {target.value}",
        extra={"order_id": order_id, "subject_id": actor.subject_id},
    )
    return saved


async def update_payment_status(
    store: OrderStore, order_id: str, target: PaymentStatus, actor: Optional[Claims],
) -> Order:
    require_role(actor, Role.ADMIN)
    order = await store.get(order_id)
    if order is None:
        raise NotFound("order", order_id)
    updated = transition_payment(order, target, actor)
    saved = await store.save_status(order_id, payment_status=updated.payment_status)
    if saved is None:
        raise NotFound("order", order_id)
    logger.info(
        f"payment status {order.payment_status.value} -> {target.value}",
        extra={"order_id": order_id, "subject_id": actor.subject_id},
    )
    return saved


async def confirm_paid_order(
    orders: OrderStore,
    catalog: CatalogStore,
    payment_reference: str,
    shipping: Optional[ShippingAddress],
    actor: Claims,
) -> Order:
    """
    Turn a succeeded PaymentIntent into a persisted order.

    The owner, shipping address and unit prices all come from the metadata
    written when the intent was created, so the order reflects what was
    authorized, not the catalog or the request at confirm time. Only stock
    is checked again, atomically, when the order is stored.
    Confirming the same intent again returns the order created the first time.
    """
    existing = await orders.get_by_payment_reference(payment_reference)
    if existing is not None:
        require_owner_or_role(actor, existing.owner_id, Role.ADMIN)
        return existing

    payment = await retrieve_payment(payment_reference)
    metadata = payment["metadata"]
    owner_id = metadata.get("subject_id")
    if not owner_id:
        # guest checkouts are not bound to anyone, so nobody may claim them
        raise Forbidden("payment was not made from a signed-in account")
    if owner_id != actor.subject_id:
        raise Forbidden("payment belongs to another customer")
    if payment["status"] != "succeeded":
        raise ValidationFailed(f"payment has not succeeded (status: {payment['status']})")

    address = parse_shipping_address(metadata)
    if shipping is not None and shipping != address:
        raise ValidationFailed("shipping address differs from the one given at checkout")

    lines = parse_authorized_lines(metadata)
    total = sum((l.line_total for l in lines), Decimal("0"))
    expected = to_minor_units(total, payment["currency"])
    if expected != payment["amount"]:
        logger.error(
            f"captured amount {payment['amount']} != authorized lines {expected}",
            extra={"provider_reference": payment_reference},
        )
        raise Conflict("captured amount does not match the authorized order lines")

    # names and images are display data; prices never come from here
    items = await catalog.get_many({l.product_id for l in lines})

    now = _now()
    order = Order(
        id=_oid(),
        owner_id=owner_id,
        owner_email=actor.email,
        line_item_snapshot=[
            OrderLine(
                product_id=l.product_id,
                product_name=items[l.product_id].name if l.product_id in items else l.product_id,
                product_image=items[l.product_id].image if l.product_id in items else None,
                unit_price_at_auth=l.unit_price_at_auth,
                qty=l.qty,
            )
            for l in lines
        ],
        total_amount=total,
        currency=payment["currency"],
        payment_status=PaymentStatus.COMPLETED,
        order_status=OrderStatus.PENDING,
        shipping_address=address,
        payment_provider_reference=payment_reference,
        created_at=now,
        updated_at=now,
    )
    # stock is decremented in the same atomic unit as the insert
    created = await orders.create(order, lines)
    logger.info(
        f"order created for {total} {payment['currency']}",
        extra={"order_id": created.id, "subject_id": owner_id,
               "provider_reference": payment_reference},
    )
    return created
