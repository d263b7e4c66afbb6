# cubecart/services/pricing.py
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Dict, List, Sequence

from ..errors import InsufficientStock, NotFound, ValidationFailed
from ..models import AuthoritativeOrderTotal, CartLine, CatalogItem, ValidatedLine
from .ports import CatalogStore

logger = logging.getLogger(__name__)


def merge_cart_lines(lines: Sequence[CartLine]) -> List[CartLine]:
    """Collapse repeated product ids into one line, keeping first-seen order."""
    totals: Dict[str, int] = {}
    for line in lines:
        totals[line.product_id] = totals.get(line.product_id, 0) + line.requested_qty
    return [CartLine(product_id=pid, requested_qty=qty) for pid, qty in totals.items()]


def price_lines(
    lines: Sequence[CartLine],
    catalog: Dict[str, CatalogItem],
) -> AuthoritativeOrderTotal:
    """
    Price a cart purely from catalog data.

    Only ``product_id`` and ``requested_qty`` are read from each line.
    Raises NotFound for an unknown product and InsufficientStock when the
    quantity exceeds what the catalog currently shows as available.
    """
    if not lines:
        raise ValidationFailed("cart is empty")

    validated: List[ValidatedLine] = []
    total = Decimal("0")
    for line in merge_cart_lines(lines):
        item = catalog.get(line.product_id)
        if item is None:
            raise NotFound("product", line.product_id, http_status=400)
        if line.requested_qty > item.available_stock:
            raise InsufficientStock(line.product_id, line.requested_qty, item.available_stock)
        unit = Decimal(item.unit_price)
        validated.append(ValidatedLine(
            product_id=item.id,
            name=item.name,
            image=item.image,
            unit_price_at_auth=unit,
            qty=line.requested_qty,
        ))
        total += unit * line.requested_qty

    return AuthoritativeOrderTotal(
        total_amount=total,
        validated_lines=validated,
    )


async def compute_authoritative_total(
    lines: Sequence[CartLine],
    catalog: CatalogStore,
) -> AuthoritativeOrderTotal:
    """Load the referenced catalog items and price the cart; recomputed on every call."""
    items = await catalog.get_many({l.product_id for l in lines})
    priced = price_lines(lines, items)
    logger.info(
        f"priced cart: {len(priced.validated_lines)} line(s), total {priced.total_amount}",
    )
    return priced
