"""Read access to the product catalog (prices and stock)."""
from __future__ import annotations

from decimal import Decimal
from typing import Dict, Iterable

from . import get_pool
from ..models import CatalogItem


def _row_to_item(row) -> CatalogItem:
    return CatalogItem(
        id=row["id"],
        name=row["name"],
        image=row["image"],
        unit_price=Decimal(row["price"]),
        available_stock=int(row["stock"]),
    )


class PostgresCatalog:
    async def get_many(self, product_ids: Iterable[str]) -> Dict[str, CatalogItem]:
        ids = sorted(set(product_ids))
        if not ids:
            return {}
        pool = await get_pool()
        async with pool.acquire() as conn:
            rows = await conn.fetch(
                "SELECT id, name, image, price, stock FROM products WHERE id = ANY($1::text[])",
                ids,
            )
        return {r["id"]: _row_to_item(r) for r in rows}
