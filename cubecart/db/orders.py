"""Order persistence with atomic stock commit."""
from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from . import get_pool
from ..errors import InsufficientStock
from ..models import Order, OrderStatus, PaymentStatus, ValidatedLine


def _json(value: Any) -> Any:
    return json.loads(value) if isinstance(value, str) else value


def _row_to_order(row) -> Order:
    """Convert a flat Postgres order row into an Order."""
    return Order(
        id=row["id"],
        owner_id=row["owner_id"],
        owner_email=row["owner_email"],
        line_item_snapshot=_json(row["lines"]),
        total_amount=row["total_amount"],
        currency=row["currency"],
        payment_status=row["payment_status"],
        order_status=row["order_status"],
        shipping_address=_json(row["shipping_address"]),
        payment_provider_reference=row["payment_provider_reference"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class PostgresOrderStore:
    async def get(self, order_id: str) -> Optional[Order]:
        pool = await get_pool()
        async with pool.acquire() as conn:
            row = await conn.fetchrow("SELECT * FROM orders WHERE id = $1", order_id)
        return _row_to_order(row) if row else None

    async def get_by_payment_reference(self, reference: str) -> Optional[Order]:
        pool = await get_pool()
        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                "SELECT * FROM orders WHERE payment_provider_reference = $1", reference
            )
        return _row_to_order(row) if row else None

    async def list_all(self) -> List[Order]:
        pool = await get_pool()
        async with pool.acquire() as conn:
            rows = await conn.fetch("SELECT * FROM orders ORDER BY created_at DESC")
        return [_row_to_order(r) for r in rows]

    async def list_for_owner(self, owner_id: str) -> List[Order]:
        pool = await get_pool()
        async with pool.acquire() as conn:
            rows = await conn.fetch(
                "SELECT * FROM orders WHERE owner_id = $1 ORDER BY created_at DESC",
                owner_id,
            )
        return [_row_to_order(r) for r in rows]

    async def create(self, order: Order, stock_lines: List[ValidatedLine]) -> Order:
        doc: Dict[str, Any] = order.model_dump(mode="json", by_alias=True)
        pool = await get_pool()
        async with pool.acquire() as conn:
            async with conn.transaction():
                # Serialize confirmations of the same payment
                if order.payment_provider_reference:
                    await conn.execute(
                        "SELECT pg_advisory_xact_lock(hashtext($1))",
                        order.payment_provider_reference,
                    )
                    row = await conn.fetchrow(
                        "SELECT * FROM orders WHERE payment_provider_reference = $1",
                        order.payment_provider_reference,
                    )
                    if row:
                        return _row_to_order(row)

                # Sort item IDs to prevent deadlocks between concurrent commits
                for line in sorted(stock_lines, key=lambda l: l.product_id):
                    left = await conn.fetchval(
                        """
                        UPDATE products
                        SET stock = stock - $2, updated_at = NOW()
                        WHERE id = $1 AND stock >= $2
                        RETURNING stock
                        """,
                        line.product_id,
                        line.qty,
                    )
                    if left is None:
                        available = await conn.fetchval(
                            "SELECT stock FROM products WHERE id = $1", line.product_id
                        )
                        # raising inside the transaction block rolls back earlier decrements
                        raise InsufficientStock(line.product_id, line.qty, available)

                row = await conn.fetchrow(
                    """
                    INSERT INTO orders (id, owner_id, owner_email, lines, total_amount, currency,
                                        payment_status, order_status, shipping_address,
                                        payment_provider_reference, created_at, updated_at)
                    VALUES ($1, $2, $3, $4::jsonb, $5, $6, $7, $8, $9::jsonb, $10, $11, $12)
                    RETURNING *
                    """,
                    order.id,
                    order.owner_id,
                    order.owner_email,
                    json.dumps(doc["lineItemSnapshot"]),
                    order.total_amount,
                    order.currency,
                    order.payment_status.value,
                    order.order_status.value,
                    json.dumps(doc["shippingAddress"]),
                    order.payment_provider_reference,
                    order.created_at,
                    order.updated_at,
                )
        return _row_to_order(row)

    async def save_status(
        self,
        order_id: str,
        *,
        order_status: Optional[OrderStatus] = None,
        payment_status: Optional[PaymentStatus] = None,
    ) -> Optional[Order]:
        pool = await get_pool()
        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                UPDATE orders
                SET order_status = COALESCE($2, order_status),
                    payment_status = COALESCE($3, payment_status),
                    updated_at = $4
                WHERE id = $1
                RETURNING *
                """,
                order_id,
                order_status.value if order_status else None,
                payment_status.value if payment_status else None,
                datetime.now(timezone.utc),
            )
        return _row_to_order(row) if row else None
