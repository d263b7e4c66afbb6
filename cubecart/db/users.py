from __future__ import annotations

import json
from typing import Any, Optional

import asyncpg

from . import get_pool
from ..errors import Conflict
from ..models import Address, User


def _json(value: Any) -> Any:
    return json.loads(value) if isinstance(value, str) else value


def _row_to_user(row) -> User:
    return User(
        id=row["id"],
        name=row["name"],
        email=row["email"],
        phone=row["phone"],
        address=_json(row["address"]),
        role=row["role"],
        password_hash=row["password_hash"],
        created_at=row["created_at"],
    )


class PostgresUserStore:
    async def get(self, user_id: str) -> Optional[User]:
        pool = await get_pool()
        async with pool.acquire() as conn:
            row = await conn.fetchrow("SELECT * FROM users WHERE id = $1", user_id)
        return _row_to_user(row) if row else None

    async def get_by_email(self, email: str) -> Optional[User]:
        pool = await get_pool()
        async with pool.acquire() as conn:
            row = await conn.fetchrow("SELECT * FROM users WHERE email = $1", email)
        return _row_to_user(row) if row else None

    async def create(self, user: User) -> User:
        pool = await get_pool()
        try:
            async with pool.acquire() as conn:
                row = await conn.fetchrow(
                    """
                    INSERT INTO users (id, name, email, phone, role, password_hash, created_at, updated_at)
                    VALUES ($1, $2, $3, $4, $5, $6, COALESCE($7, NOW()), NOW())
                    RETURNING *
                    """,
                    user.id,
                    user.name,
                    user.email,
                    user.phone,
                    user.role.value,
                    user.password_hash,
                    user.created_at,
                )
        except asyncpg.UniqueViolationError:
            raise Conflict("an account with this email already exists")
        return _row_to_user(row)

    async def update_password_hash(self, user_id: str, password_hash: str) -> None:
        pool = await get_pool()
        async with pool.acquire() as conn:
            await conn.execute(
                "UPDATE users SET password_hash = $2, updated_at = NOW() WHERE id = $1",
                user_id,
                password_hash,
            )

    async def update_profile(
        self, user_id: str, *, name: str, phone: Optional[str], address: Address,
    ) -> Optional[User]:
        pool = await get_pool()
        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                UPDATE users
                SET name = $2, phone = $3, address = $4::jsonb, updated_at = NOW()
                WHERE id = $1
                RETURNING *
                """,
                user_id,
                name,
                phone,
                json.dumps(address.model_dump(by_alias=True)),
            )
        return _row_to_user(row) if row else None
