"""Create the cubecart tables and optionally seed an admin account.

    python scripts/init_db.py
    python scripts/init_db.py --admin-email admin@example.com --admin-password '...'
"""
import argparse
import asyncio
import logging
import uuid
from typing import Optional

from cubecart.db import apply_schema, close_pool, get_pool
from cubecart.errors import Conflict
from cubecart.models import Role, User
from cubecart.observability import setup_logging
from cubecart.security.passwords import get_credential_vault
from cubecart.db.users import PostgresUserStore

logger = logging.getLogger("init_db")


async def seed_admin(email: str, password: str, name: str) -> Optional[User]:
    """Insert an admin user; returns None if the email is already taken."""
    store = PostgresUserStore()
    user = User(
        id=uuid.uuid4().hex[:24],
        name=name,
        email=email.strip().lower(),
        role=Role.ADMIN,
        password_hash=get_credential_vault().hash(password),
    )
    try:
        return await store.create(user)
    except Conflict:
        return None


async def main(args: argparse.Namespace) -> None:
    await get_pool()
    try:
        await apply_schema()
        logger.info("schema applied")
        if args.admin_email:
            if not args.admin_password:
                raise SystemExit("--admin-password is required with --admin-email")
            created = await seed_admin(args.admin_email, args.admin_password, args.admin_name)
            if created:
                logger.info(f"admin created: {created.email}")
            else:
                logger.warning(f"{args.admin_email} already exists; left unchanged")
    finally:
        await close_pool()


if __name__ == "__main__":
    ap = argparse.ArgumentParser()
    ap.add_argument("--admin-email", default=None, help="Seed an admin account with this email")
    ap.add_argument("--admin-password", default=None)
    ap.add_argument("--admin-name", default="Administrator")
    setup_logging("INFO", "text")
    asyncio.run(main(ap.parse_args()))
