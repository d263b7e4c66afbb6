"""FastAPI providers for the persistence collaborators.

Tests replace these through ``app.dependency_overrides``.
"""
from __future__ import annotations

from .db.catalog import PostgresCatalog
from .db.orders import PostgresOrderStore
from .db.users import PostgresUserStore
from .services.ports import CatalogStore, OrderStore, UserStore


def get_catalog_store() -> CatalogStore:
    return PostgresCatalog()


def get_order_store() -> OrderStore:
    return PostgresOrderStore()


def get_user_store() -> UserStore:
    return PostgresUserStore()
