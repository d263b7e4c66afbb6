"""Shared fixtures: in-memory stores, a fake Stripe, and token helpers."""
from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List

# Set dummy env vars BEFORE any cubecart imports
os.environ.setdefault("TOKEN_SECRET", "test-secret-0123456789-abcdefghijklmnop")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_dummy")
os.environ.setdefault("PASSWORD_HASH_ROUNDS", "4")
os.environ.setdefault("LOG_FORMAT", "text")

import pytest
import stripe

from cubecart.dependencies import get_catalog_store, get_order_store, get_user_store
from cubecart.models import Principal, Role
from cubecart.security.tokens import get_token_service
from tests.fakes import InMemoryCatalog, InMemoryOrderStore, InMemoryUserStore, make_order


# ---------- Fake Stripe ----------

class FakeStripe:
    """Records PaymentIntent calls and serves canned responses."""

    def __init__(self):
        self.created: List[Dict[str, Any]] = []
        self.intents: Dict[str, Dict[str, Any]] = {}
        self.create_error: Exception | None = None

    def create(self, **params):
        self.created.append(params)
        if self.create_error is not None:
            raise self.create_error
        pi_id = f"pi_{len(self.created)}"
        intent = {
            "id": pi_id,
            "client_secret": f"{pi_id}_secret_abc",
            "amount": params["amount"],
            "currency": params["currency"],
            "status": "requires_payment_method",
            "metadata": dict(params.get("metadata") or {}),
        }
        self.intents[pi_id] = intent
        return intent

    def retrieve(self, id, **params):
        if id not in self.intents:
            raise stripe.InvalidRequestError(f"No such payment_intent: '{id}'", "id")
        return self.intents[id]

    def succeed(self, pi_id: str) -> None:
        self.intents[pi_id]["status"] = "succeeded"


@pytest.fixture()
def fake_stripe(monkeypatch):
    fake = FakeStripe()
    monkeypatch.setattr(stripe, "api_key", "sk_test_dummy")
    monkeypatch.setattr(stripe.PaymentIntent, "create", fake.create)
    monkeypatch.setattr(stripe.PaymentIntent, "retrieve", fake.retrieve)
    return fake


# ---------- Stores ----------

@pytest.fixture()
def catalog():
    c = InMemoryCatalog()
    c.add("p1", "10.00", 5, name="Cube Lamp")
    c.add("p2", "2.49", 100, name="Cube Coaster")
    return c


@pytest.fixture()
def order_store(catalog):
    return InMemoryOrderStore(catalog)


@pytest.fixture()
def user_store():
    return InMemoryUserStore()


# ---------- Identity helpers ----------

@pytest.fixture()
def tokens():
    return get_token_service()


@pytest.fixture()
def bearer(tokens):
    def _bearer(subject_id: str, role: Role = Role.USER, email: str | None = None) -> Dict[str, str]:
        principal = Principal(
            subject_id=subject_id, email=email or f"{subject_id}@example.com", role=role,
        )
        return {"Authorization": f"Bearer {tokens.issue(principal)}"}
    return _bearer


@pytest.fixture()
def seeded_orders(order_store):
    base = datetime(2026, 3, 1, tzinfo=timezone.utc)
    order_store.put(make_order("o-alice-old", "alice", created_at=base))
    order_store.put(make_order("o-bob", "bob", created_at=base + timedelta(hours=1)))
    order_store.put(make_order("o-alice-new", "alice", created_at=base + timedelta(hours=2)))
    return order_store


# ---------- App ----------

@pytest.fixture()
def client(catalog, order_store, user_store):
    """FastAPI TestClient (sync) wired to in-memory stores."""
    from fastapi.testclient import TestClient
    from cubecart.main import app

    app.dependency_overrides[get_catalog_store] = lambda: catalog
    app.dependency_overrides[get_order_store] = lambda: order_store
    app.dependency_overrides[get_user_store] = lambda: user_store
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
