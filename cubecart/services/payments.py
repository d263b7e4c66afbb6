# cubecart/services/payments.py
"""Stripe PaymentIntent creation for server-computed totals.

The Stripe SDK is synchronous; calls run in a worker thread and are bounded
by ``PAYMENT_PROVIDER_TIMEOUT_SECONDS``. Nothing here retries: a repeated
create without an idempotency key would make a second authorization.
"""
from __future__ import annotations

import asyncio
import json
import logging
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Sequence

import stripe

from ..errors import ProviderError, ValidationFailed
from ..models import (
    AuthoritativeOrderTotal,
    CartLine,
    Claims,
    PaymentAuthorization,
    ShippingAddress,
    ValidatedLine,
)
from ..settings import settings
from .ports import CatalogStore
from .pricing import compute_authoritative_total

logger = logging.getLogger(__name__)

# https://stripe.com/docs/currencies#zero-decimal
ZERO_DECIMAL_CURRENCIES = frozenset({
    "bif", "clp", "djf", "gnf", "jpy", "kmf", "krw", "mga",
    "pyg", "rwf", "ugx", "vnd", "vuv", "xaf", "xof", "xpf",
})

# Stripe rejects metadata values longer than this
METADATA_VALUE_LIMIT = 500


def configure_stripe() -> bool:
    """Install the process-wide API key. Returns False when payments are not configured."""
    stripe.max_network_retries = 0
    if not settings.stripe_secret_key:
        logger.warning("STRIPE_SECRET_KEY is not set; payment calls will fail")
        return False
    stripe.api_key = settings.stripe_secret_key
    return True


def to_minor_units(amount: Decimal, currency: str) -> int:
    """Major units -> integer minor units, rounding half away from zero."""
    exponent = 0 if currency.lower() in ZERO_DECIMAL_CURRENCIES else 2
    scaled = Decimal(amount) * (Decimal(10) ** exponent)
    return int(scaled.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def build_correlation_metadata(
    priced: AuthoritativeOrderTotal,
    shipping: ShippingAddress,
    subject_id: Optional[str] = None,
) -> Dict[str, str]:
    """
    Data needed to reconcile the payment later: who ships where, and which
    product ids, quantities and server-side unit prices were authorized.
    Nothing here comes from client-supplied prices.
    """
    metadata = {
        "shipping_name": shipping.name,
        "shipping_address": json.dumps(
            shipping.model_dump(by_alias=True), separators=(",", ":"),
        ),
        "cart_items": json.dumps(
            [
                {"id": l.product_id, "q": l.qty, "p": str(l.unit_price_at_auth)}
                for l in priced.validated_lines
            ],
            separators=(",", ":"),
        ),
    }
    if subject_id:
        metadata["subject_id"] = subject_id
    for key, value in metadata.items():
        if len(value) > METADATA_VALUE_LIMIT:
            raise ValidationFailed(f"{key} is too large to attach to a payment")
    return metadata


def parse_authorized_lines(metadata: Dict[str, Any]) -> List[ValidatedLine]:
    """Inverse of the ``cart_items`` entry written by build_correlation_metadata."""
    try:
        raw = json.loads(metadata.get("cart_items") or "[]")
        lines = [
            ValidatedLine(
                product_id=str(r["id"]),
                qty=int(r["q"]),
                unit_price_at_auth=Decimal(str(r["p"])),
            )
            for r in raw
        ]
    except (TypeError, KeyError, ValueError, InvalidOperation) as e:
        raise ProviderError(f"payment metadata is unreadable: {e}")
    if not lines:
        raise ProviderError("payment metadata has no cart items")
    return lines


def parse_shipping_address(metadata: Dict[str, Any]) -> ShippingAddress:
    """The address recorded at checkout time."""
    try:
        return ShippingAddress.model_validate(json.loads(metadata["shipping_address"]))
    except (TypeError, KeyError, ValueError) as e:
        raise ProviderError(f"payment metadata has no usable shipping address: {e}")


async def _call_provider(fn, **kwargs) -> Any:
    if not stripe.api_key:
        raise ProviderError("Payments not configured")
    try:
        return await asyncio.wait_for(
            asyncio.to_thread(fn, **kwargs),
            timeout=settings.payment_provider_timeout_seconds,
        )
    except asyncio.TimeoutError:
        raise ProviderError("payment provider timed out")
    except stripe.StripeError as e:
        msg = getattr(e, "user_message", None) or str(e) or type(e).__name__
        raise ProviderError(f"payment provider error: {msg}")


async def create_authorization(
    total_amount: Decimal,
    currency: str,
    correlation_metadata: Dict[str, str],
    idempotency_key: Optional[str] = None,
) -> PaymentAuthorization:
    """Create one PaymentIntent for ``total_amount``. Never writes an order."""
    currency = currency.lower()
    amount = to_minor_units(total_amount, currency)
    if amount <= 0:
        raise ValidationFailed("order total must be greater than zero")

    params: Dict[str, Any] = {
        "amount": amount,
        "currency": currency,
        "metadata": correlation_metadata,
        "automatic_payment_methods": {"enabled": True},
    }
    if idempotency_key:
        params["idempotency_key"] = idempotency_key

    intent = await _call_provider(stripe.PaymentIntent.create, **params)

    auth = PaymentAuthorization(
        provider_reference=intent["id"],
        client_secret=intent["client_secret"],
        amount_minor_units=amount,
        currency=currency,
        correlation_metadata=correlation_metadata,
    )
    logger.info(
        f"created payment authorization for {amount} {currency}",
        extra={"provider_reference": auth.provider_reference},
    )
    return auth


async def retrieve_payment(reference: str) -> Dict[str, Any]:
    """Provider view of a PaymentIntent: id, status, amount, currency, metadata."""
    intent = await _call_provider(stripe.PaymentIntent.retrieve, id=reference)
    return {
        "id": intent["id"],
        "status": intent["status"],
        "amount": int(intent["amount"]),
        "currency": str(intent["currency"]).lower(),
        "metadata": dict(intent.get("metadata") or {}),
    }


async def start_checkout(
    lines: Sequence[CartLine],
    shipping: ShippingAddress,
    claims: Optional[Claims],
    catalog: CatalogStore,
    idempotency_key: Optional[str] = None,
) -> PaymentAuthorization:
    """Price the cart from the catalog, then authorize exactly that amount."""
    # pricing failures raise before the provider is contacted
    priced = await compute_authoritative_total(lines, catalog)
    metadata = build_correlation_metadata(
        priced, shipping, claims.subject_id if claims else None,
    )
    return await create_authorization(
        priced.total_amount, settings.payment_currency, metadata, idempotency_key,
    )
