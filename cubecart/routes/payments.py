# cubecart/routes/payments.py
from __future__ import annotations
from typing import Optional

from fastapi import APIRouter, Depends, Header

from ..dependencies import get_catalog_store
from ..models import CartLine, Claims
from ..schemas.orders import PaymentIntentIn, PaymentIntentOut
from ..security.guard import optional_claims
from ..services.payments import start_checkout
from ..services.ports import CatalogStore


router = APIRouter(prefix="/payment-intents", tags=["payments"])


@router.post("", response_model=PaymentIntentOut)
async def create_payment_intent(
    body: PaymentIntentIn,
    claims: Optional[Claims] = Depends(optional_claims),
    catalog: CatalogStore = Depends(get_catalog_store),
    idempotency_key: Optional[str] = Header(default=None, min_length=1, max_length=255),
):
    """
    Price the cart on the server and create a Stripe PaymentIntent for it.

    Login is optional. Only productId/qty from each item are used; the order
    itself is created later by POST /orders/confirm.
    """
    lines = [CartLine(product_id=i.productId, requested_qty=i.qty) for i in body.items]
    auth = await start_checkout(
        lines, body.shippingAddress, claims, catalog, idempotency_key=idempotency_key,
    )
    return PaymentIntentOut(
        clientSecret=auth.client_secret,
        paymentIntentId=auth.provider_reference,
        amountMinorUnits=auth.amount_minor_units,
        currency=auth.currency,
    )
