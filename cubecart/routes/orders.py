# cubecart/routes/orders.py
from __future__ import annotations
from typing import List

from fastapi import APIRouter, Depends

from ..dependencies import get_catalog_store, get_order_store
from ..models import Claims, Order
from ..schemas.orders import ConfirmOrderIn, OrderStatusUpdateIn, PaymentStatusUpdateIn
from ..security.guard import admin_claims, current_claims
from ..services.orders import (
    confirm_paid_order,
    get_order,
    list_orders,
    update_order_status,
    update_payment_status,
)
from ..services.ports import CatalogStore, OrderStore


router = APIRouter(prefix="/orders", tags=["orders"])


@router.get("", response_model=List[Order])
async def list_orders_endpoint(
    claims: Claims = Depends(current_claims),
    store: OrderStore = Depends(get_order_store),
):
    """Admins get every order; customers get their own. Newest first."""
    return await list_orders(store, claims)


@router.post("/confirm", response_model=Order)
async def confirm_order_endpoint(
    body: ConfirmOrderIn,
    claims: Claims = Depends(current_claims),
    store: OrderStore = Depends(get_order_store),
    catalog: CatalogStore = Depends(get_catalog_store),
):
    return await confirm_paid_order(
        store, catalog, body.paymentIntentId, body.shippingAddress, claims,
    )


@router.get("/{order_id}", response_model=Order)
async def get_order_endpoint(
    order_id: str,
    claims: Claims = Depends(current_claims),
    store: OrderStore = Depends(get_order_store),
):
    return await get_order(store, order_id, claims)


@router.put("/{order_id}", response_model=Order)
async def update_order_status_endpoint(
    order_id: str,
    body: OrderStatusUpdateIn,
    claims: Claims = Depends(admin_claims),
    store: OrderStore = Depends(get_order_store),
):
    return await update_order_status(store, order_id, body.status, claims)


@router.put("/{order_id}/payment-status", response_model=Order)
async def update_payment_status_endpoint(
    order_id: str,
    body: PaymentStatusUpdateIn,
    claims: Claims = Depends(admin_claims),
    store: OrderStore = Depends(get_order_store),
):
    return await update_payment_status(store, order_id, body.status, claims)
