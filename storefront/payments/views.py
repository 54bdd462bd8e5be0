# module storefront.payments.views

"""Endpoints Paiements (Paystack).
- GET /payment/verify/{referenceId}?orderDataKey=: vérifie la transaction et crée la commande.
- POST /payment/webhook: événements Paystack signés (x-paystack-signature), corps brut.
- GET /payment/transactions[/{id}]: consultation admin des transactions Paystack.
"""
from fastapi import APIRouter, Depends, Query, Request
from typing import Dict, Any

from storefront.infra.context import AppContext, get_context
from storefront.payments import service as payments_service
from storefront.payments.paystack_client import SIGNATURE_HEADER
from storefront.utils.security import require_admin, require_user

router = APIRouter(prefix="/api/v1/payment", tags=["Payments API"])


@router.get("/verify/{reference_id}")
async def verify_payment(
    reference_id: str,
    order_data_key: str = Query(..., alias="orderDataKey"),
    user: Dict[str, Any] = Depends(require_user),
    ctx: AppContext = Depends(get_context),
):
    return await payments_service.verify_payment(ctx, user, reference_id, order_data_key)


@router.post("/webhook", include_in_schema=False)
async def paystack_webhook(request: Request, ctx: AppContext = Depends(get_context)):
    # Corps brut: la signature porte sur les octets exacts reçus
    raw = await request.body()
    return await payments_service.handle_webhook(ctx, raw, request.headers.get(SIGNATURE_HEADER))


@router.get("/transactions")
async def list_transactions(
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=100, alias="perPage"),
    admin: Dict[str, Any] = Depends(require_admin),
    ctx: AppContext = Depends(get_context),
):
    data = await payments_service.list_transactions(ctx, page=page, per_page=per_page)
    return {"status": "success", "message": "Transactions retrieved", "data": data}


@router.get("/transactions/{transaction_id}")
async def get_transaction(transaction_id: str, admin: Dict[str, Any] = Depends(require_admin), ctx: AppContext = Depends(get_context)):
    data = await payments_service.fetch_transaction(ctx, transaction_id)
    return {"status": "success", "message": "Transaction retrieved", "data": data}
