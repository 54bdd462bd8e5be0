# module storefront.checkout.views

"""Endpoints du checkout.
- POST /order: crée la commande en attente et initialise le paiement (201).
- POST /payment/initialize: même opération, réponse 200 (client mobile).
Sécurité:
- require_user: utilisateur connecté obligatoire.
- optional_rate_limit: limite la fréquence des initialisations.
Les AppError remontent telles quelles jusqu'aux exception handlers.
"""
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from typing import Dict, Any

from storefront.checkout import service as checkout_service
from storefront.checkout.schemas import CheckoutRequest
from storefront.infra.context import AppContext, get_context
from storefront.utils.rate_limit import optional_rate_limit
from storefront.utils.security import require_user

router = APIRouter(prefix="/api/v1", tags=["Checkout API"])


@router.post("/order", status_code=201, dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
async def create_order(body: CheckoutRequest, user: Dict[str, Any] = Depends(require_user), ctx: AppContext = Depends(get_context)):
    result = await checkout_service.initialize_checkout(ctx, user, body)
    return JSONResponse(result, status_code=201)


@router.post("/payment/initialize", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
async def initialize_payment(body: CheckoutRequest, user: Dict[str, Any] = Depends(require_user), ctx: AppContext = Depends(get_context)):
    return await checkout_service.initialize_checkout(ctx, user, body)
