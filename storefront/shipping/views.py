# module storefront.shipping.views

"""Endpoints Frais de livraison.
- GET /shipping-fees: liste paginée (page, limit), filtre optionnel ?location=
- GET /shipping-fees/{fee_id}
- POST, PATCH, DELETE: admin uniquement
"""
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from typing import Dict, Any, Optional

from storefront.infra.context import AppContext, get_context
from storefront.shipping import service as shipping_service
from storefront.utils.security import require_admin, require_user

router = APIRouter(prefix="/api/v1/shipping-fees", tags=["Shipping API"])


class ShippingFeeBody(BaseModel):
    name: Optional[str] = None
    delivery_fee: Optional[float] = None


@router.get("")
def list_shipping_fees(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    location: Optional[str] = None,
    user: Dict[str, Any] = Depends(require_user),
    ctx: AppContext = Depends(get_context),
):
    return {"status": "success", **shipping_service.list_fees(ctx, page, limit, location)}


@router.get("/{fee_id}")
def get_shipping_fee(fee_id: str, user: Dict[str, Any] = Depends(require_user), ctx: AppContext = Depends(get_context)):
    return {"status": "success", "data": shipping_service.get_fee(ctx, fee_id)}


@router.post("", status_code=201)
def create_shipping_fee(body: ShippingFeeBody, admin: Dict[str, Any] = Depends(require_admin), ctx: AppContext = Depends(get_context)):
    return {"status": "success", "data": shipping_service.create_fee(ctx, body.name, body.delivery_fee)}


@router.patch("/{fee_id}")
def update_shipping_fee(fee_id: str, body: ShippingFeeBody, admin: Dict[str, Any] = Depends(require_admin), ctx: AppContext = Depends(get_context)):
    return {"status": "success", "data": shipping_service.update_fee(ctx, fee_id, body.name, body.delivery_fee)}


@router.delete("/{fee_id}")
def delete_shipping_fee(fee_id: str, admin: Dict[str, Any] = Depends(require_admin), ctx: AppContext = Depends(get_context)):
    shipping_service.delete_fee(ctx, fee_id)
    return {"status": "success", "data": None}
