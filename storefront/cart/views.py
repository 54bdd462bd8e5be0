# module storefront.cart.views

"""Endpoints Panier (utilisateur connecté).
- GET /cart: lignes détaillées + total sélectionné
- POST /cart: ajoute un produit ou incrémente sa quantité
- PATCH /cart/decrement: retire une unité (à 1 -> ligne supprimée)
- DELETE /cart/{product_id}: supprime la ligne
- PATCH /cart/{product_id}/select: coche/décoche pour le checkout
"""
from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from typing import Dict, Any, Optional

from storefront.cart import service as cart_service
from storefront.infra.context import AppContext, get_context
from storefront.utils.security import require_user

router = APIRouter(prefix="/api/v1/cart", tags=["Cart API"])


class CartAdd(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_id: str = Field(alias="productId")
    quantity: int = Field(default=1, ge=1)


class CartDecrement(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_id: str = Field(alias="productId")


class CartSelect(BaseModel):
    selected: Optional[bool] = None


@router.get("")
def get_cart(user: Dict[str, Any] = Depends(require_user), ctx: AppContext = Depends(get_context)):
    cart = cart_service.get_cart(ctx.db, str(user.get("id")))
    return {"status": "success", "message": "Cart retrieved", **cart}


@router.post("", status_code=201)
def add_to_cart(body: CartAdd, user: Dict[str, Any] = Depends(require_user), ctx: AppContext = Depends(get_context)):
    line = cart_service.add_to_cart(ctx.db, str(user.get("id")), body.product_id, body.quantity)
    return {"status": "success", "message": "Product added to cart", "item": line}


@router.patch("/decrement")
def decrement(body: CartDecrement, user: Dict[str, Any] = Depends(require_user), ctx: AppContext = Depends(get_context)):
    line = cart_service.decrement(ctx.db, str(user.get("id")), body.product_id)
    return {"status": "success", "message": "Cart updated", "item": line}


@router.delete("/{product_id}")
def remove(product_id: str, user: Dict[str, Any] = Depends(require_user), ctx: AppContext = Depends(get_context)):
    cart_service.remove(ctx.db, str(user.get("id")), product_id)
    return {"status": "success", "message": "Product removed from cart"}


@router.patch("/{product_id}/select")
def select(product_id: str, body: Optional[CartSelect] = None, user: Dict[str, Any] = Depends(require_user), ctx: AppContext = Depends(get_context)):
    line = cart_service.set_selected(ctx.db, str(user.get("id")), product_id, body.selected if body else None)
    return {"status": "success", "message": "Selection updated", "item": line}
