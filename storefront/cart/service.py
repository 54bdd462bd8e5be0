"""
Service Panier: opérations utilisateur sur les lignes du panier.
Invariant: une ligne a toujours quantity >= 1; à 0 elle est supprimée.
"""
import logging
from typing import Any, Dict, Optional

from storefront.cart import repository as cart_repo
from storefront.cart.pricing import price_from_product
from storefront.utils.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


def get_cart(db, user_id: str) -> Dict[str, Any]:
    """
    Panier détaillé: lignes enrichies (nom, prix courant, sous-total) et total
    des seules lignes sélectionnées pour le checkout.
    """
    lines = cart_repo.fetch_cart(db, user_id)
    products = cart_repo.fetch_product_prices(db, [line.get("product_id") for line in lines])
    items = []
    selected_total = 0.0
    for line in lines:
        product = products.get(str(line.get("product_id"))) or {}
        unit_price = price_from_product(product)
        quantity = int(line.get("quantity") or 0)
        # prix absent: affiché sans prix, la ligne ne compte pas dans le total
        subtotal = round(unit_price * quantity, 2) if unit_price is not None else 0.0
        selected = bool(line.get("selected_for_checkout"))
        if selected:
            selected_total += subtotal
        items.append({
            "product_id": line.get("product_id"),
            "name": product.get("name"),
            "unit_price": unit_price,
            "quantity": quantity,
            "selected_for_checkout": selected,
            "subtotal": subtotal,
        })
    return {"items": items, "total_price": round(selected_total, 2)}


def add_to_cart(db, user_id: str, product_id: str, quantity: int = 1) -> Dict[str, Any]:
    if quantity < 1:
        raise ValidationError("Quantity must be at least 1")
    if not cart_repo.fetch_product_prices(db, [product_id]):
        raise NotFoundError("Product not found")
    line = cart_repo.get_cart_line(db, user_id, product_id)
    if line:
        new_quantity = int(line.get("quantity") or 0) + quantity
        cart_repo.update_cart_line(db, user_id, product_id, quantity=new_quantity)
    else:
        new_quantity = quantity
        cart_repo.insert_cart_line(db, user_id, product_id, quantity)
    logger.info("cart.add user_id=%s product_id=%s quantity=%s", user_id, product_id, new_quantity)
    return {"product_id": product_id, "quantity": new_quantity}


def decrement(db, user_id: str, product_id: str) -> Dict[str, Any]:
    line = cart_repo.get_cart_line(db, user_id, product_id)
    if not line:
        raise NotFoundError("Product not in cart")
    quantity = int(line.get("quantity") or 0)
    if quantity <= 1:
        cart_repo.delete_cart_line(db, user_id, product_id)
        return {"product_id": product_id, "quantity": 0, "removed": True}
    cart_repo.update_cart_line(db, user_id, product_id, quantity=quantity - 1)
    return {"product_id": product_id, "quantity": quantity - 1, "removed": False}


def remove(db, user_id: str, product_id: str) -> None:
    if not cart_repo.get_cart_line(db, user_id, product_id):
        raise NotFoundError("Product not in cart")
    cart_repo.delete_cart_line(db, user_id, product_id)


def set_selected(db, user_id: str, product_id: str, selected: Optional[bool] = None) -> Dict[str, Any]:
    """selected=None inverse la sélection courante."""
    line = cart_repo.get_cart_line(db, user_id, product_id)
    if not line:
        raise NotFoundError("Product not in cart")
    value = (not bool(line.get("selected_for_checkout"))) if selected is None else bool(selected)
    cart_repo.update_cart_line(db, user_id, product_id, selected_for_checkout=value)
    return {"product_id": product_id, "selected_for_checkout": value}
