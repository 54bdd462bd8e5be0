"""
Logique panier pure (pas de Paystack, pas de DB).
"""
import math
from typing import Any, Dict, List, Optional, Tuple

from storefront.checkout.schemas import PendingOrderItem
from storefront.utils.errors import ValidationError


def price_from_product(product: Dict[str, Any]) -> Optional[float]:
    """Prix unitaire (str|float|int) -> float; None si absent, illisible ou négatif."""
    try:
        price = float(product.get("price"))
    except (TypeError, ValueError):
        return None
    if not math.isfinite(price) or price < 0:
        return None
    return price


def build_order_items(cart_lines: List[Dict[str, Any]], products_by_id: Dict[str, Dict[str, Any]]) -> Tuple[List[PendingOrderItem], float]:
    """
    Construit les lignes de commande au prix courant et le sous-total.
    - Agrège les doublons éventuels d'un même produit.
    - Soulève ValidationError si le panier est vide, si un produit n'existe plus
      ou si son prix est absent ou illisible (jamais vendu à 0).
    """
    quantities: Dict[str, int] = {}
    for line in cart_lines or []:
        product_id = str(line.get("product_id") or "").strip()
        qty = int(line.get("quantity") or 0)
        if not product_id or qty <= 0:
            continue
        quantities[product_id] = quantities.get(product_id, 0) + qty
    if not quantities:
        raise ValidationError("Cart is empty")

    items: List[PendingOrderItem] = []
    subtotal = 0.0
    for product_id, qty in quantities.items():
        product = products_by_id.get(product_id)
        if not product:
            raise ValidationError(f"Product {product_id} is no longer available")
        unit_price = price_from_product(product)
        if unit_price is None:
            raise ValidationError(f"Product {product_id} has no valid price")
        subtotal += unit_price * qty
        items.append(PendingOrderItem(product_id=product_id, quantity=qty, unit_price=unit_price))
    return items, round(subtotal, 2)
