"""
Politique de frais de livraison par type.
- PSV: frais et nom de l'arrêt lus dans psv_stages (arrêt inconnu -> 400).
- Outside Nairobi: frais fournis par l'appelant, 0 sinon.
- Express Delivery / Self Pickup: pas de frais.
Les champs requis par type sont déjà garantis par CheckoutRequest.
"""
from dataclasses import dataclass
from typing import Optional

from storefront.cart import repository as cart_repo
from storefront.checkout.schemas import CheckoutRequest, DeliveryType
from storefront.utils.errors import ValidationError


@dataclass
class DeliveryQuote:
    fee: float = 0.0
    stage_id: Optional[str] = None
    stage_name: Optional[str] = None


def quote_delivery(db, request: CheckoutRequest) -> DeliveryQuote:
    if request.delivery_type is DeliveryType.PSV:
        stage = cart_repo.fetch_psv_stage(db, request.stage_id)
        if not stage:
            raise ValidationError("Invalid PSV stage")
        return DeliveryQuote(
            fee=float(stage.get("delivery_fee") or 0),
            stage_id=str(stage.get("id") or request.stage_id),
            stage_name=stage.get("name"),
        )
    if request.delivery_type is DeliveryType.OUTSIDE_NAIROBI:
        return DeliveryQuote(fee=float(request.delivery_fee or 0))
    return DeliveryQuote()
