"""Pydantic schemas for checkout requests and staged (unpaid) orders."""
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class DeliveryType(str, Enum):
    PSV = "PSV"
    OUTSIDE_NAIROBI = "Outside Nairobi"
    EXPRESS = "Express Delivery"
    SELF_PICKUP = "Self Pickup"


# Champ obligatoire par type de livraison (absence = erreur de validation, jamais de défaut)
REQUIRED_FIELDS = {
    DeliveryType.PSV: ("stage_id", "stageId"),
    DeliveryType.OUTSIDE_NAIROBI: ("county", "county"),
    DeliveryType.EXPRESS: ("store_address", "storeAddress"),
}


class CheckoutRequest(BaseModel):
    """
    Corps de POST /order et POST /payment/initialize.
    - deliveryType détermine le champ requis (stageId, county, storeAddress).
    - deliveryFee n'est pris en compte que pour "Outside Nairobi".
    - amount (optionnel) doit correspondre au total calculé côté serveur.
    """
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    delivery_type: DeliveryType = Field(alias="deliveryType")
    stage_id: Optional[str] = Field(default=None, alias="stageId")
    county: Optional[str] = None
    store_address: Optional[str] = Field(default=None, alias="storeAddress")
    delivery_location: Optional[str] = Field(default=None, alias="deliveryLocation")
    delivery_fee: Optional[float] = Field(default=None, alias="deliveryFee", ge=0)
    amount: Optional[float] = Field(default=None, gt=0)

    @model_validator(mode="after")
    def check_delivery_fields(self):
        required = REQUIRED_FIELDS.get(self.delivery_type)
        if required:
            attr, alias = required
            if not getattr(self, attr):
                raise ValueError(f"{alias} is required for delivery type '{self.delivery_type.value}'")
        return self


class PendingOrderItem(BaseModel):
    product_id: str
    quantity: int = Field(ge=1)
    unit_price: float = Field(ge=0)


class PendingOrder(BaseModel):
    """Commande entièrement valorisée, non payée, conservée dans Redis le temps du paiement."""
    model_config = ConfigDict(populate_by_name=True)

    order_id: str
    user_id: str
    user_email: str
    order_items: List[PendingOrderItem] = Field(alias="orderItems")
    delivery_type: DeliveryType = Field(alias="deliveryType")
    total_price: float = Field(alias="totalPrice")
    delivery_fee: float = Field(default=0, alias="deliveryFee")
    stage_id: Optional[str] = Field(default=None, alias="stageId")
    stage_name: Optional[str] = Field(default=None, alias="stageName")
    county: Optional[str] = None
    store_address: Optional[str] = Field(default=None, alias="storeAddress")
    delivery_location: Optional[str] = Field(default=None, alias="deliveryLocation")
    reference: Optional[str] = None
    idempotency_key: Optional[str] = Field(default=None, alias="idempotencyKey")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def number_of_items(self) -> int:
        return sum(i.quantity for i in self.order_items)
