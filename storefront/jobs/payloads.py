"""
Messages de la file de jobs: une variante typée par type de job.
- Le champ "kind" sert de discriminant (initialize-payment, order-confirmation-email).
- Validés à l'enqueue et au dequeue: un payload invalide n'atteint jamais un handler.
"""
from typing import Annotated, Any, Dict, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter


class JobUser(BaseModel):
    id: str
    email: str


class InitializePaymentJob(BaseModel):
    kind: Literal["initialize-payment"] = "initialize-payment"
    user: JobUser
    amount: float = Field(gt=0)
    idempotency_key: str
    order_id: str
    order_data_key: str
    reference: str


class OrderConfirmationEmailJob(BaseModel):
    kind: Literal["order-confirmation-email"] = "order-confirmation-email"
    to: str
    order_id: str
    total_price: float
    delivery_fee: float = 0
    delivery_type: str


JobPayload = Annotated[
    Union[InitializePaymentJob, OrderConfirmationEmailJob],
    Field(discriminator="kind"),
]

_adapter = TypeAdapter(JobPayload)


def parse_payload(data: Dict[str, Any]) -> JobPayload:
    return _adapter.validate_python(data)


def dump_payload(job: BaseModel) -> Dict[str, Any]:
    """Revalide via l'union taguée avant sérialisation (rejette un kind inconnu)."""
    return _adapter.dump_python(parse_payload(job.model_dump()), mode="json")
