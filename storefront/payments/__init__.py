"""
Module 'payments' (feature-first): point d'entrée public.
Réunit garde d'idempotence, client Paystack, polling de vérification, repository BD et services.
"""

from .idempotency import IdempotencyGuard, order_fingerprint
from .paystack_client import PaystackClient, InvalidReferenceError, to_minor_units, verify_signature
from .polling import PaymentPoller, PollPolicy, PollState
from .service import verify_payment, handle_webhook

__all__ = [
    # idempotency
    "IdempotencyGuard",
    "order_fingerprint",
    # paystack
    "PaystackClient",
    "InvalidReferenceError",
    "to_minor_units",
    "verify_signature",
    # polling
    "PaymentPoller",
    "PollPolicy",
    "PollState",
    # services
    "verify_payment",
    "handle_webhook",
]
