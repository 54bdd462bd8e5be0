"""
Handler du job "initialize-payment" (exécuté par le worker).
- Convertit le montant en unité mineure, construit le payload Paystack, appelle
  /transaction/initialize avec un délai borné.
- Succès: le verrou d'idempotence est résolu avec la référence; la réponse
  Paystack (authorization_url, access_code, reference) devient le résultat du job.
- Échec: l'erreur est relancée pour que la politique de retry de la file
  s'applique. Le verrou n'est supprimé qu'à la dernière tentative: une reprise
  réussie doit encore trouver la clé pour la résoudre (SET XX).
"""
import logging
from typing import Any, Dict

from storefront.jobs.payloads import InitializePaymentJob
from storefront.jobs.queue import Job
from storefront.payments.paystack_client import to_minor_units

logger = logging.getLogger(__name__)


def make_initialize_payment_handler(ctx):
    settings = ctx.settings

    async def initialize_payment(job: InitializePaymentJob, attempt: Job) -> Dict[str, Any]:
        try:
            data = await ctx.gateway.initialize(
                email=job.user.email,
                amount_minor=to_minor_units(job.amount),
                currency=settings.paystack_currency,
                channels=list(settings.paystack_channels),
                reference=job.reference,
                callback_url=settings.paystack_callback_url or None,
                metadata={
                    "user_id": job.user.id,
                    "user_email": job.user.email,
                    "order_id": job.order_id,
                    "order_data_key": job.order_data_key,
                    "idempotency_key": job.idempotency_key,
                },
            )
        except Exception:
            if attempt.is_final_attempt:
                await ctx.guard.release(job.idempotency_key)
                logger.warning("payments.initialize failed user_id=%s order_id=%s: lock released", job.user.id, job.order_id)
            else:
                logger.warning(
                    "payments.initialize failed user_id=%s order_id=%s attempt=%s/%s: will retry",
                    job.user.id, job.order_id, attempt.attempts_made + 1, attempt.attempts,
                )
            raise

        reference = data.get("reference") or job.reference
        await ctx.guard.resolve(job.idempotency_key, reference)
        logger.info("payments.initialize ok user_id=%s order_id=%s reference=%s", job.user.id, job.order_id, reference)
        return {
            "authorization_url": data.get("authorization_url"),
            "access_code": data.get("access_code"),
            "reference": reference,
        }

    return initialize_payment
