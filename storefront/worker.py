"""
Process worker dédié.

Usage:
    python -m storefront.worker

Consomme la file "payments" (initialisation Paystack, e-mails de confirmation)
hors du process API. Avec RUN_WORKER_IN_PROCESS=1 (défaut), la même boucle
tourne en tâche de fond dans l'API et ce process est optionnel.
"""
import asyncio
import logging
import os
import signal

from storefront.jobs.worker import Worker
from storefront.notifications.tasks import make_order_confirmation_handler
from storefront.payments.tasks import make_initialize_payment_handler


def build_worker(ctx) -> Worker:
    return Worker(
        ctx.queue,
        handlers={
            "initialize-payment": make_initialize_payment_handler(ctx),
            "order-confirmation-email": make_order_confirmation_handler(ctx),
        },
    )


async def main() -> None:
    from storefront.infra.context import build_context

    ctx = build_context()
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            pass
    try:
        await build_worker(ctx).run(stop)
    finally:
        await ctx.close()


if __name__ == "__main__":
    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "info").upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    asyncio.run(main())
