"""Handler du job "order-confirmation-email"."""
import logging

from storefront.jobs.payloads import OrderConfirmationEmailJob
from storefront.jobs.queue import Job
from storefront.notifications.email import render_order_confirmation

logger = logging.getLogger(__name__)


def make_order_confirmation_handler(ctx):
    async def send_order_confirmation(job: OrderConfirmationEmailJob, attempt: Job) -> dict:
        await ctx.mailer.send(
            to=job.to,
            subject=f"Order {job.order_id} confirmed",
            html_body=render_order_confirmation(job.order_id, job.total_price, job.delivery_fee, job.delivery_type),
        )
        return {"sent": True, "to": job.to}

    return send_order_confirmation
