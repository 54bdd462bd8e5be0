"""
Envoi d'e-mails transactionnels via l'API MailerSend.
- MailerSendEmailSender.send({to, subject, html}) -> POST /v1/email
- NullEmailSender: utilisé quand MAILERSEND_API_KEY/FROM_EMAIL manquent (log + no-op).
"""
import html
import logging
from typing import Optional

import httpx

from storefront.config import Settings
from storefront.utils.errors import UpstreamError

logger = logging.getLogger(__name__)

MAILERSEND_API_URL = "https://api.mailersend.com/v1/email"


class MailerSendEmailSender:
    def __init__(self, api_key: str, from_email: str, from_name: str = "Aura-care Beauty", timeout: float = 10.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        if not api_key:
            raise ValueError("MAILERSEND_API_KEY est requis")
        if not from_email:
            raise ValueError("MAILERSEND_FROM_EMAIL est requis")
        self.from_email = from_email
        self.from_name = from_name
        self._client = httpx.AsyncClient(
            timeout=timeout,
            headers={"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"},
            transport=transport,
        )

    async def send(self, *, to: str, subject: str, html_body: str) -> None:
        payload = {
            "from": {"email": self.from_email, "name": self.from_name},
            "to": [{"email": to}],
            "subject": subject,
            "html": html_body,
        }
        try:
            resp = await self._client.post(MAILERSEND_API_URL, json=payload)
        except httpx.HTTPError as e:
            raise UpstreamError("Email provider unavailable") from e
        if resp.status_code >= 400:
            logger.warning("mailersend.send to=%s status=%s body=%s", to, resp.status_code, resp.text[:300])
            raise UpstreamError("Email provider error")
        logger.info("mailersend.send to=%s subject=%s", to, subject)

    async def aclose(self) -> None:
        await self._client.aclose()


class NullEmailSender:
    async def send(self, *, to: str, subject: str, html_body: str) -> None:
        logger.info("email disabled (no MailerSend credentials): to=%s subject=%s", to, subject)


def build_email_sender(settings: Settings):
    if settings.mailersend_api_key and settings.mailersend_from_email:
        return MailerSendEmailSender(settings.mailersend_api_key, settings.mailersend_from_email, settings.mailersend_from_name)
    return NullEmailSender()


def render_order_confirmation(order_id: str, total_price: float, delivery_fee: float, delivery_type: str) -> str:
    return (
        "<div style=\"font-family: Helvetica, Arial, sans-serif; max-width: 600px; margin: 0 auto;\">"
        "<h2>Thank you for your order</h2>"
        f"<p>Your payment was received and order <strong>{html.escape(order_id)}</strong> is being prepared.</p>"
        "<table>"
        f"<tr><td>Delivery</td><td>{html.escape(delivery_type)}</td></tr>"
        f"<tr><td>Delivery fee</td><td>KES {delivery_fee:,.2f}</td></tr>"
        f"<tr><td>Total</td><td>KES {total_price:,.2f}</td></tr>"
        "</table>"
        "</div>"
    )
