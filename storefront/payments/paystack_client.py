"""
Adaptateur Paystack: centralise les appels HTTP et la vérification des webhooks.
"""
import hashlib
import hmac
import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional

import httpx

from storefront.config import Settings
from storefront.utils.errors import NotFoundError, UpstreamError

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "x-paystack-signature"


class InvalidReferenceError(NotFoundError):
    """Référence inconnue de Paystack (404 sur /transaction/verify)."""


def to_minor_units(amount: float) -> int:
    """Montant -> unité mineure Paystack (KES -> cents), arrondi half-up (10.005 -> 1001)."""
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class PaystackClient:
    def __init__(self, secret_key: str, base_url: str = "https://api.paystack.co", timeout: float = 5.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.secret_key = secret_key
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            headers={"Authorization": f"Bearer {secret_key}", "Content-Type": "application/json"},
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "PaystackClient":
        if not settings.paystack_secret_key:
            logger.warning("PAYSTACK_SECRET_KEY manquant: les appels Paystack échoueront")
        return cls(settings.paystack_secret_key, settings.paystack_base_url, settings.paystack_timeout_seconds)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        try:
            resp = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.warning("paystack.%s %s transport error: %s", method, url, e)
            raise UpstreamError("Payment gateway unavailable") from e
        if resp.status_code == 404:
            raise InvalidReferenceError("Transaction reference not found")
        if resp.status_code >= 400:
            logger.warning("paystack.%s %s status=%s body=%s", method, url, resp.status_code, resp.text[:500])
            raise UpstreamError("Payment gateway error")
        body = resp.json()
        if not body.get("status"):
            raise UpstreamError(body.get("message") or "Payment gateway error")
        data = body.get("data")
        return data if data is not None else {}

    async def initialize(
        self,
        *,
        email: str,
        amount_minor: int,
        currency: str,
        channels: List[str],
        metadata: Dict[str, Any],
        reference: Optional[str] = None,
        callback_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        POST /transaction/initialize
        Retour: {authorization_url, access_code, reference}
        - reference fournie par l'appelant: Paystack rejette une référence déjà utilisée
          (un job relivré ne peut pas créer une seconde transaction).
        """
        payload: Dict[str, Any] = {
            "email": email,
            "amount": amount_minor,
            "currency": currency,
            "channels": channels,
            "metadata": metadata,
        }
        if reference:
            payload["reference"] = reference
        if callback_url:
            payload["callback_url"] = callback_url
        data = await self._request("POST", "/transaction/initialize", json=payload)
        if not data.get("authorization_url"):
            raise UpstreamError("Payment gateway returned no authorization URL")
        return data

    async def verify(self, reference: str) -> Dict[str, Any]:
        """GET /transaction/verify/:reference -> data (status: success|failed|abandoned|reversed|pending|ongoing)."""
        return await self._request("GET", f"/transaction/verify/{reference}")

    async def list_transactions(self, page: int = 1, per_page: int = 50) -> Any:
        return await self._request("GET", "/transaction", params={"page": page, "perPage": per_page})

    async def fetch_transaction(self, transaction_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/transaction/{transaction_id}")

    def verify_signature(self, raw_body: bytes, signature: Optional[str]) -> bool:
        """HMAC-SHA512 du corps brut avec la clé secrète, comparé en temps constant."""
        return verify_signature(self.secret_key, raw_body, signature)


def verify_signature(secret_key: str, raw_body: bytes, signature: Optional[str]) -> bool:
    if not secret_key or not signature:
        return False
    expected = hmac.new(secret_key.encode("utf-8"), raw_body, hashlib.sha512).hexdigest()
    return hmac.compare_digest(expected, signature.strip())
