"""
Vérification d'un paiement par polling de Paystack (/transaction/verify).

Machine à états: pending -> success | failed | invalid_reference | timeout.
- Délai initial, puis au plus max_retries vérifications.
- Backoff progressif: min(base + step * n, max_delay) -> 3s, 5s, 7s, ... plafonné.
- Erreur de transport: nouvelle tentative après error_delay.
- 404: référence inconnue, terminal.
Les délais et la fonction sleep sont injectables (tests déterministes).
"""
import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional

from storefront.config import Settings
from storefront.payments.paystack_client import InvalidReferenceError
from storefront.utils.errors import UpstreamError

logger = logging.getLogger(__name__)

FAILED_STATUSES = {"failed", "abandoned", "reversed"}


class PollState(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    INVALID_REFERENCE = "invalid_reference"
    TIMEOUT = "timeout"

    @property
    def terminal(self) -> bool:
        return self is not PollState.PENDING


@dataclass
class PollPolicy:
    initial_delay: float = 15.0
    max_retries: int = 10
    base_delay: float = 3.0
    step: float = 2.0
    max_delay: float = 15.0
    error_delay: float = 5.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "PollPolicy":
        return cls(
            initial_delay=settings.poll_initial_delay_seconds,
            max_retries=settings.poll_max_retries,
            base_delay=settings.poll_base_delay_seconds,
            step=settings.poll_step_seconds,
            max_delay=settings.poll_max_delay_seconds,
            error_delay=settings.poll_error_delay_seconds,
        )

    def delay_for(self, attempt: int) -> float:
        return min(self.base_delay + attempt * self.step, self.max_delay)


def classify(gateway_status: Optional[str]) -> PollState:
    status = (gateway_status or "pending").lower()
    if status == "success":
        return PollState.SUCCESS
    if status in FAILED_STATUSES:
        return PollState.FAILED
    return PollState.PENDING


class PaymentPoller:
    def __init__(self, gateway, policy: Optional[PollPolicy] = None, sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        self.gateway = gateway
        self.policy = policy or PollPolicy()
        self.sleep = sleep

    async def poll(self, reference: str) -> PollState:
        await self.sleep(self.policy.initial_delay)
        state = PollState.PENDING
        attempt = 0
        while not state.terminal and attempt < self.policy.max_retries:
            try:
                data = await self.gateway.verify(reference)
            except InvalidReferenceError:
                state = PollState.INVALID_REFERENCE
                break
            except UpstreamError as e:
                logger.warning("poll.verify error reference=%s attempt=%s: %s", reference, attempt + 1, e.message)
                attempt += 1
                if attempt < self.policy.max_retries:
                    await self.sleep(self.policy.error_delay)
                continue

            state = classify(data.get("status"))
            logger.info("poll.verify reference=%s attempt=%s state=%s", reference, attempt + 1, state.value)
            if state.terminal:
                break
            attempt += 1
            if attempt < self.policy.max_retries:
                await self.sleep(self.policy.delay_for(attempt - 1))

        return PollState.TIMEOUT if state is PollState.PENDING else state
