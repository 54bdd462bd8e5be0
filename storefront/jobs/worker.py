"""
Boucle de consommation de la file de jobs.
- process_next: réserve un job, valide le payload, appelle le handler du "kind"
  avec (payload, job); le job indique au handler s'il joue sa dernière tentative.
- Succès: résultat stocké (complete). Exception du handler: tentative en échec,
  la politique de la file (retry/backoff ou échec définitif) s'applique.
- run: boucle jusqu'à stop (tâche asyncio dans l'API ou process dédié).
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from pydantic import ValidationError as PydanticValidationError
from redis.exceptions import RedisError

from storefront.jobs.payloads import parse_payload
from storefront.jobs.queue import Job, JobQueue

logger = logging.getLogger(__name__)

Handler = Callable[[Any, Job], Awaitable[Any]]


class Worker:
    def __init__(self, queue: JobQueue, handlers: Dict[str, Handler], poll_interval: float = 0.2):
        self.queue = queue
        self.handlers = handlers
        self.poll_interval = poll_interval

    async def process_next(self) -> Optional[str]:
        """Traite au plus un job. Retourne l'état final du job, ou None si la file est vide."""
        job = await self.queue.fetch_next()
        if job is None:
            return None

        try:
            payload = parse_payload(job.data)
        except PydanticValidationError as e:
            logger.error("worker.invalid_payload id=%s kind=%s errors=%s", job.id, job.kind, e.errors())
            return await self.queue.fail(job, "Invalid job payload", retry=False)

        handler = self.handlers.get(payload.kind)
        if handler is None:
            logger.error("worker.no_handler id=%s kind=%s", job.id, payload.kind)
            return await self.queue.fail(job, f"No handler for job kind '{payload.kind}'", retry=False)

        try:
            result = await handler(payload, job)
        except Exception as e:
            logger.exception("worker.job_failed id=%s kind=%s attempt=%s", job.id, payload.kind, job.attempts_made + 1)
            return await self.queue.fail(job, str(e) or e.__class__.__name__, retry=True)

        await self.queue.complete(job, result)
        logger.info("worker.job_completed id=%s kind=%s", job.id, payload.kind)
        return "completed"

    async def drain(self, max_jobs: int = 100) -> int:
        """Traite les jobs prêts jusqu'à vider la file (utile en tests et en mode burst)."""
        processed = 0
        while processed < max_jobs:
            state = await self.process_next()
            if state is None:
                break
            processed += 1
        return processed

    async def run(self, stop: asyncio.Event) -> None:
        logger.info("worker.start queue=%s kinds=%s", self.queue.name, sorted(self.handlers))
        while not stop.is_set():
            try:
                state = await self.process_next()
            except RedisError:
                logger.exception("worker.redis_error queue=%s", self.queue.name)
                state = None
            except Exception:
                # un job défectueux ne doit pas arrêter la boucle
                logger.exception("worker.unexpected_error queue=%s", self.queue.name)
                state = None
            if state is None:
                try:
                    await asyncio.wait_for(stop.wait(), timeout=self.poll_interval)
                except asyncio.TimeoutError:
                    pass
        logger.info("worker.stop queue=%s", self.queue.name)
