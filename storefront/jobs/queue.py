"""
File de jobs durable adossée à Redis.

Structure des clés (préfixe queue:<nom>):
- :id          compteur d'identifiants
- :job:<id>    hash (kind, data, state, priority, attempts, attempts_made, result, failed_reason)
- :wait        zset des jobs prêts, score = priorité * PRIORITY_SPAN + id (FIFO par priorité)
- :active      zset des jobs en cours, score = fin du bail (ms)
- :delayed     zset des jobs en attente de nouvelle tentative, score = date de reprise (ms)

Livraison au moins une fois: la sortie de :wait et l'entrée dans :active se
font dans une même transaction (WATCH/MULTI), un job n'est donc jamais hors
de tout ensemble. Un job dont le bail expire (worker tombé) est remis dans
:wait et la tentative est comptée; tentatives épuisées -> "failed".
Priorité: le plus petit nombre passe en premier.
"""
import asyncio
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel
from redis.exceptions import WatchError

from storefront.jobs.payloads import dump_payload
from storefront.utils.errors import JobFailedError, PaymentTimeoutError

logger = logging.getLogger(__name__)

PRIORITY_SPAN = 10 ** 12


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class Job:
    id: str
    kind: str
    data: Dict[str, Any]
    priority: int
    attempts: int
    attempts_made: int
    backoff_seconds: float

    @property
    def is_final_attempt(self) -> bool:
        """Un échec de cette tentative sera définitif (plus de reprise)."""
        return self.attempts_made + 1 >= self.attempts


class JobHandle:
    def __init__(self, queue: "JobQueue", job_id: str):
        self.queue = queue
        self.id = job_id

    async def wait_until_finished(self, timeout: float, poll_interval: float = 0.05) -> Any:
        """
        Attend le résultat du job.
        - completed -> résultat désérialisé
        - failed (tentatives épuisées) -> JobFailedError
        - délai dépassé -> PaymentTimeoutError (le job continue côté serveur)
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        key = self.queue.job_key(self.id)
        while True:
            state, result, reason = await self.queue.redis.hmget(key, "state", "result", "failed_reason")
            if state == "completed":
                return json.loads(result) if result else None
            if state == "failed":
                raise JobFailedError(reason or "Job failed")
            remaining = deadline - loop.time()
            if remaining <= 0:
                raise PaymentTimeoutError("Payment processing timed out")
            await asyncio.sleep(min(poll_interval, remaining))


class JobQueue:
    def __init__(self, redis, name: str = "payments", lease_seconds: float = 30.0, keep_finished_seconds: int = 86400):
        self.redis = redis
        self.name = name
        self.prefix = f"queue:{name}"
        self.lease_seconds = lease_seconds
        self.keep_finished_seconds = keep_finished_seconds

    def job_key(self, job_id: str) -> str:
        return f"{self.prefix}:job:{job_id}"

    @property
    def wait_key(self) -> str:
        return f"{self.prefix}:wait"

    @property
    def active_key(self) -> str:
        return f"{self.prefix}:active"

    @property
    def delayed_key(self) -> str:
        return f"{self.prefix}:delayed"

    async def enqueue(self, job: BaseModel, *, priority: int = 0, attempts: int = 1, backoff_seconds: float = 1.0) -> JobHandle:
        data = dump_payload(job)
        job_id = str(await self.redis.incr(f"{self.prefix}:id"))
        async with self.redis.pipeline(transaction=True) as pipe:
            pipe.hset(self.job_key(job_id), mapping={
                "kind": data["kind"],
                "data": json.dumps(data),
                "state": "waiting",
                "priority": priority,
                "attempts": max(1, attempts),
                "attempts_made": 0,
                "backoff_seconds": backoff_seconds,
                "created_at": _now_ms(),
            })
            pipe.zadd(self.wait_key, {job_id: self._score(priority, job_id)})
            await pipe.execute()
        logger.info("queue.enqueue queue=%s id=%s kind=%s priority=%s", self.name, job_id, data["kind"], priority)
        return JobHandle(self, job_id)

    @staticmethod
    def _score(priority: int, job_id: str) -> int:
        return int(priority) * PRIORITY_SPAN + int(job_id)

    async def fetch_next(self) -> Optional[Job]:
        """Réserve le prochain job prêt (bail de lease_seconds) ou None si la file est vide."""
        await self.promote_delayed()
        await self.requeue_stalled()
        leased = await self._lease_next()
        if leased is None:
            return None
        job_id, raw = leased
        if not raw or "data" not in raw:
            # hash expiré/supprimé: rien à traiter
            await self.redis.zrem(self.active_key, job_id)
            return None
        try:
            data = json.loads(raw["data"])
        except ValueError:
            # payload illisible: le worker le rejette sans retry (payload invalide)
            logger.error("queue.fetch_next undecodable data queue=%s id=%s", self.name, job_id)
            data = {}
        return Job(
            id=job_id,
            kind=raw.get("kind", ""),
            data=data if isinstance(data, dict) else {},
            priority=int(raw.get("priority", 0)),
            attempts=int(raw.get("attempts", 1)),
            attempts_made=int(raw.get("attempts_made", 0)),
            backoff_seconds=float(raw.get("backoff_seconds", 1.0)),
        )

    async def _lease_next(self) -> Optional[Tuple[str, Dict[str, str]]]:
        """Retire le premier job de :wait et le pose dans :active, atomiquement."""
        async with self.redis.pipeline(transaction=True) as pipe:
            while True:
                try:
                    await pipe.watch(self.wait_key)
                    head = await pipe.zrange(self.wait_key, 0, 0)
                    if not head:
                        return None
                    job_id = head[0]
                    pipe.multi()
                    pipe.zrem(self.wait_key, job_id)
                    pipe.zadd(self.active_key, {job_id: _now_ms() + int(self.lease_seconds * 1000)})
                    pipe.hset(self.job_key(job_id), mapping={"state": "active", "processed_on": _now_ms()})
                    pipe.hgetall(self.job_key(job_id))
                    *_, raw = await pipe.execute()
                    return job_id, raw
                except WatchError:
                    # un autre worker a pris ce job entre-temps
                    continue

    async def complete(self, job: Job, result: Any) -> None:
        key = self.job_key(job.id)
        async with self.redis.pipeline(transaction=True) as pipe:
            pipe.zrem(self.active_key, job.id)
            pipe.hset(key, mapping={"state": "completed", "result": json.dumps(result), "finished_on": _now_ms()})
            pipe.expire(key, self.keep_finished_seconds)
            await pipe.execute()

    async def fail(self, job: Job, reason: str, retry: bool = True) -> str:
        """
        Enregistre l'échec d'une tentative.
        - Tentatives restantes: job "delayed", reprise après backoff exponentiel.
        - Sinon (ou retry=False): job "failed" définitivement.
        Retourne l'état résultant.
        """
        key = self.job_key(job.id)
        attempts_made = await self.redis.hincrby(key, "attempts_made", 1)
        async with self.redis.pipeline(transaction=True) as pipe:
            pipe.zrem(self.active_key, job.id)
            if retry and attempts_made < job.attempts:
                delay_ms = int(job.backoff_seconds * 1000 * (2 ** (attempts_made - 1)))
                pipe.zadd(self.delayed_key, {job.id: _now_ms() + delay_ms})
                pipe.hset(key, mapping={"state": "delayed", "failed_reason": reason})
                state = "delayed"
            else:
                pipe.hset(key, mapping={"state": "failed", "failed_reason": reason, "finished_on": _now_ms()})
                pipe.expire(key, self.keep_finished_seconds)
                state = "failed"
            await pipe.execute()
        logger.warning("queue.fail queue=%s id=%s attempt=%s/%s state=%s reason=%s", self.name, job.id, attempts_made, job.attempts, state, reason)
        return state

    async def promote_delayed(self) -> int:
        due = await self.redis.zrangebyscore(self.delayed_key, 0, _now_ms())
        moved = 0
        for job_id in due:
            if await self._move_to_wait(self.delayed_key, job_id) == "waiting":
                moved += 1
        return moved

    async def requeue_stalled(self) -> int:
        """
        Bail expiré: la tentative en cours compte comme échouée.
        Tentatives restantes -> :wait; sinon le job passe "failed".
        """
        stalled = await self.redis.zrangebyscore(self.active_key, 0, _now_ms())
        moved = 0
        for job_id in stalled:
            state = await self._move_to_wait(self.active_key, job_id, stalled=True)
            if state:
                logger.warning("queue.requeue_stalled queue=%s id=%s state=%s", self.name, job_id, state)
                moved += 1
        return moved

    async def _move_to_wait(self, source_key: str, job_id: str, stalled: bool = False) -> Optional[str]:
        """Déplace un job de source_key vers :wait (ou "failed") en une transaction; None si déjà déplacé."""
        key = self.job_key(job_id)
        async with self.redis.pipeline(transaction=True) as pipe:
            try:
                await pipe.watch(source_key, key)
                if await pipe.zscore(source_key, job_id) is None:
                    return None
                priority, attempts, attempts_made = await pipe.hmget(key, "priority", "attempts", "attempts_made")
                exhausted = stalled and int(attempts_made or 0) + 1 >= int(attempts or 1)
                pipe.multi()
                pipe.zrem(source_key, job_id)
                if stalled:
                    pipe.hincrby(key, "attempts_made", 1)
                if exhausted:
                    pipe.hset(key, mapping={"state": "failed", "failed_reason": "Job stalled", "finished_on": _now_ms()})
                    pipe.expire(key, self.keep_finished_seconds)
                else:
                    pipe.hset(key, "state", "waiting")
                    pipe.zadd(self.wait_key, {job_id: self._score(int(priority or 0), job_id)})
                await pipe.execute()
            except WatchError:
                return None
        return "failed" if exhausted else "waiting"

    async def get_state(self, job_id: str) -> Optional[str]:
        return await self.redis.hget(self.job_key(job_id), "state")

    async def counts(self) -> Dict[str, int]:
        return {
            "waiting": await self.redis.zcard(self.wait_key),
            "active": await self.redis.zcard(self.active_key),
            "delayed": await self.redis.zcard(self.delayed_key),
        }
