import asyncio

import pytest
from pydantic import BaseModel, ValidationError as PydanticValidationError

from storefront.jobs.payloads import InitializePaymentJob, JobUser, OrderConfirmationEmailJob
from storefront.jobs.queue import JobQueue
from storefront.utils.errors import JobFailedError, PaymentTimeoutError


def _payment_job(order_id: str = "order-1") -> InitializePaymentJob:
    return InitializePaymentJob(
        user=JobUser(id="user-1", email="buyer@example.com"),
        amount=1000,
        idempotency_key="payment:lock:abc",
        order_id=order_id,
        order_data_key="order:pending:xyz",
        reference=f"sf-{order_id}",
    )


def _email_job(order_id: str = "order-1") -> OrderConfirmationEmailJob:
    return OrderConfirmationEmailJob(to="buyer@example.com", order_id=order_id, total_price=1000, delivery_type="Self Pickup")


@pytest.mark.asyncio
async def test_lower_priority_number_is_served_first_and_fifo_within_priority(redis):
    queue = JobQueue(redis)
    await queue.enqueue(_email_job("e1"), priority=10)
    await queue.enqueue(_payment_job("p1"), priority=1)
    await queue.enqueue(_payment_job("p2"), priority=1)

    order = []
    for _ in range(3):
        job = await queue.fetch_next()
        order.append(job.data["order_id"])
        await queue.complete(job, {"ok": True})
    assert order == ["p1", "p2", "e1"]
    assert await queue.fetch_next() is None


@pytest.mark.asyncio
async def test_fetched_job_is_leased_in_active_set(redis):
    queue = JobQueue(redis)
    handle = await queue.enqueue(_payment_job())
    job = await queue.fetch_next()

    assert job.id == handle.id
    assert job.kind == "initialize-payment"
    assert await queue.get_state(job.id) == "active"
    assert await redis.zscore(queue.wait_key, job.id) is None
    assert await redis.zscore(queue.active_key, job.id) is not None
    assert await queue.counts() == {"waiting": 0, "active": 1, "delayed": 0}


@pytest.mark.asyncio
async def test_concurrent_fetches_never_lease_the_same_job_twice(redis):
    queue = JobQueue(redis)
    for i in range(5):
        await queue.enqueue(_payment_job(f"order-{i}"))

    jobs = await asyncio.gather(*(queue.fetch_next() for _ in range(8)))
    leased = [j.id for j in jobs if j is not None]

    assert sorted(leased) == ["1", "2", "3", "4", "5"]
    assert await queue.counts() == {"waiting": 0, "active": 5, "delayed": 0}


@pytest.mark.asyncio
async def test_undecodable_job_data_is_returned_as_empty_payload(redis):
    queue = JobQueue(redis)
    handle = await queue.enqueue(_payment_job())
    await redis.hset(queue.job_key(handle.id), "data", "{not json")

    job = await queue.fetch_next()
    assert job.id == handle.id
    assert job.data == {}


@pytest.mark.asyncio
async def test_wait_until_finished_returns_result(redis):
    queue = JobQueue(redis)
    handle = await queue.enqueue(_payment_job())

    async def consume():
        job = await queue.fetch_next()
        await queue.complete(job, {"authorization_url": "https://pay/x", "reference": "sf-order-1"})

    result, _ = await asyncio.gather(handle.wait_until_finished(timeout=1, poll_interval=0.01), consume())
    assert result["reference"] == "sf-order-1"


@pytest.mark.asyncio
async def test_wait_until_finished_times_out_without_a_worker(redis):
    queue = JobQueue(redis)
    handle = await queue.enqueue(_payment_job())
    with pytest.raises(PaymentTimeoutError):
        await handle.wait_until_finished(timeout=0.05, poll_interval=0.01)
    # le job reste en file: il pourra encore être traité
    assert await queue.get_state(handle.id) == "waiting"


@pytest.mark.asyncio
async def test_failed_attempt_is_retried_after_backoff_then_fails_for_good(redis):
    queue = JobQueue(redis)
    handle = await queue.enqueue(_payment_job(), attempts=2, backoff_seconds=0.01)

    job = await queue.fetch_next()
    assert await queue.fail(job, "gateway down") == "delayed"
    assert (await queue.counts())["delayed"] == 1

    await asyncio.sleep(0.03)
    job = await queue.fetch_next()
    assert job is not None and job.attempts_made == 1
    assert await queue.fail(job, "gateway down") == "failed"

    with pytest.raises(JobFailedError) as exc:
        await handle.wait_until_finished(timeout=0.1, poll_interval=0.01)
    assert "gateway down" in exc.value.message


@pytest.mark.asyncio
async def test_non_retryable_failure_skips_remaining_attempts(redis):
    queue = JobQueue(redis)
    await queue.enqueue(_payment_job(), attempts=5)
    job = await queue.fetch_next()
    assert await queue.fail(job, "bad payload", retry=False) == "failed"


@pytest.mark.asyncio
async def test_stalled_job_is_requeued_when_lease_expires(redis):
    queue = JobQueue(redis, lease_seconds=0)
    handle = await queue.enqueue(_payment_job(), attempts=3)
    first = await queue.fetch_next()
    assert first.id == handle.id and first.attempts_made == 0

    await asyncio.sleep(0.01)
    again = await queue.fetch_next()
    assert again is not None and again.id == handle.id
    # le bail perdu compte comme une tentative
    assert again.attempts_made == 1


@pytest.mark.asyncio
async def test_job_that_keeps_stalling_ends_up_failed(redis):
    queue = JobQueue(redis, lease_seconds=0)
    handle = await queue.enqueue(_payment_job(), attempts=2)

    assert (await queue.fetch_next()).id == handle.id
    await asyncio.sleep(0.01)
    assert (await queue.fetch_next()).id == handle.id
    await asyncio.sleep(0.01)

    assert await queue.fetch_next() is None
    assert await queue.get_state(handle.id) == "failed"
    assert await redis.hget(queue.job_key(handle.id), "attempts_made") == "2"
    assert await queue.counts() == {"waiting": 0, "active": 0, "delayed": 0}
    with pytest.raises(JobFailedError, match="Job stalled"):
        await handle.wait_until_finished(timeout=0.2, poll_interval=0.01)


class _UnknownJob(BaseModel):
    kind: str = "resize-image"


@pytest.mark.asyncio
async def test_enqueue_rejects_unknown_payload_kind(redis):
    queue = JobQueue(redis)
    with pytest.raises(PydanticValidationError):
        await queue.enqueue(_UnknownJob())
    assert (await queue.counts())["waiting"] == 0
