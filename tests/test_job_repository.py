# tests/test_job_repository.py
"""Job store SQL: due selection, conditional claim and fenced terminal writes."""
from __future__ import annotations

import uuid
from datetime import timedelta

import pytest

from backoffice_jobs.models.jobs_model import Job


async def _insert(store, clock, **kwargs) -> Job:
    options = dict(
        job_id=str(uuid.uuid4()),
        tenant_id="tenant-1",
        job_type="menu_sync",
        entity_type=None,
        entity_id=None,
        payload={},
        max_retries=3,
        priority=10,
        scheduled_at=clock(),
        now=clock(),
    )
    options.update(kwargs)
    return await store.insert(**options)


@pytest.mark.asyncio
async def test_insert_round_trips_the_row(store, clock):
    job = await _insert(
        store, clock,
        entity_type="menu_item",
        entity_id="item-9",
        payload={"channels": ["doordash"], "nested": {"n": 1}},
        priority=3,
    )
    assert job.status == "pending"
    assert job.retry_count == 0
    assert job.max_retries == 3
    assert job.priority == 3
    assert job.payload == {"channels": ["doordash"], "nested": {"n": 1}}
    assert job.entity_type == "menu_item"
    assert job.entity_id == "item-9"
    assert job.scheduled_at == clock()
    assert job.next_run_at == clock()
    assert job.next_run_at.tzinfo is not None
    assert job.started_at is None
    assert job.result is None


@pytest.mark.asyncio
async def test_find_due_orders_by_priority_then_due_time(store, clock):
    now = clock()
    low = await _insert(store, clock, priority=1, scheduled_at=now - timedelta(minutes=10))
    high_late = await _insert(store, clock, priority=10, scheduled_at=now - timedelta(minutes=1))
    high_early = await _insert(store, clock, priority=10, scheduled_at=now - timedelta(minutes=5))

    due = await store.find_due(now, limit=10)
    assert [job.id for job in due] == [high_early.id, high_late.id, low.id]

    assert [job.id for job in await store.find_due(now, limit=1)] == [high_early.id]


@pytest.mark.asyncio
async def test_find_due_skips_ineligible_jobs(store, clock):
    now = clock()
    due = await _insert(store, clock)
    await _insert(store, clock, scheduled_at=now + timedelta(seconds=1))
    await _insert(store, clock, max_retries=0)

    claimed = await _insert(store, clock)
    assert await store.claim(claimed, now, "w1")

    cancelled = await _insert(store, clock)
    assert await store.cancel_pending(cancelled.id, now)

    assert [job.id for job in await store.find_due(now, limit=10)] == [due.id]


@pytest.mark.asyncio
async def test_claim_is_exclusive_per_attempt(store, clock):
    job = await _insert(store, clock)
    now = clock()

    assert await store.claim(job, now, "worker-a") is True
    # a second runner holding the same snapshot loses
    assert await store.claim(job, now, "worker-b") is False

    current = await store.get(job.id)
    assert current.status == "processing"
    assert current.locked_by == "worker-a"
    assert current.started_at == now


@pytest.mark.asyncio
async def test_claim_refuses_jobs_not_yet_due(store, clock):
    job = await _insert(store, clock, scheduled_at=clock() + timedelta(minutes=1))
    assert await store.claim(job, clock(), "w1") is False


@pytest.mark.asyncio
async def test_mark_completed_only_lands_on_the_claimed_attempt(store, clock):
    job = await _insert(store, clock)
    assert await store.mark_completed(job, {"ok": True}, clock()) is False

    assert await store.claim(job, clock(), "w1")
    assert await store.mark_completed(job, {"ok": True}, clock()) is True
    # already settled
    assert await store.mark_completed(job, {"ok": False}, clock()) is False

    current = await store.get(job.id)
    assert current.status == "completed"
    assert current.result == {"ok": True}
    assert current.completed_at == clock()
    assert current.locked_by is None


@pytest.mark.asyncio
async def test_scalar_results_are_stored_as_json(store, clock):
    job = await _insert(store, clock)
    assert await store.claim(job, clock(), "w1")
    assert await store.mark_completed(job, "done", clock())
    assert (await store.get(job.id)).result == "done"


@pytest.mark.asyncio
async def test_mark_failed_records_retry_bookkeeping(store, clock):
    job = await _insert(store, clock)
    assert await store.claim(job, clock(), "w1")

    next_run = clock() + timedelta(minutes=4)
    assert await store.mark_failed(
        job, retry_count=1, error_message="upstream 503", next_run_at=next_run, now=clock(),
    )

    current = await store.get(job.id)
    assert current.status == "failed"
    assert current.retry_count == 1
    assert current.error_message == "upstream 503"
    assert current.next_run_at == next_run
    assert current.locked_by is None

    # the failed row is a fresh snapshot for the next claim; the old one is stale
    assert await store.mark_failed(
        job, retry_count=1, error_message="again", next_run_at=next_run, now=clock(),
    ) is False


@pytest.mark.asyncio
async def test_cancel_only_from_pending(store, clock):
    job = await _insert(store, clock)
    assert await store.claim(job, clock(), "w1")
    assert await store.cancel_pending(job.id, clock()) is False
    assert await store.cancel_pending("missing", clock()) is False


@pytest.mark.asyncio
async def test_find_stale(store, clock):
    old = await _insert(store, clock)
    fresh = await _insert(store, clock)
    started = clock()
    assert await store.claim(old, started, "w1")
    assert await store.claim(fresh, started + timedelta(minutes=9), "w2")

    stale = await store.find_stale(started + timedelta(minutes=5))
    assert [job.id for job in stale] == [old.id]


@pytest.mark.asyncio
async def test_list_and_count_by_status(store, clock):
    first = await _insert(store, clock)
    clock.advance(seconds=1)
    second = await _insert(store, clock)
    await store.cancel_pending(first.id, clock())

    counts = await store.count_by_status()
    assert counts == {"pending": 1, "processing": 0, "completed": 0, "failed": 0, "cancelled": 1}

    assert [job.id for job in await store.list_by_status()] == [second.id, first.id]
    assert [job.id for job in await store.list_by_status("cancelled")] == [first.id]
    assert [job.id for job in await store.list_by_status(limit=1, offset=1)] == [first.id]
    assert await store.count() == 2
