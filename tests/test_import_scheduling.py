import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from modtinder.services.import_coordinator import ImportCoordinator
from modtinder.services.import_status import ImportStatus, describe_import_time
from modtinder.services.scheduler_service import (
    EXPIRATION_CHECK_JOB_ID,
    REQUEST_CHECK_JOB_ID,
    SchedulerService,
)


async def _idle(import_status):
    return not (await import_status.snapshot()).import_pending


@pytest.fixture
def coordinator():
    coordinator = AsyncMock(spec=ImportCoordinator)
    coordinator.is_import_due.return_value = True
    return coordinator


@pytest.fixture
def import_status():
    return ImportStatus()


@pytest.fixture
def scheduler_service(coordinator, import_status):
    return SchedulerService(coordinator, import_status)


@pytest.mark.asyncio
async def test_two_requests_one_tick_import_once(scheduler_service, coordinator, import_status):
    await import_status.request_import()
    await import_status.request_import()

    assert await scheduler_service.run_request_check() is True
    assert await scheduler_service.run_request_check() is False
    coordinator.do_import.assert_awaited_once()
    assert await _idle(import_status)


@pytest.mark.asyncio
async def test_no_request_no_import(scheduler_service, coordinator):
    assert await scheduler_service.run_request_check() is False
    coordinator.do_import.assert_not_awaited()


@pytest.mark.asyncio
async def test_failed_import_clears_flags_and_propagates(scheduler_service, coordinator, import_status):
    coordinator.do_import.side_effect = RuntimeError("feed down")
    await import_status.request_import()

    with pytest.raises(RuntimeError):
        await scheduler_service.run_request_check()

    assert await _idle(import_status)


@pytest.mark.asyncio
async def test_request_during_import_is_not_run_concurrently(import_status):
    started = asyncio.Event()
    release = asyncio.Event()
    calls = 0

    async def slow_import():
        nonlocal calls
        calls += 1
        started.set()
        await release.wait()

    await import_status.request_import()
    running = asyncio.create_task(import_status.try_claim_and_run(slow_import))
    await started.wait()

    snapshot = await import_status.snapshot()
    assert snapshot.import_in_progress and snapshot.import_pending
    await import_status.request_import()
    assert await import_status.try_claim_and_run(slow_import) is False

    release.set()
    assert await running is True
    assert calls == 1
    assert await _idle(import_status)


@pytest.mark.asyncio
async def test_expiration_check_only_requests(scheduler_service, coordinator, import_status):
    assert await scheduler_service.run_expiration_check() is True

    coordinator.do_import.assert_not_awaited()
    snapshot = await import_status.snapshot()
    assert snapshot.import_requested is True


@pytest.mark.asyncio
async def test_expiration_check_skipped_when_busy(scheduler_service, coordinator, import_status):
    await import_status.request_import()

    assert await scheduler_service.run_expiration_check() is False
    coordinator.is_import_due.assert_not_awaited()


@pytest.mark.asyncio
async def test_expiration_check_when_data_is_fresh(scheduler_service, coordinator, import_status):
    coordinator.is_import_due.return_value = False

    assert await scheduler_service.run_expiration_check() is False
    assert await _idle(import_status)


@pytest.mark.asyncio
async def test_expiration_check_skips_when_import_finishes_during_check(scheduler_service, coordinator, import_status):
    async def manual_import_completes():
        await import_status.request_import()
        await import_status.try_claim_and_run(AsyncMock())
        return True

    coordinator.is_import_due.side_effect = manual_import_completes

    assert await scheduler_service.run_expiration_check() is False
    assert await _idle(import_status)


@pytest.mark.asyncio
async def test_expiration_check_does_not_duplicate_request_made_during_check(
    scheduler_service, coordinator, import_status
):
    async def manual_request_arrives():
        await import_status.request_import()
        return True

    coordinator.is_import_due.side_effect = manual_request_arrives

    assert await scheduler_service.run_expiration_check() is False
    assert (await import_status.snapshot()).import_requested is True


@pytest.mark.asyncio
async def test_request_import_if_idle(import_status):
    completed = (await import_status.snapshot()).completed_imports

    assert await import_status.request_import_if_idle(completed) is True
    assert await import_status.request_import_if_idle() is False

    await import_status.try_claim_and_run(AsyncMock())
    assert await import_status.request_import_if_idle(completed) is False
    assert await import_status.request_import_if_idle(completed + 1) is True


@pytest.mark.asyncio
async def test_failed_import_is_not_counted_as_completed(import_status):
    await import_status.request_import()

    with pytest.raises(RuntimeError):
        await import_status.try_claim_and_run(AsyncMock(side_effect=RuntimeError("feed down")))

    assert (await import_status.snapshot()).completed_imports == 0


@pytest.mark.asyncio
async def test_scheduler_registers_jobs_and_shuts_down(scheduler_service):
    await scheduler_service.start()
    try:
        stats = scheduler_service.get_job_stats()
        job_ids = {job["id"] for job in stats["scheduled_jobs"]}
        assert job_ids == {REQUEST_CHECK_JOB_ID, EXPIRATION_CHECK_JOB_ID}
        assert stats["is_running"] is True
        assert scheduler_service.scheduler.get_job(REQUEST_CHECK_JOB_ID).max_instances == 1
    finally:
        await scheduler_service.shutdown()

    assert scheduler_service.is_running() is False


@pytest.mark.parametrize(
    "elapsed, expected",
    [
        (timedelta(days=3, hours=2), "3 days ago"),
        (timedelta(hours=5, minutes=59), "5 hours ago"),
        (timedelta(minutes=5), "5 minutes ago"),
        (timedelta(minutes=4, seconds=59), "just now"),
        (timedelta(0), "just now"),
    ],
)
def test_describe_import_time(elapsed, expected):
    latest = datetime(2025, 3, 21, 10, 0, tzinfo=timezone.utc)

    assert describe_import_time(latest, latest + elapsed) == f"2025-03-21 10:00UTC ({expected})"


def test_describe_import_time_never():
    assert describe_import_time(None, datetime.now(timezone.utc)) == "Never"
