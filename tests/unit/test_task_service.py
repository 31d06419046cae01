"""Unit tests for the asyncio task service."""
import asyncio

import pytest

from tieredmemory.services.tasks import CancellationToken, TaskSchedule, TaskStatus
from tieredmemory.services.tasks.asyncio_impl import AsyncIOTaskService


@pytest.fixture
def tasks():
    return AsyncIOTaskService(tasks_enabled=True, drain_seconds=1.0)


class Recorder:
    def __init__(self, delay: float = 0.0, fail: bool = False):
        self.delay = delay
        self.fail = fail
        self.payloads = []

    async def __call__(self, payload: dict):
        self.payloads.append(payload)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise RuntimeError("handler failed")
        return {'ok': True}


class TestAsyncIOTaskService:

    async def test_run_now_passes_cancellation(self, tasks):
        handler = Recorder()
        tasks.register_handler('job', handler)

        result = await tasks.run_now('job', {'batch_size': 5})

        assert result == {'ok': True}
        assert handler.payloads[0]['batch_size'] == 5
        assert isinstance(handler.payloads[0]['cancellation'], CancellationToken)

    async def test_run_now_unknown_type(self, tasks):
        with pytest.raises(KeyError):
            await tasks.run_now('missing')

    async def test_overlapping_runs_are_skipped(self, tasks):
        handler = Recorder(delay=0.1)
        tasks.register_handler('job', handler)

        first = asyncio.create_task(tasks.run_now('job'))
        await asyncio.sleep(0.01)
        assert tasks.is_running('job')
        assert await tasks.run_now('job') is None
        assert await first == {'ok': True}
        assert len(handler.payloads) == 1
        assert not tasks.is_running('job')

    async def test_disabled_service_does_not_schedule(self):
        tasks = AsyncIOTaskService(tasks_enabled=False)
        tasks.register_handler('job', Recorder())
        assert await tasks.schedule_task('job', {}) is None
        assert await tasks.schedule_recurring('job', TaskSchedule(interval_seconds=1)) is None

    async def test_schedule_task_completes(self, tasks):
        handler = Recorder()
        tasks.register_handler('job', handler)

        task_id = await tasks.schedule_task('job', {'n': 1})
        await asyncio.sleep(0.05)

        assert await tasks.get_task_status(task_id) == TaskStatus.COMPLETED
        assert handler.payloads[0]['n'] == 1

    async def test_failed_task_status(self, tasks):
        tasks.register_handler('job', Recorder(fail=True))
        task_id = await tasks.schedule_task('job', {})
        await asyncio.sleep(0.05)
        assert await tasks.get_task_status(task_id) == TaskStatus.FAILED

    async def test_finished_tasks_are_released(self, tasks, monkeypatch):
        monkeypatch.setattr('tieredmemory.services.tasks.asyncio_impl.FINISHED_STATUS_LIMIT', 3)
        tasks.register_handler('job', Recorder())

        task_ids = [await tasks.schedule_task('job', {}) for _ in range(5)]
        await asyncio.sleep(0.05)

        assert tasks._tasks == {}
        assert len(tasks._finished) == 3
        assert await tasks.get_task_status(task_ids[-1]) == TaskStatus.COMPLETED
        assert await tasks.get_task_status(task_ids[0]) == TaskStatus.NOT_FOUND

    async def test_unknown_task_status(self, tasks):
        assert await tasks.get_task_status('task_nope') == TaskStatus.NOT_FOUND

    async def test_recurring_runs_until_shutdown(self, tasks):
        handler = Recorder()
        tasks.register_handler('job', handler)

        schedule_id = await tasks.schedule_recurring('job', TaskSchedule(interval_seconds=0.02,
                                                                        default_payload={'x': 1}))
        await asyncio.sleep(0.15)
        await tasks.shutdown()

        assert len(handler.payloads) >= 2
        assert tasks.cancellation.cancelled
        assert await tasks.get_task_status(schedule_id) == TaskStatus.COMPLETED

    async def test_recurring_survives_handler_errors(self, tasks):
        handler = Recorder(fail=True)
        tasks.register_handler('job', handler)

        await tasks.schedule_recurring('job', TaskSchedule(interval_seconds=0.02))
        await asyncio.sleep(0.1)
        await tasks.shutdown()

        assert len(handler.payloads) >= 2

    async def test_cancel_delayed_task(self, tasks):
        handler = Recorder()
        tasks.register_handler('job', handler)

        task_id = await tasks.schedule_task('job', {}, delay_seconds=10)
        assert await tasks.cancel_task(task_id)
        await asyncio.sleep(0.01)

        assert await tasks.get_task_status(task_id) == TaskStatus.CANCELLED
        assert handler.payloads == []

    async def test_shutdown_skips_delayed_tasks(self, tasks):
        handler = Recorder()
        tasks.register_handler('job', handler)

        await tasks.schedule_task('job', {}, delay_seconds=10)
        await tasks.shutdown(timeout=1.0)

        assert handler.payloads == []


class TestCancellationToken:

    async def test_wait_times_out(self):
        token = CancellationToken()
        assert not await token.wait(0.01)

    async def test_wait_returns_when_cancelled(self):
        token = CancellationToken()
        token.cancel()
        assert await token.wait(10)
        assert token.cancelled
