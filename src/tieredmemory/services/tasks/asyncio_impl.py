"""
AsyncIO Task Service implementation.

In-process scheduler for single-node deployments: no persistence, one event loop.
"""
import asyncio
import random
from collections import OrderedDict
from logging import Logger
from typing import Optional

from scitrera_app_framework import get_logger, Variables, ext_parse_bool

from ...utils import generate_id
from .base import CancellationToken, TaskHandler, TaskSchedule, TaskService, TaskServicePluginBase, TaskStatus

TIEREDMEMORY_TASKS_ENABLED = 'TIEREDMEMORY_TASKS_ENABLED'
DEFAULT_TASKS_ENABLED = True

TIEREDMEMORY_TASKS_DRAIN_SECONDS = 'TIEREDMEMORY_TASKS_DRAIN_SECONDS'
DEFAULT_TASKS_DRAIN_SECONDS = 10.0

# statuses of finished one-shot tasks kept for get_task_status
FINISHED_STATUS_LIMIT = 1000


class AsyncIOTaskService(TaskService):
    """
    asyncio-based task service.

    - interval + random jitter per recurring schedule
    - per-task-type mutual exclusion (overlapping runs are skipped)
    - a shared CancellationToken handed to handlers; shutdown sets it and drains
    """

    def __init__(self, v: Variables = None, tasks_enabled: bool = DEFAULT_TASKS_ENABLED,
                 drain_seconds: float = DEFAULT_TASKS_DRAIN_SECONDS):
        self._tasks_enabled = tasks_enabled
        self._drain_seconds = drain_seconds
        self._tasks: dict[str, asyncio.Task] = {}
        self._finished: OrderedDict[str, TaskStatus] = OrderedDict()
        self._recurring: dict[str, asyncio.Task] = {}
        self._handlers: dict[str, TaskHandler] = {}
        self._running_types: set[str] = set()
        self._cancellation = CancellationToken()
        self.logger = get_logger(v, name=self.__class__.__name__)
        self.logger.info("Initialized AsyncIOTaskService (enabled=%s)", tasks_enabled)

    @property
    def cancellation(self) -> CancellationToken:
        return self._cancellation

    def is_running(self, task_type: str) -> bool:
        return task_type in self._running_types

    async def run_now(self, task_type: str, payload: Optional[dict] = None) -> Optional[dict]:
        handler = self._handlers.get(task_type)
        if handler is None:
            raise KeyError(f"No handler registered for task type: {task_type}")
        if task_type in self._running_types:
            self.logger.info("Skipping %s: previous run still in progress", task_type)
            return None

        self._running_types.add(task_type)
        try:
            payload = dict(payload or {})
            payload.setdefault('cancellation', self._cancellation)
            self.logger.debug("Executing task type %s", task_type)
            return await handler(payload)
        finally:
            self._running_types.discard(task_type)

    async def schedule_task(self, task_type: str, payload: dict, delay_seconds: float = 0) -> Optional[str]:
        if not self._tasks_enabled:
            self.logger.debug("Tasks are disabled, skipping schedule_task for type: %s", task_type)
            return None
        task_id = generate_id('task', 12)

        async def run_after_delay():
            try:
                if delay_seconds > 0 and await self._cancellation.wait(delay_seconds):
                    return
                await self.run_now(task_type, payload)
                self.logger.debug("Task %s completed", task_id)
            except Exception as e:
                self.logger.error("Task %s failed: %s", task_id, e, exc_info=True)
                raise

        task = asyncio.create_task(run_after_delay())
        task.add_done_callback(lambda t: self._task_finished(task_id, t))
        self._tasks[task_id] = task
        return task_id

    @staticmethod
    def _done_status(task: asyncio.Task) -> TaskStatus:
        if task.cancelled():
            return TaskStatus.CANCELLED
        if task.exception():
            return TaskStatus.FAILED
        return TaskStatus.COMPLETED

    def _task_finished(self, task_id: str, task: asyncio.Task) -> None:
        self._tasks.pop(task_id, None)
        self._finished[task_id] = self._done_status(task)
        while len(self._finished) > FINISHED_STATUS_LIMIT:
            self._finished.popitem(last=False)

    async def schedule_recurring(self, task_type: str, schedule: TaskSchedule) -> Optional[str]:
        if not self._tasks_enabled:
            self.logger.debug("Tasks are disabled, skipping schedule_recurring for type: %s", task_type)
            return None
        schedule_id = generate_id('sched', 12)

        async def run_recurring():
            while not self._cancellation.cancelled:
                delay = schedule.interval_seconds + random.uniform(0, max(0.0, schedule.jitter_seconds))
                if await self._cancellation.wait(delay):
                    break
                try:
                    await self.run_now(task_type, schedule.default_payload)
                except Exception as e:
                    self.logger.error("Recurring task %s failed: %s", task_type, e, exc_info=True)

        self._recurring[schedule_id] = asyncio.create_task(run_recurring())
        self.logger.info(
            "Scheduled recurring task %s: type=%s, interval=%ss, jitter=%ss",
            schedule_id, task_type, schedule.interval_seconds, schedule.jitter_seconds,
        )
        return schedule_id

    async def cancel_task(self, task_id: str) -> bool:
        task = self._tasks.get(task_id) or self._recurring.get(task_id)
        if task and not task.done():
            task.cancel()
            self.logger.info("Cancelled task %s", task_id)
            return True
        return False

    async def get_task_status(self, task_id: str) -> TaskStatus:
        task = self._tasks.get(task_id) or self._recurring.get(task_id)
        if task is None:
            return self._finished.get(task_id, TaskStatus.NOT_FOUND)
        if task.done():
            return self._done_status(task)
        return TaskStatus.RUNNING

    def register_handler(self, task_type: str, handler: TaskHandler) -> None:
        self._handlers[task_type] = handler
        self.logger.info("Registered handler for task type: %s", task_type)

    async def shutdown(self, timeout: Optional[float] = None) -> None:
        timeout = self._drain_seconds if timeout is None else timeout
        self._cancellation.cancel()

        pending = [t for t in (*self._tasks.values(), *self._recurring.values()) if not t.done()]
        if not pending:
            return
        self.logger.info("Draining %d background task(s)", len(pending))
        done, still_pending = await asyncio.wait(pending, timeout=timeout)
        for task in still_pending:
            task.cancel()
        if still_pending:
            await asyncio.gather(*still_pending, return_exceptions=True)
            self.logger.warning("Cancelled %d task(s) that did not drain within %.1fs", len(still_pending), timeout)


class AsyncIOTaskServicePlugin(TaskServicePluginBase):
    """Plugin that creates and manages the AsyncIOTaskService instance."""

    PROVIDER_NAME = 'asyncio'

    def initialize(self, v: Variables, logger: Logger) -> TaskService:
        return AsyncIOTaskService(
            v=v,
            tasks_enabled=v.environ(TIEREDMEMORY_TASKS_ENABLED, default=DEFAULT_TASKS_ENABLED, type_fn=ext_parse_bool),
            drain_seconds=v.environ(TIEREDMEMORY_TASKS_DRAIN_SECONDS, default=DEFAULT_TASKS_DRAIN_SECONDS,
                                    type_fn=float),
        )

    async def async_stopping(self, v: Variables, logger: Logger, value: object | None) -> None:
        if value is not None:
            await value.shutdown()
