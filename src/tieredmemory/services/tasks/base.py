"""
Task Service - Base classes and protocols.

Provides background job scheduling for consolidation, decay, cleanup and health checks.
"""
import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Optional

from scitrera_app_framework.api import Plugin, Variables, enabled_option_pattern

from ...config import TIEREDMEMORY_TASK_PROVIDER, DEFAULT_TIEREDMEMORY_TASK_PROVIDER
from .._constants import EXT_TASK_SERVICE, EXT_MULTI_TASK_HANDLERS


class TaskStatus(str, Enum):
    """Task execution status."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    NOT_FOUND = "not_found"


@dataclass
class TaskSchedule:
    """Configuration for recurring task schedule."""
    interval_seconds: float
    default_payload: dict = field(default_factory=dict)
    jitter_seconds: float = 0.0  # random extra delay added to every interval


class CancellationToken:
    """Cooperative cancellation flag checked by long-running jobs between items."""

    def __init__(self):
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self, timeout: Optional[float] = None) -> bool:
        """Sleep until cancelled or ``timeout`` elapses. Returns True if cancelled."""
        try:
            await asyncio.wait_for(self._event.wait(), timeout)
        except asyncio.TimeoutError:
            pass
        return self._event.is_set()


TaskHandler = Callable[[dict], Awaitable[Optional[dict]]]


class TaskService(ABC):
    """
    Interface for background task management.

    Handlers receive the task payload; the service adds a ``cancellation`` entry
    holding its CancellationToken so handlers can stop between batch items.
    """

    @abstractmethod
    async def schedule_task(self, task_type: str, payload: dict, delay_seconds: float = 0) -> Optional[str]:
        """
        Schedule a task for background execution.

        Args:
            task_type: Type of task to execute (matches registered handler)
            payload: Task payload data
            delay_seconds: Delay before execution (default: immediate)

        Returns:
            Task ID for tracking, or None when tasks are disabled
        """
        pass

    @abstractmethod
    async def schedule_recurring(self, task_type: str, schedule: TaskSchedule) -> Optional[str]:
        """
        Schedule a recurring task.

        A run is skipped when the previous run of the same task type is still in progress.

        Returns:
            Schedule ID for tracking/cancellation, or None when tasks are disabled
        """
        pass

    @abstractmethod
    async def run_now(self, task_type: str, payload: Optional[dict] = None) -> Optional[dict]:
        """
        Run a handler inline (used by the CLI and tests).

        Returns:
            The handler's summary, or None if the job type is already running
        """
        pass

    @abstractmethod
    async def cancel_task(self, task_id: str) -> bool:
        """Cancel a pending task or recurring schedule."""
        pass

    @abstractmethod
    async def get_task_status(self, task_id: str) -> TaskStatus:
        pass

    @abstractmethod
    def register_handler(self, task_type: str, handler: TaskHandler) -> None:
        """
        Register a handler for a task type.

        Called by the setup plugin during startup to register all task handlers.
        """
        pass

    @abstractmethod
    async def shutdown(self, timeout: Optional[float] = None) -> None:
        """Signal cancellation to running jobs and wait for them to drain."""
        pass


# noinspection PyAbstractClass
class TaskServicePluginBase(Plugin):
    """
    Base plugin for TaskService implementations.

    Subclasses MUST set PROVIDER_NAME and implement initialize() to return a TaskService.
    """

    PROVIDER_NAME: str = None

    def name(self) -> str:
        return f"{EXT_TASK_SERVICE}|{self.PROVIDER_NAME}"

    def extension_point_name(self, v: Variables) -> str:
        return EXT_TASK_SERVICE

    def is_enabled(self, v: Variables) -> bool:
        return enabled_option_pattern(self, v, TIEREDMEMORY_TASK_PROVIDER, self_attr='PROVIDER_NAME')

    def on_registration(self, v: Variables) -> None:
        v.set_default_value(TIEREDMEMORY_TASK_PROVIDER, DEFAULT_TIEREDMEMORY_TASK_PROVIDER)

    def get_dependencies(self, v: Variables):
        return ()
