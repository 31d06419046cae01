"""
Task Handler Plugin Base.

Base class for task handler plugins that are auto-discovered via multi-extension.
"""
from abc import ABC, abstractmethod
from logging import Logger
from typing import Iterable, Optional

from scitrera_app_framework import Plugin, Variables, get_extensions

from .base import EXT_MULTI_TASK_HANDLERS, EXT_TASK_SERVICE, CancellationToken, TaskSchedule, TaskService


class TaskHandlerPlugin(Plugin, ABC):
    """
    Base class for task handler plugins.

    Task handlers are auto-discovered via the EXT_MULTI_TASK_HANDLERS extension point
    and registered with the TaskService during startup.
    """

    _v: Variables = None

    @abstractmethod
    def get_task_type(self) -> str:
        """Task type identifier (e.g. "decay_memories")."""
        pass

    @abstractmethod
    async def handle(self, payload: dict) -> Optional[dict]:
        """
        Execute the task with given payload.

        Returns:
            A JSON-serializable summary of the run
        """
        pass

    @abstractmethod
    def get_schedule(self, v: Variables) -> Optional[TaskSchedule]:
        """Recurring schedule, or None for on-demand tasks."""
        pass

    @staticmethod
    def cancellation_from(payload: dict) -> Optional[CancellationToken]:
        token = payload.get('cancellation')
        return token if isinstance(token, CancellationToken) else None

    def initialize(self, v, logger) -> object | None:
        self._v = v
        return self  # use the plugin instance as the handler instance

    def extension_point_name(self, v: Variables) -> str:
        return EXT_MULTI_TASK_HANDLERS

    def is_enabled(self, v: Variables) -> bool:
        """Disable 'single' extension for multi-extension plugins."""
        return False

    def is_multi_extension(self, v: Variables) -> bool:
        return True


class TaskHandlersSetupPlugin(Plugin):
    """
    Configure task handlers for task service
    """

    def extension_point_name(self, v: Variables) -> str:
        return EXT_MULTI_TASK_HANDLERS

    def initialize(self, v, logger) -> object | None:
        logger.info('Initializing Task Service Handlers')
        task_service: TaskService = self.get_extension(EXT_TASK_SERVICE, v)

        for handler_plugin in get_extensions(EXT_MULTI_TASK_HANDLERS, v).values():  # type: TaskHandlerPlugin
            task_service.register_handler(handler_plugin.get_task_type(), handler_plugin.handle)

        return task_service

    async def async_ready(self, v: Variables, logger: Logger, value: TaskService) -> None:
        task_service: TaskService = value
        logger.info('Scheduling Recurring Task Handlers')
        for handler_plugin in get_extensions(EXT_MULTI_TASK_HANDLERS, v).values():  # type: TaskHandlerPlugin
            schedule = handler_plugin.get_schedule(v)
            if schedule:
                await task_service.schedule_recurring(handler_plugin.get_task_type(), schedule)

    def get_dependencies(self, v: Variables) -> Iterable[str] | None:
        return (
            EXT_TASK_SERVICE,  # register handlers must come after task service initialization
        )
