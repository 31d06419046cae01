"""Decay and cleanup task handlers for periodic background maintenance."""
from logging import Logger
from typing import Optional

from scitrera_app_framework import get_logger
from scitrera_app_framework.api import Variables

from ...config import (
    TIEREDMEMORY_DECAY_INTERVAL_SECONDS, DEFAULT_TIEREDMEMORY_DECAY_INTERVAL_SECONDS,
    TIEREDMEMORY_CLEANUP_INTERVAL_SECONDS, DEFAULT_TIEREDMEMORY_CLEANUP_INTERVAL_SECONDS,
)
from ..tasks import TaskHandlerPlugin, TaskSchedule
from .base import DecayService, EXT_DECAY_SERVICE


class DecayTaskHandler(TaskHandlerPlugin):
    """
    Periodic decay task handler.

    Runs daily by default to refresh importance and archive forgotten memories.
    """

    def get_task_type(self) -> str:
        return 'decay_memories'

    def get_schedule(self, v: Variables) -> Optional[TaskSchedule]:
        interval = v.environ(TIEREDMEMORY_DECAY_INTERVAL_SECONDS, default=DEFAULT_TIEREDMEMORY_DECAY_INTERVAL_SECONDS,
                             type_fn=float)
        return TaskSchedule(interval_seconds=interval, default_payload={}, jitter_seconds=interval * 0.05)

    async def handle(self, payload: dict) -> Optional[dict]:
        decay_service: DecayService = self.get_extension(EXT_DECAY_SERVICE, self._v)
        logger: Logger = get_logger(self._v, name=self.get_task_type())

        user_id = payload.get('user_id')
        if user_id:
            logger.info("Running decay for user %s", user_id)
            result = await decay_service.decay_user(user_id)
        else:
            logger.info("Running decay for all users")
            result = await decay_service.decay_all_users(
                batch_size=payload.get('batch_size'),
                cancellation=self.cancellation_from(payload),
            )
        return result.to_dict()


class CleanupTaskHandler(TaskHandlerPlugin):
    """Weekly cleanup: archive long-unused memories and purge expired archived ones."""

    def get_task_type(self) -> str:
        return 'cleanup_memories'

    def get_schedule(self, v: Variables) -> Optional[TaskSchedule]:
        interval = v.environ(TIEREDMEMORY_CLEANUP_INTERVAL_SECONDS,
                             default=DEFAULT_TIEREDMEMORY_CLEANUP_INTERVAL_SECONDS, type_fn=float)
        return TaskSchedule(interval_seconds=interval, default_payload={}, jitter_seconds=interval * 0.05)

    async def handle(self, payload: dict) -> Optional[dict]:
        decay_service: DecayService = self.get_extension(EXT_DECAY_SERVICE, self._v)
        result = await decay_service.cleanup(cancellation=self.cancellation_from(payload))
        return result.to_dict()
