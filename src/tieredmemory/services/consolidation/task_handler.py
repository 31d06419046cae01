"""Consolidation task handler: turns idle conversations into long-term memories."""
from logging import Logger
from typing import Optional

from scitrera_app_framework import get_logger
from scitrera_app_framework.api import Variables

from ...config import (
    TIEREDMEMORY_CONSOLIDATION_INTERVAL_SECONDS, DEFAULT_TIEREDMEMORY_CONSOLIDATION_INTERVAL_SECONDS,
)
from ..tasks import TaskHandlerPlugin, TaskSchedule
from .base import ConsolidationService, EXT_CONSOLIDATION_SERVICE


class ConsolidationTaskHandler(TaskHandlerPlugin):
    """
    Periodic consolidation of conversations idle for longer than the consolidation delay.

    A payload with ``user_id`` and ``conversation_id`` consolidates that conversation immediately.
    """

    def get_task_type(self) -> str:
        return 'consolidate_conversations'

    def get_schedule(self, v: Variables) -> Optional[TaskSchedule]:
        interval = v.environ(TIEREDMEMORY_CONSOLIDATION_INTERVAL_SECONDS,
                             default=DEFAULT_TIEREDMEMORY_CONSOLIDATION_INTERVAL_SECONDS, type_fn=float)
        return TaskSchedule(interval_seconds=interval, default_payload={}, jitter_seconds=interval * 0.05)

    async def handle(self, payload: dict) -> Optional[dict]:
        consolidation: ConsolidationService = self.get_extension(EXT_CONSOLIDATION_SERVICE, self._v)
        logger: Logger = get_logger(self._v, name=self.get_task_type())

        user_id = payload.get('user_id')
        conversation_id = payload.get('conversation_id')
        if user_id and conversation_id:
            logger.info("Consolidating conversation %s for user %s", conversation_id, user_id)
            result = await consolidation.consolidate(user_id, conversation_id)
        else:
            result = await consolidation.consolidate_pending(
                batch_size=payload.get('batch_size'),
                cancellation=self.cancellation_from(payload),
            )
        return result.to_dict()
