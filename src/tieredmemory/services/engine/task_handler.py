"""Periodic health check over the engine's counters."""
from logging import Logger
from typing import Optional

from scitrera_app_framework import get_logger
from scitrera_app_framework.api import Variables

from ...config import (
    TIEREDMEMORY_HEALTH_CHECK_INTERVAL_SECONDS, DEFAULT_TIEREDMEMORY_HEALTH_CHECK_INTERVAL_SECONDS,
)
from ..tasks import TaskHandlerPlugin, TaskSchedule
from .base import MemoryEngine, EXT_MEMORY_ENGINE


class HealthCheckTaskHandler(TaskHandlerPlugin):
    """Logs engine statistics hourly and warns about detected issues."""

    def get_task_type(self) -> str:
        return 'memory_health_check'

    def get_schedule(self, v: Variables) -> Optional[TaskSchedule]:
        interval = v.environ(TIEREDMEMORY_HEALTH_CHECK_INTERVAL_SECONDS,
                             default=DEFAULT_TIEREDMEMORY_HEALTH_CHECK_INTERVAL_SECONDS, type_fn=float)
        return TaskSchedule(interval_seconds=interval, default_payload={}, jitter_seconds=interval * 0.05)

    async def handle(self, payload: dict) -> Optional[dict]:
        engine: MemoryEngine = self.get_extension(EXT_MEMORY_ENGINE, self._v)
        logger: Logger = get_logger(self._v, name=self.get_task_type())

        report = await engine.health()
        logger.info(
            "Memory system health: retrievals=%d consolidations=%d forgetting_events=%d cache_hit_rate=%.1f%%",
            report['retrievals'], report['consolidations'], report['forgetting_events'],
            report['cache_hit_rate'] * 100.0,
        )
        if report['issues']:
            logger.warning("Memory system issues detected: %s", [i['type'] for i in report['issues']])
        else:
            logger.info("Memory system health: OK")
        return report
