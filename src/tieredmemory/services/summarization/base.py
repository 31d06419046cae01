"""Summarization Service - condenses older conversation turns for the working tier."""
from abc import ABC, abstractmethod
from typing import Optional

from scitrera_app_framework.api import Plugin, Variables, enabled_option_pattern

from ...config import TIEREDMEMORY_SUMMARIZATION_PROVIDER, DEFAULT_TIEREDMEMORY_SUMMARIZATION_PROVIDER
from ...models import ConversationTurn
from .._constants import EXT_SUMMARIZATION_SERVICE


def format_turns(turns: list[ConversationTurn]) -> str:
    """One ``role: content`` line per turn."""
    return "\n".join(f"{t.role.value}: {t.content}" for t in turns)


class SummarizationService(ABC):
    """Interface for turning a run of conversation turns into a short summary."""

    @abstractmethod
    async def summarize(self, turns: list[ConversationTurn], max_chars: Optional[int] = None) -> Optional[str]:
        """
        Summarize turns.

        Args:
            turns: Turns in chronological order
            max_chars: Soft upper bound on summary length

        Returns:
            Summary text, or None when there is nothing to summarize
        """
        pass


# noinspection PyAbstractClass
class SummarizationServicePluginBase(Plugin):
    """Base plugin for summarization service."""
    PROVIDER_NAME: str = None

    def name(self) -> str:
        return f"{EXT_SUMMARIZATION_SERVICE}|{self.PROVIDER_NAME}"

    def extension_point_name(self, v: Variables) -> str:
        return EXT_SUMMARIZATION_SERVICE

    def is_enabled(self, v: Variables) -> bool:
        return enabled_option_pattern(self, v, TIEREDMEMORY_SUMMARIZATION_PROVIDER, self_attr='PROVIDER_NAME')

    def on_registration(self, v: Variables) -> None:
        v.set_default_value(TIEREDMEMORY_SUMMARIZATION_PROVIDER, DEFAULT_TIEREDMEMORY_SUMMARIZATION_PROVIDER)
