"""Context Composer - packs the memory tiers into a token-bounded text block."""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from scitrera_app_framework.api import Plugin, Variables, enabled_option_pattern

from ...config import TIEREDMEMORY_CONTEXT_SERVICE, DEFAULT_TIEREDMEMORY_CONTEXT_SERVICE
from ...models import ComposedContext, ConversationTurn, ConversationType, RankedMemory, UserProfile
from .._constants import EXT_CONTEXT_SERVICE


@dataclass(frozen=True)
class TokenAllocation:
    """Fractions of ``max_tokens`` per tier; what is left after the buffer is reserved for the live user turn."""
    profile: float
    short_term: float
    working: float
    long_term: float
    buffer: float = 0.05

    @property
    def memory_share(self) -> float:
        return self.profile + self.short_term + self.working + self.long_term

    @property
    def live_turn(self) -> float:
        return max(0.0, 1.0 - self.memory_share - self.buffer)


ALLOCATIONS: dict[ConversationType, TokenAllocation] = {
    ConversationType.STANDARD: TokenAllocation(profile=0.25, short_term=0.20, working=0.20, long_term=0.20),
    ConversationType.TUTORING: TokenAllocation(profile=0.25, short_term=0.15, working=0.15, long_term=0.30),
    ConversationType.QUICK: TokenAllocation(profile=0.15, short_term=0.35, working=0.15, long_term=0.20),
}


class ContextComposer(ABC):

    @abstractmethod
    def compose(
            self,
            profile: Optional[UserProfile],
            short_term: list[ConversationTurn],
            working: Optional[str],
            long_term: list[RankedMemory],
            max_tokens: int,
            conversation_type: ConversationType = ConversationType.STANDARD,
            now: Optional[datetime] = None,
    ) -> ComposedContext:
        """
        Build the context block in the order profile, long-term, working summary, recent turns.

        The estimated size never exceeds the memory share of ``max_tokens``; entries
        are included whole or not at all.
        """
        pass


# noinspection PyAbstractClass
class ContextComposerPluginBase(Plugin):
    """Base plugin for the context composer."""
    PROVIDER_NAME: str = None

    def name(self) -> str:
        return f"{EXT_CONTEXT_SERVICE}|{self.PROVIDER_NAME}"

    def extension_point_name(self, v: Variables) -> str:
        return EXT_CONTEXT_SERVICE

    def is_enabled(self, v: Variables) -> bool:
        return enabled_option_pattern(self, v, TIEREDMEMORY_CONTEXT_SERVICE, self_attr='PROVIDER_NAME')

    def on_registration(self, v: Variables) -> None:
        v.set_default_value(TIEREDMEMORY_CONTEXT_SERVICE, DEFAULT_TIEREDMEMORY_CONTEXT_SERVICE)
