"""Session Context Service - short-term turns and working summary per conversation."""
from abc import ABC, abstractmethod
from typing import Optional

from scitrera_app_framework.api import Plugin, Variables, enabled_option_pattern

from ...config import TIEREDMEMORY_SESSION_SERVICE, DEFAULT_TIEREDMEMORY_SESSION_SERVICE
from ...models import ConversationTurn, SessionContext, TurnRole
from .._constants import EXT_SESSION_SERVICE, EXT_STORAGE_BACKEND, EXT_CACHE_SERVICE, EXT_SUMMARIZATION_SERVICE


class SessionContextService(ABC):
    """
    Maintains the ephemeral session context for (user, conversation) pairs.

    The conversation log in structured storage is the source of truth; the cached
    context is rebuilt whenever its fingerprint no longer matches the log.
    """

    @abstractmethod
    async def get_context(self, user_id: str, conversation_id: str) -> SessionContext:
        """Cached context, rebuilt on miss or when newer turns have arrived."""
        pass

    @abstractmethod
    async def record_turn(self, user_id: str, conversation_id: str, role: TurnRole, content: str,
                          turn_id: Optional[str] = None) -> ConversationTurn:
        """Append a turn to the conversation log and refresh the cached context."""
        pass

    @abstractmethod
    async def invalidate(self, user_id: str, conversation_id: Optional[str] = None) -> int:
        """Drop cached context for one conversation, or for all of a user's conversations."""
        pass

    @property
    @abstractmethod
    def stats(self) -> dict:
        """Cache hit/lookup counters."""
        pass


# noinspection PyAbstractClass
class SessionServicePluginBase(Plugin):
    """Base plugin for session context service."""
    PROVIDER_NAME: str = None

    def name(self) -> str:
        return f"{EXT_SESSION_SERVICE}|{self.PROVIDER_NAME}"

    def extension_point_name(self, v: Variables) -> str:
        return EXT_SESSION_SERVICE

    def is_enabled(self, v: Variables) -> bool:
        return enabled_option_pattern(self, v, TIEREDMEMORY_SESSION_SERVICE, self_attr='PROVIDER_NAME')

    def on_registration(self, v: Variables) -> None:
        v.set_default_value(TIEREDMEMORY_SESSION_SERVICE, DEFAULT_TIEREDMEMORY_SESSION_SERVICE)

    def get_dependencies(self, v: Variables):
        return (EXT_STORAGE_BACKEND, EXT_CACHE_SERVICE, EXT_SUMMARIZATION_SERVICE)
