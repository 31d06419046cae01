"""Privacy Policy - visibility of memories per request and validation of new memories."""
from abc import ABC, abstractmethod
from typing import Iterable, Optional

from scitrera_app_framework.api import Plugin, Variables, enabled_option_pattern

from ...config import TIEREDMEMORY_PRIVACY_SERVICE, DEFAULT_TIEREDMEMORY_PRIVACY_SERVICE
from ...models import MemoryCandidate, MemoryEntry, RequestContext
from .._constants import EXT_PRIVACY_SERVICE


class PrivacyPolicy(ABC):
    """Single decision point for what may be stored and what may be shown."""

    @abstractmethod
    def is_visible(self, entry: MemoryEntry, ctx: Optional[RequestContext] = None) -> bool:
        """Whether ``entry`` may appear in a context built for ``ctx``."""
        pass

    @abstractmethod
    def validate(self, candidate: MemoryCandidate) -> None:
        """
        Reject a candidate before it is stored.

        Raises:
            InvalidMemoryContent: content is too long, contains secrets, or is
                sensitive without consent
        """
        pass

    def filter(self, entries: Iterable[MemoryEntry], ctx: Optional[RequestContext] = None) -> list[MemoryEntry]:
        return [e for e in entries if self.is_visible(e, ctx)]


# noinspection PyAbstractClass
class PrivacyPolicyPluginBase(Plugin):
    """Base plugin for privacy policy."""
    PROVIDER_NAME: str = None

    def name(self) -> str:
        return f"{EXT_PRIVACY_SERVICE}|{self.PROVIDER_NAME}"

    def extension_point_name(self, v: Variables) -> str:
        return EXT_PRIVACY_SERVICE

    def is_enabled(self, v: Variables) -> bool:
        return enabled_option_pattern(self, v, TIEREDMEMORY_PRIVACY_SERVICE, self_attr='PROVIDER_NAME')

    def on_registration(self, v: Variables) -> None:
        v.set_default_value(TIEREDMEMORY_PRIVACY_SERVICE, DEFAULT_TIEREDMEMORY_PRIVACY_SERVICE)
