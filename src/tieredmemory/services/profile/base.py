"""Profile Service - maintains the per-user profile tier."""
from abc import ABC, abstractmethod
from typing import Optional

from scitrera_app_framework.api import Plugin, Variables, enabled_option_pattern

from ...config import TIEREDMEMORY_PROFILE_SERVICE, DEFAULT_TIEREDMEMORY_PROFILE_SERVICE
from ...models import MemoryEntry, UserProfile
from .._constants import EXT_PROFILE_SERVICE, EXT_STORAGE_BACKEND, EXT_EXTRACTION_SERVICE


class ProfileService(ABC):

    @abstractmethod
    async def get_profile(self, user_id: str, create: bool = True) -> Optional[UserProfile]:
        """Load the user's profile, creating an empty one when missing and ``create`` is set."""
        pass

    @abstractmethod
    async def fold_entries(self, user_id: str, entries: list[MemoryEntry],
                           memory_count: Optional[int] = None) -> UserProfile:
        """Fold identity, occupation, preference, goal and skill memories into the profile."""
        pass

    @abstractmethod
    async def clear_profile(self, user_id: str) -> bool:
        """Reset all learned profile attributes. Returns False if the user had no profile."""
        pass

    def format_summary(self, profile: Optional[UserProfile]) -> str:
        if profile is None:
            return ""
        return "\n".join(profile.summary_lines())


# noinspection PyAbstractClass
class ProfileServicePluginBase(Plugin):
    """Base plugin for profile service."""
    PROVIDER_NAME: str = None

    def name(self) -> str:
        return f"{EXT_PROFILE_SERVICE}|{self.PROVIDER_NAME}"

    def extension_point_name(self, v: Variables) -> str:
        return EXT_PROFILE_SERVICE

    def is_enabled(self, v: Variables) -> bool:
        return enabled_option_pattern(self, v, TIEREDMEMORY_PROFILE_SERVICE, self_attr='PROVIDER_NAME')

    def on_registration(self, v: Variables) -> None:
        v.set_default_value(TIEREDMEMORY_PROFILE_SERVICE, DEFAULT_TIEREDMEMORY_PROFILE_SERVICE)

    def get_dependencies(self, v: Variables):
        return (EXT_STORAGE_BACKEND, EXT_EXTRACTION_SERVICE)
