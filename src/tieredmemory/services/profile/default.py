"""Profile service backed by structured storage."""
from logging import Logger
from typing import Optional

from scitrera_app_framework import get_logger
from scitrera_app_framework.api import Variables

from ...models import Goal, Interest, MemoryEntry, ProfileAttribute, Skill, UserProfile
from ...utils import utc_now
from ..extraction import ExtractionRule, ExtractionService
from ..storage import StorageBackend
from .base import ProfileService, ProfileServicePluginBase, EXT_STORAGE_BACKEND, EXT_EXTRACTION_SERVICE


class DefaultProfileService(ProfileService):
    """
    Folds memories into the profile using the extraction rule that produced them
    (or, for explicit memories, the first rule sharing the memory's topic).
    """

    def __init__(self, v: Variables = None, storage: StorageBackend = None, extraction: ExtractionService = None):
        self.storage = storage
        self.extraction = extraction
        self.logger = get_logger(v, name=self.__class__.__name__)

    async def get_profile(self, user_id: str, create: bool = True) -> Optional[UserProfile]:
        profile = await self.storage.get_profile(user_id)
        if profile is None and create:
            profile = UserProfile(user_id=user_id)
            await self.storage.save_profile(profile)
            self.logger.debug("Created profile for user %s", user_id)
        return profile

    def _rule_for(self, entry: MemoryEntry) -> Optional[ExtractionRule]:
        rule = self.extraction.get_rule(entry.provenance.rule)
        if rule is not None:
            return rule
        topic = entry.namespace.topic
        if not topic:
            return None
        for candidate in self.extraction.rules:
            if candidate.namespace.topic == topic and candidate.search(entry.content):
                return candidate
        return None

    def _apply(self, profile: UserProfile, entry: MemoryEntry, now) -> bool:
        rule = self._rule_for(entry)
        if rule is None:
            return False
        value = rule.value(entry.content)
        if not value:
            return False
        confidence = entry.provenance.confidence
        topic = rule.namespace.topic

        if topic == 'identity':
            profile.name = ProfileAttribute(value=value, confidence=confidence, source_memory_id=entry.id, updated_at=now)
        elif topic == 'occupation':
            profile.role = ProfileAttribute(value=value, confidence=confidence, source_memory_id=entry.id, updated_at=now)
        elif topic == 'preferences':
            key = value.lower()
            if rule.valence < 0:
                profile.interests = [i for i in profile.interests if i.topic.lower() != key]
                return True
            for interest in profile.interests:
                if interest.topic.lower() == key:
                    interest.strength = min(1.0, interest.strength + 0.05)
                    interest.last_seen_at = now
                    break
            else:
                profile.interests.append(Interest(topic=value, first_seen_at=now, last_seen_at=now))
        elif topic == 'learning_goals':
            if not any(g.description.lower() == value.lower() for g in profile.goals):
                profile.goals.append(Goal(description=value, created_at=now))
        elif topic == 'current_learning':
            if value.lower() not in (c.lower() for c in profile.current_learning):
                profile.current_learning.append(value)
        elif topic == 'skills':
            if not any(s.name.lower() == value.lower() for s in profile.skills):
                profile.skills.append(Skill(name=value, confidence=min(confidence, 1.0)))
        else:
            return False
        return True

    async def fold_entries(self, user_id: str, entries: list[MemoryEntry],
                           memory_count: Optional[int] = None) -> UserProfile:
        now = utc_now()
        profile = await self.get_profile(user_id)

        applied = 0
        for entry in entries:
            if entry.user_id != user_id:
                continue
            if self._apply(profile, entry, now):
                applied += 1

        topics = {e.namespace.topic for e in entries if e.namespace.topic}
        topics.update(i.topic.lower() for i in profile.interests)
        profile.behavior.topic_diversity = max(profile.behavior.topic_diversity, len(topics))
        if memory_count is not None:
            profile.behavior.memory_count = memory_count
        profile.behavior.last_active_at = now
        profile.updated_at = now
        profile.calculate_completeness()

        await self.storage.save_profile(profile)
        self.logger.debug("Folded %d of %d memories into profile of user %s (completeness %.2f)",
                          applied, len(entries), user_id, profile.completeness)
        return profile

    async def clear_profile(self, user_id: str) -> bool:
        profile = await self.storage.get_profile(user_id)
        if profile is None:
            return False
        profile.clear()
        await self.storage.save_profile(profile)
        self.logger.info("Cleared profile for user %s", user_id)
        return True


class DefaultProfileServicePlugin(ProfileServicePluginBase):
    PROVIDER_NAME = 'default'

    def initialize(self, v: Variables, logger: Logger) -> object | None:
        return DefaultProfileService(
            v=v,
            storage=self.get_extension(EXT_STORAGE_BACKEND, v),
            extraction=self.get_extension(EXT_EXTRACTION_SERVICE, v),
        )
