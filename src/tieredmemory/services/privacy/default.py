"""Default privacy policy."""
import re
from logging import Logger
from typing import Optional

from scitrera_app_framework import get_logger
from scitrera_app_framework.api import Variables

from ...config import TIEREDMEMORY_CONTENT_MAX_LENGTH, DEFAULT_TIEREDMEMORY_CONTENT_MAX_LENGTH
from ...exceptions import InvalidMemoryContent
from ...models import MemoryCandidate, MemoryEntry, PrivacyLevel, RequestContext
from .base import PrivacyPolicy, PrivacyPolicyPluginBase

# content that must never be persisted as a memory
SECRET_PATTERNS = (
    ('card_number', re.compile(r"\b(?:\d[ -]?){13,16}\b")),
    ('ssn', re.compile(r"\b\d{3}-\d{2}-\d{4}\b")),
    ('password', re.compile(r"\b(?:password|passcode|pin)\s*(?:is|:|=)\s*\S+", re.IGNORECASE)),
    ('api_key', re.compile(r"\b(?:sk|pk|api)[-_][A-Za-z0-9_-]{16,}\b")),
)


class DefaultPrivacyPolicy(PrivacyPolicy):
    """
    Visibility rules:

    - confidential memories are never shown
    - sensitive memories (sensitive level or a sensitive data category) need stored
      consent, or their data category consented for the request
    - include/exclude namespace filters and consented-only mode from the request
    """

    def __init__(self, v: Variables = None, max_content_length: int = DEFAULT_TIEREDMEMORY_CONTENT_MAX_LENGTH):
        self.max_content_length = max_content_length
        self.logger = get_logger(v, name=self.__class__.__name__)

    def is_visible(self, entry: MemoryEntry, ctx: Optional[RequestContext] = None) -> bool:
        privacy = entry.privacy
        if privacy.level == PrivacyLevel.CONFIDENTIAL:
            return False
        if ctx is not None and ctx.user_id is not None and ctx.user_id != entry.user_id:
            return False

        if privacy.is_sensitive and not privacy.consent_granted:
            if ctx is None or privacy.data_category not in ctx.consented_categories:
                return False

        if ctx is None:
            return True
        category = entry.namespace.category
        if ctx.include_categories and category not in ctx.include_categories:
            return False
        if category in ctx.exclude_categories:
            return False
        if ctx.consented_only and not privacy.consent_granted:
            return False
        return True

    def validate(self, candidate: MemoryCandidate) -> None:
        content = (candidate.content or '').strip()
        if not content:
            raise InvalidMemoryContent("Memory content cannot be empty")
        if len(content) > self.max_content_length:
            raise InvalidMemoryContent(
                f"Memory content exceeds {self.max_content_length} characters ({len(content)})"
            )
        for name, pattern in SECRET_PATTERNS:
            if pattern.search(content):
                raise InvalidMemoryContent(f"Memory content looks like a secret ({name})")
        if candidate.privacy.level == PrivacyLevel.CONFIDENTIAL:
            raise InvalidMemoryContent("Confidential content is not stored as memory")
        if candidate.privacy.is_sensitive and not candidate.privacy.consent_granted:
            raise InvalidMemoryContent(
                f"Sensitive memory ({candidate.privacy.data_category.value}) requires user consent"
            )


class DefaultPrivacyPolicyPlugin(PrivacyPolicyPluginBase):
    PROVIDER_NAME = 'default'

    def initialize(self, v: Variables, logger: Logger) -> object | None:
        return DefaultPrivacyPolicy(
            v=v,
            max_content_length=v.environ(TIEREDMEMORY_CONTENT_MAX_LENGTH,
                                         default=DEFAULT_TIEREDMEMORY_CONTENT_MAX_LENGTH, type_fn=int),
        )
