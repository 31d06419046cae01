"""Extraction Service - turns raw conversation turns into memory candidates."""
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

from scitrera_app_framework.api import Plugin, Variables, enabled_option_pattern

from ...config import TIEREDMEMORY_EXTRACTION_SERVICE, DEFAULT_TIEREDMEMORY_EXTRACTION_SERVICE
from ...models import ConversationTurn, MemoryCandidate, MemoryCategory, MemoryKind, Namespace
from .._constants import EXT_EXTRACTION_SERVICE


@dataclass
class ExtractionRule:
    """
    A named pattern that produces one memory candidate per matching user turn.

    The first capture group (or the whole match when the pattern has none) is the
    rule's *value*, e.g. the name in "my name is Ada".
    """
    name: str
    pattern: str
    kind: MemoryKind
    namespace: Namespace
    confidence: float = 0.8
    valence: float = 0.0
    case_sensitive: bool = False
    _compiled: Optional[re.Pattern] = field(default=None, init=False, repr=False, compare=False)

    @property
    def regex(self) -> re.Pattern:
        if self._compiled is None:
            self._compiled = re.compile(self.pattern, 0 if self.case_sensitive else re.IGNORECASE)
        return self._compiled

    def search(self, text: str) -> Optional[re.Match]:
        return self.regex.search(text or '')

    def value(self, text: str) -> Optional[str]:
        """The captured value of this rule in ``text``, if it matches."""
        match = self.search(text)
        if match is None:
            return None
        groups = [g for g in match.groups() if g]
        return (groups[0] if groups else match.group(0)).strip()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> 'ExtractionRule':
        namespace = data.get('namespace') or {}
        rule = cls(
            name=data['name'],
            pattern=data['pattern'],
            kind=MemoryKind(data.get('kind', MemoryKind.FACT.value)),
            namespace=Namespace(
                category=MemoryCategory(namespace.get('category', MemoryCategory.GENERAL.value)),
                subcategory=namespace.get('subcategory'),
                topic=namespace.get('topic'),
            ),
            confidence=float(data.get('confidence', 0.8)),
            valence=float(data.get('valence', 0.0)),
            case_sensitive=bool(data.get('case_sensitive', False)),
        )
        rule.regex  # fail fast on invalid patterns
        return rule


@dataclass
class Entity:
    type: str
    value: str
    confidence: float


class ExtractionService(ABC):
    """Interface for memory extraction."""

    @property
    @abstractmethod
    def rules(self) -> list[ExtractionRule]:
        """Active rules in application order."""
        pass

    @abstractmethod
    def extract(self, turns: list[ConversationTurn]) -> list[MemoryCandidate]:
        """
        Extract memory candidates from the user turns of a conversation.

        Identical candidates within one batch are collapsed, keeping every
        source message id.
        """
        pass

    @abstractmethod
    def extract_entities(self, text: str) -> list[Entity]:
        """Named entities (people, organizations) mentioned in ``text``."""
        pass

    def get_rule(self, name: Optional[str]) -> Optional[ExtractionRule]:
        if not name:
            return None
        for rule in self.rules:
            if rule.name == name:
                return rule
        return None


# noinspection PyAbstractClass
class ExtractionServicePluginBase(Plugin):
    """Base plugin for extraction service."""
    PROVIDER_NAME: str = None

    def name(self) -> str:
        return f"{EXT_EXTRACTION_SERVICE}|{self.PROVIDER_NAME}"

    def extension_point_name(self, v: Variables) -> str:
        return EXT_EXTRACTION_SERVICE

    def is_enabled(self, v: Variables) -> bool:
        return enabled_option_pattern(self, v, TIEREDMEMORY_EXTRACTION_SERVICE, self_attr='PROVIDER_NAME')

    def on_registration(self, v: Variables) -> None:
        v.set_default_value(TIEREDMEMORY_EXTRACTION_SERVICE, DEFAULT_TIEREDMEMORY_EXTRACTION_SERVICE)
