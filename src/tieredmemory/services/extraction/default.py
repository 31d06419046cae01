"""
Rule-based extraction of self-disclosed facts, preferences, goals and skills.

Rules are applied to user turns only, in registry order. A JSON rules file
(list of rule objects) replaces the built-in registry:

    [{"name": "pet", "pattern": "my (?:dog|cat) is called (\\w+)",
      "kind": "fact", "namespace": {"category": "personal", "topic": "pets"},
      "confidence": 0.7}]
"""
import json
import re
from logging import Logger
from pathlib import Path
from typing import Optional

from scitrera_app_framework import get_logger
from scitrera_app_framework.api import Variables

from ...config import TIEREDMEMORY_EXTRACTION_RULES_PATH
from ...models import (
    ConversationTurn, ExtractionMethod, MemoryCandidate, MemoryCategory, MemoryKind, Namespace, TurnRole,
)
from ...utils import normalize_tokens
from .base import Entity, ExtractionRule, ExtractionService, ExtractionServicePluginBase

_OCCUPATIONS = (
    r"developer|engineer|designer|manager|student|teacher|scientist|analyst|"
    r"consultant|researcher|writer|nurse|doctor|architect|programmer"
)


def default_rules() -> list[ExtractionRule]:
    return [
        ExtractionRule(
            name='identity',
            pattern=r"(?i:\bi'm|\bi am|\bmy name is)\s+([A-Z][a-z]+(?:\s+[A-Z][a-z]+)?)",
            kind=MemoryKind.FACT,
            namespace=Namespace(category=MemoryCategory.PERSONAL, topic='identity'),
            case_sensitive=True,
        ),
        ExtractionRule(
            name='occupation',
            pattern=rf"\b(?:i work as|i'm|i am)\s+an?\s+((?:[a-z]+\s+)*?(?:{_OCCUPATIONS}))\b",
            kind=MemoryKind.FACT,
            namespace=Namespace(category=MemoryCategory.WORK, topic='occupation'),
        ),
        ExtractionRule(
            name='preference',
            pattern=r"\bi (?:\w+ly\s+)?(?:love|like|enjoy|prefer)\s+([^,.!?]+)",
            kind=MemoryKind.PREFERENCE,
            namespace=Namespace(category=MemoryCategory.PERSONAL, topic='preferences'),
            valence=0.5,
        ),
        ExtractionRule(
            name='dislike',
            pattern=r"\bi (?:\w+ly\s+)?(?:don't like|do not like|dislike|hate|can't stand)\s+([^,.!?]+)",
            kind=MemoryKind.PREFERENCE,
            namespace=Namespace(category=MemoryCategory.PERSONAL, topic='preferences'),
            confidence=0.75,
            valence=-0.5,
        ),
        ExtractionRule(
            name='learning_goal',
            pattern=r"\bi(?: want| need| would like|'d like) to (?:learn|understand|know about|master)\s+([^,.!?]+)",
            kind=MemoryKind.GOAL,
            namespace=Namespace(category=MemoryCategory.EDUCATION, topic='learning_goals'),
            valence=0.3,
        ),
        ExtractionRule(
            name='current_learning',
            pattern=r"\bi(?:'m| am) (?:currently\s+)?(?:learning|studying|working on)\s+([^,.!?]+)",
            kind=MemoryKind.EXPERIENCE,
            namespace=Namespace(category=MemoryCategory.EDUCATION, topic='current_learning'),
        ),
        ExtractionRule(
            name='skill',
            pattern=(r"\b(?:i(?:'m| am) (?:good at|skilled (?:in|at)|proficient (?:in|with)|"
                     r"experienced (?:in|with)|an expert (?:in|on))|i know how to)\s+([^,.!?]+)"),
            kind=MemoryKind.SKILL,
            namespace=Namespace(category=MemoryCategory.WORK, topic='skills'),
            confidence=0.7,
        ),
        ExtractionRule(
            name='relationship',
            pattern=(r"\bmy ((?:wife|husband|partner|son|daughter|mother|father|mom|dad|brother|sister|"
                     r"friend|boss|manager|colleague)(?:'s name)? is [^,.!?]+)"),
            kind=MemoryKind.RELATIONSHIP,
            namespace=Namespace(category=MemoryCategory.PERSONAL, topic='relationships'),
            confidence=0.7,
        ),
    ]


PERSON_PATTERN = re.compile(r"\b([A-Z][a-z]+ [A-Z][a-z]+)\b")
ORGANIZATION_PATTERN = re.compile(
    r"\b([A-Z][a-z]+(?:\s+[A-Z][a-z]+)*\s+(?:Inc|LLC|Corp|Company|University|College))\b"
)


def load_rules(path: str | Path) -> list[ExtractionRule]:
    """Load an ordered rule list from a JSON file."""
    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)
    if not isinstance(data, list):
        raise ValueError(f"Extraction rules file must contain a list: {path}")
    return [ExtractionRule.from_dict(item) for item in data]


def _sentence_case(text: str) -> str:
    return text[:1].upper() + text[1:] if text else text


class RuleBasedExtractionService(ExtractionService):
    """Pattern registry applied to user turns."""

    def __init__(self, v: Variables = None, rules: Optional[list[ExtractionRule]] = None):
        self._rules = list(rules) if rules is not None else default_rules()
        self.logger = get_logger(v, name=self.__class__.__name__)

    @property
    def rules(self) -> list[ExtractionRule]:
        return list(self._rules)

    def register_rule(self, rule: ExtractionRule, index: Optional[int] = None) -> None:
        """Add a rule, replacing any rule with the same name."""
        self._rules = [r for r in self._rules if r.name != rule.name]
        if index is None:
            self._rules.append(rule)
        else:
            self._rules.insert(index, rule)

    def extract_entities(self, text: str) -> list[Entity]:
        entities: list[Entity] = []
        seen: set[tuple[str, str]] = set()
        for match in ORGANIZATION_PATTERN.finditer(text or ''):
            key = ('organization', match.group(1))
            if key not in seen:
                seen.add(key)
                entities.append(Entity(type='organization', value=match.group(1), confidence=0.7))
        for match in PERSON_PATTERN.finditer(text or ''):
            key = ('person', match.group(1))
            if key not in seen and not any(match.group(1) in e.value for e in entities):
                seen.add(key)
                entities.append(Entity(type='person', value=match.group(1), confidence=0.6))
        return entities

    def extract(self, turns: list[ConversationTurn]) -> list[MemoryCandidate]:
        candidates: dict[str, MemoryCandidate] = {}

        for turn in turns:
            if turn.role != TurnRole.USER:
                continue
            entity_keywords = [e.value for e in self.extract_entities(turn.content)]

            for rule in self._rules:
                match = rule.search(turn.content)
                if match is None:
                    continue
                content = _sentence_case(match.group(0).strip())
                value = rule.value(turn.content) or content
                key = content.lower()

                existing = candidates.get(key)
                if existing is not None:
                    if turn.id not in existing.message_ids:
                        existing.message_ids.append(turn.id)
                    continue

                keywords = sorted(t for t in normalize_tokens(value) if len(t) > 2)
                candidates[key] = MemoryCandidate(
                    content=content,
                    kind=rule.kind,
                    namespace=rule.namespace.model_copy(),
                    confidence=rule.confidence,
                    emotional_valence=rule.valence,
                    keywords=keywords + entity_keywords,
                    rule=rule.name,
                    extraction_method=ExtractionMethod.AUTOMATIC,
                    message_ids=[turn.id],
                )
                self.logger.debug("Rule %s matched turn %s: %s", rule.name, turn.id, content)

        return list(candidates.values())


class RuleBasedExtractionServicePlugin(ExtractionServicePluginBase):
    PROVIDER_NAME = 'default'

    def initialize(self, v: Variables, logger: Logger) -> object | None:
        rules_path = v.environ(TIEREDMEMORY_EXTRACTION_RULES_PATH, default=None)
        rules = None
        if rules_path:
            rules = load_rules(rules_path)
            logger.info("Loaded %d extraction rules from %s", len(rules), rules_path)
        return RuleBasedExtractionService(v=v, rules=rules)
