"""Extractive summarizer that needs no model: message count plus salient user words."""
import re
from logging import Logger
from typing import Optional

from scitrera_app_framework import Variables, get_logger

from ...models import ConversationTurn, TurnRole
from .base import SummarizationService, SummarizationServicePluginBase

_WORD_RE = re.compile(r"[a-z][a-z'-]+")

MIN_TOPIC_WORD_LENGTH = 6
MAX_TOPICS = 5


class HeuristicSummarizationService(SummarizationService):
    """Summarizes as 'Discussed N messages covering topics: ...' using long words from user turns."""

    def __init__(self, v: Variables = None, max_topics: int = MAX_TOPICS):
        self.max_topics = max_topics
        self.logger = get_logger(v, name=self.__class__.__name__)

    async def summarize(self, turns: list[ConversationTurn], max_chars: Optional[int] = None) -> Optional[str]:
        if not turns:
            return None

        topics: list[str] = []
        for turn in turns:
            if turn.role != TurnRole.USER:
                continue
            for word in _WORD_RE.findall(turn.content.lower()):
                if len(word) >= MIN_TOPIC_WORD_LENGTH and word not in topics:
                    topics.append(word)

        summary = f"Discussed {len(turns)} messages"
        if topics:
            summary += " covering topics: " + ", ".join(topics[:self.max_topics])
        if max_chars is not None and len(summary) > max_chars:
            summary = summary[:max_chars].rsplit(", ", 1)[0]
        return summary


class HeuristicSummarizationServicePlugin(SummarizationServicePluginBase):
    PROVIDER_NAME = 'heuristic'

    def initialize(self, v: Variables, logger: Logger) -> object | None:
        return HeuristicSummarizationService(v=v)
