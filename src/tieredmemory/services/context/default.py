"""Budgeted context composer."""
import math
import re
from datetime import datetime
from logging import Logger
from typing import Optional

from scitrera_app_framework import get_logger
from scitrera_app_framework.api import Variables

from ...models import ComposedContext, ConversationTurn, ConversationType, MemoryTier, RankedMemory, UserProfile
from ...utils import ensure_utc, estimate_tokens, utc_now
from .base import ALLOCATIONS, ContextComposer, ContextComposerPluginBase, TokenAllocation

PROFILE_HEADER = "**About the user:**"
LONG_TERM_HEADER = "**What you remember about the user:**"
WORKING_HEADER = "**Earlier in this conversation:**"
SHORT_TERM_HEADER = "**Recent messages:**"

SECTION_SEPARATOR = "\n\n"

_SENTENCE_END = re.compile(r"[.!?](?=\s|$)")


def format_time_ago(timestamp: datetime, now: Optional[datetime] = None) -> str:
    seconds = max(0, int((ensure_utc(now or utc_now()) - ensure_utc(timestamp)).total_seconds()))
    if seconds < 60:
        return "just now"
    if seconds < 3600:
        return f"{seconds // 60}m ago"
    if seconds < 86400:
        return f"{seconds // 3600}h ago"
    if seconds < 604800:
        return f"{seconds // 86400}d ago"
    return f"{seconds // 604800}w ago"


def _section_tokens(header: str, lines: list[str]) -> int:
    # measured with the trailing separator so the joined text stays within the sum of sections
    return estimate_tokens(header + "\n" + "\n".join(lines) + SECTION_SEPARATOR)


def cut_at_sentence(text: str, header: str, budget: int) -> Optional[str]:
    """Longest sentence-aligned prefix of ``text`` that fits ``budget`` with its header, or None."""
    best = None
    for match in _SENTENCE_END.finditer(text):
        prefix = text[:match.end()]
        if _section_tokens(header, [prefix]) > budget:
            break
        best = prefix
    return best


class BudgetContextComposer(ContextComposer):
    """
    Each tier is packed into its own allocation; nothing is partially included
    except a working summary, which may be cut at a sentence boundary.
    """

    def __init__(self, v: Variables = None, allocations: Optional[dict[ConversationType, TokenAllocation]] = None):
        self.allocations = allocations or ALLOCATIONS
        self.logger = get_logger(v, name=self.__class__.__name__)

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
        now = now or utc_now()
        allocation = self.allocations.get(conversation_type, self.allocations[ConversationType.STANDARD])
        max_tokens = max(0, int(max_tokens or 0))

        def budget(fraction: float) -> int:
            return math.floor(max_tokens * fraction)

        sections: list[str] = []
        tier_tokens: dict[str, int] = {}
        dropped = 0
        truncated = False
        memory_ids: list[str] = []

        # profile: whole lines, most identifying first
        profile_lines = profile.summary_lines() if profile is not None else []
        kept: list[str] = []
        for line in profile_lines:
            if _section_tokens(PROFILE_HEADER, kept + [line]) > budget(allocation.profile):
                truncated = True
                break
            kept.append(line)
        if kept:
            sections.append(PROFILE_HEADER + "\n" + "\n".join(kept))
            tier_tokens[MemoryTier.PROFILE.value] = _section_tokens(PROFILE_HEADER, kept)

        # long-term: ranked order, dropped from the bottom
        kept = []
        for index, ranked in enumerate(long_term):
            entry = ranked.entry
            line = f"- {entry.content} ({entry.kind.value}, {format_time_ago(entry.temporal.created_at, now)})"
            if _section_tokens(LONG_TERM_HEADER, kept + [line]) > budget(allocation.long_term):
                dropped += len(long_term) - index
                truncated = True
                break
            kept.append(line)
            memory_ids.append(entry.id)
        if kept:
            sections.append(LONG_TERM_HEADER + "\n" + "\n".join(kept))
            tier_tokens[MemoryTier.LONG_TERM.value] = _section_tokens(LONG_TERM_HEADER, kept)

        # working summary: whole, cut at a sentence boundary, or dropped
        if working and working.strip():
            summary = working.strip()
            working_budget = budget(allocation.working)
            if _section_tokens(WORKING_HEADER, [summary]) > working_budget:
                summary = cut_at_sentence(summary, WORKING_HEADER, working_budget)
                truncated = True
                if summary is None:
                    dropped += 1
            if summary:
                sections.append(WORKING_HEADER + "\n" + summary)
                tier_tokens[MemoryTier.WORKING.value] = _section_tokens(WORKING_HEADER, [summary])

        # short-term: chronological, oldest dropped first
        kept = []
        for index, turn in enumerate(reversed(short_term)):
            line = f"{turn.role.value}: {turn.content}"
            if _section_tokens(SHORT_TERM_HEADER, [line] + kept) > budget(allocation.short_term):
                dropped += len(short_term) - index
                truncated = True
                break
            kept.insert(0, line)
        if kept:
            sections.append(SHORT_TERM_HEADER + "\n" + "\n".join(kept))
            tier_tokens[MemoryTier.SHORT_TERM.value] = _section_tokens(SHORT_TERM_HEADER, kept)

        text = SECTION_SEPARATOR.join(sections)
        if truncated:
            self.logger.debug("Context truncated to fit %d tokens (%d entries dropped)", max_tokens, dropped)
        return ComposedContext(
            text=text,
            estimated_tokens=estimate_tokens(text),
            truncated=truncated,
            tier_tokens=tier_tokens,
            dropped_entries=dropped,
            memory_ids=memory_ids,
        )


class BudgetContextComposerPlugin(ContextComposerPluginBase):
    PROVIDER_NAME = 'default'

    def initialize(self, v: Variables, logger: Logger) -> object | None:
        return BudgetContextComposer(v=v)
