"""
Unit tests for the budgeted context composer.

Covers per-tier budgets, whole-entry truncation and the section layout.
"""
import math
from datetime import datetime, timedelta, timezone

import pytest

from tieredmemory.models import (
    ConversationTurn, ConversationType, MemoryKind, MemoryTier, ProfileAttribute, RankedMemory, TurnRole, UserProfile,
)
from tieredmemory.services.context import ALLOCATIONS
from tieredmemory.services.context.default import (
    LONG_TERM_HEADER,
    PROFILE_HEADER,
    SHORT_TERM_HEADER,
    WORKING_HEADER,
    BudgetContextComposer,
    cut_at_sentence,
    format_time_ago,
)
from tieredmemory.utils import estimate_tokens


@pytest.fixture
def composer():
    return BudgetContextComposer()


def _turns(count: int) -> list[ConversationTurn]:
    base = datetime(2025, 6, 1, 11, 0, tzinfo=timezone.utc)
    return [
        ConversationTurn(id=f"t{i}", user_id="u1", conversation_id="c1",
                         role=TurnRole.USER if i % 2 == 0 else TurnRole.ASSISTANT,
                         content=f"message number {i:02d}", created_at=base + timedelta(minutes=i))
        for i in range(count)
    ]


def _ranked(make_entry, now, count: int) -> list[RankedMemory]:
    return [
        RankedMemory(entry=make_entry(user_id="u1", content=f"Remembered fact number {i:02d} about the user",
                                      kind=MemoryKind.FACT, age_days=2, now=now, entry_id=f"mem_{i:02d}"),
                     score=1.0 - i * 0.05)
        for i in range(count)
    ]


@pytest.fixture
def profile() -> UserProfile:
    return UserProfile(user_id="u1", name=ProfileAttribute(value="Alex"),
                       role=ProfileAttribute(value="backend developer"))


class TestFormatting:

    @pytest.mark.parametrize("delta, expected", [
        (timedelta(seconds=30), "just now"),
        (timedelta(minutes=5), "5m ago"),
        (timedelta(hours=3), "3h ago"),
        (timedelta(days=2), "2d ago"),
        (timedelta(days=21), "3w ago"),
    ])
    def test_format_time_ago(self, now, delta, expected):
        assert format_time_ago(now - delta, now) == expected

    def test_cut_at_sentence(self):
        text = "One. Two is longer. " + "x" * 400
        assert cut_at_sentence(text, WORKING_HEADER, 20) == "One. Two is longer."
        assert cut_at_sentence("no boundary here " * 30, WORKING_HEADER, 20) is None


class TestCompose:

    def test_section_order(self, composer, make_entry, now, profile):
        composed = composer.compose(profile, _turns(2), "Talked about deployment.", _ranked(make_entry, now, 1),
                                    max_tokens=2000, now=now)
        text = composed.text
        assert text.index(PROFILE_HEADER) < text.index(LONG_TERM_HEADER) < text.index(WORKING_HEADER) \
               < text.index(SHORT_TERM_HEADER)
        assert "- Remembered fact number 00 about the user (fact, 2d ago)" in text
        assert "user: message number 00" in text
        assert "Name: Alex" in text
        assert not composed.truncated
        assert composed.memory_ids == ["mem_00"]

    def test_empty_tiers_produce_empty_text(self, composer):
        composed = composer.compose(None, [], None, [], max_tokens=2000)
        assert composed.text == ""
        assert composed.estimated_tokens == 0

    def test_zero_budget(self, composer, make_entry, now, profile):
        composed = composer.compose(profile, _turns(4), "Summary.", _ranked(make_entry, now, 3), max_tokens=0,
                                    now=now)
        assert composed.text == ""
        assert composed.truncated
        assert composed.memory_ids == []

    @pytest.mark.parametrize("conversation_type", list(ConversationType))
    @pytest.mark.parametrize("max_tokens", [50, 120, 300, 800])
    def test_never_exceeds_memory_share(self, composer, make_entry, now, profile, conversation_type, max_tokens):
        allocation = ALLOCATIONS[conversation_type]
        composed = composer.compose(profile, _turns(12), "First part. Second part of the summary. Third.",
                                    _ranked(make_entry, now, 8), max_tokens=max_tokens,
                                    conversation_type=conversation_type, now=now)

        budgets = {
            MemoryTier.PROFILE.value: allocation.profile,
            MemoryTier.SHORT_TERM.value: allocation.short_term,
            MemoryTier.WORKING.value: allocation.working,
            MemoryTier.LONG_TERM.value: allocation.long_term,
        }
        assert composed.estimated_tokens == estimate_tokens(composed.text)
        assert composed.estimated_tokens <= sum(math.floor(max_tokens * f) for f in budgets.values())
        assert composed.estimated_tokens <= max_tokens * allocation.memory_share + 1e-9
        for tier, tokens in composed.tier_tokens.items():
            assert tokens <= math.floor(max_tokens * budgets[tier])

    def test_long_term_dropped_whole_from_bottom(self, composer, make_entry, now):
        ranked = _ranked(make_entry, now, 6)
        composed = composer.compose(None, [], None, ranked, max_tokens=200, now=now)

        kept = composed.memory_ids
        assert 0 < len(kept) < len(ranked)
        assert kept == [r.entry.id for r in ranked[:len(kept)]]
        assert composed.dropped_entries == len(ranked) - len(kept)
        for r in ranked[len(kept):]:
            assert r.entry.content not in composed.text
        assert composed.truncated

    def test_oldest_turns_dropped_first(self, composer):
        turns = _turns(10)
        composed = composer.compose(None, turns, None, [], max_tokens=200)

        assert "message number 09" in composed.text
        assert "message number 00" not in composed.text
        assert composed.dropped_entries > 0
        lines = composed.text.split("\n")[1:]
        assert lines == sorted(lines, key=lambda line: line.split()[-1])

    def test_summary_cut_at_sentence(self, composer):
        summary = "First sentence is short. " + "Second sentence keeps going " * 10 + "."
        composed = composer.compose(None, [], summary, [], max_tokens=200)
        assert composed.text == WORKING_HEADER + "\nFirst sentence is short."
        assert composed.truncated

    def test_summary_dropped_without_boundary(self, composer):
        composed = composer.compose(None, [], "word " * 200, [], max_tokens=200)
        assert composed.text == ""
        assert composed.dropped_entries == 1
