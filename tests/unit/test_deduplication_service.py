"""Unit tests for token-overlap deduplication and contradiction detection."""
import pytest

from tieredmemory.services.deduplication import DedupAction
from tieredmemory.services.deduplication.default import TokenOverlapDeduplicationService, polarity_tokens


@pytest.fixture
def dedup():
    return TokenOverlapDeduplicationService()


class TestPolarity:

    def test_negation_flips(self):
        negative, residual = polarity_tokens("I don't like Python")
        assert negative
        assert residual == {"i", "like", "python"}

    def test_antonym_maps_to_positive(self):
        negative, residual = polarity_tokens("I hate Python")
        assert negative
        assert residual == {"i", "love", "python"}

    def test_double_negation(self):
        negative, _ = polarity_tokens("I never dislike Python")
        assert not negative


class TestClassify:

    def test_filler_words_merge(self, dedup, make_entry):
        existing = make_entry(content="I really love Python")
        decision = dedup.classify("I love Python", [existing])
        assert decision.action == DedupAction.MERGE
        assert decision.target is existing
        assert decision.similarity == pytest.approx(1.0)

    def test_contradiction_by_negation(self, dedup, make_entry):
        existing = make_entry(content="I like Python")
        decision = dedup.classify("I don't like Python", [existing])
        assert decision.action == DedupAction.CONTRADICT
        assert decision.target is existing

    def test_contradiction_by_antonym(self, dedup, make_entry):
        existing = make_entry(content="I love Python")
        assert dedup.classify("I hate Python", [existing]).action == DedupAction.CONTRADICT

    def test_unrelated_creates(self, dedup, make_entry):
        existing = make_entry(content="I love Python")
        decision = dedup.classify("I love Rust", [existing])
        assert decision.action == DedupAction.CREATE
        assert decision.target is None
        assert decision.best_similarity == pytest.approx(0.5)

    def test_best_merge_target(self, dedup, make_entry):
        weaker = make_entry(content="I love Python and Go programming", entry_id="mem_weak")
        exact = make_entry(content="I love Python", entry_id="mem_exact")
        decision = dedup.classify("I truly love Python", [weaker, exact])
        assert decision.target.id == "mem_exact"

    def test_empty_existing(self, dedup):
        decision = dedup.classify("I love Python", [])
        assert decision.action == DedupAction.CREATE
        assert decision.best_similarity == 0.0
