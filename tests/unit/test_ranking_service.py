"""
Unit tests for the weighted relevance ranker.

Scoring is pure, so the ranker is constructed directly.
"""
from datetime import timedelta

import pytest

from tieredmemory.models import Namespace
from tieredmemory.services.ranking import RankCandidate, RankingWeights
from tieredmemory.services.ranking.default import (
    WeightedRelevanceRanker,
    frequency_score,
    intent_matches,
    parse_weights,
    recency_score,
)


@pytest.fixture
def ranker():
    return WeightedRelevanceRanker()


class TestScoreComponents:

    def test_recency_decays_with_age(self, make_entry, now):
        fresh = make_entry(age_days=0, now=now)
        old = make_entry(age_days=20, now=now)
        assert recency_score(fresh, now, 0.05) == pytest.approx(1.0)
        assert recency_score(old, now, 0.05) < recency_score(fresh, now, 0.05)

    def test_frequency_saturates(self):
        assert frequency_score(0) == 0.0
        assert frequency_score(9) == pytest.approx(0.5)
        assert frequency_score(10_000) == 1.0

    def test_intent_matches_topic(self, make_entry):
        entry = make_entry(namespace=Namespace(topic="python"))
        assert intent_matches(entry, "Help me learn Python decorators")
        assert not intent_matches(entry, "cooking tips")
        assert not intent_matches(make_entry(), "python")


class TestWeightedRelevanceRanker:

    def test_score_is_bounded(self, ranker, make_entry, now):
        entry = make_entry(now=now, score=1.0, access_count=1000, valence=1.0,
                           namespace=Namespace(topic="python"))
        ranked = ranker.score(RankCandidate(entry=entry, similarity=1.0), intent="python", now=now)
        assert 0.0 <= ranked.score <= 1.0
        assert ranked.score == 1.0

        empty = make_entry(now=now, age_days=10_000, score=0.0)
        assert ranker.score(RankCandidate(entry=empty), now=now).score >= 0.0

    def test_higher_similarity_ranks_first(self, ranker, make_entry, now):
        a = make_entry(now=now, entry_id="mem_a")
        b = make_entry(now=now, entry_id="mem_b")
        ranked = ranker.rank([RankCandidate(entry=a, similarity=0.4), RankCandidate(entry=b, similarity=0.9)],
                             now=now)
        assert [r.entry.id for r in ranked] == ["mem_b", "mem_a"]
        assert ranked[0].components["similarity"] == pytest.approx(0.9)

    def test_intent_bonus(self, ranker, make_entry, now):
        entry = make_entry(now=now, namespace=Namespace(topic="python"))
        base = ranker.score(RankCandidate(entry=entry, similarity=0.5), now=now).score
        boosted = ranker.score(RankCandidate(entry=entry, similarity=0.5), intent="python help", now=now).score
        assert boosted == pytest.approx(base + 0.2)

    def test_similarity_from_vectors(self, ranker, make_entry, now):
        entry = make_entry(now=now)
        ranked = ranker.score(RankCandidate(entry=entry, vector=[1.0, 0.0]), query_embedding=[1.0, 0.0], now=now)
        assert ranked.similarity == pytest.approx(1.0)

    def test_ties_broken_by_last_access(self, ranker, make_entry, now):
        stale = make_entry(now=now, age_days=5, accessed_days_ago=4, entry_id="mem_stale")
        recent = make_entry(now=now, age_days=5, accessed_days_ago=1, entry_id="mem_recent")
        ranked = ranker.rank([RankCandidate(entry=stale, similarity=0.5),
                              RankCandidate(entry=recent, similarity=0.5)], now=now)
        assert ranked[0].score == ranked[1].score
        assert ranked[0].entry.id == "mem_recent"

    def test_rank_does_not_mutate(self, ranker, make_entry, now):
        entry = make_entry(now=now, access_count=3)
        ranker.rank([RankCandidate(entry=entry, similarity=0.5)], now=now)
        assert entry.access_count == 3
        assert entry.temporal.last_accessed_at == now


class TestParseWeights:

    def test_parse_csv(self):
        weights = parse_weights("0.1,0.2,0.3,0.2,0.2")
        assert weights == RankingWeights(recency=0.1, frequency=0.2, similarity=0.3, importance=0.2, valence=0.2)

    def test_empty_means_default(self):
        assert parse_weights("") is None

    def test_wrong_length(self):
        with pytest.raises(ValueError):
            parse_weights("0.5,0.5")
