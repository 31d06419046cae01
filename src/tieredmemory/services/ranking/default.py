"""Weighted multi-factor relevance ranker."""
import math
from datetime import datetime
from logging import Logger
from typing import Optional

from scitrera_app_framework import get_logger
from scitrera_app_framework.api import Variables, ext_parse_csv

from ...config import TIEREDMEMORY_RANKING_WEIGHTS
from ...models import MemoryEntry, RankedMemory
from ...utils import DistanceConvention, cosine_similarity, days_between, distance_to_similarity, utc_now
from .base import RankCandidate, RankingService, RankingServicePluginBase, RankingWeights


def recency_score(entry: MemoryEntry, now: datetime, decay_per_day: float) -> float:
    """exp(-k * age_days), age measured from creation."""
    return math.exp(-decay_per_day * days_between(entry.temporal.created_at, now))


def frequency_score(access_count: int) -> float:
    """log10(count + 1) / 2, saturating at 1 (about 100 accesses)."""
    return min(math.log10(max(0, access_count) + 1) / 2.0, 1.0)


def intent_matches(entry: MemoryEntry, intent: Optional[str]) -> bool:
    topic = entry.namespace.topic
    if not intent or not topic:
        return False
    return topic.lower() in intent.lower()


class WeightedRelevanceRanker(RankingService):
    """
    Relevance = w_r * recency + w_f * frequency + w_s * similarity + w_i * importance
    + w_v * |valence| (+ intent bonus), clamped to [0, 1].

    Ties are broken by the more recently accessed memory, then by id.
    """

    def __init__(self, v: Variables = None, weights: Optional[RankingWeights] = None):
        self.weights = weights or RankingWeights()
        self.logger = get_logger(v, name=self.__class__.__name__)

    def _similarity(self, candidate: RankCandidate, query_embedding: Optional[list[float]]) -> float:
        if candidate.similarity is not None:
            return min(1.0, max(0.0, candidate.similarity))
        if candidate.vector is not None and query_embedding is not None:
            return distance_to_similarity(cosine_similarity(candidate.vector, query_embedding),
                                          DistanceConvention.COSINE_SIMILARITY)
        return 0.0

    def score(self, candidate: RankCandidate, query_embedding: Optional[list[float]] = None,
              intent: Optional[str] = None, now: Optional[datetime] = None) -> RankedMemory:
        now = now or utc_now()
        entry = candidate.entry
        w = self.weights

        components = {
            'recency': recency_score(entry, now, w.recency_decay_per_day),
            'frequency': frequency_score(entry.access_count),
            'similarity': self._similarity(candidate, query_embedding),
            'importance': entry.importance.score,
            'valence': abs(entry.importance.factors.emotional_valence),
            'intent': 1.0 if intent_matches(entry, intent) else 0.0,
        }
        total = (
                w.recency * components['recency']
                + w.frequency * components['frequency']
                + w.similarity * components['similarity']
                + w.importance * components['importance']
                + w.valence * components['valence']
                + w.intent_bonus * components['intent']
        )
        return RankedMemory(
            entry=entry,
            score=min(1.0, max(0.0, total)),
            similarity=components['similarity'],
            components=components,
        )

    def rank(
            self,
            candidates: list[RankCandidate],
            query_embedding: Optional[list[float]] = None,
            intent: Optional[str] = None,
            now: Optional[datetime] = None,
    ) -> list[RankedMemory]:
        now = now or utc_now()
        ranked = [self.score(c, query_embedding, intent, now) for c in candidates]
        ranked.sort(key=lambda r: r.entry.id)
        ranked.sort(key=lambda r: (r.score, r.entry.temporal.last_accessed_at), reverse=True)
        return ranked


def parse_weights(value) -> Optional[RankingWeights]:
    """Weights from 'recency,frequency,similarity,importance,valence'."""
    if not value:
        return None
    parts = [float(x) for x in (ext_parse_csv(value) if isinstance(value, str) else value)]
    if len(parts) != 5:
        raise ValueError(f"Expected 5 ranking weights, got {len(parts)}")
    return RankingWeights(recency=parts[0], frequency=parts[1], similarity=parts[2], importance=parts[3],
                          valence=parts[4])


class WeightedRelevanceRankerPlugin(RankingServicePluginBase):
    PROVIDER_NAME = 'default'

    def initialize(self, v: Variables, logger: Logger) -> object | None:
        return WeightedRelevanceRanker(v=v, weights=parse_weights(v.environ(TIEREDMEMORY_RANKING_WEIGHTS, default=None)))
