"""Token-overlap deduplication with polarity-aware contradiction detection."""
from logging import Logger
from typing import Iterable

from scitrera_app_framework import get_logger
from scitrera_app_framework.api import Variables

from ...config import (
    TIEREDMEMORY_DEDUPLICATION_MERGE_THRESHOLD, DEFAULT_TIEREDMEMORY_DEDUPLICATION_MERGE_THRESHOLD,
    TIEREDMEMORY_DEDUPLICATION_CONTRADICTION_THRESHOLD, DEFAULT_TIEREDMEMORY_DEDUPLICATION_CONTRADICTION_THRESHOLD,
)
from ...models import MemoryEntry
from ...utils import jaccard_similarity, normalize_tokens
from .base import DedupAction, DedupDecision, DeduplicationService, DeduplicationServicePluginBase

NEGATIONS = frozenset({
    'not', 'no', 'never', 'dont', 'doesnt', 'didnt', 'isnt', 'arent', 'wasnt', 'werent',
    'cant', 'cannot', 'wont', 'wouldnt', 'shouldnt', 'havent', 'hasnt', 'nor',
})

# negative word -> positive counterpart
ANTONYMS = {
    'dislike': 'like',
    'hate': 'love',
    'loathe': 'love',
    'detest': 'love',
    'dislikes': 'likes',
    'hates': 'loves',
    'unhappy': 'happy',
    'worst': 'best',
    'bad': 'good',
    'false': 'true',
    'incorrect': 'correct',
    'unable': 'able',
}


def polarity_tokens(text: str) -> tuple[bool, set[str]]:
    """
    (negative, residual tokens): negations are removed and antonyms mapped to their
    positive form, each flipping the polarity.
    """
    negative = False
    residual = set()
    for token in normalize_tokens(text):
        token = token.replace("'", "")
        if token in NEGATIONS:
            negative = not negative
            continue
        if token in ANTONYMS:
            negative = not negative
            token = ANTONYMS[token]
        residual.add(token)
    return negative, residual


def _overlap(a: set[str], b: set[str]) -> float:
    union = a | b
    return len(a & b) / len(union) if union else 0.0


class TokenOverlapDeduplicationService(DeduplicationService):
    """
    MERGE when Jaccard similarity exceeds ``merge_threshold`` with equal polarity;
    CONTRADICT when the residual overlap (negations and antonyms neutralized) reaches
    ``contradiction_threshold`` with opposite polarity; CREATE otherwise.
    """

    def __init__(self, v: Variables = None,
                 merge_threshold: float = DEFAULT_TIEREDMEMORY_DEDUPLICATION_MERGE_THRESHOLD,
                 contradiction_threshold: float = DEFAULT_TIEREDMEMORY_DEDUPLICATION_CONTRADICTION_THRESHOLD):
        self.merge_threshold = merge_threshold
        self.contradiction_threshold = contradiction_threshold
        self.logger = get_logger(v, name=self.__class__.__name__)

    def similarity(self, a: str, b: str) -> float:
        return jaccard_similarity(a, b)

    def classify(self, content: str, existing: Iterable[MemoryEntry]) -> DedupDecision:
        negative, residual = polarity_tokens(content)

        best_similarity = 0.0
        merge_target, merge_similarity = None, 0.0
        contradiction_target, contradiction_overlap = None, 0.0

        for entry in existing:
            sim = self.similarity(content, entry.content)
            best_similarity = max(best_similarity, sim)

            entry_negative, entry_residual = polarity_tokens(entry.content)
            if entry_negative == negative:
                if sim > self.merge_threshold and sim > merge_similarity:
                    merge_target, merge_similarity = entry, sim
            else:
                overlap = _overlap(residual, entry_residual)
                if overlap >= self.contradiction_threshold and overlap > contradiction_overlap:
                    contradiction_target, contradiction_overlap = entry, overlap

        if merge_target is not None:
            return DedupDecision(DedupAction.MERGE, merge_target, merge_similarity, best_similarity)
        if contradiction_target is not None:
            self.logger.debug("Candidate contradicts memory %s (overlap %.2f)", contradiction_target.id,
                              contradiction_overlap)
            return DedupDecision(DedupAction.CONTRADICT, contradiction_target, contradiction_overlap,
                                 best_similarity)
        return DedupDecision(DedupAction.CREATE, None, 0.0, best_similarity)


class TokenOverlapDeduplicationServicePlugin(DeduplicationServicePluginBase):
    PROVIDER_NAME = 'default'

    def initialize(self, v: Variables, logger: Logger) -> object | None:
        return TokenOverlapDeduplicationService(
            v=v,
            merge_threshold=v.environ(TIEREDMEMORY_DEDUPLICATION_MERGE_THRESHOLD,
                                      default=DEFAULT_TIEREDMEMORY_DEDUPLICATION_MERGE_THRESHOLD, type_fn=float),
            contradiction_threshold=v.environ(TIEREDMEMORY_DEDUPLICATION_CONTRADICTION_THRESHOLD,
                                              default=DEFAULT_TIEREDMEMORY_DEDUPLICATION_CONTRADICTION_THRESHOLD,
                                              type_fn=float),
        )
