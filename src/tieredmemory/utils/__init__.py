"""Shared utilities for engine services."""

from .identifiers import compute_content_hash, digest_of, generate_id
from .datetime import utc_now, utc_now_iso, parse_datetime_utc, ensure_utc, days_between
from .vector_math import cosine_similarity, DistanceConvention, distance_to_similarity
from .text import normalize_tokens, jaccard_similarity, estimate_tokens
from .retry import retry_async

__all__ = [
    "compute_content_hash",
    "generate_id",
    "digest_of",
    "utc_now",
    "utc_now_iso",
    "parse_datetime_utc",
    "ensure_utc",
    "days_between",
    "cosine_similarity",
    "DistanceConvention",
    "distance_to_similarity",
    "normalize_tokens",
    "jaccard_similarity",
    "estimate_tokens",
    "retry_async",
]
