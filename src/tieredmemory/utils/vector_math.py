"""Vector math utilities for embedding operations."""
from enum import Enum

import numpy as np


class DistanceConvention(str, Enum):
    """How a vector index reports closeness of a match."""

    COSINE_DISTANCE = "cosine_distance"  # 1 - cos, range [0, 2]
    COSINE_SIMILARITY = "cosine_similarity"  # range [-1, 1]
    NORMALIZED_SIMILARITY = "normalized_similarity"  # range [0, 1]


def cosine_similarity(vec1: list[float], vec2: list[float]) -> float:
    """
    Calculate cosine similarity between two vectors using numpy for performance.

    Args:
        vec1: First vector
        vec2: Second vector

    Returns:
        Cosine similarity in range [-1, 1], or 0.0 if vectors have different lengths
        or either vector is zero.
    """
    if len(vec1) != len(vec2):
        return 0.0

    a = np.asarray(vec1, dtype=float)
    b = np.asarray(vec2, dtype=float)

    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)

    if norm_a == 0 or norm_b == 0:
        return 0.0

    return float(np.dot(a, b) / (norm_a * norm_b))


def distance_to_similarity(value: float, convention: DistanceConvention) -> float:
    """
    Convert a raw index score into a similarity in [0, 1].

    Cosine distance lies in [0, 2], so ``1 - d`` would go negative for opposed
    vectors; it is mapped with ``1 - d / 2`` instead.

    Args:
        value: Raw score reported by the index
        convention: Convention the index uses for ``value``

    Returns:
        Similarity clamped to [0, 1] (1 = identical direction)
    """
    if convention == DistanceConvention.COSINE_DISTANCE:
        similarity = 1.0 - value / 2.0
    elif convention == DistanceConvention.COSINE_SIMILARITY:
        similarity = (1.0 + value) / 2.0
    else:
        similarity = value
    return float(min(1.0, max(0.0, similarity)))
