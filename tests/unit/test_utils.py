"""Unit tests for vector math, text helpers, identifiers and retry."""
import pytest

from tieredmemory.exceptions import QuotaExceeded
from tieredmemory.utils import (
    DistanceConvention,
    cosine_similarity,
    digest_of,
    distance_to_similarity,
    estimate_tokens,
    generate_id,
    jaccard_similarity,
    normalize_tokens,
    retry_async,
)


class TestVectorMath:

    def test_cosine_identical_and_orthogonal(self):
        assert cosine_similarity([1.0, 0.0], [2.0, 0.0]) == pytest.approx(1.0)
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)

    def test_cosine_degenerate_inputs(self):
        assert cosine_similarity([1.0, 2.0], [1.0]) == 0.0
        assert cosine_similarity([0.0, 0.0], [1.0, 1.0]) == 0.0

    @pytest.mark.parametrize("value, convention, expected", [
        (0.0, DistanceConvention.COSINE_DISTANCE, 1.0),
        (1.0, DistanceConvention.COSINE_DISTANCE, 0.5),
        (2.0, DistanceConvention.COSINE_DISTANCE, 0.0),
        (-1.0, DistanceConvention.COSINE_SIMILARITY, 0.0),
        (1.0, DistanceConvention.COSINE_SIMILARITY, 1.0),
        (0.42, DistanceConvention.NORMALIZED_SIMILARITY, 0.42),
    ])
    def test_distance_to_similarity(self, value, convention, expected):
        assert distance_to_similarity(value, convention) == pytest.approx(expected)

    def test_similarity_is_clamped(self):
        assert distance_to_similarity(2.5, DistanceConvention.COSINE_DISTANCE) == 0.0
        assert distance_to_similarity(1.3, DistanceConvention.NORMALIZED_SIMILARITY) == 1.0


class TestText:

    def test_filler_words_dropped(self):
        assert normalize_tokens("I REALLY love the Python!") == {"i", "love", "python"}

    def test_jaccard(self):
        assert jaccard_similarity("I love Python", "I really love Python") == 1.0
        assert jaccard_similarity("I love Python", "I love Rust") == pytest.approx(0.5)
        assert jaccard_similarity("", "") == 1.0

    def test_estimate_tokens(self):
        assert estimate_tokens("") == 0
        assert estimate_tokens("abcd") == 1
        assert estimate_tokens("abcde") == 2


class TestIdentifiers:

    def test_generate_id_prefix_and_uniqueness(self):
        ids = {generate_id("mem") for _ in range(50)}
        assert len(ids) == 50
        assert all(i.startswith("mem_") and len(i) == 20 for i in ids)
        assert len(generate_id("task", 12)) == 17

    def test_digest_ignores_dict_key_order(self):
        assert digest_of("hi", {"a": 1, "b": 2}) == digest_of("hi", {"b": 2, "a": 1})
        assert digest_of("hi", 1) != digest_of(1, "hi")


class TestRetry:

    async def test_succeeds_after_failures(self):
        calls = []

        async def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise RuntimeError("boom")
            return "ok"

        assert await retry_async(flaky, attempts=3, base_delay=0.0) == "ok"
        assert len(calls) == 3

    async def test_reraises_last_error(self):
        async def broken():
            raise RuntimeError("still broken")

        with pytest.raises(RuntimeError, match="still broken"):
            await retry_async(broken, attempts=2, base_delay=0.0)

    async def test_does_not_retry_unlisted_errors(self):
        calls = []

        async def quota():
            calls.append(1)
            raise QuotaExceeded("slow down")

        with pytest.raises(QuotaExceeded):
            await retry_async(quota, attempts=3, base_delay=0.0, retry_on=(RuntimeError,))
        assert len(calls) == 1
