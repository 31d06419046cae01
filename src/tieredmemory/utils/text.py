"""Text helpers for token overlap and budget estimation."""
import math
import re
from typing import Iterable

_TOKEN_RE = re.compile(r"[a-z0-9']+")

# intensifiers and articles carry no meaning for near-duplicate detection
FILLER_WORDS = frozenset({
    'a', 'an', 'the',
    'really', 'very', 'so', 'truly', 'totally', 'actually', 'just', 'quite',
    'absolutely', 'definitely', 'pretty', 'also', 'too', 'indeed',
})

CHARS_PER_TOKEN = 4


def normalize_tokens(text: str, drop: Iterable[str] = FILLER_WORDS) -> set[str]:
    """Lower-case word tokens with punctuation and filler words removed."""
    if not text:
        return set()
    drop = frozenset(drop)
    tokens = (t.strip("'") for t in _TOKEN_RE.findall(text.lower()))
    return {t for t in tokens if t and t not in drop}


def jaccard_similarity(a: str, b: str) -> float:
    """Token Jaccard similarity between two texts, in [0, 1]."""
    tokens_a = normalize_tokens(a)
    tokens_b = normalize_tokens(b)
    if not tokens_a and not tokens_b:
        return 1.0 if (a or '').strip().lower() == (b or '').strip().lower() else 0.0
    union = tokens_a | tokens_b
    if not union:
        return 0.0
    return len(tokens_a & tokens_b) / len(union)


def estimate_tokens(text: str) -> int:
    """Rough token estimate (one token per four characters, rounded up)."""
    if not text:
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)
