"""Identifiers and content digests for memory entries, turns, and cache keys."""
import json
import uuid
from hashlib import sha256
from typing import Any

# prefixes in use: mem (memory entries), turn (conversation turns), task/sched (background work)
ID_HEX_LENGTH = 16


def generate_id(prefix: str, length: int = ID_HEX_LENGTH) -> str:
    """
    ``{prefix}_{hex}``, e.g. ``mem_a1b2c3d4e5f6a7b8``. Entry ids are never reused, so a
    random uuid4 slice is enough; callers must not parse meaning out of the hex part.
    """
    return f"{prefix}_{uuid.uuid4().hex[:length]}"


def compute_content_hash(content: str) -> str:
    """SHA-256 hex digest of text; embedding cache keys and export checksums go through here."""
    return sha256(content.encode('utf-8')).hexdigest()


def digest_of(*parts: Any) -> str:
    """Stable digest of JSON-serializable parts (order matters, dict keys do not)."""
    return compute_content_hash(json.dumps(list(parts), sort_keys=True, default=str))
