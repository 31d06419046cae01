"""Exception types raised by the memory engine."""
from typing import Optional


class MemoryEngineError(Exception):
    """Base exception for all memory engine errors."""

    retryable: bool = False

    def __init__(self, message: str, retryable: Optional[bool] = None):
        super().__init__(message)
        self.message = message
        if retryable is not None:
            self.retryable = retryable


class TierUnavailable(MemoryEngineError):
    """A memory tier could not be read within its budget."""

    retryable = True

    def __init__(self, tier: str, message: Optional[str] = None):
        super().__init__(message or f"Memory tier unavailable: {tier}")
        self.tier = tier


class EmbeddingFailure(MemoryEngineError):
    """The embedding provider failed to produce a vector."""

    retryable = True


class ConsolidationConflict(MemoryEngineError):
    """A candidate memory conflicts with an existing memory."""

    def __init__(self, message: str, existing_id: Optional[str] = None):
        super().__init__(message)
        self.existing_id = existing_id


class QuotaExceeded(MemoryEngineError):
    """An external provider rejected the call due to rate limiting."""

    retryable = True

    def __init__(self, message: str, retry_after: Optional[float] = None):
        super().__init__(message)
        self.retry_after = retry_after


class InvalidMemoryContent(MemoryEngineError):
    """Candidate memory content failed validation."""


class LockUnavailable(MemoryEngineError):
    """The per-user lock is held by another worker."""

    retryable = True

    def __init__(self, key: str):
        super().__init__(f"Lock is held: {key}")
        self.key = key
