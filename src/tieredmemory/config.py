"""Configuration keys and defaults for the tiered memory engine.

Values are resolved through scitrera-app-framework Variables (environment backed).
"""

from enum import Enum

# ============================================
# Data Home Directory
# ============================================
TIEREDMEMORY_DATA_DIR = 'TIEREDMEMORY_DATA_DIR'

# ============================================
# Server Configuration
# ============================================
TIEREDMEMORY_SERVER_HOST = 'TIEREDMEMORY_SERVER_HOST'
DEFAULT_TIEREDMEMORY_SERVER_HOST = '127.0.0.1'
TIEREDMEMORY_SERVER_PORT = 'TIEREDMEMORY_SERVER_PORT'
DEFAULT_TIEREDMEMORY_SERVER_PORT = 61010


# ============================================
# Embedding Providers
# ============================================
class EmbeddingProviderType(str, Enum):
    """Available embedding provider types."""

    OPENAI = "openai"  # OpenAI API or any OpenAI-compatible endpoint
    LOCAL = "local"  # sentence-transformers (self-hosted)
    MOCK = "mock"  # deterministic hash-based, testing only


TIEREDMEMORY_EMBEDDING_PROVIDER = 'TIEREDMEMORY_EMBEDDING_PROVIDER'
DEFAULT_TIEREDMEMORY_EMBEDDING_PROVIDER = EmbeddingProviderType.LOCAL
TIEREDMEMORY_EMBEDDING_MODEL = 'TIEREDMEMORY_EMBEDDING_MODEL'
TIEREDMEMORY_EMBEDDING_DIMENSIONS = 'TIEREDMEMORY_EMBEDDING_DIMENSIONS'
TIEREDMEMORY_EMBEDDING_PRELOAD_ENABLED = 'TIEREDMEMORY_EMBEDDING_PRELOAD_ENABLED'
DEFAULT_TIEREDMEMORY_EMBEDDING_PRELOAD_ENABLED = True

TIEREDMEMORY_EMBEDDING_SERVICE = 'TIEREDMEMORY_EMBEDDING_SERVICE'
DEFAULT_TIEREDMEMORY_EMBEDDING_SERVICE = 'default'
TIEREDMEMORY_EMBEDDING_CACHE_TTL = 'TIEREDMEMORY_EMBEDDING_CACHE_TTL'
DEFAULT_TIEREDMEMORY_EMBEDDING_CACHE_TTL = 3600

# ============================================
# Vector Index
# ============================================
TIEREDMEMORY_VECTOR_INDEX = 'TIEREDMEMORY_VECTOR_INDEX'
DEFAULT_TIEREDMEMORY_VECTOR_INDEX = 'in-memory'

# ============================================
# Structured Storage
# ============================================
TIEREDMEMORY_STORAGE_BACKEND = 'TIEREDMEMORY_STORAGE_BACKEND'
DEFAULT_TIEREDMEMORY_STORAGE_BACKEND = 'sqlite'

TIEREDMEMORY_SQLITE_STORAGE_PATH = 'TIEREDMEMORY_SQLITE_STORAGE_PATH'
DEFAULT_TIEREDMEMORY_SQLITE_STORAGE_PATH = "tieredmemory.db"

# ============================================
# Ephemeral Cache
# ============================================
TIEREDMEMORY_CACHE_SERVICE = 'TIEREDMEMORY_CACHE_SERVICE'
DEFAULT_TIEREDMEMORY_CACHE_SERVICE = 'lru'

# ============================================
# Summarization
# ============================================
TIEREDMEMORY_SUMMARIZATION_PROVIDER = 'TIEREDMEMORY_SUMMARIZATION_PROVIDER'
DEFAULT_TIEREDMEMORY_SUMMARIZATION_PROVIDER = 'heuristic'

# ============================================
# Ranking
# ============================================
TIEREDMEMORY_RANKING_SERVICE = 'TIEREDMEMORY_RANKING_SERVICE'
DEFAULT_TIEREDMEMORY_RANKING_SERVICE = 'default'
TIEREDMEMORY_RANKING_WEIGHTS = 'TIEREDMEMORY_RANKING_WEIGHTS'  # csv: recency,frequency,similarity,importance,valence

# ============================================
# Privacy
# ============================================
TIEREDMEMORY_PRIVACY_SERVICE = 'TIEREDMEMORY_PRIVACY_SERVICE'
DEFAULT_TIEREDMEMORY_PRIVACY_SERVICE = 'default'
TIEREDMEMORY_CONTENT_MAX_LENGTH = 'TIEREDMEMORY_CONTENT_MAX_LENGTH'
DEFAULT_TIEREDMEMORY_CONTENT_MAX_LENGTH = 5000

# ============================================
# Extraction
# ============================================
TIEREDMEMORY_EXTRACTION_SERVICE = 'TIEREDMEMORY_EXTRACTION_SERVICE'
DEFAULT_TIEREDMEMORY_EXTRACTION_SERVICE = 'default'
TIEREDMEMORY_EXTRACTION_RULES_PATH = 'TIEREDMEMORY_EXTRACTION_RULES_PATH'

# ============================================
# Deduplication
# ============================================
TIEREDMEMORY_DEDUPLICATION_SERVICE = 'TIEREDMEMORY_DEDUPLICATION_SERVICE'
DEFAULT_TIEREDMEMORY_DEDUPLICATION_SERVICE = 'default'
TIEREDMEMORY_DEDUPLICATION_MERGE_THRESHOLD = 'TIEREDMEMORY_DEDUPLICATION_MERGE_THRESHOLD'
DEFAULT_TIEREDMEMORY_DEDUPLICATION_MERGE_THRESHOLD = 0.9
TIEREDMEMORY_DEDUPLICATION_CONTRADICTION_THRESHOLD = 'TIEREDMEMORY_DEDUPLICATION_CONTRADICTION_THRESHOLD'
DEFAULT_TIEREDMEMORY_DEDUPLICATION_CONTRADICTION_THRESHOLD = 0.6

# ============================================
# Profile
# ============================================
TIEREDMEMORY_PROFILE_SERVICE = 'TIEREDMEMORY_PROFILE_SERVICE'
DEFAULT_TIEREDMEMORY_PROFILE_SERVICE = 'default'

# ============================================
# Consolidation
# ============================================
TIEREDMEMORY_CONSOLIDATION_SERVICE = 'TIEREDMEMORY_CONSOLIDATION_SERVICE'
DEFAULT_TIEREDMEMORY_CONSOLIDATION_SERVICE = 'default'
TIEREDMEMORY_CONSOLIDATION_DELAY_HOURS = 'TIEREDMEMORY_CONSOLIDATION_DELAY_HOURS'
DEFAULT_TIEREDMEMORY_CONSOLIDATION_DELAY_HOURS = 24
TIEREDMEMORY_CONSOLIDATION_BATCH_SIZE = 'TIEREDMEMORY_CONSOLIDATION_BATCH_SIZE'
DEFAULT_TIEREDMEMORY_CONSOLIDATION_BATCH_SIZE = 10
TIEREDMEMORY_CONSOLIDATION_INTERVAL_SECONDS = 'TIEREDMEMORY_CONSOLIDATION_INTERVAL_SECONDS'
DEFAULT_TIEREDMEMORY_CONSOLIDATION_INTERVAL_SECONDS = 24 * 3600
TIEREDMEMORY_VECTOR_WRITE_ATTEMPTS = 'TIEREDMEMORY_VECTOR_WRITE_ATTEMPTS'
DEFAULT_TIEREDMEMORY_VECTOR_WRITE_ATTEMPTS = 3

# ============================================
# Decay & Cleanup
# ============================================
TIEREDMEMORY_DECAY_PROVIDER = 'TIEREDMEMORY_DECAY_PROVIDER'
DEFAULT_TIEREDMEMORY_DECAY_PROVIDER = 'default'
TIEREDMEMORY_DECAY_BATCH_SIZE = 'TIEREDMEMORY_DECAY_BATCH_SIZE'
DEFAULT_TIEREDMEMORY_DECAY_BATCH_SIZE = 50
TIEREDMEMORY_DECAY_INTERVAL_SECONDS = 'TIEREDMEMORY_DECAY_INTERVAL_SECONDS'
DEFAULT_TIEREDMEMORY_DECAY_INTERVAL_SECONDS = 24 * 3600
TIEREDMEMORY_CLEANUP_INTERVAL_SECONDS = 'TIEREDMEMORY_CLEANUP_INTERVAL_SECONDS'
DEFAULT_TIEREDMEMORY_CLEANUP_INTERVAL_SECONDS = 7 * 24 * 3600
TIEREDMEMORY_CLEANUP_ARCHIVE_AFTER_DAYS = 'TIEREDMEMORY_CLEANUP_ARCHIVE_AFTER_DAYS'
DEFAULT_TIEREDMEMORY_CLEANUP_ARCHIVE_AFTER_DAYS = 90
TIEREDMEMORY_HEALTH_CHECK_INTERVAL_SECONDS = 'TIEREDMEMORY_HEALTH_CHECK_INTERVAL_SECONDS'
DEFAULT_TIEREDMEMORY_HEALTH_CHECK_INTERVAL_SECONDS = 3600
TIEREDMEMORY_JOB_CONCURRENCY = 'TIEREDMEMORY_JOB_CONCURRENCY'
DEFAULT_TIEREDMEMORY_JOB_CONCURRENCY = 4

# ============================================
# Tasks
# ============================================
TIEREDMEMORY_TASK_PROVIDER = 'TIEREDMEMORY_TASK_PROVIDER'
DEFAULT_TIEREDMEMORY_TASK_PROVIDER = 'asyncio'

# ============================================
# Per-user Lock
# ============================================
TIEREDMEMORY_LOCK_SERVICE = 'TIEREDMEMORY_LOCK_SERVICE'
DEFAULT_TIEREDMEMORY_LOCK_SERVICE = 'in-memory'
TIEREDMEMORY_LOCK_TTL_SECONDS = 'TIEREDMEMORY_LOCK_TTL_SECONDS'
DEFAULT_TIEREDMEMORY_LOCK_TTL_SECONDS = 300
TIEREDMEMORY_LOCK_WAIT_SECONDS = 'TIEREDMEMORY_LOCK_WAIT_SECONDS'
DEFAULT_TIEREDMEMORY_LOCK_WAIT_SECONDS = 0.0

# ============================================
# Session Context (short-term and working tiers)
# ============================================
TIEREDMEMORY_SESSION_SERVICE = 'TIEREDMEMORY_SESSION_SERVICE'
DEFAULT_TIEREDMEMORY_SESSION_SERVICE = 'default'
TIEREDMEMORY_SHORT_TERM_TURNS = 'TIEREDMEMORY_SHORT_TERM_TURNS'
DEFAULT_TIEREDMEMORY_SHORT_TERM_TURNS = 5
TIEREDMEMORY_SHORT_TERM_TTL_SECONDS = 'TIEREDMEMORY_SHORT_TERM_TTL_SECONDS'
DEFAULT_TIEREDMEMORY_SHORT_TERM_TTL_SECONDS = 300
TIEREDMEMORY_WORKING_TURNS = 'TIEREDMEMORY_WORKING_TURNS'
DEFAULT_TIEREDMEMORY_WORKING_TURNS = 20
TIEREDMEMORY_WORKING_TTL_SECONDS = 'TIEREDMEMORY_WORKING_TTL_SECONDS'
DEFAULT_TIEREDMEMORY_WORKING_TTL_SECONDS = 7200
TIEREDMEMORY_SUMMARIZE_THRESHOLD = 'TIEREDMEMORY_SUMMARIZE_THRESHOLD'
DEFAULT_TIEREDMEMORY_SUMMARIZE_THRESHOLD = 10

# ============================================
# Context Composer
# ============================================
TIEREDMEMORY_CONTEXT_SERVICE = 'TIEREDMEMORY_CONTEXT_SERVICE'
DEFAULT_TIEREDMEMORY_CONTEXT_SERVICE = 'default'

# ============================================
# Memory Engine / Retrieval
# ============================================
TIEREDMEMORY_ENGINE_SERVICE = 'TIEREDMEMORY_ENGINE_SERVICE'
DEFAULT_TIEREDMEMORY_ENGINE_SERVICE = 'default'
TIEREDMEMORY_MAX_CONTEXT_TOKENS = 'TIEREDMEMORY_MAX_CONTEXT_TOKENS'
DEFAULT_TIEREDMEMORY_MAX_CONTEXT_TOKENS = 2000
TIEREDMEMORY_TIER_TIMEOUT_MS = 'TIEREDMEMORY_TIER_TIMEOUT_MS'
DEFAULT_TIEREDMEMORY_TIER_TIMEOUT_MS = 250
TIEREDMEMORY_RETRIEVAL_DEADLINE_MS = 'TIEREDMEMORY_RETRIEVAL_DEADLINE_MS'
DEFAULT_TIEREDMEMORY_RETRIEVAL_DEADLINE_MS = 1000
TIEREDMEMORY_LONG_TERM_CANDIDATES = 'TIEREDMEMORY_LONG_TERM_CANDIDATES'
DEFAULT_TIEREDMEMORY_LONG_TERM_CANDIDATES = 10
TIEREDMEMORY_LONG_TERM_RESULTS = 'TIEREDMEMORY_LONG_TERM_RESULTS'
DEFAULT_TIEREDMEMORY_LONG_TERM_RESULTS = 5
TIEREDMEMORY_MIN_SIMILARITY = 'TIEREDMEMORY_MIN_SIMILARITY'
DEFAULT_TIEREDMEMORY_MIN_SIMILARITY = 0.3
TIEREDMEMORY_RESULT_CACHE_TTL_SECONDS = 'TIEREDMEMORY_RESULT_CACHE_TTL_SECONDS'
DEFAULT_TIEREDMEMORY_RESULT_CACHE_TTL_SECONDS = 300
