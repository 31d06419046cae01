"""
Centralized extension point constants for all engine services.

All EXT_* constants are defined here to avoid circular import issues.
Individual service base modules re-export the relevant constants.
"""

# ============================================
# Storage
# ============================================
EXT_STORAGE_BACKEND = 'tieredmemory-structured-storage'

# ============================================
# Vector Index
# ============================================
EXT_VECTOR_INDEX = 'tieredmemory-vector-index'

# ============================================
# Cache
# ============================================
EXT_CACHE_SERVICE = 'tieredmemory-cache-service'

# ============================================
# Embedding
# ============================================
EXT_EMBEDDING_PROVIDER = 'embedding-provider'
EXT_EMBEDDING_SERVICE = 'embedding-service'

# ============================================
# Summarization
# ============================================
EXT_SUMMARIZATION_SERVICE = 'tieredmemory-summarization-service'

# ============================================
# Ranking
# ============================================
EXT_RANKING_SERVICE = 'tieredmemory-ranking-service'

# ============================================
# Privacy
# ============================================
EXT_PRIVACY_SERVICE = 'tieredmemory-privacy-service'

# ============================================
# Extraction
# ============================================
EXT_EXTRACTION_SERVICE = 'tieredmemory-extraction-service'

# ============================================
# Deduplication
# ============================================
EXT_DEDUPLICATION_SERVICE = 'tieredmemory-deduplication-service'

# ============================================
# Profile
# ============================================
EXT_PROFILE_SERVICE = 'tieredmemory-profile-service'

# ============================================
# Lock
# ============================================
EXT_LOCK_SERVICE = 'tieredmemory-lock-service'

# ============================================
# Consolidation
# ============================================
EXT_CONSOLIDATION_SERVICE = 'tieredmemory-consolidation-service'

# ============================================
# Decay
# ============================================
EXT_DECAY_SERVICE = 'tieredmemory-decay-service'

# ============================================
# Session Context
# ============================================
EXT_SESSION_SERVICE = 'tieredmemory-session-service'

# ============================================
# Context Composer
# ============================================
EXT_CONTEXT_SERVICE = 'tieredmemory-context-service'

# ============================================
# Memory Engine
# ============================================
EXT_MEMORY_ENGINE = 'tieredmemory-memory-engine'

# ============================================
# Tasks
# ============================================
EXT_TASK_SERVICE = 'tieredmemory-task-service'
EXT_MULTI_TASK_HANDLERS = 'tieredmemory-multi-task-handlers'
