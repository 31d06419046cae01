from abc import ABC, abstractmethod
from logging import Logger
from typing import Optional

from scitrera_app_framework.api import Variables, Plugin, enabled_option_pattern
from scitrera_app_framework import get_logger, ext_parse_bool

from ...config import (
    TIEREDMEMORY_EMBEDDING_PROVIDER, DEFAULT_TIEREDMEMORY_EMBEDDING_PROVIDER,
    TIEREDMEMORY_EMBEDDING_SERVICE, DEFAULT_TIEREDMEMORY_EMBEDDING_SERVICE,
    TIEREDMEMORY_EMBEDDING_PRELOAD_ENABLED, DEFAULT_TIEREDMEMORY_EMBEDDING_PRELOAD_ENABLED
)
from .._constants import EXT_CACHE_SERVICE, EXT_EMBEDDING_PROVIDER, EXT_EMBEDDING_SERVICE


class EmbeddingProvider(ABC):
    """Abstract embedding provider."""

    def __init__(self, v: Variables = None, output_dimensions: Optional[int] = None):
        self._dimensions = output_dimensions
        self.logger = get_logger(v, name=self.__class__.__name__)

    async def preload(self):
        """
        Preload any required resources.

        Optional; improves time to first embedding for large local models.
        """
        return

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        """Generate embedding for single text."""
        pass

    @abstractmethod
    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for multiple texts (more efficient)."""
        pass

    @property
    def dimensions(self) -> int:
        """Embedding dimensions."""
        return self._dimensions


# noinspection PyAbstractClass
class EmbeddingProviderPluginBase(Plugin):
    """Base Plugin Implementation for embedding providers."""
    PROVIDER_NAME: str = ''

    def name(self) -> str:
        return f"{EXT_EMBEDDING_PROVIDER}|{self.PROVIDER_NAME}"

    def extension_point_name(self, v: Variables) -> str:
        return EXT_EMBEDDING_PROVIDER

    def is_enabled(self, v: Variables) -> bool:
        return enabled_option_pattern(self, v, TIEREDMEMORY_EMBEDDING_PROVIDER, self_attr='PROVIDER_NAME')

    def on_registration(self, v: Variables) -> None:
        v.set_default_value(TIEREDMEMORY_EMBEDDING_PROVIDER, DEFAULT_TIEREDMEMORY_EMBEDDING_PROVIDER)

    async def async_ready(self, v: Variables, logger: Logger, value: object | None) -> None:
        # noinspection PyTypeChecker
        embedding_provider: EmbeddingProvider = value
        preload = v.environ(TIEREDMEMORY_EMBEDDING_PRELOAD_ENABLED,
                            default=DEFAULT_TIEREDMEMORY_EMBEDDING_PRELOAD_ENABLED, type_fn=ext_parse_bool)
        if preload:
            embedding_provider.logger.info("Attempting to preload embedding model")
            await embedding_provider.preload()
        return


# noinspection PyAbstractClass
class EmbeddingServicePluginBase(Plugin):
    """Base plugin for embedding service - extensible for custom implementations."""
    PROVIDER_NAME: str = None

    def name(self) -> str:
        return f"{EXT_EMBEDDING_SERVICE}|{self.PROVIDER_NAME}"

    def extension_point_name(self, v: Variables) -> str:
        return EXT_EMBEDDING_SERVICE

    def is_enabled(self, v: Variables) -> bool:
        return enabled_option_pattern(self, v, TIEREDMEMORY_EMBEDDING_SERVICE, self_attr='PROVIDER_NAME')

    def on_registration(self, v: Variables) -> None:
        v.set_default_value(TIEREDMEMORY_EMBEDDING_SERVICE, DEFAULT_TIEREDMEMORY_EMBEDDING_SERVICE)

    def get_dependencies(self, v: Variables):
        return (EXT_EMBEDDING_PROVIDER, EXT_CACHE_SERVICE)
