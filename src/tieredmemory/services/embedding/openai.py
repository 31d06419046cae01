from logging import Logger
from typing import Optional

from scitrera_app_framework import Variables as Variables

from ...config import EmbeddingProviderType, TIEREDMEMORY_EMBEDDING_MODEL, TIEREDMEMORY_EMBEDDING_DIMENSIONS
from ...exceptions import QuotaExceeded

from .base import EmbeddingProvider, EmbeddingProviderPluginBase

TIEREDMEMORY_EMBEDDING_OPENAI_API_KEY = 'TIEREDMEMORY_EMBEDDING_OPENAI_API_KEY'
TIEREDMEMORY_EMBEDDING_OPENAI_BASE_URL = 'TIEREDMEMORY_EMBEDDING_OPENAI_BASE_URL'

DEFAULT_EMBEDDING_MODEL = 'text-embedding-3-small'
DEFAULT_EMBEDDING_DIMENSIONS = 1536
DEFAULT_OPENAI_API_KEY = 'x'
DEFAULT_OPENAI_BASE_URL = None


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """
    OpenAI embedding provider using text-embedding-3-small.

    Also supports OpenAI-compatible APIs (vLLM, Ollama, LocalAI, etc.)
    by specifying base_url.
    """

    def __init__(
            self,
            v: Variables = None,
            api_key: Optional[str] = None,
            model: str = DEFAULT_EMBEDDING_MODEL,
            base_url: Optional[str] = None,
            dimensions: int = DEFAULT_EMBEDDING_DIMENSIONS,
    ):
        super().__init__(v, output_dimensions=dimensions)
        import openai
        self._openai = openai
        self.client = openai.AsyncOpenAI(api_key=api_key, base_url=base_url)
        self.model = model

    async def _create(self, payload):
        try:
            return await self.client.embeddings.create(input=payload, model=self.model)
        except self._openai.RateLimitError as e:
            raise QuotaExceeded(f"OpenAI embeddings rate limited: {e}") from e

    async def embed(self, text: str) -> list[float]:
        self.logger.debug("Generating OpenAI embedding for text: %s chars", len(text))
        response = await self._create(text)
        return response.data[0].embedding

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        self.logger.debug("Generating OpenAI embeddings for batch of %s texts", len(texts))
        response = await self._create(texts)
        return [item.embedding for item in response.data]


class OpenAIEmbeddingProviderPlugin(EmbeddingProviderPluginBase):
    PROVIDER_NAME = EmbeddingProviderType.OPENAI

    def initialize(self, v: Variables, logger: Logger) -> object | None:
        return OpenAIEmbeddingProvider(
            v=v,
            api_key=v.environ(TIEREDMEMORY_EMBEDDING_OPENAI_API_KEY, default=DEFAULT_OPENAI_API_KEY),
            model=v.environ(TIEREDMEMORY_EMBEDDING_MODEL, default=DEFAULT_EMBEDDING_MODEL),
            base_url=v.environ(TIEREDMEMORY_EMBEDDING_OPENAI_BASE_URL, default=DEFAULT_OPENAI_BASE_URL),
            dimensions=v.environ(TIEREDMEMORY_EMBEDDING_DIMENSIONS, default=DEFAULT_EMBEDDING_DIMENSIONS, type_fn=int),
        )
