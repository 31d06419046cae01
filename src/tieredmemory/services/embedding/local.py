import asyncio
from logging import Logger

from scitrera_app_framework import Variables as Variables

from .base import EmbeddingProvider, EmbeddingProviderPluginBase
from ...config import TIEREDMEMORY_EMBEDDING_MODEL, EmbeddingProviderType

DEFAULT_EMBEDDING_MODEL = 'all-MiniLM-L6-v2'


class LocalEmbeddingProvider(EmbeddingProvider):
    """
    Local embedding using sentence-transformers.

    For self-hosted deployments without external API calls. Encoding runs in a
    worker thread so the event loop is not blocked.
    """

    def __init__(self, v: Variables = None, model_name: str = DEFAULT_EMBEDDING_MODEL):
        super().__init__(v)
        self.model_name = model_name
        self._model = None
        self.logger.info("Initialized LocalEmbeddingProvider with model: %s", model_name)

    def _get_model(self):
        """Lazy load the model."""
        if self._model is None:
            from sentence_transformers import SentenceTransformer
            self.logger.info("Loading sentence-transformers model: %s", self.model_name)
            self._model = SentenceTransformer(self.model_name)
        return self._model

    async def preload(self):
        await asyncio.to_thread(self._get_model)

    async def embed(self, text: str) -> list[float]:
        self.logger.debug("Generating local embedding for text: %s chars", len(text))
        model = self._get_model()
        embedding = await asyncio.to_thread(model.encode, text)
        return embedding.tolist()

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        self.logger.debug("Generating local embeddings for batch of %s texts", len(texts))
        model = self._get_model()
        embeddings = await asyncio.to_thread(model.encode, texts)
        return [e.tolist() for e in embeddings]

    @property
    def dimensions(self) -> int:
        model = self._get_model()
        return model.get_sentence_embedding_dimension()


class LocalEmbeddingProviderPlugin(EmbeddingProviderPluginBase):
    PROVIDER_NAME = EmbeddingProviderType.LOCAL

    def initialize(self, v: Variables, logger: Logger) -> object | None:
        return LocalEmbeddingProvider(
            v=v,
            model_name=v.environ(TIEREDMEMORY_EMBEDDING_MODEL, default=DEFAULT_EMBEDDING_MODEL),
        )
