"""Summarization through an OpenAI-compatible chat completion endpoint."""
from logging import Logger
from typing import Optional

from scitrera_app_framework import Variables, get_logger

from ...exceptions import QuotaExceeded
from ...models import ConversationTurn
from .base import SummarizationService, SummarizationServicePluginBase, format_turns

TIEREDMEMORY_SUMMARIZATION_OPENAI_API_KEY = 'TIEREDMEMORY_SUMMARIZATION_OPENAI_API_KEY'
TIEREDMEMORY_SUMMARIZATION_OPENAI_BASE_URL = 'TIEREDMEMORY_SUMMARIZATION_OPENAI_BASE_URL'
TIEREDMEMORY_SUMMARIZATION_OPENAI_MODEL = 'TIEREDMEMORY_SUMMARIZATION_OPENAI_MODEL'

DEFAULT_SUMMARIZATION_OPENAI_MODEL = 'gpt-4o-mini'
DEFAULT_OPENAI_API_KEY = 'x'
DEFAULT_MAX_COMPLETION_TOKENS = 200

SYSTEM_PROMPT = (
    "Summarize the conversation below in at most three sentences. "
    "Keep facts the user stated about themselves, their goals and open questions. "
    "Write in the third person and do not add information."
)


class OpenAISummarizationService(SummarizationService):
    """Chat-completion summarizer. Works with OpenAI and any OpenAI-compatible endpoint."""

    def __init__(
            self,
            v: Variables = None,
            api_key: Optional[str] = None,
            base_url: Optional[str] = None,
            model: str = DEFAULT_SUMMARIZATION_OPENAI_MODEL,
            max_completion_tokens: int = DEFAULT_MAX_COMPLETION_TOKENS,
    ):
        self.api_key = api_key
        self.base_url = base_url
        self.model = model
        self.max_completion_tokens = max_completion_tokens
        self._client = None
        self.logger = get_logger(v, name=self.__class__.__name__)
        self.logger.info("Initialized OpenAISummarizationService: base_url=%s, model=%s", base_url, model)

    def _get_client(self):
        """Lazy-load OpenAI async client."""
        if self._client is None:
            from openai import AsyncOpenAI
            self._client = AsyncOpenAI(api_key=self.api_key, base_url=self.base_url)
        return self._client

    async def summarize(self, turns: list[ConversationTurn], max_chars: Optional[int] = None) -> Optional[str]:
        if not turns:
            return None

        import openai
        client = self._get_client()
        max_tokens = self.max_completion_tokens
        if max_chars is not None:
            max_tokens = max(16, min(max_tokens, max_chars // 4))

        try:
            response = await client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": format_turns(turns)},
                ],
                max_completion_tokens=max_tokens,
            )
        except openai.RateLimitError as e:
            raise QuotaExceeded(f"Summarization rate limited: {e}") from e

        content = (response.choices[0].message.content or "").strip()
        return content or None


class OpenAISummarizationServicePlugin(SummarizationServicePluginBase):
    PROVIDER_NAME = 'openai'

    def initialize(self, v: Variables, logger: Logger) -> object | None:
        return OpenAISummarizationService(
            v=v,
            api_key=v.environ(TIEREDMEMORY_SUMMARIZATION_OPENAI_API_KEY, default=DEFAULT_OPENAI_API_KEY),
            base_url=v.environ(TIEREDMEMORY_SUMMARIZATION_OPENAI_BASE_URL, default=None),
            model=v.environ(TIEREDMEMORY_SUMMARIZATION_OPENAI_MODEL, default=DEFAULT_SUMMARIZATION_OPENAI_MODEL),
        )
