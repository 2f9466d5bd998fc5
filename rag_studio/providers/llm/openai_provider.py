"""OpenAI-compatible LLM provider adapter.

Wraps the ``openai`` async client to implement :class:`ILLMProvider`.
Used by the generic enrichment client and the AI auto-fix client.  When
``openai_base_url`` is configured the client points at that
OpenAI-compatible gateway instead of the default endpoint.
"""

from __future__ import annotations

import openai
import structlog

from rag_studio.config.settings import Settings
from rag_studio.interfaces.llm_provider import ILLMProvider, LLMCompletion
from rag_studio.utils.errors import (
    ConfigurationError,
    LLMError,
    ProviderUnavailableError,
    RateLimitError,
)

logger = structlog.get_logger(logger_name=__name__)

MISSING_KEY_MESSAGE = "Clé API OpenAI non configurée (OPENAI_API_KEY)"
EMPTY_RESPONSE_MESSAGE = "Réponse vide de l'API"


class OpenAILLMProvider(ILLMProvider):
    """LLM provider backed by an OpenAI-compatible chat completions API.

    The model defaults to ``gpt-4o`` and can be overridden through
    ``OPENAI_ENRICHMENT_MODEL``.  The client is built only when a key is
    configured; without one every :meth:`complete` call raises
    :class:`ConfigurationError` before any network traffic.
    """

    def __init__(self, settings: Settings) -> None:
        self._api_key = settings.openai_api_key
        self._model = settings.openai_enrichment_model or "gpt-4o"
        self._timeout = settings.llm_timeout_seconds
        self._provider_label = "openai-compatible" if settings.openai_base_url else "openai"

        self._client: openai.AsyncOpenAI | None = None
        if self._api_key:
            client_kwargs: dict = {
                "api_key": self._api_key,
                "timeout": openai.Timeout(self._timeout, connect=5.0),
                # Retries would break the fixed pacing of batch stages.
                "max_retries": 0,
            }
            if settings.openai_base_url:
                client_kwargs["base_url"] = settings.openai_base_url
            self._client = openai.AsyncOpenAI(**client_kwargs)

    # ------------------------------------------------------------------
    # ILLMProvider implementation
    # ------------------------------------------------------------------

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 3000,
        json_mode: bool = True,
    ) -> LLMCompletion:
        """Generate a completion via the chat completions endpoint."""
        if self._client is None:
            raise ConfigurationError(
                message=MISSING_KEY_MESSAGE, provider_name=self.get_provider_name()
            )

        request: dict = {
            "model": self._model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if json_mode:
            request["response_format"] = {"type": "json_object"}

        try:
            response = await self._client.chat.completions.create(**request)
        except openai.APITimeoutError as exc:
            raise LLMError(
                message=f"Délai dépassé après {self._timeout:g}s",
                provider_name=self.get_provider_name(),
            ) from exc
        except openai.APIConnectionError as exc:
            raise ProviderUnavailableError(
                message=f"Connexion impossible: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        except openai.RateLimitError as exc:
            raise RateLimitError(
                message=f"Erreur API OpenAI: {exc.status_code}",
                provider_name=self.get_provider_name(),
            ) from exc
        except openai.APIStatusError as exc:
            raise LLMError(
                message=f"Erreur API OpenAI: {exc.status_code}",
                provider_name=self.get_provider_name(),
            ) from exc
        except openai.APIError as exc:
            raise LLMError(
                message=f"Erreur API OpenAI: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise LLMError(message=EMPTY_RESPONSE_MESSAGE, provider_name=self.get_provider_name())

        tokens = response.usage.total_tokens if response.usage else 0
        logger.info(
            "openai_completion",
            model=self._model,
            provider=self._provider_label,
            tokens=tokens,
        )
        return LLMCompletion(content=content, tokens_used=tokens or 0, model=self._model)

    def is_available(self) -> bool:
        """Return ``True`` if an API key is configured (doesn't verify it works)."""
        return bool(self._api_key)

    def get_provider_name(self) -> str:
        """Return 'openai' or 'openai-compatible' depending on configuration."""
        return self._provider_label

    async def close(self) -> None:
        """Release the SDK's HTTP connection pool."""
        if self._client is not None:
            await self._client.close()
