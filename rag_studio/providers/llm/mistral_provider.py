"""Mistral chat-completions provider over plain HTTP.

Mistral exposes an OpenAI-shaped REST endpoint but a different SDK, so
this adapter talks to ``/chat/completions`` directly with an injected
``httpx.AsyncClient``.  Used by the sourced (France-specific) enrichment
client.
"""

from __future__ import annotations

from typing import Any

import httpx
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

MISSING_KEY_MESSAGE = "Clé API Mistral non configurée (MISTRAL_API_KEY)"
EMPTY_RESPONSE_MESSAGE = "Réponse vide de l'API"


class MistralLLMProvider(ILLMProvider):
    """LLM provider for the Mistral platform API.

    Parameters
    ----------
    settings:
        Supplies the API key, base URL, model and per-call timeout.
    http_client:
        Optional pre-configured client (tests inject one backed by
        ``httpx.MockTransport``).  When omitted, the provider creates and
        owns its own client.
    """

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient | None = None) -> None:
        self._api_key = settings.mistral_api_key
        self._model = settings.mistral_model or "mistral-medium-2505"
        self._endpoint = f"{settings.mistral_base_url.rstrip('/')}/chat/completions"
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(settings.llm_timeout_seconds, connect=5.0),
        )

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.2,
        max_tokens: int = 4000,
        json_mode: bool = True,
    ) -> LLMCompletion:
        """POST one chat completion request and return the first choice."""
        if not self._api_key:
            raise ConfigurationError(
                message=MISSING_KEY_MESSAGE, provider_name=self.get_provider_name()
            )

        body: dict[str, Any] = {
            "model": self._model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if json_mode:
            body["response_format"] = {"type": "json_object"}

        try:
            response = await self._client.post(
                self._endpoint,
                json=body,
                headers={
                    "Authorization": f"Bearer {self._api_key}",
                    "Content-Type": "application/json",
                },
            )
        except httpx.TimeoutException as exc:
            raise LLMError(
                message="Délai dépassé lors de l'appel Mistral",
                provider_name=self.get_provider_name(),
            ) from exc
        except httpx.HTTPError as exc:
            raise ProviderUnavailableError(
                message=f"Connexion impossible: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if response.status_code == 429:
            raise RateLimitError(
                message=f"Erreur API Mistral: {response.status_code}",
                provider_name=self.get_provider_name(),
            )
        if not response.is_success:
            logger.warning(
                "mistral_http_error",
                status=response.status_code,
                body_preview=response.text[:200],
            )
            raise LLMError(
                message=f"Erreur API Mistral: {response.status_code}",
                provider_name=self.get_provider_name(),
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise LLMError(
                message=EMPTY_RESPONSE_MESSAGE, provider_name=self.get_provider_name()
            ) from exc

        content = _first_choice_content(payload)
        if not content:
            raise LLMError(message=EMPTY_RESPONSE_MESSAGE, provider_name=self.get_provider_name())

        usage = payload.get("usage") or {}
        tokens = int(usage.get("total_tokens") or 0)
        logger.info("mistral_completion", model=self._model, tokens=tokens)
        return LLMCompletion(content=content, tokens_used=tokens, model=self._model)

    def is_available(self) -> bool:
        return bool(self._api_key)

    def get_provider_name(self) -> str:
        return "mistral"

    async def close(self) -> None:
        """Close the HTTP client if this provider created it."""
        if self._owns_client:
            await self._client.aclose()


def _first_choice_content(payload: Any) -> str | None:
    if not isinstance(payload, dict):
        return None
    choices = payload.get("choices") or []
    if not choices or not isinstance(choices[0], dict):
        return None
    message = choices[0].get("message") or {}
    content = message.get("content")
    return content if isinstance(content, str) else None
