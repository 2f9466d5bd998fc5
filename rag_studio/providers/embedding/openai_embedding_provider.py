"""Embeddings for ingested records, computed through the OpenAI embeddings API.

The document store calls :meth:`OpenAIEmbeddingProvider.embed_single` once
per committed record, with that record's searchable text.  The vector size
must match the ``embedding_config.dimensions`` of the destination index
(1536 for every index the registry knows today).
"""

from __future__ import annotations

from typing import Any

import openai
import structlog

from rag_studio.config.settings import Settings
from rag_studio.interfaces.embedding_provider import IEmbeddingProvider
from rag_studio.utils.errors import ConfigurationError, DocumentStoreError
from rag_studio.utils.logging import get_logger

# Inputs per embeddings request accepted by the API.
_MAX_INPUTS_PER_REQUEST = 2048

_NATIVE_DIMENSIONS: dict[str, int] = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
}


class OpenAIEmbeddingProvider(IEmbeddingProvider):
    """:class:`IEmbeddingProvider` over ``openai.AsyncOpenAI().embeddings``.

    ``text-embedding-3-*`` models are asked for an explicit ``dimensions``
    value so the stored vectors keep a fixed size even if the model's
    default changes.  Unknown models (OpenAI-compatible gateways) are
    assumed to produce 1536-dimensional vectors.
    """

    def __init__(self, settings: Settings) -> None:
        self._model = settings.openai_embedding_model or "text-embedding-3-small"
        self._dimension = _NATIVE_DIMENSIONS.get(self._model, 1536)
        self._gateway = bool(settings.openai_base_url)
        self._logger: structlog.BoundLogger = get_logger(__name__)

        self._client: openai.AsyncOpenAI | None = None
        if settings.openai_api_key:
            options: dict[str, Any] = {
                "api_key": settings.openai_api_key,
                "timeout": openai.Timeout(settings.llm_timeout_seconds, connect=5.0),
            }
            if settings.openai_base_url:
                options["base_url"] = settings.openai_base_url
            self._client = openai.AsyncOpenAI(**options)

    def _request_options(self, inputs: list[str]) -> dict[str, Any]:
        options: dict[str, Any] = {"input": inputs, "model": self._model}
        if self._model.startswith("text-embedding-3"):
            options["dimensions"] = self._dimension
        return options

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Return one vector per text, in input order.

        Raises
        ------
        ConfigurationError
            If no API key is configured.
        DocumentStoreError
            If a text is blank or the API call fails.
        """
        if not texts:
            return []
        if self._client is None:
            raise ConfigurationError(
                message="Clé API OpenAI non configurée (OPENAI_API_KEY)",
                provider_name=self.get_provider_name(),
            )
        if any(not text.strip() for text in texts):
            raise DocumentStoreError(
                message="Texte vide : impossible de calculer un embedding",
                provider_name=self.get_provider_name(),
            )

        vectors: list[list[float]] = []
        for offset in range(0, len(texts), _MAX_INPUTS_PER_REQUEST):
            chunk = texts[offset : offset + _MAX_INPUTS_PER_REQUEST]
            try:
                response = await self._client.embeddings.create(**self._request_options(chunk))
            except openai.APIError as exc:
                raise DocumentStoreError(
                    message=f"Erreur API embeddings: {exc}",
                    provider_name=self.get_provider_name(),
                ) from exc

            # The API may return items out of order; ``index`` is authoritative.
            ordered = sorted(response.data, key=lambda item: item.index)
            vectors.extend(list(item.embedding) for item in ordered)
            self._logger.debug(
                "embeddings_computed",
                model=self._model,
                count=len(chunk),
                tokens=getattr(response.usage, "total_tokens", None),
            )
        return vectors

    async def embed_single(self, text: str) -> list[float]:
        return (await self.embed([text]))[0]

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return "openai-compatible_embedding" if self._gateway else "openai_embedding"

    def is_available(self) -> bool:
        return self._client is not None

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
