"""Contract for the service that turns searchable text into vectors.

The document store embeds each record's searchable text when it is
ingested or updated; it receives an implementation of this interface at
construction time.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementation: OpenAIEmbeddingProvider
# Located in: rag_studio/providers/embedding/
class IEmbeddingProvider(ABC):
    """Computes fixed-size vectors for the document store."""

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Vectors for *texts*, position for position.

        Every vector has :meth:`get_dimension` components.

        Raises
        ------
        rag_studio.utils.errors.ConfigurationError
            If the provider has no credentials.
        rag_studio.utils.errors.DocumentStoreError
            If a text cannot be embedded or the remote call fails.
        """

    @abstractmethod
    async def embed_single(self, text: str) -> list[float]:
        """Vector for one text; same errors as :meth:`embed`."""

    @abstractmethod
    def get_dimension(self) -> int: ...

    @abstractmethod
    def get_provider_name(self) -> str: ...

    @abstractmethod
    def is_available(self) -> bool:
        """``False`` when credentials are missing; no network check is made."""
