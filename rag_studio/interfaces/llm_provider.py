"""Abstract base class for chat-completion providers.

Defines the contract for the language-model backends used by enrichment
and auto-fix.  Implementations wrap the OpenAI SDK or a plain HTTP
chat-completions endpoint (Mistral).  Services depend only on this
interface, so tests inject a mock provider without any network access.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from pydantic import BaseModel, ConfigDict


class LLMCompletion(BaseModel):
    """Text of a single completion plus its token accounting."""

    model_config = ConfigDict(frozen=True)

    content: str
    tokens_used: int = 0
    model: str = ""


# Concrete implementations: OpenAILLMProvider, MistralLLMProvider
# Located in: rag_studio/providers/llm/
class ILLMProvider(ABC):
    """Contract for chat-completion services used by the ingestion pipeline."""

    @abstractmethod
    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 3000,
        json_mode: bool = True,
    ) -> LLMCompletion:
        """Generate one completion.

        Parameters
        ----------
        system_prompt:
            The fixed instruction message.
        user_prompt:
            The per-item request built from the input record or name.
        temperature:
            Sampling temperature; the pipeline keeps it low.
        max_tokens:
            Upper bound on tokens in the response.
        json_mode:
            Ask the backend to force a JSON object response.

        Returns
        -------
        LLMCompletion
            Non-empty completion text and token usage.

        Raises
        ------
        rag_studio.utils.errors.ConfigurationError
            If the provider has no credential configured.
        rag_studio.utils.errors.LLMError
            On a non-2xx response or an empty completion.
        rag_studio.utils.errors.RateLimitError
            On HTTP 429.
        rag_studio.utils.errors.ProviderUnavailableError
            On network failure.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier such as ``"openai"`` or ``"mistral"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if a credential is configured.

        Does not contact the remote service.
        """
