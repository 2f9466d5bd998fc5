"""Custom exception hierarchy for RAG Studio.

All application exceptions inherit from :class:`RagStudioError`, which
carries an optional ``provider_name`` so error handlers can identify which
external service (e.g. "openai", "mistral", "chromadb") caused the failure.

The hierarchy follows the ingestion pipeline's error taxonomy:

    RagStudioError  (base -- catch-all for any rag_studio error)
    +-- ConfigurationError        (missing credential, bad settings)
    |   +-- IndexNotFoundError    (unknown destination index)
    +-- LLMError                  (any enrichment / fix call failure)
    |   +-- MalformedResponseError (non-JSON or schema-violating output)
    +-- RateLimitError            (provider rate-limit exceeded)
    +-- ProviderUnavailableError  (network failure, service down)
    +-- PipelineError             (wizard orchestration)
    |   +-- InvalidTransitionError
    |   +-- RunResetError         (run reset while its batch was in flight)
    |   +-- BatchLimitExceededError
    +-- InputFormatError          (uploaded / pasted JSON is unusable)
    +-- DocumentStoreError        (embedding or index write failure)
    +-- SlugConflictError         (custom index slug already taken)

Configuration errors are fatal to the current operation.  Transport and
malformed-response errors are reported per item and never abort a batch.
"""


class RagStudioError(Exception):
    """Base exception for all RAG Studio errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  ``__str__`` prefixes the provider name in brackets for log
    output, e.g. ``[mistral] HTTP 429``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Configuration errors
# ---------------------------------------------------------------------------

class ConfigurationError(RagStudioError):
    """Raised when configuration is invalid or missing (e.g. no API key)."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class IndexNotFoundError(ConfigurationError):
    """Raised when an operation names an index the registry does not know."""

    def __init__(self, index_id: str, provider_name: str | None = None) -> None:
        self.index_id = index_id
        super().__init__(message=f'Index "{index_id}" not found', provider_name=provider_name)


# ---------------------------------------------------------------------------
# External provider errors
# ---------------------------------------------------------------------------

class LLMError(RagStudioError):
    """Raised when an LLM API call fails (non-2xx, timeout, empty body)."""

    def __init__(
        self,
        message: str = "LLM API call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class MalformedResponseError(LLMError):
    """Raised when an LLM response is not valid JSON or misses required keys."""

    def __init__(
        self,
        message: str = "LLM response is not valid structured data",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class RateLimitError(RagStudioError):
    """Raised when a provider answers HTTP 429."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ProviderUnavailableError(RagStudioError):
    """Raised when an external service is unreachable (DNS, connect, reset)."""

    def __init__(
        self,
        message: str = "External service is unavailable",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Orchestration errors
# ---------------------------------------------------------------------------

class PipelineError(RagStudioError):
    """Raised when wizard orchestration fails."""

    def __init__(
        self,
        message: str = "Pipeline orchestration failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class InvalidTransitionError(PipelineError):
    """Raised when a wizard operation is called from the wrong step."""

    def __init__(self, message: str = "Invalid wizard transition") -> None:
        super().__init__(message=message)


class RunResetError(PipelineError):
    """Raised by a batch call whose run was reset before the batch returned.

    The batch's results are discarded; the wizard keeps the fresh run.
    """

    def __init__(self, run_id: str) -> None:
        self.run_id = run_id
        super().__init__(message=f"Run {run_id} réinitialisé pendant le traitement : résultat ignoré")


class BatchLimitExceededError(PipelineError):
    """Raised before any external call when a batch exceeds the configured cap."""

    def __init__(self, size: int, limit: int) -> None:
        self.size = size
        self.limit = limit
        super().__init__(message=f"Batch of {size} items exceeds the limit of {limit}")


class InputFormatError(RagStudioError):
    """Raised when uploaded or pasted input cannot be turned into records."""

    def __init__(self, message: str = "Invalid input format") -> None:
        super().__init__(message=message)


# ---------------------------------------------------------------------------
# Storage errors
# ---------------------------------------------------------------------------

class DocumentStoreError(RagStudioError):
    """Raised when the document index fails to embed or persist a record."""

    def __init__(
        self,
        message: str = "Document store operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class SlugConflictError(RagStudioError):
    """Raised when a custom index slug is already used by the same owner."""

    def __init__(self, slug: str) -> None:
        self.slug = slug
        super().__init__(message=f'An index with identifier "{slug}" already exists')
