"""Utility modules for RAG Studio.

- **confidence** -- 0..100 scoring math and display-tier mapping for
  enrichment results.
- **errors** -- Exception hierarchy rooted at RagStudioError.
- **concurrency** -- FixedIntervalScheduler, the rate-limited sequential
  queue used by every batch stage.
- **llm_json** -- Fence/preamble tolerant JSON extraction from completions.
- **logging** -- structlog setup with console/JSON renderers.
"""

# -- Confidence scoring utilities ------------------------------------------
from rag_studio.utils.confidence import (
    ConfidenceLevel,
    calculate_confidence,
    clamp_score,
    confidence_to_level,
)

# -- Domain exception hierarchy --------------------------------------------
from rag_studio.utils.errors import (
    BatchLimitExceededError,
    ConfigurationError,
    DocumentStoreError,
    IndexNotFoundError,
    InputFormatError,
    InvalidTransitionError,
    LLMError,
    MalformedResponseError,
    PipelineError,
    ProviderUnavailableError,
    RagStudioError,
    RateLimitError,
    SlugConflictError,
)

# -- Rate-limited sequential scheduling -------------------------------------
from rag_studio.utils.concurrency import FixedIntervalScheduler, ItemOutcome

# -- Structured logging setup ----------------------------------------------
from rag_studio.utils.logging import configure_logging, get_logger

__all__ = [
    "BatchLimitExceededError",
    "ConfidenceLevel",
    "ConfigurationError",
    "DocumentStoreError",
    "FixedIntervalScheduler",
    "IndexNotFoundError",
    "InputFormatError",
    "InvalidTransitionError",
    "ItemOutcome",
    "LLMError",
    "MalformedResponseError",
    "PipelineError",
    "ProviderUnavailableError",
    "RagStudioError",
    "RateLimitError",
    "SlugConflictError",
    "calculate_confidence",
    "clamp_score",
    "confidence_to_level",
    "configure_logging",
    "get_logger",
]
