"""Document models flowing through the ingestion pipeline.

All models are frozen Pydantic v2 models.  Stages never mutate a document
in place: auto-fix and review produce a replacement via
``model_copy(update={...})`` and the owning stage swaps it into its list.

Lifecycle::

    raw record --validate_batch--> ProcessedDocument --(fix)--> ProcessedDocument
    raw record --enrich_one------> EnrichedDocument --(approve)--> ProcessedDocument
    ProcessedDocument --ingest--> IngestionResult
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from rag_studio.utils.confidence import (
    ConfidenceLevel,
    calculate_confidence,
    clamp_score,
    confidence_to_level,
)


class Severity(str, Enum):  # noqa: UP042
    ERROR = "error"
    WARNING = "warning"


class EnrichmentStatus(str, Enum):  # noqa: UP042
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class ReviewStatus(str, Enum):  # noqa: UP042
    """Review state of an enriched document.  APPROVED and REJECTED are terminal."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class IngestionPhase(str, Enum):  # noqa: UP042
    PREPARING = "preparing"
    INGESTING = "ingesting"
    COMPLETED = "completed"
    ERROR = "error"


def display_label(record: Mapping[str, Any], fallback: str) -> str:
    """Human label for a record: product name, then generic name, then *fallback*."""
    for key in ("product_name", "name"):
        value = record.get(key)
        if isinstance(value, str) and value:
            return value
    return fallback


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

class ValidationError(BaseModel):
    """One schema violation.  Any ``error`` entry makes a record non-ingestable."""

    model_config = ConfigDict(frozen=True)

    field: str
    message: str
    severity: Severity
    suggestion: str | None = None


class ProcessedDocument(BaseModel):
    """The unit flowing from validation / review into ingestion."""

    model_config = ConfigDict(frozen=True)

    id: str
    original_data: dict[str, Any]
    processed_data: dict[str, Any]
    validation_errors: list[ValidationError] = Field(default_factory=list)
    enrichment_status: EnrichmentStatus = EnrichmentStatus.PENDING
    enrichment_notes: list[str] = Field(default_factory=list)
    human_review_required: bool = False
    human_review_completed: bool | None = None
    searchable_text: str | None = None

    @property
    def errors(self) -> list[ValidationError]:
        return [e for e in self.validation_errors if e.severity == Severity.ERROR]

    @property
    def warnings(self) -> list[ValidationError]:
        return [e for e in self.validation_errors if e.severity == Severity.WARNING]

    @property
    def has_errors(self) -> bool:
        return any(e.severity == Severity.ERROR for e in self.validation_errors)

    @property
    def has_warnings(self) -> bool:
        return any(e.severity == Severity.WARNING for e in self.validation_errors)

    def label(self, position: int) -> str:
        """Display label; *position* is the 0-based index used for the fallback."""
        return display_label(self.processed_data, f"Document {position + 1}")


# ---------------------------------------------------------------------------
# Enrichment
# ---------------------------------------------------------------------------

class ConfidenceScores(BaseModel):
    """Per-field confidence (0..100) plus an aggregate and a failure flag.

    ``failed`` marks an enrichment that produced nothing usable; it is
    independent of any field that happens to be called ``error``.
    """

    model_config = ConfigDict(frozen=True)

    per_field: dict[str, float] = Field(default_factory=dict)
    overall: float = 0.0
    failed: bool = False

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any] | None) -> ConfidenceScores:
        """Build from a provider's flat ``{field: score, "overall": score}`` map.

        When ``overall`` is absent it is the mean of the per-field scores.
        All values are clamped to 0..100.
        """
        per_field: dict[str, float] = {}
        overall: float | None = None
        for key, value in (raw or {}).items():
            if key == "overall":
                overall = clamp_score(value)
            else:
                per_field[str(key)] = clamp_score(value)
        if overall is None:
            overall = calculate_confidence(list(per_field.values())) if per_field else 0.0
        return cls(per_field=per_field, overall=overall)

    @classmethod
    def failure(cls) -> ConfidenceScores:
        return cls(per_field={}, overall=0.0, failed=True)

    @property
    def level(self) -> ConfidenceLevel:
        return confidence_to_level(self.overall)

    def for_field(self, name: str) -> float | None:
        return self.per_field.get(name)


class EnrichmentResult(BaseModel):
    """Outcome of a single enrichment call.  Failures are values, not exceptions."""

    model_config = ConfigDict(frozen=True)

    success: bool
    enriched_data: dict[str, Any] | None = None
    confidence: ConfidenceScores | None = None
    reasoning: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    sources: list[str] = Field(default_factory=list)
    tokens_used: int = 0
    error: str | None = None


class EnrichedDocument(BaseModel):
    """An enrichment output awaiting (or past) human review."""

    model_config = ConfigDict(frozen=True)

    id: str
    original_data: dict[str, Any]
    enriched_data: dict[str, Any]
    confidence: ConfidenceScores
    reasoning: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    sources: list[str] = Field(default_factory=list)
    status: ReviewStatus = ReviewStatus.PENDING

    def label(self, position: int) -> str:
        return display_label(self.enriched_data, display_label(self.original_data, f"Document {position + 1}"))


class AIFixResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool
    fixed_document: dict[str, Any] | None = None
    tokens_used: int = 0
    error: str | None = None


# ---------------------------------------------------------------------------
# Ingestion
# ---------------------------------------------------------------------------

class IngestionResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    doc_id: str
    product_name: str
    success: bool
    error: str | None = None
    inserted_id: str | None = None


class IngestionReport(BaseModel):
    """Run summary: every submitted document appears exactly once in ``results``."""

    model_config = ConfigDict(frozen=True)

    index_id: str
    results: list[IngestionResult] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed_count(self) -> int:
        return self.total - self.success_count

    @property
    def failures(self) -> list[IngestionResult]:
        return [r for r in self.results if not r.success]

    @property
    def phase(self) -> IngestionPhase:
        return IngestionPhase.COMPLETED if self.failed_count == 0 else IngestionPhase.ERROR


# ---------------------------------------------------------------------------
# Document store
# ---------------------------------------------------------------------------

class StoredDocument(BaseModel):
    """A record as persisted in a document index."""

    model_config = ConfigDict(frozen=True)

    id: str
    index_id: str
    data: dict[str, Any]
    searchable_text: str
    is_active: bool = True
    created_at: datetime
    updated_at: datetime


class DocumentPage(BaseModel):
    model_config = ConfigDict(frozen=True)

    documents: list[StoredDocument]
    total: int
    page: int
    limit: int
    has_more: bool
