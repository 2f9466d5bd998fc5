"""Pydantic data models for RAG Studio."""

from rag_studio.models.documents import (
    AIFixResult,
    ConfidenceScores,
    DocumentPage,
    EnrichedDocument,
    EnrichmentResult,
    EnrichmentStatus,
    IngestionPhase,
    IngestionReport,
    IngestionResult,
    ProcessedDocument,
    ReviewStatus,
    Severity,
    StoredDocument,
    ValidationError,
)
from rag_studio.models.index import (
    BuiltInIndex,
    CreateIndexParams,
    CustomIndex,
    CustomIndexKind,
    EmbeddingConfig,
    FieldSchema,
    FieldType,
    IconName,
    IndexCategory,
    IndexDefinition,
    IndexSchema,
    IndexStats,
    IndexStatus,
    SearchConfig,
    SearchWeights,
    UpdateIndexParams,
)
from rag_studio.models.pipeline import IngestionMode, WizardState, WizardStep

__all__ = [
    "AIFixResult",
    "BuiltInIndex",
    "ConfidenceScores",
    "CreateIndexParams",
    "CustomIndex",
    "CustomIndexKind",
    "DocumentPage",
    "EmbeddingConfig",
    "EnrichedDocument",
    "EnrichmentResult",
    "EnrichmentStatus",
    "FieldSchema",
    "FieldType",
    "IconName",
    "IndexCategory",
    "IndexDefinition",
    "IndexSchema",
    "IndexStats",
    "IndexStatus",
    "IngestionMode",
    "IngestionPhase",
    "IngestionReport",
    "IngestionResult",
    "ProcessedDocument",
    "ReviewStatus",
    "SearchConfig",
    "SearchWeights",
    "Severity",
    "StoredDocument",
    "UpdateIndexParams",
    "ValidationError",
    "WizardState",
    "WizardStep",
]
