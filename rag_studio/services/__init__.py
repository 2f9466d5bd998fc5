"""Business-logic services of the ingestion pipeline.

Each service receives its providers by constructor injection and never
instantiates an adapter itself; wiring happens in ``rag_studio.cli``.
"""

from rag_studio.services.ai_fix_service import AIFixService
from rag_studio.services.custom_index_service import CustomIndexService, normalize_slug
from rag_studio.services.enrichment_service import (
    BaseEnrichmentService,
    EnrichmentService,
    SourcedEnrichmentService,
)
from rag_studio.services.index_registry import IndexRegistry
from rag_studio.services.ingestion_service import IngestionService
from rag_studio.services.validation_service import (
    ValidationService,
    generate_searchable_text,
    validate_against_schema,
)

__all__ = [
    "AIFixService",
    "BaseEnrichmentService",
    "CustomIndexService",
    "EnrichmentService",
    "IndexRegistry",
    "IngestionService",
    "SourcedEnrichmentService",
    "ValidationService",
    "generate_searchable_text",
    "normalize_slug",
    "validate_against_schema",
]
