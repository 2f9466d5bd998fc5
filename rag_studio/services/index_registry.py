"""Registry of destination indexes available to the ingestion pipeline.

One :class:`IndexRegistry` is constructed per session and passed
explicitly to every component that resolves an index id (validator,
document store, wizard).  Built-in indexes are registered at construction;
custom indexes are loaded lazily from an :class:`ICustomIndexProvider` for
a given owner.

# ─── HOW INDEX RESOLUTION WORKS ───────────────────────────────────────
#
#   "pharmaceutical_products"  ->  BuiltInIndex, static schema
#   "custom_<slug>"            ->  CustomIndexKind(owner_id, custom_id),
#                                  schema read from schema_config["fields"]
#
# A custom index whose schema_config declares no "fields" has no schema,
# so validation against it reports a single "_schema" error.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import structlog
from cachetools import TTLCache
from pydantic import ValidationError as PydanticValidationError

from rag_studio.config.schemas import BUILT_IN_SCHEMAS, default_indexes
from rag_studio.interfaces.custom_index_provider import ICustomIndexProvider
from rag_studio.interfaces.document_store import IDocumentStore
from rag_studio.models.index import (
    CUSTOM_INDEX_PREFIX,
    CustomIndex,
    CustomIndexKind,
    EmbeddingConfig,
    IndexCategory,
    IndexDefinition,
    IndexSchema,
    IndexStats,
    IndexStatus,
    SearchConfig,
)
from rag_studio.utils.errors import IndexNotFoundError
from rag_studio.utils.logging import get_logger

CUSTOM_DOCUMENTS_TABLE = "custom_rag_documents"
_STATS_TTL_SECONDS = 5 * 60
_STATS_CACHE_SIZE = 256


class IndexRegistry:
    """In-memory map of index id to :class:`IndexDefinition`.

    Parameters
    ----------
    custom_index_provider:
        Source of custom index definitions.  Without one, only built-in
        indexes are available and :meth:`load_custom` is a no-op.
    """

    def __init__(self, custom_index_provider: ICustomIndexProvider | None = None) -> None:
        self._custom_provider = custom_index_provider
        self._indexes: dict[str, IndexDefinition] = {}
        self._schemas: dict[str, IndexSchema] = dict(BUILT_IN_SCHEMAS)
        self._stats_cache: TTLCache[str, IndexStats] = TTLCache(
            maxsize=_STATS_CACHE_SIZE, ttl=_STATS_TTL_SECONDS
        )
        self._loaded_owner: str | None = None
        self._logger: structlog.BoundLogger = get_logger(__name__)

        for index in default_indexes():
            self.register(index)

    # ------------------------------------------------------------------
    # Custom index loading
    # ------------------------------------------------------------------

    async def load_custom(self, owner_id: str) -> int:
        """Register the owner's custom indexes once; return how many were added.

        A storage failure is logged and leaves the built-in indexes usable.
        """
        if self._custom_provider is None or self._loaded_owner == owner_id:
            return 0

        try:
            customs = await self._custom_provider.list_indexes(owner_id)
        except Exception as exc:
            self._logger.error("custom_index_load_failed", owner_id=owner_id, error=str(exc))
            return 0

        for custom in customs:
            self.register(self.definition_from_custom(custom), schema=self.schema_from_custom(custom))

        self._loaded_owner = owner_id
        self._logger.info("custom_indexes_loaded", owner_id=owner_id, count=len(customs))
        return len(customs)

    async def reload(self, owner_id: str) -> int:
        """Drop every custom index and load the owner's set again."""
        for index_id in [i.id for i in self._indexes.values() if i.is_custom]:
            self.unregister(index_id)
        self._loaded_owner = None
        return await self.load_custom(owner_id)

    @staticmethod
    def definition_from_custom(custom: CustomIndex) -> IndexDefinition:
        """Map a stored custom index to the definition the pipeline sees."""
        return IndexDefinition(
            kind=CustomIndexKind(id=custom.index_id, owner_id=custom.owner_id, custom_id=custom.id),
            name=custom.name,
            description=custom.description or "",
            icon=custom.icon,
            category=IndexCategory.CUSTOM,
            table_name=CUSTOM_DOCUMENTS_TABLE,
            schema_version="1.0",
            search_config=SearchConfig(
                rpc_function_name="search_custom_index",
                vector_weight=custom.search_weights.vector,
                text_weight=custom.search_weights.text,
                default_match_count=5,
            ),
            embedding_config=EmbeddingConfig(
                model=custom.embedding_model,
                dimensions=1536,
                prepare_text_fn="prepareGenericText",
            ),
            status=custom.status,
            created_at=custom.created_at,
            updated_at=custom.updated_at,
        )

    def schema_from_custom(self, custom: CustomIndex) -> IndexSchema | None:
        if not isinstance(custom.schema_config.get("fields"), dict):
            return None
        try:
            return IndexSchema.model_validate(custom.schema_config)
        except PydanticValidationError as exc:
            self._logger.warning(
                "custom_index_schema_invalid",
                slug=custom.slug,
                errors=exc.error_count(),
            )
            return None

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, index: IndexDefinition, schema: IndexSchema | None = None) -> None:
        if index.id in self._indexes:
            self._logger.warning("index_already_registered", index_id=index.id)
        self._indexes[index.id] = index
        if schema is not None:
            self._schemas[index.id] = schema
        elif index.is_custom:
            self._schemas.pop(index.id, None)
        self._logger.debug("index_registered", index_id=index.id)

    def unregister(self, index_id: str) -> bool:
        removed = self._indexes.pop(index_id, None) is not None
        if removed:
            self._stats_cache.pop(index_id, None)
            if index_id.startswith(CUSTOM_INDEX_PREFIX):
                self._schemas.pop(index_id, None)
            self._logger.debug("index_unregistered", index_id=index_id)
        return removed

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get(self, index_id: str) -> IndexDefinition | None:
        return self._indexes.get(index_id)

    def require(self, index_id: str) -> IndexDefinition:
        """Like :meth:`get` but raises :class:`IndexNotFoundError`."""
        index = self._indexes.get(index_id)
        if index is None:
            raise IndexNotFoundError(index_id)
        return index

    def get_all(self) -> list[IndexDefinition]:
        return list(self._indexes.values())

    def get_by_category(self, category: IndexCategory) -> list[IndexDefinition]:
        return [i for i in self._indexes.values() if i.category == category]

    def get_by_status(self, status: IndexStatus) -> list[IndexDefinition]:
        return [i for i in self._indexes.values() if i.status == status]

    def get_active(self) -> list[IndexDefinition]:
        return self.get_by_status(IndexStatus.ACTIVE)

    def get_schema(self, index_id: str) -> IndexSchema | None:
        """Return the validation schema of a registered index, if it has one."""
        if index_id not in self._indexes:
            return None
        return self._schemas.get(index_id)

    def has(self, index_id: str) -> bool:
        return index_id in self._indexes

    def count(self) -> int:
        return len(self._indexes)

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    async def get_stats(self, index_id: str, store: IDocumentStore) -> IndexStats | None:
        """Return document stats for an index, cached for five minutes."""
        if index_id not in self._indexes:
            return None
        cached = self._stats_cache.get(index_id)
        if cached is not None:
            return cached
        return await self.refresh_stats(index_id, store)

    async def refresh_stats(self, index_id: str, store: IDocumentStore) -> IndexStats | None:
        if index_id not in self._indexes:
            return None
        try:
            count = await store.get_document_count(index_id)
            page = await store.get_documents(index_id, page=0, limit=1)
            last = page.documents[0].created_at if page.documents else None
            stats = IndexStats(
                index_id=index_id,
                document_count=count,
                last_ingestion=last,
                health="healthy",
            )
        except Exception as exc:
            self._logger.warning("index_stats_failed", index_id=index_id, error=str(exc))
            stats = IndexStats(
                index_id=index_id,
                health="error",
                error_message=str(exc),
            )
        self._stats_cache[index_id] = stats
        return stats

    def invalidate_stats(self, index_id: str | None = None) -> None:
        if index_id is None:
            self._stats_cache.clear()
        else:
            self._stats_cache.pop(index_id, None)
