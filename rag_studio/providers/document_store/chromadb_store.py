"""ChromaDB document store adapter.

Wraps ``chromadb.PersistentClient`` to implement :class:`IDocumentStore`.
Each index table maps to one collection: the built-in pharmaceutical index
gets its own, and every custom index shares ``custom_rag_documents`` with
documents tagged by the custom index primary key.

Records are kept as JSON in the ``record_json`` metadata key because
ChromaDB metadata values must be scalars.  The searchable text is the
Chroma document, so ``$contains`` filters run against it.
"""

from __future__ import annotations

import json
import os
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

# Must be set before chromadb is imported.
os.environ["ANONYMIZED_TELEMETRY"] = "False"

import chromadb
import structlog

from rag_studio.interfaces.document_store import IDocumentStore
from rag_studio.interfaces.embedding_provider import IEmbeddingProvider
from rag_studio.models.documents import DocumentPage, StoredDocument
from rag_studio.models.index import CustomIndexKind, IndexDefinition
from rag_studio.utils.errors import DocumentStoreError, IndexNotFoundError, RagStudioError

if TYPE_CHECKING:
    from rag_studio.services.index_registry import IndexRegistry

logger = structlog.get_logger(logger_name=__name__)


class _NoopEmbeddingFunction(chromadb.EmbeddingFunction[list[str]]):
    """Embedding function that is never called.

    Every write passes a vector computed by the injected
    :class:`IEmbeddingProvider`; this stops ChromaDB from loading its
    default ONNX model when the collection is opened.
    """

    def __call__(self, input: list[str]) -> list[list[float]]:
        raise NotImplementedError("RAG Studio always supplies pre-computed embeddings.")

    def name(self) -> str:
        return "noop_precomputed"


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)  # noqa: UP017


class ChromaDocumentStore(IDocumentStore):
    """Document index backed by ChromaDB with local persistence.

    Parameters
    ----------
    embedding_provider:
        Computes the vector of each record's searchable text.
    index_registry:
        Resolves registry ids to index definitions (table, custom id).
    persist_directory:
        On-disk location of the ChromaDB database.
    """

    def __init__(
        self,
        embedding_provider: IEmbeddingProvider,
        index_registry: IndexRegistry,
        persist_directory: str = "./data/chromadb",
    ) -> None:
        self._embedding_provider = embedding_provider
        self._registry = index_registry
        self._client = chromadb.PersistentClient(
            path=persist_directory,
            settings=chromadb.config.Settings(anonymized_telemetry=False),
        )
        self._collections: dict[str, Any] = {}

    # ------------------------------------------------------------------
    # Index resolution
    # ------------------------------------------------------------------

    def _resolve(self, index_id: str) -> tuple[IndexDefinition, Any, str]:
        index = self._registry.get(index_id)
        if index is None:
            raise IndexNotFoundError(index_id, provider_name=self.get_provider_name())
        partition = index.kind.custom_id if isinstance(index.kind, CustomIndexKind) else index.id
        return index, self._collection(index.table_name), partition

    def _collection(self, table_name: str) -> Any:
        collection = self._collections.get(table_name)
        if collection is None:
            try:
                collection = self._client.get_or_create_collection(
                    name=table_name,
                    metadata={"hnsw:space": "cosine"},
                    embedding_function=_NoopEmbeddingFunction(),
                )
            except ValueError:
                # Collection persisted with a different embedding function.
                collection = self._client.get_or_create_collection(
                    name=table_name,
                    metadata={"hnsw:space": "cosine"},
                )
            self._collections[table_name] = collection
        return collection

    @staticmethod
    def _active_filter(partition: str) -> dict[str, Any]:
        return {"$and": [{"index_id": partition}, {"is_active": True}]}

    # ------------------------------------------------------------------
    # IDocumentStore implementation
    # ------------------------------------------------------------------

    async def get_document_count(self, index_id: str) -> int:
        _, collection, partition = self._resolve(index_id)
        try:
            result = collection.get(where=self._active_filter(partition), include=[])
        except Exception as exc:
            raise DocumentStoreError(
                message=f"ChromaDB count failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        return len(result["ids"] or [])

    async def get_documents(
        self,
        index_id: str,
        page: int = 0,
        limit: int = 20,
        search: str | None = None,
    ) -> DocumentPage:
        """Return one page of active documents, newest first."""
        _, collection, partition = self._resolve(index_id)
        page = max(0, page)
        limit = max(1, limit)

        kwargs: dict[str, Any] = {
            "where": self._active_filter(partition),
            "include": ["metadatas", "documents"],
        }
        if search and search.strip():
            kwargs["where_document"] = {"$contains": search.strip()}

        try:
            result = collection.get(**kwargs)
        except Exception as exc:
            raise DocumentStoreError(
                message=f"ChromaDB get_documents failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        rows = list(zip(result["ids"] or [], result["metadatas"] or [], result["documents"] or [], strict=True))
        rows.sort(key=lambda row: row[1].get("created_ts", 0.0), reverse=True)

        total = len(rows)
        offset = page * limit
        documents = [
            self._to_document(index_id, doc_id, meta, text)
            for doc_id, meta, text in rows[offset : offset + limit]
        ]
        return DocumentPage(
            documents=documents,
            total=total,
            page=page,
            limit=limit,
            has_more=offset + limit < total,
        )

    async def get_document_by_id(self, index_id: str, document_id: str) -> StoredDocument | None:
        _, collection, partition = self._resolve(index_id)
        meta, text = self._fetch(collection, partition, document_id)
        if meta is None:
            return None
        return self._to_document(index_id, document_id, meta, text)

    async def ingest_document(
        self,
        index_id: str,
        record: dict[str, Any],
        searchable_text: str,
    ) -> str:
        """Embed and persist one record; return its new id."""
        _, collection, partition = self._resolve(index_id)
        try:
            embedding = await self._embedding_provider.embed_single(searchable_text)
            now = _utcnow()
            document_id = uuid.uuid4().hex
            collection.add(
                ids=[document_id],
                embeddings=[embedding],
                documents=[searchable_text],
                metadatas=[
                    {
                        "index_id": partition,
                        "is_active": True,
                        "record_json": json.dumps(record, ensure_ascii=False, default=str),
                        "created_at": now.isoformat(),
                        "updated_at": now.isoformat(),
                        "created_ts": now.timestamp(),
                    }
                ],
            )
        except RagStudioError:
            raise
        except Exception as exc:
            raise DocumentStoreError(
                message=f"ChromaDB ingestion failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("document_ingested", index_id=index_id, document_id=document_id)
        return document_id

    async def update_document(
        self,
        index_id: str,
        document_id: str,
        record: dict[str, Any],
        searchable_text: str,
    ) -> None:
        _, collection, partition = self._resolve(index_id)
        meta, _ = self._fetch(collection, partition, document_id)
        if meta is None:
            raise DocumentStoreError(
                message=f'Document "{document_id}" not found in index "{index_id}"',
                provider_name=self.get_provider_name(),
            )
        try:
            embedding = await self._embedding_provider.embed_single(searchable_text)
            collection.update(
                ids=[document_id],
                embeddings=[embedding],
                documents=[searchable_text],
                metadatas=[
                    {
                        **meta,
                        "record_json": json.dumps(record, ensure_ascii=False, default=str),
                        "updated_at": _utcnow().isoformat(),
                    }
                ],
            )
        except RagStudioError:
            raise
        except Exception as exc:
            raise DocumentStoreError(
                message=f"ChromaDB update failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.info("document_updated", index_id=index_id, document_id=document_id)

    async def delete_document(self, index_id: str, document_id: str) -> None:
        """Soft delete: the row stays, ``is_active`` becomes False."""
        _, collection, partition = self._resolve(index_id)
        meta, _ = self._fetch(collection, partition, document_id)
        if meta is None:
            return
        try:
            collection.update(
                ids=[document_id],
                metadatas=[{**meta, "is_active": False, "updated_at": _utcnow().isoformat()}],
            )
        except Exception as exc:
            raise DocumentStoreError(
                message=f"ChromaDB delete failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.info("document_deactivated", index_id=index_id, document_id=document_id)

    def get_provider_name(self) -> str:
        return "chromadb"

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _fetch(self, collection: Any, partition: str, document_id: str) -> tuple[dict | None, str]:
        try:
            result = collection.get(ids=[document_id], include=["metadatas", "documents"])
        except Exception as exc:
            raise DocumentStoreError(
                message=f"ChromaDB get failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        if not result["ids"]:
            return None, ""
        meta = dict(result["metadatas"][0] or {})
        if meta.get("index_id") != partition or not meta.get("is_active", False):
            return None, ""
        return meta, (result["documents"] or [""])[0] or ""

    @staticmethod
    def _to_document(index_id: str, doc_id: str, meta: dict[str, Any], text: str) -> StoredDocument:
        return StoredDocument(
            id=doc_id,
            index_id=index_id,
            data=json.loads(meta.get("record_json") or "{}"),
            searchable_text=text or "",
            is_active=bool(meta.get("is_active", True)),
            created_at=datetime.fromisoformat(meta["created_at"]),
            updated_at=datetime.fromisoformat(meta["updated_at"]),
        )
