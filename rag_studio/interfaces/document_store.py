"""Abstract base class for the document index the pipeline writes into.

The store owns embedding: callers hand over a record plus its searchable
text and the implementation computes and persists the vector.  Documents
are never physically removed; :meth:`delete_document` flips ``is_active``
so that the hybrid search side stops returning them.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from rag_studio.models.documents import DocumentPage, StoredDocument


class IDocumentStore(ABC):
    """Contract for document index backends.

    ``index_id`` is always a registry id (``pharmaceutical_products``,
    ``custom_<slug>``).  Unknown ids raise
    :class:`~rag_studio.utils.errors.IndexNotFoundError`.
    """

    @abstractmethod
    async def get_document_count(self, index_id: str) -> int:
        """Return the number of active documents in the index."""

    @abstractmethod
    async def get_documents(
        self,
        index_id: str,
        page: int = 0,
        limit: int = 20,
        search: str | None = None,
    ) -> DocumentPage:
        """Return one page of active documents, newest first.

        Parameters
        ----------
        page:
            0-based page number; the offset is ``page * limit``.
        search:
            Optional text filter applied to the searchable text.
        """

    @abstractmethod
    async def get_document_by_id(self, index_id: str, document_id: str) -> StoredDocument | None:
        """Return one active document, or ``None``."""

    @abstractmethod
    async def ingest_document(
        self,
        index_id: str,
        record: dict[str, Any],
        searchable_text: str,
    ) -> str:
        """Embed *searchable_text*, persist *record*, return the inserted id.

        Raises
        ------
        rag_studio.utils.errors.DocumentStoreError
            If embedding or persistence fails.
        """

    @abstractmethod
    async def update_document(
        self,
        index_id: str,
        document_id: str,
        record: dict[str, Any],
        searchable_text: str,
    ) -> None:
        """Replace a document's record and re-embed its searchable text."""

    @abstractmethod
    async def delete_document(self, index_id: str, document_id: str) -> None:
        """Soft-delete a document (``is_active = False``)."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier such as ``"chromadb"``."""
