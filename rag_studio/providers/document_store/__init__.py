"""Document store adapters."""

from rag_studio.providers.document_store.chromadb_store import ChromaDocumentStore

__all__ = ["ChromaDocumentStore"]
