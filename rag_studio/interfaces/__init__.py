"""Interface definitions for every external service RAG Studio talks to.

Business logic in ``rag_studio.services`` and ``rag_studio.pipeline`` calls
these abstract classes only.  Concrete adapters live in
``rag_studio.providers`` and are wired together by the CLI.

    Interface              ->  Concrete implementations
    -----------------------------------------------------------------
    ILLMProvider           ->  OpenAILLMProvider, MistralLLMProvider
    IEmbeddingProvider     ->  OpenAIEmbeddingProvider
    IDocumentStore         ->  ChromaDocumentStore
    ICustomIndexProvider   ->  SQLiteCustomIndexProvider
"""

from rag_studio.interfaces.custom_index_provider import ICustomIndexProvider
from rag_studio.interfaces.document_store import IDocumentStore
from rag_studio.interfaces.embedding_provider import IEmbeddingProvider
from rag_studio.interfaces.llm_provider import ILLMProvider, LLMCompletion

__all__ = [
    "ICustomIndexProvider",
    "IDocumentStore",
    "IEmbeddingProvider",
    "ILLMProvider",
    "LLMCompletion",
]
