"""Custom index persistence adapters."""

from rag_studio.providers.custom_index.sqlite_custom_index_provider import SQLiteCustomIndexProvider

__all__ = ["SQLiteCustomIndexProvider"]
