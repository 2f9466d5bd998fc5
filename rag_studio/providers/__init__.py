"""Concrete adapters for the interfaces in ``rag_studio.interfaces``."""
