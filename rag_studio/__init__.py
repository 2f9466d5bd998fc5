"""RAG Studio: ingestion pipeline for a pharmaceutical retrieval knowledge base."""

__version__ = "0.1.0"
