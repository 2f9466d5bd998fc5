"""Command-line tools for RAG Studio.

- ``python -m rag_studio.cli structured|enrich|names`` -- run one ingestion
  through the wizard (validation or enrichment, review, commit).
- ``python -m rag_studio.cli indexes`` -- manage custom indexes.
- ``python -m rag_studio.cli count`` -- inspect an index.
"""
