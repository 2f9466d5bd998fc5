"""Allow ``python -m rag_studio.cli`` execution."""

from rag_studio.cli.ingest import main

main()
