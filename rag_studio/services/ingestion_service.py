"""Commit validated or approved documents into a document index.

Each write costs an embedding call, so documents go through a
:class:`FixedIntervalScheduler` one at a time.  A failing document is
recorded in the report and the queue moves on; :meth:`ingest_batch`
itself only raises for configuration problems (unknown index).
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from typing import Any

import structlog

from rag_studio.interfaces.document_store import IDocumentStore
from rag_studio.models.documents import IngestionReport, IngestionResult, ProcessedDocument
from rag_studio.services.index_registry import IndexRegistry
from rag_studio.services.validation_service import generate_searchable_text
from rag_studio.utils.concurrency import FixedIntervalScheduler, ItemOutcome
from rag_studio.utils.errors import PipelineError, RagStudioError
from rag_studio.utils.logging import get_logger

INVALID_DOCUMENT_MESSAGE = "Document invalide : erreurs de validation non corrigées"

# (current position, total, label) -- position is 1-based.
ProgressCallback = Callable[[int, int, str], Any]


def error_text(exc: BaseException) -> str:
    """User-facing message for an exception raised by a provider or store."""
    if isinstance(exc, RagStudioError):
        return exc.message
    return str(exc) or type(exc).__name__


class IngestionService:
    """Writes :class:`ProcessedDocument` batches into an :class:`IDocumentStore`.

    Parameters
    ----------
    document_store:
        Destination store; computes embeddings on write.
    index_registry:
        Used to reject an unknown ``index_id`` before anything is written.
    scheduler:
        Pacing policy; defaults to a 0.2 s interval.
    """

    def __init__(
        self,
        document_store: IDocumentStore,
        index_registry: IndexRegistry,
        scheduler: FixedIntervalScheduler | None = None,
    ) -> None:
        self._store = document_store
        self._registry = index_registry
        self._scheduler = scheduler or FixedIntervalScheduler(interval=0.2)
        self._logger: structlog.BoundLogger = get_logger(__name__)

    async def ingest_batch(
        self,
        documents: Sequence[ProcessedDocument],
        index_id: str,
        on_progress: ProgressCallback | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> IngestionReport:
        """Ingest *documents* into *index_id*; every document appears once in the report.

        Raises
        ------
        IndexNotFoundError
            If *index_id* is not registered.
        """
        self._registry.require(index_id)

        async def _commit(doc: ProcessedDocument) -> str:
            if doc.has_errors:
                raise PipelineError(INVALID_DOCUMENT_MESSAGE)
            text = doc.searchable_text or generate_searchable_text(doc.processed_data)
            return await self._store.ingest_document(index_id, dict(doc.processed_data), text)

        def _notify(position: int, total: int, doc: ProcessedDocument) -> Any:
            if on_progress is not None:
                return on_progress(position, total, doc.label(position - 1))
            return None

        self._logger.info("ingestion_started", index_id=index_id, total=len(documents))
        outcomes = await self._scheduler.run(
            documents, _commit, on_item_start=_notify, cancel_event=cancel_event
        )

        results = [self._to_result(outcome) for outcome in outcomes]
        report = IngestionReport(index_id=index_id, results=results)
        self._logger.info(
            "ingestion_finished",
            index_id=index_id,
            total=report.total,
            succeeded=report.success_count,
            failed=report.failed_count,
            phase=report.phase.value,
        )
        return report

    @staticmethod
    def _to_result(outcome: ItemOutcome[ProcessedDocument, str]) -> IngestionResult:
        doc = outcome.item
        label = doc.label(outcome.index)
        if outcome.ok:
            return IngestionResult(
                doc_id=doc.id,
                product_name=label,
                success=True,
                inserted_id=outcome.result,
            )
        if isinstance(outcome.error, RagStudioError):
            message = error_text(outcome.error)
        else:
            message = outcome.describe_failure()
        return IngestionResult(doc_id=doc.id, product_name=label, success=False, error=message)
