"""Unit tests for IngestionService -- sequential commit with per-document isolation."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from rag_studio.config.schemas import PHARMACEUTICAL_PRODUCTS
from rag_studio.models.documents import IngestionPhase, ProcessedDocument
from rag_studio.services.index_registry import IndexRegistry
from rag_studio.services.ingestion_service import INVALID_DOCUMENT_MESSAGE, IngestionService
from rag_studio.services.validation_service import ValidationService
from rag_studio.utils.concurrency import FixedIntervalScheduler
from rag_studio.utils.errors import DocumentStoreError, IndexNotFoundError
from tests.conftest import DOLIPRANE, complete_record

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _documents(validation_service: ValidationService, *records: dict) -> list[ProcessedDocument]:
    return validation_service.validate_batch(list(records), PHARMACEUTICAL_PRODUCTS)


@pytest.fixture()
def service(mock_store: MagicMock, registry: IndexRegistry, no_delay: FixedIntervalScheduler) -> IngestionService:
    return IngestionService(mock_store, registry, scheduler=no_delay)


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestIngestBatch:
    @pytest.mark.asyncio
    async def test_all_documents_succeed(
        self, service: IngestionService, validation_service: ValidationService, mock_store: MagicMock
    ) -> None:
        docs = _documents(validation_service, DOLIPRANE, complete_record(product_name="Dafalgan"))

        report = await service.ingest_batch(docs, PHARMACEUTICAL_PRODUCTS)

        assert report.total == 2
        assert report.success_count == 2
        assert report.phase is IngestionPhase.COMPLETED
        assert [r.inserted_id for r in report.results] == ["inserted-1", "inserted-2"]
        assert [r.product_name for r in report.results] == ["DOLIPRANE 500 mg", "Dafalgan"]
        mock_store.ingest_document.assert_any_await(
            PHARMACEUTICAL_PRODUCTS, DOLIPRANE, "DOLIPRANE 500 mg | paracétamol"
        )

    @pytest.mark.asyncio
    async def test_failing_document_does_not_stop_the_batch(
        self, service: IngestionService, validation_service: ValidationService, mock_store: MagicMock
    ) -> None:
        mock_store.ingest_document = AsyncMock(
            side_effect=["id-1", DocumentStoreError("Embedding quota exceeded"), "id-3"]
        )
        docs = _documents(
            validation_service,
            complete_record(product_name="Doliprane"),
            complete_record(product_name="Efferalgan"),
            complete_record(product_name="Dafalgan"),
        )

        report = await service.ingest_batch(docs, PHARMACEUTICAL_PRODUCTS)

        assert report.total == 3
        assert report.success_count == 2
        assert report.phase is IngestionPhase.ERROR
        [failure] = report.failures
        assert failure.product_name == "Efferalgan"
        assert failure.error == "Embedding quota exceeded"
        assert failure.doc_id == docs[1].id
        assert mock_store.ingest_document.await_count == 3

    @pytest.mark.asyncio
    async def test_document_with_errors_is_refused(
        self, service: IngestionService, validation_service: ValidationService, mock_store: MagicMock
    ) -> None:
        docs = _documents(validation_service, {"product_name": "Spasfon"}, DOLIPRANE)

        report = await service.ingest_batch(docs, PHARMACEUTICAL_PRODUCTS)

        assert report.results[0].success is False
        assert report.results[0].error == INVALID_DOCUMENT_MESSAGE
        assert report.results[1].success is True
        assert mock_store.ingest_document.await_count == 1

    @pytest.mark.asyncio
    async def test_searchable_text_generated_when_absent(
        self, service: IngestionService, mock_store: MagicMock
    ) -> None:
        doc = ProcessedDocument(id="doc-1", original_data=DOLIPRANE, processed_data=DOLIPRANE)

        await service.ingest_batch([doc], PHARMACEUTICAL_PRODUCTS)

        mock_store.ingest_document.assert_awaited_once_with(
            PHARMACEUTICAL_PRODUCTS, DOLIPRANE, "DOLIPRANE 500 mg | paracétamol"
        )

    @pytest.mark.asyncio
    async def test_unknown_index_raises_before_any_write(
        self, service: IngestionService, validation_service: ValidationService, mock_store: MagicMock
    ) -> None:
        with pytest.raises(IndexNotFoundError):
            await service.ingest_batch(_documents(validation_service, DOLIPRANE), "custom_missing")
        mock_store.ingest_document.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_progress_and_cancellation(
        self, service: IngestionService, validation_service: ValidationService
    ) -> None:
        event = asyncio.Event()
        seen: list[tuple[int, int, str]] = []

        def _on_progress(current: int, total: int, label: str) -> None:
            seen.append((current, total, label))
            event.set()

        docs = _documents(validation_service, DOLIPRANE, complete_record(product_name="Dafalgan"))
        report = await service.ingest_batch(
            docs, PHARMACEUTICAL_PRODUCTS, on_progress=_on_progress, cancel_event=event
        )

        assert seen == [(1, 2, "DOLIPRANE 500 mg")]
        assert report.results[0].success is True
        assert report.results[1].error == "Cancelled before processing"

    @pytest.mark.asyncio
    async def test_empty_batch(self, service: IngestionService) -> None:
        report = await service.ingest_batch([], PHARMACEUTICAL_PRODUCTS)
        assert report.total == 0
        assert report.phase is IngestionPhase.COMPLETED
