"""Unit tests for the generic and sourced enrichment clients."""

from __future__ import annotations

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from rag_studio.models.documents import ReviewStatus
from rag_studio.services.enrichment_service import (
    MISSING_FIELDS_MESSAGE,
    EnrichmentService,
    SourcedEnrichmentService,
)
from rag_studio.utils.concurrency import FixedIntervalScheduler
from rag_studio.utils.errors import (
    BatchLimitExceededError,
    ConfigurationError,
    LLMError,
    ProviderUnavailableError,
)
from rag_studio.utils.llm_json import INVALID_JSON_MESSAGE
from tests.conftest import DOLIPRANE, complete_record, completion, enrichment_payload

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _generic(llm: MagicMock, scheduler: FixedIntervalScheduler, **kwargs) -> EnrichmentService:
    return EnrichmentService(llm, scheduler=scheduler, **kwargs)


def _sourced(llm: MagicMock, scheduler: FixedIntervalScheduler, **kwargs) -> SourcedEnrichmentService:
    return SourcedEnrichmentService(llm, scheduler=scheduler, **kwargs)


# ---------------------------------------------------------------------------
# enrich_one
# ---------------------------------------------------------------------------


class TestEnrichOne:
    @pytest.mark.asyncio
    async def test_success(self, mock_llm: MagicMock, no_delay: FixedIntervalScheduler) -> None:
        result = await _generic(mock_llm, no_delay).enrich_one({"product_name": "Doliprane"})

        assert result.success is True
        assert result.enriched_data == complete_record()
        assert result.confidence is not None
        assert result.confidence.overall == 88.0
        assert result.confidence.for_field("product_code") == 95.0
        assert result.reasoning == ["RCP ANSM"]
        assert result.tokens_used == 42
        assert result.error is None

    @pytest.mark.asyncio
    async def test_call_parameters(self, mock_llm: MagicMock, no_delay: FixedIntervalScheduler) -> None:
        await _generic(mock_llm, no_delay).enrich_one({"product_name": "Doliprane"})
        generic_call = mock_llm.complete.await_args.kwargs
        assert (generic_call["temperature"], generic_call["max_tokens"]) == (0.3, 3000)
        assert generic_call["json_mode"] is True
        assert "Doliprane" in generic_call["user_prompt"]

        await _sourced(mock_llm, no_delay).enrich_one("Spasfon")
        sourced_call = mock_llm.complete.await_args.kwargs
        assert (sourced_call["temperature"], sourced_call["max_tokens"]) == (0.2, 4000)
        assert "Spasfon" in sourced_call["user_prompt"]

    @pytest.mark.asyncio
    async def test_overall_defaults_to_field_mean(
        self, mock_llm: MagicMock, no_delay: FixedIntervalScheduler
    ) -> None:
        mock_llm.complete.return_value = completion(
            enrichment_payload(confidence={"product_code": 100, "dci": 60})
        )
        result = await _generic(mock_llm, no_delay).enrich_one(DOLIPRANE)
        assert result.confidence is not None
        assert result.confidence.overall == pytest.approx(80.0)

    @pytest.mark.asyncio
    async def test_fenced_json_is_accepted(self, mock_llm: MagicMock, no_delay: FixedIntervalScheduler) -> None:
        mock_llm.complete.return_value = completion(f"```json\n{enrichment_payload()}\n```")
        result = await _generic(mock_llm, no_delay).enrich_one(DOLIPRANE)
        assert result.success is True

    @pytest.mark.asyncio
    async def test_sources_are_kept(self, mock_llm: MagicMock, no_delay: FixedIntervalScheduler) -> None:
        mock_llm.complete.return_value = completion(enrichment_payload(sources=["ANSM", "Vidal"]))
        result = await _sourced(mock_llm, no_delay).enrich_one("Doliprane")
        assert result.sources == ["ANSM", "Vidal"]

    @pytest.mark.asyncio
    async def test_non_json_response(self, mock_llm: MagicMock, no_delay: FixedIntervalScheduler) -> None:
        mock_llm.complete.return_value = completion("Je ne peux pas répondre.")
        result = await _generic(mock_llm, no_delay).enrich_one(DOLIPRANE)

        assert result.success is False
        assert result.error == INVALID_JSON_MESSAGE

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            enrichment_payload(record={"product_code": "doliprane", "product_name": "Doliprane"}),
            enrichment_payload(record={"product_code": "doliprane", "product_name": "Doliprane", "dci": ""}),
            json.dumps({"confidence": {"overall": 90}}),
            json.dumps({"enrichedDocument": "not an object"}),
        ],
    )
    async def test_missing_required_output_fields(
        self, mock_llm: MagicMock, no_delay: FixedIntervalScheduler, payload: str
    ) -> None:
        mock_llm.complete.return_value = completion(payload)
        result = await _generic(mock_llm, no_delay).enrich_one(DOLIPRANE)

        assert result.success is False
        assert result.error == MISSING_FIELDS_MESSAGE

    @pytest.mark.asyncio
    async def test_provider_errors_become_values(
        self, mock_llm: MagicMock, no_delay: FixedIntervalScheduler
    ) -> None:
        mock_llm.complete.side_effect = ConfigurationError("Clé API non configurée", provider_name="openai")
        result = await _generic(mock_llm, no_delay).enrich_one(DOLIPRANE)

        assert result.success is False
        assert result.error == "Clé API non configurée"

    @pytest.mark.asyncio
    async def test_unexpected_exception_becomes_value(
        self, mock_llm: MagicMock, no_delay: FixedIntervalScheduler
    ) -> None:
        mock_llm.complete.side_effect = ConnectionResetError("connection reset by peer")
        result = await _sourced(mock_llm, no_delay).enrich_one("Doliprane")

        assert result.success is False
        assert result.error == "connection reset by peer"

    def test_is_configured_follows_provider(self, mock_llm: MagicMock) -> None:
        service = EnrichmentService(mock_llm)
        assert service.is_configured() is True
        mock_llm.is_available.return_value = False
        assert service.is_configured() is False


# ---------------------------------------------------------------------------
# enrich_batch
# ---------------------------------------------------------------------------


class TestEnrichBatch:
    @pytest.mark.asyncio
    async def test_failed_item_is_rejected_in_place(
        self, mock_llm: MagicMock, no_delay: FixedIntervalScheduler
    ) -> None:
        mock_llm.complete = AsyncMock(
            side_effect=[
                completion(enrichment_payload()),
                ProviderUnavailableError("Connexion impossible: network down", provider_name="mistral"),
                completion(enrichment_payload(record=complete_record(product_name="Spasfon"))),
            ]
        )
        names = ["Doliprane", "Efferalgan", "Spasfon"]

        docs = await _sourced(mock_llm, no_delay).enrich_batch(names)

        assert len(docs) == 3
        assert [d.status for d in docs] == [ReviewStatus.PENDING, ReviewStatus.REJECTED, ReviewStatus.PENDING]
        failed = docs[1]
        assert failed.warnings == ["Connexion impossible: network down"]
        assert failed.confidence.failed is True
        assert failed.original_data == {"product_name": "Efferalgan"}
        assert failed.enriched_data == {"product_name": "Efferalgan"}
        assert docs[2].enriched_data["product_name"] == "Spasfon"
        assert mock_llm.complete.await_count == 3

    @pytest.mark.asyncio
    async def test_document_ids(self, mock_llm: MagicMock, no_delay: FixedIntervalScheduler) -> None:
        generic = await _generic(mock_llm, no_delay).enrich_batch([DOLIPRANE, DOLIPRANE])
        sourced = await _sourced(mock_llm, no_delay).enrich_batch(["Doliprane"])

        assert generic[0].id.startswith("enriched-0-")
        assert generic[1].id.startswith("enriched-1-")
        assert sourced[0].id.startswith("sourced-0-")

    @pytest.mark.asyncio
    async def test_batch_limit_checked_before_any_call(
        self, mock_llm: MagicMock, no_delay: FixedIntervalScheduler
    ) -> None:
        service = _generic(mock_llm, no_delay, max_batch_size=2)

        with pytest.raises(BatchLimitExceededError):
            await service.enrich_batch([DOLIPRANE] * 3)
        mock_llm.complete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_progress_labels(self, mock_llm: MagicMock, no_delay: FixedIntervalScheduler) -> None:
        seen: list[tuple[int, int, str]] = []
        records = [{"product_name": "Doliprane"}, {"nom": "Spasfon"}, {"dci": "ibuprofène"}]

        await _generic(mock_llm, no_delay).enrich_batch(
            records, on_progress=lambda c, t, label: seen.append((c, t, label))
        )
        assert seen == [(1, 3, "Doliprane"), (2, 3, "Spasfon"), (3, 3, "Document 3")]

    @pytest.mark.asyncio
    async def test_cancelled_items_are_rejected(
        self, mock_llm: MagicMock, no_delay: FixedIntervalScheduler
    ) -> None:
        event = asyncio.Event()
        event.set()
        docs = await _sourced(mock_llm, no_delay).enrich_batch(["A", "B"], cancel_event=event)

        assert [d.status for d in docs] == [ReviewStatus.REJECTED, ReviewStatus.REJECTED]
        assert docs[0].warnings == ["Cancelled before processing"]
        mock_llm.complete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failure_from_llm_error(self, mock_llm: MagicMock, no_delay: FixedIntervalScheduler) -> None:
        mock_llm.complete.side_effect = LLMError("Erreur API OpenAI: 500", provider_name="openai")
        [doc] = await _generic(mock_llm, no_delay).enrich_batch([{"product_name": "Doliprane"}])

        assert doc.status == ReviewStatus.REJECTED
        assert doc.warnings == ["Erreur API OpenAI: 500"]
        assert doc.enriched_data == {"product_name": "Doliprane"}


class TestConfidenceLabels:
    def test_generic_labels(self) -> None:
        assert EnrichmentService.confidence_label(92) == "Haute confiance"
        assert EnrichmentService.confidence_label(60) == "Confiance moyenne"

    def test_sourced_labels(self) -> None:
        assert SourcedEnrichmentService.confidence_label(92) == "Source officielle"
        assert SourcedEnrichmentService.confidence_label(10) == "Estimation"
