"""Unit tests for ValidationStage -- selection and auto-fix in structured mode."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from rag_studio.config.schemas import PHARMACEUTICAL_PRODUCTS
from rag_studio.models.documents import EnrichmentStatus
from rag_studio.pipeline.validation_stage import ValidationStage
from rag_studio.services.ai_fix_service import AIFixService
from rag_studio.services.validation_service import ValidationService
from rag_studio.utils.concurrency import FixedIntervalScheduler
from rag_studio.utils.errors import ConfigurationError, LLMError, PipelineError
from tests.conftest import DOLIPRANE, complete_record, completion

_INVALID = {"product_name": "Spasfon", "category": "Antispasmodique"}
_FIXED = json.dumps({"product_code": "spasfon_80mg", "product_name": "Spasfon", "dci": "phloroglucinol"})


def _stage(
    validation_service: ValidationService,
    fixer: AIFixService | None = None,
    records: list[dict] | None = None,
) -> ValidationStage:
    documents = validation_service.validate_batch(
        records if records is not None else [DOLIPRANE, _INVALID, complete_record()],
        PHARMACEUTICAL_PRODUCTS,
    )
    return ValidationStage(validation_service, fixer, PHARMACEUTICAL_PRODUCTS, documents)


@pytest.fixture()
def fixer(mock_llm: MagicMock, no_delay: FixedIntervalScheduler) -> AIFixService:
    mock_llm.complete.return_value = completion(_FIXED)
    return AIFixService(mock_llm, scheduler=no_delay)


# ---------------------------------------------------------------------------
# Selection
# ---------------------------------------------------------------------------


class TestSelection:
    def test_error_free_documents_are_preselected(self, validation_service: ValidationService) -> None:
        stage = _stage(validation_service)
        docs = stage.documents

        assert stage.selected_ids == {docs[0].id, docs[2].id}
        assert [d.id for d in stage.selected_documents()] == [docs[0].id, docs[2].id]

    def test_counts(self, validation_service: ValidationService) -> None:
        stage = _stage(validation_service)
        assert (stage.valid_count, stage.warning_count, stage.error_count) == (2, 1, 1)

    def test_invalid_document_cannot_be_selected(self, validation_service: ValidationService) -> None:
        stage = _stage(validation_service)
        invalid_id = stage.documents[1].id

        assert stage.toggle(invalid_id) is False
        assert invalid_id not in stage.selected_ids

    def test_toggle_valid_document(self, validation_service: ValidationService) -> None:
        stage = _stage(validation_service)
        doc_id = stage.documents[0].id

        assert stage.toggle(doc_id) is False
        assert doc_id not in stage.selected_ids
        assert stage.toggle(doc_id) is True
        assert doc_id in stage.selected_ids

    def test_deselect_and_reselect_all(self, validation_service: ValidationService) -> None:
        stage = _stage(validation_service)
        stage.deselect_all()
        assert stage.selected_documents() == []

        stage.select_all_valid()
        assert len(stage.selected_documents()) == 2

    def test_unknown_id(self, validation_service: ValidationService) -> None:
        stage = _stage(validation_service)
        assert stage.toggle("missing") is False
        assert stage.get("missing") is None


# ---------------------------------------------------------------------------
# Auto-fix
# ---------------------------------------------------------------------------


class TestAutoFix:
    @pytest.mark.asyncio
    async def test_fix_document_revalidates_and_selects(
        self, validation_service: ValidationService, fixer: AIFixService
    ) -> None:
        stage = _stage(validation_service, fixer)
        invalid_id = stage.documents[1].id

        result = await stage.fix_document(invalid_id)

        assert result.success is True
        fixed = stage.get(invalid_id)
        assert fixed.has_errors is False
        assert fixed.processed_data["category"] == "Antispasmodique"
        assert fixed.processed_data["dci"] == "phloroglucinol"
        assert fixed.original_data == _INVALID
        assert fixed.enrichment_status == EnrichmentStatus.COMPLETED
        assert fixed.searchable_text == "Spasfon | phloroglucinol | Antispasmodique"
        assert invalid_id in stage.selected_ids

    @pytest.mark.asyncio
    async def test_fix_passes_only_errors(
        self, validation_service: ValidationService, fixer: AIFixService, mock_llm: MagicMock
    ) -> None:
        stage = _stage(validation_service, fixer)
        await stage.fix_document(stage.documents[1].id)

        prompt = mock_llm.complete.await_args.kwargs["user_prompt"]
        assert "- product_code:" in prompt
        assert "- dci:" in prompt
        assert "- product_data:" not in prompt

    @pytest.mark.asyncio
    async def test_failed_fix_leaves_document_unchanged(
        self, validation_service: ValidationService, fixer: AIFixService, mock_llm: MagicMock
    ) -> None:
        mock_llm.complete.side_effect = LLMError("Erreur API OpenAI: 500")
        stage = _stage(validation_service, fixer)
        before = stage.documents[1]

        result = await stage.fix_document(before.id)

        assert result.success is False
        assert stage.get(before.id) == before
        assert before.id not in stage.selected_ids

    @pytest.mark.asyncio
    async def test_fix_all_invalid(
        self, validation_service: ValidationService, fixer: AIFixService, mock_llm: MagicMock
    ) -> None:
        stage = _stage(validation_service, fixer, records=[_INVALID, DOLIPRANE, {"product_name": "Smecta"}])
        mock_llm.complete = AsyncMock(side_effect=[completion(_FIXED), LLMError("timeout")])

        repaired = await stage.fix_all_invalid()

        assert repaired == 1
        assert mock_llm.complete.await_count == 2
        assert stage.error_count == 1
        assert len(stage.selected_documents()) == 2

    @pytest.mark.asyncio
    async def test_fix_all_with_nothing_to_fix(
        self, validation_service: ValidationService, fixer: AIFixService, mock_llm: MagicMock
    ) -> None:
        stage = _stage(validation_service, fixer, records=[DOLIPRANE])
        assert await stage.fix_all_invalid() == 0
        mock_llm.complete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_without_fixer(self, validation_service: ValidationService) -> None:
        stage = _stage(validation_service)
        with pytest.raises(ConfigurationError):
            await stage.fix_document(stage.documents[1].id)

    @pytest.mark.asyncio
    async def test_unknown_document(self, validation_service: ValidationService, fixer: AIFixService) -> None:
        with pytest.raises(PipelineError):
            await _stage(validation_service, fixer).fix_document("missing")
