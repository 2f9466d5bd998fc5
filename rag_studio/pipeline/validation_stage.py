"""Structured-mode validation step: selection and AI auto-fix.

Holds the run's validated documents, tracks which of them the operator
wants to ingest, and splices auto-fix results back in.  Only error-free
documents can ever be selected.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable
from typing import Any

import structlog

from rag_studio.models.documents import AIFixResult, EnrichmentStatus, ProcessedDocument, Severity
from rag_studio.services.ai_fix_service import AIFixService
from rag_studio.services.validation_service import ValidationService, generate_searchable_text
from rag_studio.utils.errors import ConfigurationError, PipelineError
from rag_studio.utils.logging import get_logger


class ValidationStage:
    """Selection state and auto-fix for one run's :class:`ProcessedDocument` list.

    Parameters
    ----------
    validation_service:
        Re-validates records after a fix.
    fix_service:
        Optional; without it :meth:`fix_document` and :meth:`fix_all_invalid`
        raise :class:`ConfigurationError`.
    index_id:
        Destination index the documents are validated against.
    documents:
        Output of :meth:`ValidationService.validate_batch`.
    """

    def __init__(
        self,
        validation_service: ValidationService,
        fix_service: AIFixService | None,
        index_id: str,
        documents: Iterable[ProcessedDocument] = (),
    ) -> None:
        self._validator = validation_service
        self._fixer = fix_service
        self._index_id = index_id
        self._documents: list[ProcessedDocument] = list(documents)
        self._selected: set[str] = set()
        self._logger: structlog.BoundLogger = get_logger(__name__)
        self.select_all_valid()

    # -- Documents ----------------------------------------------------------

    @property
    def documents(self) -> list[ProcessedDocument]:
        return list(self._documents)

    @property
    def index_id(self) -> str:
        return self._index_id

    def get(self, doc_id: str) -> ProcessedDocument | None:
        return next((d for d in self._documents if d.id == doc_id), None)

    # -- Selection ------------------------------------------------------------

    @property
    def selected_ids(self) -> frozenset[str]:
        return frozenset(self._selected)

    def select_all_valid(self) -> None:
        self._selected = {d.id for d in self._documents if not d.has_errors}

    def deselect_all(self) -> None:
        self._selected.clear()

    def toggle(self, doc_id: str) -> bool:
        """Flip selection of an error-free document; return whether it is now selected."""
        doc = self.get(doc_id)
        if doc is None or doc.has_errors:
            return False
        if doc_id in self._selected:
            self._selected.discard(doc_id)
            return False
        self._selected.add(doc_id)
        return True

    def selected_documents(self) -> list[ProcessedDocument]:
        """The ingestion set, in input order."""
        return [d for d in self._documents if d.id in self._selected and not d.has_errors]

    # -- Counts ---------------------------------------------------------------

    @property
    def valid_count(self) -> int:
        return sum(1 for d in self._documents if not d.has_errors)

    @property
    def warning_count(self) -> int:
        return sum(1 for d in self._documents if d.has_warnings and not d.has_errors)

    @property
    def error_count(self) -> int:
        return sum(1 for d in self._documents if d.has_errors)

    # -- Auto-fix -------------------------------------------------------------

    def _require_fixer(self) -> AIFixService:
        if self._fixer is None:
            raise ConfigurationError("Service de correction IA non configuré")
        return self._fixer

    async def fix_document(self, doc_id: str) -> AIFixResult:
        """Auto-fix one document's errors and splice the result in.

        Raises
        ------
        PipelineError
            If *doc_id* is unknown.
        """
        fixer = self._require_fixer()
        doc = self.get(doc_id)
        if doc is None:
            raise PipelineError(f'Document "{doc_id}" introuvable')

        result = await fixer.fix(doc.processed_data, doc.errors)
        if result.success and result.fixed_document is not None:
            self._apply_fix(doc_id, result.fixed_document)
        return result

    async def fix_all_invalid(
        self,
        on_progress: Callable[[int, int], Any] | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> int:
        """Auto-fix every document with errors; return how many became error-free."""
        fixer = self._require_fixer()
        invalid = [d for d in self._documents if d.has_errors]
        if not invalid:
            return 0

        results = await fixer.fix_batch(
            [(d.processed_data, d.errors) for d in invalid],
            on_progress=on_progress,
            cancel_event=cancel_event,
        )

        repaired = 0
        for doc, result in zip(invalid, results):
            if result.success and result.fixed_document is not None:
                if not self._apply_fix(doc.id, result.fixed_document).has_errors:
                    repaired += 1

        self._logger.info("fix_all_invalid_finished", attempted=len(invalid), repaired=repaired)
        return repaired

    def _apply_fix(self, doc_id: str, fixed: dict[str, Any]) -> ProcessedDocument:
        errors = self._validator.validate(fixed, self._index_id)
        has_errors = any(e.severity == Severity.ERROR for e in errors)
        has_warnings = any(e.severity == Severity.WARNING for e in errors)

        for i, doc in enumerate(self._documents):
            if doc.id != doc_id:
                continue
            updated = doc.model_copy(
                update={
                    "processed_data": dict(fixed),
                    "validation_errors": errors,
                    "enrichment_status": EnrichmentStatus.COMPLETED,
                    "human_review_required": has_warnings and not has_errors,
                    "searchable_text": None if has_errors else generate_searchable_text(fixed),
                }
            )
            self._documents[i] = updated
            if not has_errors:
                self._selected.add(doc_id)
            self._logger.info("document_fixed", doc_id=doc_id, remaining_errors=len(updated.errors))
            return updated

        raise PipelineError(f'Document "{doc_id}" introuvable')
