"""Human review gate between enrichment and ingestion.

Nothing produced by a language model reaches the document store without an
operator approving it here.

# ─── HOW THE REVIEW GATE WORKS ────────────────────────────────────────
#
#   enrich_batch() ──→ ReviewGate(pending docs)
#                          │  approve(id) / reject(id) / approve_all_pending()
#                          ▼
#                      continue_to_ingestion(index_id)
#                          │  approved subset, re-validated against the
#                          ▼  destination schema
#                      list[ProcessedDocument] ──→ IngestionService
#
#   pending ──approve──→ approved   (terminal)
#   pending ──reject───→ rejected   (terminal)
#
# Documents are frozen models: a transition replaces the entry in the
# gate's list with a model_copy carrying the new status.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from collections.abc import Iterable

import structlog

from rag_studio.models.documents import (
    EnrichedDocument,
    EnrichmentStatus,
    ProcessedDocument,
    ReviewStatus,
    Severity,
)
from rag_studio.services.validation_service import ValidationService, generate_searchable_text
from rag_studio.utils.errors import PipelineError
from rag_studio.utils.logging import get_logger

NOTHING_APPROVED_MESSAGE = "Aucun document approuvé"


class ReviewGate:
    """Holds one run's enriched documents and their review decisions."""

    def __init__(
        self,
        validation_service: ValidationService,
        documents: Iterable[EnrichedDocument] = (),
    ) -> None:
        self._validator = validation_service
        self._documents: list[EnrichedDocument] = list(documents)
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def load(self, documents: Iterable[EnrichedDocument]) -> None:
        """Replace the gate's contents with a new set of documents."""
        self._documents = list(documents)

    @property
    def documents(self) -> list[EnrichedDocument]:
        return list(self._documents)

    def get(self, doc_id: str) -> EnrichedDocument | None:
        return next((d for d in self._documents if d.id == doc_id), None)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def approve(self, doc_id: str) -> bool:
        """Move a pending document to approved; ``False`` if it was not pending."""
        return self._transition(doc_id, ReviewStatus.APPROVED)

    def reject(self, doc_id: str) -> bool:
        """Move a pending document to rejected; ``False`` if it was not pending."""
        return self._transition(doc_id, ReviewStatus.REJECTED)

    def approve_all_pending(self) -> int:
        """Approve every pending document regardless of confidence.

        Returns the number of documents approved (0 when none were pending).
        """
        approved = 0
        for i, doc in enumerate(self._documents):
            if doc.status == ReviewStatus.PENDING:
                self._documents[i] = doc.model_copy(update={"status": ReviewStatus.APPROVED})
                approved += 1
        if approved:
            self._logger.info("review_bulk_approved", count=approved)
        return approved

    def _transition(self, doc_id: str, target: ReviewStatus) -> bool:
        for i, doc in enumerate(self._documents):
            if doc.id != doc_id:
                continue
            if doc.status != ReviewStatus.PENDING:
                self._logger.debug(
                    "review_transition_ignored",
                    doc_id=doc_id,
                    status=doc.status.value,
                    target=target.value,
                )
                return False
            self._documents[i] = doc.model_copy(update={"status": target})
            self._logger.info("review_decision", doc_id=doc_id, status=target.value)
            return True

        self._logger.warning("review_document_not_found", doc_id=doc_id)
        return False

    # ------------------------------------------------------------------
    # Counts
    # ------------------------------------------------------------------

    def _count(self, status: ReviewStatus) -> int:
        return sum(1 for d in self._documents if d.status == status)

    @property
    def pending_count(self) -> int:
        return self._count(ReviewStatus.PENDING)

    @property
    def approved_count(self) -> int:
        return self._count(ReviewStatus.APPROVED)

    @property
    def rejected_count(self) -> int:
        return self._count(ReviewStatus.REJECTED)

    @property
    def can_continue(self) -> bool:
        return self.approved_count > 0

    def approved_documents(self) -> list[EnrichedDocument]:
        return [d for d in self._documents if d.status == ReviewStatus.APPROVED]

    # ------------------------------------------------------------------
    # Exit
    # ------------------------------------------------------------------

    def continue_to_ingestion(self, index_id: str) -> list[ProcessedDocument]:
        """Return the approved subset re-validated against *index_id*.

        Raises
        ------
        PipelineError
            If no document has been approved.
        """
        approved = self.approved_documents()
        if not approved:
            raise PipelineError(NOTHING_APPROVED_MESSAGE)

        processed: list[ProcessedDocument] = []
        for doc in approved:
            record = dict(doc.enriched_data)
            errors = self._validator.validate(record, index_id)
            has_errors = any(e.severity == Severity.ERROR for e in errors)
            notes = [*doc.reasoning, *(f"Source: {s}" for s in doc.sources)]
            processed.append(
                ProcessedDocument(
                    id=doc.id,
                    original_data=dict(doc.original_data),
                    processed_data=record,
                    validation_errors=errors,
                    enrichment_status=EnrichmentStatus.COMPLETED,
                    enrichment_notes=notes,
                    human_review_required=True,
                    human_review_completed=True,
                    searchable_text=None if has_errors else generate_searchable_text(record),
                )
            )

        self._logger.info(
            "review_handed_off",
            index_id=index_id,
            approved=len(processed),
            rejected=self.rejected_count,
            invalid=sum(1 for d in processed if d.has_errors),
        )
        return processed
