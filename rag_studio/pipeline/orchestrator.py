"""Ingestion wizard: the state machine that sequences one ingestion run.

Coordinates validation, enrichment, human review and ingestion for a
single run.  Each step replaces the frozen :class:`WizardState` via
``model_copy`` and per-item progress is broadcast through the injected
:class:`ProgressTracker`.

# ─── HOW THE WIZARD WORKS ─────────────────────────────────────────────
#
#   MODE ─choose_mode()─┬─ structured ──→ UPLOAD ─load()─→ VALIDATE ───┐
#                       ├─ ai-enriched ─→ UPLOAD ─load()─→ AI_ENRICH ──┼─ingest()─→ INGEST
#                       └─ natural-lang → NL_INPUT ─submit_names()─→ NL_ENRICH ─┘
#
#   back():  UPLOAD→MODE, NL_INPUT→MODE, VALIDATE→UPLOAD,
#            AI_ENRICH→UPLOAD, NL_ENRICH→NL_INPUT  (exactly one step)
#   reset(): any step → MODE with a fresh run id; all run data dropped.
#
# The mode is chosen at MODE and cannot change without going back to
# MODE.  INGEST is terminal: a second ingest() requires reset().
#
# One batch at a time: while enrichment or ingestion is running every
# step operation is refused.  reset() cancels the running batch and
# detaches it; when that batch returns, its call raises RunResetError and
# the fresh run is left untouched.
#
# All three branches hand the committer the same thing: a list of
# ProcessedDocument.  Structured mode takes the operator's selection of
# error-free documents; enriched modes take the approved subset from the
# ReviewGate, re-validated against the destination schema.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import asyncio
import json
import uuid
from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime, timezone
from typing import Any

import structlog

from rag_studio.config.schemas import PHARMACEUTICAL_PRODUCTS
from rag_studio.models.documents import EnrichedDocument, IngestionReport
from rag_studio.models.pipeline import IngestionMode, WizardState, WizardStep
from rag_studio.pipeline.progress_tracker import ProgressTracker
from rag_studio.pipeline.review_gate import ReviewGate
from rag_studio.pipeline.validation_stage import ValidationStage
from rag_studio.services.ai_fix_service import AIFixService
from rag_studio.services.enrichment_service import EnrichmentService, SourcedEnrichmentService
from rag_studio.services.index_registry import IndexRegistry
from rag_studio.services.ingestion_service import IngestionService
from rag_studio.services.validation_service import ValidationService
from rag_studio.utils.errors import (
    ConfigurationError,
    InputFormatError,
    InvalidTransitionError,
    PipelineError,
    RunResetError,
)
from rag_studio.utils.logging import bind_run_context, clear_run_context, get_logger

_BACK: dict[WizardStep, WizardStep] = {
    WizardStep.UPLOAD: WizardStep.MODE,
    WizardStep.NL_INPUT: WizardStep.MODE,
    WizardStep.VALIDATE: WizardStep.UPLOAD,
    WizardStep.AI_ENRICH: WizardStep.UPLOAD,
    WizardStep.NL_ENRICH: WizardStep.NL_INPUT,
}


# ---------------------------------------------------------------------------
# Input parsing
# ---------------------------------------------------------------------------

def parse_json_input(text: str) -> list[dict[str, Any]]:
    """Parse uploaded or pasted JSON into a list of records.

    An array of objects is kept as is and a single object is wrapped in a
    list.  Anything else raises :class:`InputFormatError`.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise InputFormatError(f"JSON invalide : {exc.msg} (ligne {exc.lineno})") from exc
    return coerce_records(data)


def coerce_records(data: Any) -> list[dict[str, Any]]:
    if isinstance(data, Mapping):
        return [dict(data)]
    if isinstance(data, list):
        if not data:
            raise InputFormatError("Le tableau JSON est vide")
        if not all(isinstance(item, Mapping) for item in data):
            raise InputFormatError("Chaque élément du tableau doit être un objet JSON")
        return [dict(item) for item in data]
    raise InputFormatError("Le JSON doit être un objet ou un tableau d'objets")


def parse_product_names(names: str | Iterable[str]) -> list[str]:
    """One name per line (or per item): trimmed, blanks skipped, duplicates dropped."""
    lines = names.splitlines() if isinstance(names, str) else names
    seen: dict[str, None] = {}
    for line in lines:
        name = line.strip()
        if name:
            seen.setdefault(name, None)
    return list(seen)


class IngestionWizard:
    """Finite-state controller for one ingestion run at a time.

    All collaborators are injected.  The enrichment services may be
    ``None``; choosing a mode that needs a missing one raises
    :class:`ConfigurationError`.
    """

    def __init__(
        self,
        index_registry: IndexRegistry,
        validation_service: ValidationService,
        ingestion_service: IngestionService,
        progress_tracker: ProgressTracker,
        enrichment_service: EnrichmentService | None = None,
        sourced_enrichment_service: SourcedEnrichmentService | None = None,
        fix_service: AIFixService | None = None,
        default_index_id: str = PHARMACEUTICAL_PRODUCTS,
    ) -> None:
        self._registry = index_registry
        self._validator = validation_service
        self._ingestion = ingestion_service
        self._tracker = progress_tracker
        self._enrichment = enrichment_service
        self._sourced_enrichment = sourced_enrichment_service
        self._fixer = fix_service
        self._default_index_id = default_index_id
        self._logger: structlog.BoundLogger = get_logger(__name__)

        self._stage: ValidationStage | None = None
        self._gate: ReviewGate | None = None
        self._cancel_event: asyncio.Event | None = None
        self._state = self._new_state()

    # ------------------------------------------------------------------
    # State access
    # ------------------------------------------------------------------

    @property
    def state(self) -> WizardState:
        """Current snapshot, including live selection / review decisions."""
        update: dict[str, Any] = {}
        if self._stage is not None:
            update["processed_documents"] = self._stage.documents
        if self._gate is not None:
            update["enriched_documents"] = self._gate.documents
        return self._state.model_copy(update=update) if update else self._state

    @property
    def step(self) -> WizardStep:
        return self._state.step

    @property
    def progress_tracker(self) -> ProgressTracker:
        return self._tracker

    @property
    def validation_stage(self) -> ValidationStage:
        if self._stage is None:
            raise InvalidTransitionError("Aucune validation en cours")
        return self._stage

    @property
    def review_gate(self) -> ReviewGate:
        if self._gate is None:
            raise InvalidTransitionError("Aucune revue en cours")
        return self._gate

    @property
    def is_running(self) -> bool:
        return self._cancel_event is not None

    # ------------------------------------------------------------------
    # MODE
    # ------------------------------------------------------------------

    def choose_mode(self, mode: IngestionMode, index_id: str | None = None) -> WizardState:
        """Fix the run's mode and destination index, then advance.

        Raises
        ------
        InvalidTransitionError
            If the wizard is not at the MODE step.
        IndexNotFoundError
            If *index_id* is not registered.
        ConfigurationError
            If the mode needs an enrichment service that was not provided.
        """
        self._require_step(WizardStep.MODE, "choose_mode")
        target_index = index_id or self._default_index_id
        self._registry.require(target_index)

        if mode is IngestionMode.AI_ENRICHED and self._enrichment is None:
            raise ConfigurationError("Service d'enrichissement IA non configuré")
        if mode is IngestionMode.NATURAL_LANGUAGE and self._sourced_enrichment is None:
            raise ConfigurationError("Service d'enrichissement sourcé non configuré")

        next_step = WizardStep.NL_INPUT if mode is IngestionMode.NATURAL_LANGUAGE else WizardStep.UPLOAD
        self._advance(next_step, mode=mode, index_id=target_index)
        return self._state

    # ------------------------------------------------------------------
    # UPLOAD
    # ------------------------------------------------------------------

    async def load_json(self, text: str) -> WizardState:
        """Parse pasted or uploaded JSON text and continue as :meth:`load_records`."""
        self._require_step(WizardStep.UPLOAD, "load_json")
        return await self.load_records(parse_json_input(text))

    async def load_records(self, records: Sequence[Mapping[str, Any]] | Mapping[str, Any]) -> WizardState:
        """Hand the run's records to validation (structured) or enrichment.

        Raises
        ------
        InputFormatError
            If *records* is empty or not a list of objects.
        BatchLimitExceededError
            If an enrichment batch exceeds the configured cap; the wizard
            stays at UPLOAD.
        """
        self._require_step(WizardStep.UPLOAD, "load_records")
        rows = coerce_records(records if isinstance(records, Mapping) else list(records))
        index_id = self._index_id()

        if self._state.mode is IngestionMode.STRUCTURED:
            processed = self._validator.validate_batch(rows, index_id)
            self._stage = ValidationStage(self._validator, self._fixer, index_id, processed)
            self._advance(WizardStep.VALIDATE, raw_records=rows, processed_documents=processed)
            self._logger.info(
                "wizard_records_validated",
                total=len(processed),
                valid=self._stage.valid_count,
                errors=self._stage.error_count,
            )
            return self._state

        if self._enrichment is None:
            raise ConfigurationError("Service d'enrichissement IA non configuré")
        run_id = self._state.run_id
        enriched = await self._run_enrichment(self._enrichment, rows, WizardStep.AI_ENRICH)
        self._require_current(run_id)
        self._gate = ReviewGate(self._validator, enriched)
        self._advance(WizardStep.AI_ENRICH, raw_records=rows, enriched_documents=enriched)
        return self._state

    # ------------------------------------------------------------------
    # NL_INPUT
    # ------------------------------------------------------------------

    async def submit_names(self, names: str | Iterable[str]) -> WizardState:
        """Enrich bare product names with the sourced provider.

        Raises
        ------
        InputFormatError
            If no non-blank name remains after trimming.
        """
        self._require_step(WizardStep.NL_INPUT, "submit_names")
        product_names = parse_product_names(names)
        if not product_names:
            raise InputFormatError("Aucun nom de produit saisi")

        if self._sourced_enrichment is None:
            raise ConfigurationError("Service d'enrichissement sourcé non configuré")
        run_id = self._state.run_id
        enriched = await self._run_enrichment(self._sourced_enrichment, product_names, WizardStep.NL_ENRICH)
        self._require_current(run_id)
        self._gate = ReviewGate(self._validator, enriched)
        self._advance(WizardStep.NL_ENRICH, product_names=product_names, enriched_documents=enriched)
        return self._state

    async def _run_enrichment(
        self,
        service: EnrichmentService | SourcedEnrichmentService,
        items: Sequence[Any],
        step: WizardStep,
    ) -> list[EnrichedDocument]:
        run_id = self._state.run_id

        async def _progress(current: int, total: int, label: str) -> None:
            await self._tracker.update(run_id, step, current, total, label)

        event = self._cancel_event = asyncio.Event()
        try:
            return await service.enrich_batch(items, on_progress=_progress, cancel_event=event)
        finally:
            if self._cancel_event is event:
                self._cancel_event = None

    # ------------------------------------------------------------------
    # INGEST
    # ------------------------------------------------------------------

    async def ingest(self) -> IngestionReport:
        """Commit the run's ingestion set and enter the terminal INGEST step.

        Raises
        ------
        InvalidTransitionError
            If called outside VALIDATE / AI_ENRICH / NL_ENRICH, including a
            second call after a completed ingestion.
        PipelineError
            If nothing is selected or approved.
        RunResetError
            If the wizard was reset while the batch was running; documents
            written before the reset stay in the index.
        """
        if self.is_running:
            raise InvalidTransitionError("ingest() impossible : un traitement est déjà en cours")
        step = self._state.step
        index_id = self._index_id()
        if step is WizardStep.VALIDATE:
            documents = self.validation_stage.selected_documents()
            if not documents:
                raise PipelineError("Aucun document valide sélectionné")
        elif step in (WizardStep.AI_ENRICH, WizardStep.NL_ENRICH):
            documents = self.review_gate.continue_to_ingestion(index_id)
        elif step is WizardStep.INGEST:
            raise InvalidTransitionError("Ingestion déjà effectuée : réinitialisez l'assistant")
        else:
            raise InvalidTransitionError(f"ingest() impossible à l'étape {step.value}")

        snapshot = self.state
        self._state = snapshot.model_copy(update={"step": WizardStep.INGEST, "ingestion_set": documents})
        run_id = snapshot.run_id

        async def _progress(current: int, total: int, label: str) -> None:
            await self._tracker.update(run_id, WizardStep.INGEST, current, total, label)

        event = self._cancel_event = asyncio.Event()
        try:
            report = await self._ingestion.ingest_batch(
                documents, index_id, on_progress=_progress, cancel_event=event
            )
        finally:
            if self._cancel_event is event:
                self._cancel_event = None

        self._registry.invalidate_stats(index_id)
        if self._state.run_id != run_id:
            self._logger.warning(
                "wizard_ingestion_discarded",
                run_id=run_id,
                succeeded=report.success_count,
                failed=report.failed_count,
            )
            raise RunResetError(run_id)
        self._state = self._state.model_copy(
            update={"report": report, "completed_at": datetime.now(tz=timezone.utc)}  # noqa: UP017
        )
        self._logger.info(
            "wizard_run_completed",
            index_id=index_id,
            succeeded=report.success_count,
            failed=report.failed_count,
            phase=report.phase.value,
        )
        return report

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def back(self) -> WizardState:
        """Return exactly one step, discarding what the current step produced."""
        step = self._state.step
        previous = _BACK.get(step)
        if previous is None or self.is_running:
            raise InvalidTransitionError(f"Retour impossible depuis l'étape {step.value}")

        update: dict[str, Any] = {"step": previous}
        if step is WizardStep.VALIDATE:
            self._stage = None
            update["processed_documents"] = []
        elif step in (WizardStep.AI_ENRICH, WizardStep.NL_ENRICH):
            self._gate = None
            update["enriched_documents"] = []
        else:
            update.update(mode=None, raw_records=[], product_names=[])

        self._state = self._state.model_copy(update=update)
        self._logger.info("wizard_back", from_step=step.value, to_step=previous.value)
        return self._state

    def reset(self) -> WizardState:
        """Drop every piece of run data and return to MODE with a new run id."""
        self.cancel()
        self._cancel_event = None
        self._tracker.forget(self._state.run_id)
        self._stage = None
        self._gate = None
        clear_run_context()
        self._state = self._new_state()
        return self._state

    def cancel(self) -> bool:
        """Request cancellation of the batch in flight; honoured after the current item."""
        if self._cancel_event is None:
            return False
        self._cancel_event.set()
        self._logger.info("wizard_cancel_requested", step=self._state.step.value)
        return True

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _new_state(self) -> WizardState:
        state = WizardState(run_id=uuid.uuid4().hex[:12])
        bind_run_context(state.run_id)
        self._logger.info("wizard_run_started", run_id=state.run_id)
        return state

    def _require_step(self, expected: WizardStep, operation: str) -> None:
        if self.is_running:
            raise InvalidTransitionError(f"{operation}() impossible : un traitement est déjà en cours")
        if self._state.step is not expected:
            raise InvalidTransitionError(
                f"{operation}() impossible à l'étape {self._state.step.value} "
                f"(attendu : {expected.value})"
            )

    def _require_current(self, run_id: str) -> None:
        if self._state.run_id != run_id:
            self._logger.warning("wizard_enrichment_discarded", run_id=run_id)
            raise RunResetError(run_id)

    def _advance(self, step: WizardStep, **update: Any) -> None:
        previous = self._state.step
        self._state = self._state.model_copy(update={"step": step, **update})
        self._logger.info("wizard_step", from_step=previous.value, to_step=step.value)

    def _index_id(self) -> str:
        return self._state.index_id or self._default_index_id
