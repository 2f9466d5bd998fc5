"""Wizard state models for an ingestion run.

The wizard holds one frozen :class:`WizardState` per run and advances it
with ``model_copy(update={...})``.  Everything a run owns (raw input,
validated or enriched documents, the final report) lives on the state, so
``reset()`` only has to replace the state to discard the run.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from rag_studio.models.documents import EnrichedDocument, IngestionReport, ProcessedDocument


# ---------------------------------------------------------------------------
# IngestionMode -- chosen once at the MODE step, fixed for the run.
# ---------------------------------------------------------------------------
class IngestionMode(str, Enum):  # noqa: UP042
    STRUCTURED = "structured"              # Complete JSON records, schema-checked
    AI_ENRICHED = "ai-enriched"            # Partial JSON records completed by an LLM
    NATURAL_LANGUAGE = "natural-language"  # Bare product names completed by an LLM


# ---------------------------------------------------------------------------
# WizardStep -- the state machine positions.
# ---------------------------------------------------------------------------
class WizardStep(str, Enum):  # noqa: UP042
    """Steps of the ingestion wizard.

    Paths by mode:
        structured:        MODE -> UPLOAD -> VALIDATE -> INGEST
        ai-enriched:       MODE -> UPLOAD -> AI_ENRICH -> INGEST
        natural-language:  MODE -> NL_INPUT -> NL_ENRICH -> INGEST
    """

    MODE = "mode"
    UPLOAD = "upload"
    VALIDATE = "validate"
    AI_ENRICH = "ai-enrich"
    NL_INPUT = "nl-input"
    NL_ENRICH = "nl-enrich"
    INGEST = "ingest"


class WizardState(BaseModel):
    """Snapshot of one wizard run.  Immutable; see module docstring."""

    model_config = ConfigDict(frozen=True)

    run_id: str
    step: WizardStep = WizardStep.MODE
    mode: IngestionMode | None = None
    index_id: str | None = None
    # Input captured at UPLOAD / NL_INPUT.
    raw_records: list[dict[str, Any]] = Field(default_factory=list)
    product_names: list[str] = Field(default_factory=list)
    # Stage outputs.
    processed_documents: list[ProcessedDocument] = Field(default_factory=list)
    enriched_documents: list[EnrichedDocument] = Field(default_factory=list)
    # Documents handed to the committer; set when INGEST is entered.
    ingestion_set: list[ProcessedDocument] = Field(default_factory=list)
    report: IngestionReport | None = None
    started_at: datetime = Field(
        default_factory=lambda: datetime.now(tz=timezone.utc)  # noqa: UP017
    )
    completed_at: datetime | None = None
