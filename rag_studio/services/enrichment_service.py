"""Confidence-scored enrichment of minimal records via a language model.

# ─── HOW ENRICHMENT WORKS ─────────────────────────────────────────────
#
#   item ──prompt──→ ILLMProvider.complete() ──JSON──→ envelope
#        {enrichedDocument, confidence, reasoning, warnings[, sources]}
#
# Two variants share one contract (BaseEnrichmentService):
#
#   EnrichmentService          partial record  -> OpenAI-compatible model
#   SourcedEnrichmentService   product name    -> Mistral, plus "sources"
#
# enrich_one() never raises: every failure (missing key, HTTP error,
# empty body, invalid JSON, envelope without product_code / product_name
# / dci) becomes EnrichmentResult(success=False, error=...).
#
# enrich_batch() runs items strictly one at a time through a
# FixedIntervalScheduler.  A failed item becomes a REJECTED document whose
# only warning is the error text; the batch always returns one document
# per input, in input order.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import asyncio
import uuid
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping, Sequence
from typing import Any, Generic, TypeVar

import structlog
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from rag_studio.interfaces.llm_provider import ILLMProvider
from rag_studio.models.documents import (
    ConfidenceScores,
    EnrichedDocument,
    EnrichmentResult,
    ReviewStatus,
    display_label,
)
from rag_studio.services import prompts
from rag_studio.utils.concurrency import FixedIntervalScheduler
from rag_studio.utils.confidence import confidence_to_level
from rag_studio.utils.errors import BatchLimitExceededError, RagStudioError
from rag_studio.utils.llm_json import parse_json_object
from rag_studio.utils.logging import get_logger

_InputT = TypeVar("_InputT")

REQUIRED_OUTPUT_FIELDS = ("product_code", "product_name", "dci")
MISSING_FIELDS_MESSAGE = (
    "La réponse IA ne contient pas les champs obligatoires (product_code, product_name, dci)"
)
UNKNOWN_ERROR_MESSAGE = "Erreur inconnue"

# (current position, total, label) -- position is 1-based.
ProgressCallback = Callable[[int, int, str], Any]


def _as_string_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value else []
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value if v is not None and v != ""]
    return [str(value)]


class _EnrichmentEnvelope(BaseModel):
    """Shape of the JSON object both providers are asked to return."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    enriched_document: dict[str, Any] = Field(alias="enrichedDocument")
    confidence: dict[str, Any] = Field(default_factory=dict)
    reasoning: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    sources: list[str] = Field(default_factory=list)

    @field_validator("reasoning", "warnings", "sources", mode="before")
    @classmethod
    def _coerce_strings(cls, value: Any) -> list[str]:
        return _as_string_list(value)

    @field_validator("confidence", mode="before")
    @classmethod
    def _coerce_confidence(cls, value: Any) -> dict[str, Any]:
        return value if isinstance(value, Mapping) else {}

    @field_validator("enriched_document")
    @classmethod
    def _require_output_fields(cls, value: dict[str, Any]) -> dict[str, Any]:
        missing = [
            name
            for name in REQUIRED_OUTPUT_FIELDS
            if not isinstance(value.get(name), str) or not value.get(name)
        ]
        if missing:
            raise ValueError(f"missing required output fields: {', '.join(missing)}")
        return value


class BaseEnrichmentService(ABC, Generic[_InputT]):
    """Shared enrichment flow; subclasses supply prompts and input mapping.

    Parameters
    ----------
    llm_provider:
        Chat-completion backend.
    scheduler:
        Pacing policy for :meth:`enrich_batch`.  Defaults to a one-second
        interval with no timeout.
    max_batch_size:
        Batches larger than this are refused before any call is made.
        ``None`` disables the cap.
    """

    temperature: float = 0.3
    max_tokens: int = 3000
    id_prefix: str = "enriched"

    def __init__(
        self,
        llm_provider: ILLMProvider,
        scheduler: FixedIntervalScheduler | None = None,
        max_batch_size: int | None = None,
    ) -> None:
        self._llm = llm_provider
        self._scheduler = scheduler or FixedIntervalScheduler(interval=1.0)
        self._max_batch_size = max_batch_size
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # -- Hooks -------------------------------------------------------------

    @abstractmethod
    def _system_prompt(self) -> str: ...

    @abstractmethod
    def _user_prompt(self, item: _InputT) -> str: ...

    @abstractmethod
    def _original_data(self, item: _InputT) -> dict[str, Any]:
        """Snapshot of the input stored on the resulting document."""

    @abstractmethod
    def _item_label(self, item: _InputT, index: int) -> str:
        """Progress label for the item at 0-based *index*."""

    @staticmethod
    @abstractmethod
    def confidence_label(score: float) -> str:
        """Display label for a 0..100 confidence score."""

    # -- Public API --------------------------------------------------------

    def is_configured(self) -> bool:
        return self._llm.is_available()

    async def enrich_one(self, item: _InputT) -> EnrichmentResult:
        """Enrich a single item.  Never raises."""
        provider = self._llm.get_provider_name()
        try:
            completion = await self._llm.complete(
                system_prompt=self._system_prompt(),
                user_prompt=self._user_prompt(item),
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                json_mode=True,
            )
            parsed = parse_json_object(completion.content, provider_name=provider)
            envelope = _EnrichmentEnvelope.model_validate(parsed)
        except PydanticValidationError as exc:
            self._logger.warning("enrichment_envelope_invalid", provider=provider, errors=exc.error_count())
            return EnrichmentResult(success=False, error=MISSING_FIELDS_MESSAGE)
        except RagStudioError as exc:
            self._logger.warning("enrichment_failed", provider=provider, error=str(exc))
            return EnrichmentResult(success=False, error=exc.message)
        except Exception as exc:
            self._logger.error("enrichment_unexpected_error", provider=provider, error=str(exc))
            return EnrichmentResult(success=False, error=str(exc) or UNKNOWN_ERROR_MESSAGE)

        confidence = ConfidenceScores.from_raw(envelope.confidence)
        self._logger.info(
            "enrichment_succeeded",
            provider=provider,
            product_code=envelope.enriched_document.get("product_code"),
            overall=round(confidence.overall, 1),
            tokens=completion.tokens_used,
        )
        return EnrichmentResult(
            success=True,
            enriched_data=envelope.enriched_document,
            confidence=confidence,
            reasoning=envelope.reasoning,
            warnings=envelope.warnings,
            sources=envelope.sources,
            tokens_used=completion.tokens_used,
        )

    async def enrich_batch(
        self,
        items: Sequence[_InputT],
        on_progress: ProgressCallback | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> list[EnrichedDocument]:
        """Enrich *items* sequentially; one document per input, in order.

        Raises
        ------
        BatchLimitExceededError
            If ``len(items)`` exceeds ``max_batch_size``; raised before any
            provider call.
        """
        if self._max_batch_size is not None and len(items) > self._max_batch_size:
            raise BatchLimitExceededError(len(items), self._max_batch_size)

        def _notify(position: int, total: int, item: _InputT) -> Any:
            if on_progress is not None:
                return on_progress(position, total, self._item_label(item, position - 1))
            return None

        self._logger.info("enrichment_batch_started", total=len(items), provider=self._llm.get_provider_name())
        outcomes = await self._scheduler.run(
            items,
            self.enrich_one,
            on_item_start=_notify,
            cancel_event=cancel_event,
        )

        documents: list[EnrichedDocument] = []
        for outcome in outcomes:
            doc_id = f"{self.id_prefix}-{outcome.index}-{uuid.uuid4().hex[:8]}"
            original = self._original_data(outcome.item)
            result = outcome.result
            if outcome.ok and result is not None and result.success and result.enriched_data:
                documents.append(
                    EnrichedDocument(
                        id=doc_id,
                        original_data=original,
                        enriched_data=result.enriched_data,
                        confidence=result.confidence or ConfidenceScores(),
                        reasoning=result.reasoning,
                        warnings=result.warnings,
                        sources=result.sources,
                        status=ReviewStatus.PENDING,
                    )
                )
                continue

            error = (result.error if result is not None else None) or outcome.describe_failure()
            documents.append(
                EnrichedDocument(
                    id=doc_id,
                    original_data=original,
                    enriched_data=dict(original),
                    confidence=ConfidenceScores.failure(),
                    reasoning=[],
                    warnings=[error or UNKNOWN_ERROR_MESSAGE],
                    sources=[],
                    status=ReviewStatus.REJECTED,
                )
            )

        rejected = sum(1 for d in documents if d.status == ReviewStatus.REJECTED)
        self._logger.info(
            "enrichment_batch_finished",
            total=len(documents),
            pending=len(documents) - rejected,
            rejected=rejected,
        )
        return documents


class EnrichmentService(BaseEnrichmentService[Mapping[str, Any]]):
    """Completes partial pharmaceutical records with an OpenAI-compatible model."""

    temperature = 0.3
    max_tokens = 3000
    id_prefix = "enriched"

    def _system_prompt(self) -> str:
        return prompts.ENRICHMENT_SYSTEM_PROMPT

    def _user_prompt(self, item: Mapping[str, Any]) -> str:
        return prompts.enrichment_user_prompt(item)

    def _original_data(self, item: Mapping[str, Any]) -> dict[str, Any]:
        return dict(item)

    def _item_label(self, item: Mapping[str, Any], index: int) -> str:
        nom = item.get("nom")
        fallback = nom if isinstance(nom, str) and nom else f"Document {index + 1}"
        return display_label(item, fallback)

    @staticmethod
    def confidence_label(score: float) -> str:
        return confidence_to_level(score).label


class SourcedEnrichmentService(BaseEnrichmentService[str]):
    """Builds complete French product records from a bare name, with sources."""

    temperature = 0.2
    max_tokens = 4000
    id_prefix = "sourced"

    def _system_prompt(self) -> str:
        return prompts.SOURCED_ENRICHMENT_SYSTEM_PROMPT

    def _user_prompt(self, item: str) -> str:
        return prompts.sourced_enrichment_user_prompt(item)

    def _original_data(self, item: str) -> dict[str, Any]:
        return {"product_name": item}

    def _item_label(self, item: str, index: int) -> str:
        return item

    @staticmethod
    def confidence_label(score: float) -> str:
        return confidence_to_level(score).source_label
