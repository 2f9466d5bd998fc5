"""Targeted repair of records that failed schema validation.

The model is given the invalid record and its validation errors only; the
record it returns is laid over the original so that fields the model did
not echo back are kept as they were.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping, Sequence
from typing import Any

import structlog

from rag_studio.interfaces.llm_provider import ILLMProvider
from rag_studio.models.documents import AIFixResult, ValidationError
from rag_studio.services import prompts
from rag_studio.utils.concurrency import FixedIntervalScheduler
from rag_studio.utils.errors import RagStudioError
from rag_studio.utils.llm_json import parse_json_object
from rag_studio.utils.logging import get_logger

# (record, its validation errors)
FixItem = tuple[Mapping[str, Any], Sequence[ValidationError]]


class AIFixService:
    """Repairs invalid records via a chat-completion provider.

    Parameters
    ----------
    llm_provider:
        Backend used for the repair call.
    scheduler:
        Pacing policy for :meth:`fix_batch`; defaults to a 0.5 s interval.
    """

    temperature = 0.2
    max_tokens = 2000

    def __init__(
        self,
        llm_provider: ILLMProvider,
        scheduler: FixedIntervalScheduler | None = None,
    ) -> None:
        self._llm = llm_provider
        self._scheduler = scheduler or FixedIntervalScheduler(interval=0.5)
        self._logger: structlog.BoundLogger = get_logger(__name__)

    def is_configured(self) -> bool:
        return self._llm.is_available()

    async def fix(
        self,
        record: Mapping[str, Any],
        errors: Sequence[ValidationError],
    ) -> AIFixResult:
        """Ask the model to correct *record* for the listed *errors*.  Never raises."""
        provider = self._llm.get_provider_name()
        try:
            completion = await self._llm.complete(
                system_prompt=prompts.FIX_SYSTEM_PROMPT,
                user_prompt=prompts.fix_user_prompt(record, ((e.field, e.message) for e in errors)),
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                json_mode=True,
            )
            corrected = parse_json_object(completion.content, provider_name=provider)
        except RagStudioError as exc:
            self._logger.warning("ai_fix_failed", provider=provider, error=str(exc))
            return AIFixResult(success=False, error=exc.message)
        except Exception as exc:
            self._logger.error("ai_fix_unexpected_error", provider=provider, error=str(exc))
            return AIFixResult(success=False, error=str(exc) or type(exc).__name__)

        merged = {**record, **corrected}
        self._logger.info(
            "ai_fix_succeeded",
            provider=provider,
            fields=sorted({e.field for e in errors}),
            tokens=completion.tokens_used,
        )
        return AIFixResult(success=True, fixed_document=merged, tokens_used=completion.tokens_used)

    async def fix_batch(
        self,
        items: Sequence[FixItem],
        on_progress: Callable[[int, int], Any] | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> list[AIFixResult]:
        """Fix each ``(record, errors)`` pair in order; one result per input."""

        async def _worker(item: FixItem) -> AIFixResult:
            record, errors = item
            return await self.fix(record, errors)

        def _notify(position: int, total: int, _item: FixItem) -> Any:
            if on_progress is not None:
                return on_progress(position, total)
            return None

        outcomes = await self._scheduler.run(
            items, _worker, on_item_start=_notify, cancel_event=cancel_event
        )
        results = [
            outcome.result
            if outcome.ok and outcome.result is not None
            else AIFixResult(success=False, error=outcome.describe_failure())
            for outcome in outcomes
        ]
        self._logger.info(
            "ai_fix_batch_finished",
            total=len(results),
            fixed=sum(1 for r in results if r.success),
        )
        return results
