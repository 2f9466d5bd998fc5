"""Rate-limited sequential task queue shared by every batch stage.

Enrichment, auto-fix and ingestion all talk to paid or rate-limited
external APIs (chat completions, embeddings).  None of them may fan out:
items are processed strictly one at a time with a fixed pause between
calls.  :class:`FixedIntervalScheduler` turns that pause into a
configurable policy and adds what a hand-written loop lacks:

1. **Per-item timeout** -- a hung call fails that item instead of stalling
   the whole stage.
2. **Cancellation between items** -- an ``asyncio.Event`` is checked before
   each item and during the inter-call pause.  A call already in flight is
   never interrupted; cancellation granularity is "after the current item".
3. **Whole-batch deadline** -- items not started before the deadline are
   reported as skipped.

Every input produces exactly one :class:`ItemOutcome`, in input order, so
callers can always report N results for N inputs.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

import structlog

from rag_studio.utils.logging import get_logger

_T = TypeVar("_T")
_R = TypeVar("_R")

SKIP_CANCELLED = "cancelled"
SKIP_DEADLINE = "deadline"

# (position, total, item) -- position is 1-based.
ItemStartCallback = Callable[[int, int, Any], Any]

_logger: structlog.BoundLogger = get_logger(__name__)


@dataclass
class ItemOutcome(Generic[_T, _R]):
    """Result of one scheduled item: a value, an exception, or a skip reason."""

    index: int
    item: _T
    result: _R | None = None
    error: BaseException | None = None
    skipped: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.skipped is None

    def describe_failure(self) -> str:
        """Human-readable reason for a failed or skipped item."""
        if self.skipped == SKIP_CANCELLED:
            return "Cancelled before processing"
        if self.skipped == SKIP_DEADLINE:
            return "Batch time limit reached before processing"
        if isinstance(self.error, asyncio.TimeoutError):
            return "Call timed out"
        if self.error is not None:
            return str(self.error) or type(self.error).__name__
        return ""


class FixedIntervalScheduler:
    """Run an async worker over items sequentially with a fixed pause.

    Parameters
    ----------
    interval:
        Seconds to wait between two consecutive items (not after the last).
    item_timeout:
        Optional per-item timeout in seconds.
    max_duration:
        Optional wall-clock budget for the whole batch, in seconds.
    """

    def __init__(
        self,
        interval: float = 1.0,
        item_timeout: float | None = None,
        max_duration: float | None = None,
    ) -> None:
        self._interval = max(0.0, interval)
        self._item_timeout = item_timeout
        self._max_duration = max_duration

    @property
    def interval(self) -> float:
        return self._interval

    async def run(
        self,
        items: Sequence[_T],
        worker: Callable[[_T], Awaitable[_R]],
        *,
        on_item_start: ItemStartCallback | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> list[ItemOutcome[_T, _R]]:
        """Process *items* one at a time and return one outcome per item."""
        outcomes: list[ItemOutcome[_T, _R]] = []
        total = len(items)
        started_at = time.monotonic()

        for idx, item in enumerate(items):
            if cancel_event is not None and cancel_event.is_set():
                outcomes.append(ItemOutcome(index=idx, item=item, skipped=SKIP_CANCELLED))
                continue
            if (
                self._max_duration is not None
                and time.monotonic() - started_at >= self._max_duration
            ):
                outcomes.append(ItemOutcome(index=idx, item=item, skipped=SKIP_DEADLINE))
                continue

            if on_item_start is not None:
                await self._notify(on_item_start, idx + 1, total, item)

            try:
                if self._item_timeout is not None:
                    result = await asyncio.wait_for(worker(item), timeout=self._item_timeout)
                else:
                    result = await worker(item)
                outcomes.append(ItemOutcome(index=idx, item=item, result=result))
            except Exception as exc:
                _logger.warning(
                    "scheduled_item_failed",
                    position=idx + 1,
                    total=total,
                    error=str(exc) or type(exc).__name__,
                )
                outcomes.append(ItemOutcome(index=idx, item=item, error=exc))

            if idx < total - 1:
                await self._pause(cancel_event)

        skipped = sum(1 for o in outcomes if o.skipped)
        if skipped:
            _logger.info("scheduled_batch_stopped_early", total=total, skipped=skipped)
        return outcomes

    async def _pause(self, cancel_event: asyncio.Event | None) -> None:
        if self._interval <= 0:
            return
        if cancel_event is None:
            await asyncio.sleep(self._interval)
            return
        # Wake early when cancellation is requested during the pause.
        try:
            await asyncio.wait_for(cancel_event.wait(), timeout=self._interval)
        except asyncio.TimeoutError:
            pass

    @staticmethod
    async def _notify(callback: ItemStartCallback, position: int, total: int, item: Any) -> None:
        try:
            result = callback(position, total, item)
            if asyncio.iscoroutine(result):
                await result
        except Exception as exc:
            _logger.warning(
                "progress_callback_error",
                error=str(exc),
                callback=getattr(callback, "__name__", repr(callback)),
            )
