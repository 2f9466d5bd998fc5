"""Run progress tracking with callback-based listener notification.

Tracks the current wizard step and item position for each run and
broadcasts updates to registered listener callbacks.  Listeners are keyed
by run id so that two wizard runs never see each other's progress.

# ─── HOW PROGRESS TRACKING WORKS ──────────────────────────────────────
#
#   batch stage ──on_progress──→ Wizard ──update()──→ ProgressTracker
#                                                       ──callback()──→ CLI
#                                                       ──callback()──→ (any listener)
#
#   1. A batch stage reports (position, total, label) before each item.
#   2. The wizard forwards it with its run id and current step.
#   3. ProgressTracker stores the snapshot and calls every listener.
#
# A listener that raises is logged and skipped; it never stops the batch.
# Sync and async callbacks are both accepted.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass

import structlog

from rag_studio.models.pipeline import WizardStep
from rag_studio.utils.logging import get_logger


@dataclass
class _RunStatus:
    """Latest snapshot of one run.  Internal only."""

    step: WizardStep = WizardStep.MODE
    current: int = 0
    total: int = 0
    label: str = ""

    @property
    def percent(self) -> float:
        if self.total <= 0:
            return 0.0
        return max(0.0, min(100.0, self.current / self.total * 100.0))


class ProgressTracker:
    """Tracks and broadcasts per-item batch progress via callbacks.

    Listener signature: ``(run_id, step, current, total, label)``.
    """

    def __init__(self) -> None:
        self._statuses: dict[str, _RunStatus] = {}
        self._listeners: dict[str, list[Callable]] = {}
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def update(
        self,
        run_id: str,
        step: WizardStep,
        current: int,
        total: int,
        label: str,
    ) -> None:
        """Record that item *current* of *total* (1-based) is starting."""
        self._statuses[run_id] = _RunStatus(step=step, current=current, total=total, label=label)

        self._logger.debug(
            "progress_update",
            run_id=run_id,
            step=step.value,
            current=current,
            total=total,
            label=label,
        )

        await self._notify_listeners(run_id, step, current, total, label)

    def register_listener(self, run_id: str, callback: Callable) -> None:
        listeners = self._listeners.setdefault(run_id, [])
        if callback not in listeners:
            listeners.append(callback)
            self._logger.debug("listener_registered", run_id=run_id, total_listeners=len(listeners))

    def unregister_listener(self, run_id: str, callback: Callable) -> None:
        listeners = self._listeners.get(run_id, [])
        if callback in listeners:
            listeners.remove(callback)
            self._logger.debug("listener_unregistered", run_id=run_id, remaining_listeners=len(listeners))

    def get_status(self, run_id: str) -> dict:
        """Return the latest snapshot for a run.

        Returns
        -------
        dict
            Keys: ``step``, ``current``, ``total``, ``label`` and
            ``percent``.  Zeroed defaults when the run is unknown.
        """
        status = self._statuses.get(run_id) or _RunStatus()
        return {
            "step": status.step.value,
            "current": status.current,
            "total": status.total,
            "label": status.label,
            "percent": status.percent,
        }

    def forget(self, run_id: str) -> None:
        """Drop the snapshot and listeners of a finished or reset run."""
        self._statuses.pop(run_id, None)
        self._listeners.pop(run_id, None)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _notify_listeners(
        self,
        run_id: str,
        step: WizardStep,
        current: int,
        total: int,
        label: str,
    ) -> None:
        for callback in list(self._listeners.get(run_id, [])):
            try:
                result = callback(run_id, step, current, total, label)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as exc:
                self._logger.warning(
                    "listener_callback_error",
                    run_id=run_id,
                    error=str(exc),
                    callback=getattr(callback, "__name__", repr(callback)),
                )
