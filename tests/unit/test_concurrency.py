"""Unit tests for FixedIntervalScheduler -- the sequential, paced task queue."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from rag_studio.utils.concurrency import (
    SKIP_CANCELLED,
    SKIP_DEADLINE,
    FixedIntervalScheduler,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _double(value: int) -> int:
    return value * 2


async def _fail_on_two(value: int) -> int:
    if value == 2:
        raise ValueError("two is not allowed")
    return value


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestOrdering:
    @pytest.mark.asyncio
    async def test_one_outcome_per_item_in_order(self) -> None:
        outcomes = await FixedIntervalScheduler(interval=0).run([1, 2, 3], _double)

        assert [o.index for o in outcomes] == [0, 1, 2]
        assert [o.result for o in outcomes] == [2, 4, 6]
        assert all(o.ok for o in outcomes)

    @pytest.mark.asyncio
    async def test_failure_does_not_stop_the_batch(self) -> None:
        outcomes = await FixedIntervalScheduler(interval=0).run([1, 2, 3], _fail_on_two)

        assert [o.ok for o in outcomes] == [True, False, True]
        assert outcomes[1].describe_failure() == "two is not allowed"
        assert outcomes[2].result == 3

    @pytest.mark.asyncio
    async def test_items_never_overlap(self) -> None:
        active = 0
        peak = 0

        async def _worker(_item: int) -> None:
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0)
            active -= 1

        await FixedIntervalScheduler(interval=0).run(list(range(5)), _worker)
        assert peak == 1

    @pytest.mark.asyncio
    async def test_empty_input(self) -> None:
        assert await FixedIntervalScheduler(interval=0).run([], _double) == []


class TestPacing:
    @pytest.mark.asyncio
    async def test_pause_between_items_only(self) -> None:
        sleep = AsyncMock()
        with patch("rag_studio.utils.concurrency.asyncio.sleep", sleep):
            await FixedIntervalScheduler(interval=1.0).run([1, 2, 3], _double)

        assert sleep.await_count == 2
        sleep.assert_awaited_with(1.0)

    def test_negative_interval_is_zero(self) -> None:
        assert FixedIntervalScheduler(interval=-5).interval == 0.0


class TestStopping:
    @pytest.mark.asyncio
    async def test_cancel_before_start_skips_everything(self) -> None:
        event = asyncio.Event()
        event.set()
        worker = AsyncMock()

        outcomes = await FixedIntervalScheduler(interval=0).run([1, 2], worker, cancel_event=event)

        assert [o.skipped for o in outcomes] == [SKIP_CANCELLED, SKIP_CANCELLED]
        assert outcomes[0].describe_failure() == "Cancelled before processing"
        worker.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cancel_honoured_after_current_item(self) -> None:
        event = asyncio.Event()

        async def _worker(value: int) -> int:
            event.set()
            return value

        outcomes = await FixedIntervalScheduler(interval=0).run([1, 2, 3], _worker, cancel_event=event)

        assert outcomes[0].ok and outcomes[0].result == 1
        assert [o.skipped for o in outcomes[1:]] == [SKIP_CANCELLED, SKIP_CANCELLED]

    @pytest.mark.asyncio
    async def test_cancel_wakes_the_pause_early(self) -> None:
        event = asyncio.Event()

        async def _worker(value: int) -> int:
            event.set()
            return value

        scheduler = FixedIntervalScheduler(interval=30.0)
        outcomes = await asyncio.wait_for(
            scheduler.run([1, 2], _worker, cancel_event=event), timeout=5
        )
        assert outcomes[1].skipped == SKIP_CANCELLED

    @pytest.mark.asyncio
    async def test_deadline_skips_remaining_items(self) -> None:
        worker = AsyncMock()
        outcomes = await FixedIntervalScheduler(interval=0, max_duration=0).run([1, 2], worker)

        assert [o.skipped for o in outcomes] == [SKIP_DEADLINE, SKIP_DEADLINE]
        assert "time limit" in outcomes[0].describe_failure()
        worker.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_item_timeout_fails_only_that_item(self) -> None:
        async def _worker(value: int) -> int:
            if value == 1:
                await asyncio.sleep(5)
            return value

        scheduler = FixedIntervalScheduler(interval=0, item_timeout=0.01)
        outcomes = await scheduler.run([1, 2], _worker)

        assert outcomes[0].ok is False
        assert outcomes[0].describe_failure() == "Call timed out"
        assert outcomes[1].result == 2


class TestItemStartCallback:
    @pytest.mark.asyncio
    async def test_sync_and_async_callbacks(self) -> None:
        seen: list[tuple[int, int, int]] = []

        async def _on_start(position: int, total: int, item: int) -> None:
            seen.append((position, total, item))

        await FixedIntervalScheduler(interval=0).run([10, 20], _double, on_item_start=_on_start)
        assert seen == [(1, 2, 10), (2, 2, 20)]

        seen.clear()
        await FixedIntervalScheduler(interval=0).run(
            [5], _double, on_item_start=lambda p, t, i: seen.append((p, t, i))
        )
        assert seen == [(1, 1, 5)]

    @pytest.mark.asyncio
    async def test_failing_callback_is_ignored(self) -> None:
        def _broken(*_args: object) -> None:
            raise RuntimeError("listener crashed")

        outcomes = await FixedIntervalScheduler(interval=0).run([1], _double, on_item_start=_broken)
        assert outcomes[0].result == 2
