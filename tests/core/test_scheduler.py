"""Tests for MonitorScheduler."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from core.monitoring.errors import ProbeUnavailableError
from core.monitoring.reconciler import ReconcileOutcome
from core.scheduler import MonitorScheduler


@pytest.fixture
def mock_reconciler():
    reconciler = MagicMock()
    reconciler.execute = AsyncMock(return_value=ReconcileOutcome.NOOP)
    return reconciler


class TestRunOnce:
    async def test_records_outcome(self, mock_reconciler):
        mock_reconciler.execute.return_value = ReconcileOutcome.STARTED
        scheduler = MonitorScheduler(mock_reconciler)

        outcome = await scheduler.run_once("11249217")

        assert outcome is ReconcileOutcome.STARTED
        mock_reconciler.execute.assert_awaited_once_with("11249217")
        assert scheduler.get_metrics() == {"dispatched": 1, "completed": 1, "failed": 0}

    async def test_failure_is_contained(self, mock_reconciler):
        mock_reconciler.execute.side_effect = ProbeUnavailableError("11249217", "timeout")
        scheduler = MonitorScheduler(mock_reconciler)

        outcome = await scheduler.run_once("11249217")

        assert outcome is None
        assert scheduler.get_metrics()["failed"] == 1

    async def test_cancellation_propagates(self, mock_reconciler):
        mock_reconciler.execute.side_effect = asyncio.CancelledError()
        scheduler = MonitorScheduler(mock_reconciler)

        with pytest.raises(asyncio.CancelledError):
            await scheduler.run_once("11249217")


class TestChannelLoops:
    async def test_start_schedules_one_loop_per_channel(self, mock_reconciler):
        scheduler = MonitorScheduler(mock_reconciler, interval_seconds=3600)

        scheduler.start(["1", "2", "1"])
        await asyncio.sleep(0.01)

        try:
            assert scheduler.running
            called = sorted(call.args[0] for call in mock_reconciler.execute.await_args_list)
            assert called == ["1", "2"]

            jobs = {job["channel_id"]: job for job in scheduler.snapshot()}
            assert set(jobs) == {"1", "2"}
            assert jobs["1"]["last_outcome"] == "noop"
            assert jobs["1"]["next_run"] is not None
        finally:
            await scheduler.shutdown()

        assert not scheduler.running
        assert scheduler.snapshot() == []

    async def test_ticks_for_one_channel_never_overlap(self, mock_reconciler):
        active = 0
        peak = 0

        async def slow_execute(channel_id):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.02)
            active -= 1
            return ReconcileOutcome.NOOP

        mock_reconciler.execute.side_effect = slow_execute
        scheduler = MonitorScheduler(mock_reconciler, interval_seconds=0)

        scheduler.start(["1"])
        await asyncio.sleep(0.1)
        await scheduler.shutdown()

        assert mock_reconciler.execute.await_count >= 2
        assert peak == 1

    async def test_loop_survives_failures(self, mock_reconciler):
        mock_reconciler.execute.side_effect = RuntimeError("boom")
        scheduler = MonitorScheduler(mock_reconciler, interval_seconds=0)

        scheduler.start(["1"])
        await asyncio.sleep(0.05)

        try:
            assert scheduler.running
            assert scheduler.get_metrics()["failed"] >= 2
            assert scheduler.snapshot()[0]["last_error"] == "boom"
        finally:
            await scheduler.shutdown()
