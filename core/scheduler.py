import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional

from core.monitoring.reconciler import ReconcileOutcome, StreamLifecycleReconciler
from shared.logging.logger import get_logger

log = get_logger("core.scheduler")


@dataclass
class ChannelJobState:
    channel_id: str
    next_run: Optional[datetime] = None
    last_run: Optional[datetime] = None
    last_outcome: Optional[str] = None
    last_error: Optional[str] = None

    def snapshot(self) -> Dict[str, Any]:
        return {
            "channel_id": self.channel_id,
            "next_run": self.next_run.isoformat() if self.next_run else None,
            "last_run": self.last_run.isoformat() if self.last_run else None,
            "last_outcome": self.last_outcome,
            "last_error": self.last_error,
        }


class MonitorScheduler:
    """
    Runs one reconcile loop per monitored channel.

    Each channel owns a single asyncio task that awaits execute() and then
    sleeps, so invocations for the same channel never overlap. Failures are
    logged and retried on the next tick.
    """

    def __init__(
        self,
        reconciler: StreamLifecycleReconciler,
        *,
        interval_seconds: float = 60.0,
    ):
        self._reconciler = reconciler
        self._interval = float(interval_seconds)

        # channel_id -> asyncio.Task
        self._tasks: Dict[str, asyncio.Task] = {}

        # channel_id -> job state (read-only for commands)
        self._jobs: Dict[str, ChannelJobState] = {}

        # --------------------------------------------------
        # METRICS (READ-ONLY, ADDITIVE)
        # --------------------------------------------------
        self._metrics = {
            "dispatched": 0,
            "completed": 0,
            "failed": 0,
        }

    # ------------------------------------------------------------

    def start(self, channel_ids: Iterable[str]) -> None:
        for channel_id in channel_ids:
            if channel_id in self._tasks:
                log.warning(f"[{channel_id}] Monitor already scheduled — skipping")
                continue

            self._jobs[channel_id] = ChannelJobState(
                channel_id=channel_id,
                next_run=datetime.now(timezone.utc),
            )
            self._tasks[channel_id] = asyncio.create_task(self._channel_loop(channel_id))
            log.info(f"[{channel_id}] Monitor scheduled every {self._interval:.0f}s")

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks.values())

    # ------------------------------------------------------------

    async def run_once(self, channel_id: str) -> Optional[ReconcileOutcome]:
        """Execute a single tick; exceptions are logged, never raised."""
        job = self._jobs.setdefault(channel_id, ChannelJobState(channel_id=channel_id))
        job.last_run = datetime.now(timezone.utc)
        self._metrics["dispatched"] += 1

        try:
            outcome = await self._reconciler.execute(channel_id)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._metrics["failed"] += 1
            job.last_outcome = "failed"
            job.last_error = str(e)
            log.exception(f"[{channel_id}] Monitor tick failed")
            return None

        self._metrics["completed"] += 1
        job.last_outcome = outcome.value
        job.last_error = None
        if outcome is not ReconcileOutcome.NOOP:
            log.info(f"[{channel_id}] Monitor tick: {outcome.value}")
        return outcome

    async def _channel_loop(self, channel_id: str) -> None:
        try:
            while True:
                await self.run_once(channel_id)

                job = self._jobs[channel_id]
                job.next_run = datetime.now(timezone.utc) + timedelta(seconds=self._interval)
                await asyncio.sleep(self._interval)
        except asyncio.CancelledError:
            log.debug(f"[{channel_id}] Monitor loop cancelled")
            raise

    # ------------------------------------------------------------
    # READ-ONLY VISIBILITY HOOKS
    # ------------------------------------------------------------

    def snapshot(self) -> List[Dict[str, Any]]:
        return [job.snapshot() for job in self._jobs.values() if job.channel_id in self._tasks]

    def get_metrics(self) -> Dict[str, int]:
        return dict(self._metrics)

    # ------------------------------------------------------------

    async def shutdown(self) -> None:
        log.info("Scheduler shutdown initiated")

        tasks = list(self._tasks.values())
        for task in tasks:
            if not task.done():
                task.cancel()

        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        self._tasks.clear()
        self._jobs.clear()
        log.info("Scheduler shutdown complete")
