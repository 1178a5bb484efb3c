"""
Stream lifecycle reconciler.

One invocation handles one monitored channel:

    load → debounce guard → probe → classify → segments → fan-out → commit

The phase is recomputed from persisted markers and the current probe result
on every call; nothing survives between invocations except what the store
commits. All mutations are buffered on the loaded aggregate and written in
one commit at the end, so an aborted invocation leaves stored state intact.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Optional

from core.monitoring.errors import ProbeUnavailableError
from core.monitoring.models import LifecyclePhase, MonitoredChannel
from core.monitoring.phase import (
    DEFAULT_DEBOUNCE_WINDOW,
    classify_phase,
    is_debounced,
    was_live,
)
from core.monitoring.segments import ActivitySegmentTracker
from services.discord.embeds import (
    DEFAULT_MENTION_TEMPLATE,
    AnnouncementContent,
    live_announcement,
    summary_announcement,
)
from services.twitch.models.stream import StreamSnapshot
from shared.logging.logger import get_logger

log = get_logger("core.monitoring.reconciler")


class ReconcileOutcome(Enum):
    NOOP = "noop"
    STARTED = "started"
    UPDATED = "updated"
    ENDED = "ended"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StreamLifecycleReconciler:
    def __init__(
        self,
        *,
        store,
        probe,
        notifier,
        tracker: Optional[ActivitySegmentTracker] = None,
        debounce_window: timedelta = DEFAULT_DEBOUNCE_WINDOW,
        mention_template: str = DEFAULT_MENTION_TEMPLATE,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._store = store
        self._probe = probe
        self._notifier = notifier
        self._tracker = tracker or ActivitySegmentTracker()
        self._debounce_window = debounce_window
        self._mention_template = mention_template
        self._clock = clock

    # ------------------------------------------------------------

    async def execute(self, channel_id: str) -> ReconcileOutcome:
        channel = self._store.load(channel_id)
        if channel is None:
            log.warning(f"[{channel_id}] Not a monitored channel; skipping")
            return ReconcileOutcome.NOOP

        now = self._clock()
        if is_debounced(channel, now, self._debounce_window):
            log.debug(f"[{channel_id}] Inside debounce window; skipping")
            return ReconcileOutcome.NOOP

        is_live = await self._probe.is_live(channel_id)
        if is_live is None:
            raise ProbeUnavailableError(channel_id, "liveness probe returned no data")

        phase = classify_phase(was_live(channel), is_live)
        if phase is LifecyclePhase.SETTLED:
            return ReconcileOutcome.NOOP

        if phase is LifecyclePhase.SESSION_ENDED:
            outcome = await self._end_session(channel, now)
        else:
            snapshot = await self._probe.fetch_snapshot(channel_id)
            if snapshot is None:
                raise ProbeUnavailableError(channel_id, f"no stream snapshot during {phase.value}")

            if phase is LifecyclePhase.SESSION_STARTING:
                outcome = await self._start_session(channel, snapshot, now)
            else:
                outcome = await self._update_session(channel, snapshot, now)

        self._store.commit(channel)
        return outcome

    # ------------------------------------------------------------
    # Phase actions
    # ------------------------------------------------------------

    async def _start_session(
        self,
        channel: MonitoredChannel,
        snapshot: StreamSnapshot,
        now: datetime,
    ) -> ReconcileOutcome:
        log.info(
            f"[{channel.channel_id}] {channel.display_name} started streaming "
            f"{snapshot.created_at:%Y-%m-%d %H:%M} UTC"
        )
        self._tracker.open_session(channel, snapshot)

        await self._fan_out(
            channel,
            LifecyclePhase.SESSION_STARTING,
            await self._live_content(channel, snapshot, now),
        )
        return ReconcileOutcome.STARTED

    async def _update_session(
        self,
        channel: MonitoredChannel,
        snapshot: StreamSnapshot,
        now: datetime,
    ) -> ReconcileOutcome:
        self._tracker.track_activity(channel, snapshot, now)

        await self._fan_out(
            channel,
            LifecyclePhase.SESSION_ONGOING,
            await self._live_content(channel, snapshot, now),
        )
        return ReconcileOutcome.UPDATED

    async def _end_session(self, channel: MonitoredChannel, now: datetime) -> ReconcileOutcome:
        ended_at = self._tracker.close_session(channel, now, self._debounce_window)
        log.info(
            f"[{channel.channel_id}] {channel.display_name} stopped streaming "
            f"{ended_at:%Y-%m-%d %H:%M} UTC"
        )

        profile_image = await self._probe.fetch_profile_image(channel.channel_id)
        content = summary_announcement(channel, profile_image=profile_image)
        await self._fan_out(channel, LifecyclePhase.SESSION_ENDED, content)

        # the next session starts with fresh announcements
        for subscription in channel.subscriptions:
            subscription.last_message_id = 0

        return ReconcileOutcome.ENDED

    # ------------------------------------------------------------

    async def _live_content(
        self,
        channel: MonitoredChannel,
        snapshot: StreamSnapshot,
        now: datetime,
    ) -> AnnouncementContent:
        profile_image = await self._probe.fetch_profile_image(channel.channel_id)
        return live_announcement(
            channel,
            snapshot,
            now,
            mention_template=self._mention_template,
            profile_image=profile_image,
        )

    async def _fan_out(
        self,
        channel: MonitoredChannel,
        phase: LifecyclePhase,
        content: AnnouncementContent,
    ) -> None:
        unresolved = await self._notifier.reconcile(channel, phase, content)
        if unresolved:
            channel.remove_subscriptions(unresolved)
            log.info(
                f"[{channel.channel_id}] Dropped {len(unresolved)} unresolved "
                f"subscription(s)"
            )
