from __future__ import annotations

from datetime import datetime, timedelta

from core.monitoring.models import ActivitySegment, MonitoredChannel
from services.twitch.models.stream import StreamSnapshot, normalize_activity
from shared.logging.logger import get_logger

log = get_logger("core.monitoring.segments")

# session_end is parked this far before a resumed stream's start
RESUME_GAP = timedelta(seconds=1)


class ActivitySegmentTracker:
    """
    Opens and closes activity segments over a live session.

    Invariants:
    - at most one segment of a channel is open, and while the channel is
      mid-session exactly one is
    - once a session is closed, its segments lie inside
      [session_start, session_end]
    """

    def open_session(self, channel: MonitoredChannel, snapshot: StreamSnapshot) -> ActivitySegment:
        started_at = snapshot.created_at
        activity = normalize_activity(snapshot.activity_name)

        if started_at <= channel.session_end:
            segment = self._resume_session(channel, started_at, activity)
        else:
            self._close_dangling(channel, started_at)
            segment = ActivitySegment(activity_name=activity, start=started_at)
            channel.segments.append(segment)

        channel.session_start = started_at
        return segment

    def _resume_session(
        self,
        channel: MonitoredChannel,
        started_at: datetime,
        activity: str,
    ) -> ActivitySegment:
        """
        The stream began before the recorded end, so that end came from a
        stale offline report (or the channel was registered mid-stream).

        The end marker moves back before the stream start so the channel
        reads as mid-session again.
        """
        log.warning(
            f"[{channel.channel_id}] Stream started {started_at:%Y-%m-%d %H:%M} UTC, "
            f"before the recorded end; resuming session"
        )
        channel.session_end = started_at - RESUME_GAP

        last = channel.last_segment
        if (
            last is not None
            and last.activity_name == activity
            and (last.end is None or last.end >= started_at)
        ):
            last.end = None
            return last

        self._close_dangling(channel, started_at)
        resumed_at = started_at
        if last is not None and last.end is not None:
            resumed_at = max(started_at, last.end)

        segment = ActivitySegment(activity_name=activity, start=resumed_at)
        channel.segments.append(segment)
        return segment

    def _close_dangling(self, channel: MonitoredChannel, at: datetime) -> None:
        dangling = channel.open_segment
        if dangling is None:
            return

        log.warning(
            f"[{channel.channel_id}] Closing dangling segment "
            f"'{dangling.activity_name}' before new session"
        )
        dangling.end = max(dangling.start, at)

    def track_activity(
        self,
        channel: MonitoredChannel,
        snapshot: StreamSnapshot,
        now: datetime,
    ) -> bool:
        """Return True when the reported activity changed."""
        current = normalize_activity(snapshot.activity_name)
        segment = channel.open_segment

        if segment is None:
            log.warning(f"[{channel.channel_id}] No open segment mid-session; opening '{current}'")
            channel.segments.append(ActivitySegment(activity_name=current, start=now))
            return True

        if segment.activity_name == current:
            return False

        log.info(
            f"[{channel.channel_id}] Activity changed: "
            f"'{segment.activity_name}' -> '{current}'"
        )
        segment.end = now
        channel.segments.append(ActivitySegment(activity_name=current, start=now))
        return True

    def close_session(
        self,
        channel: MonitoredChannel,
        now: datetime,
        debounce_window: timedelta,
    ) -> datetime:
        # back-dated to the inferred end instant, never before the session start
        ended_at = max(channel.session_start, now - debounce_window)

        if channel.open_segment is None:
            log.warning(f"[{channel.channel_id}] Session ended without an open segment")

        # segments started or changed inside the window are pulled back to the end
        for segment in channel.segments:
            if segment.start > ended_at:
                segment.start = ended_at
            if segment.end is None or segment.end > ended_at:
                segment.end = ended_at

        channel.session_end = ended_at
        return ended_at
