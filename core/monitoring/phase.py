from __future__ import annotations

from datetime import datetime, timedelta

from core.monitoring.models import LifecyclePhase, MonitoredChannel

DEFAULT_DEBOUNCE_WINDOW = timedelta(minutes=3)

_PHASES = {
    (False, False): LifecyclePhase.SETTLED,
    (False, True): LifecyclePhase.SESSION_STARTING,
    (True, True): LifecyclePhase.SESSION_ONGOING,
    (True, False): LifecyclePhase.SESSION_ENDED,
}


def was_live(channel: MonitoredChannel) -> bool:
    """A zero-length session counts as ended."""
    return channel.session_length < timedelta(0)


def classify_phase(previously_live: bool, is_live_now: bool) -> LifecyclePhase:
    return _PHASES[(bool(previously_live), bool(is_live_now))]


def is_debounced(
    channel: MonitoredChannel,
    now: datetime,
    window: timedelta = DEFAULT_DEBOUNCE_WINDOW,
) -> bool:
    """
    True while the last recorded session end is younger than the window.

    The platform keeps reporting stale liveness for a short while after a
    stream goes down or comes back; ticks inside the window are skipped.
    """
    return now - channel.session_end < window
