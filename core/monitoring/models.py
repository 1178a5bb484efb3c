"""
Monitored channel aggregate.

A MonitoredChannel owns its activity segments and notification
subscriptions. Instances are loaded and committed as a whole by
MonitoredChannelStore; nothing else holds references to the children.
Subscription rows are the exception: admin commands add and remove them
directly, and a commit only touches the rows its aggregate knows about.

Lifecycle markers:
- session_start : start of the last known live session
- session_end   : end of the last known live session

The sign of (session_end - session_start) is the phase marker:
negative means the last observation was mid-session.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import List, Optional, Set

NO_ACTIVITY = "No Activity"


class LifecyclePhase(Enum):
    SETTLED = "settled"
    SESSION_STARTING = "session_starting"
    SESSION_ONGOING = "session_ongoing"
    SESSION_ENDED = "session_ended"


@dataclass
class ActivitySegment:
    activity_name: str
    start: datetime
    end: Optional[datetime] = None
    segment_id: Optional[int] = None

    @property
    def is_open(self) -> bool:
        return self.end is None

    def elapsed(self, now: datetime) -> timedelta:
        return (self.end or now) - self.start


@dataclass
class Subscription:
    destination_id: int
    last_message_id: int = 0

    # True once the row exists in the store; commit then only updates it
    stored: bool = field(default=False, compare=False, repr=False)

    @property
    def has_message(self) -> bool:
        return bool(self.last_message_id)


@dataclass
class MonitoredChannel:
    channel_id: str
    display_name: str
    session_start: datetime
    session_end: datetime
    timezone_override: Optional[str] = None
    segments: List[ActivitySegment] = field(default_factory=list)
    subscriptions: List[Subscription] = field(default_factory=list)

    # destinations dropped this invocation, deleted on the next commit
    removed_destination_ids: Set[int] = field(default_factory=set, compare=False, repr=False)

    # -------------------------------------------------

    @property
    def session_length(self) -> timedelta:
        return self.session_end - self.session_start

    @property
    def open_segment(self) -> Optional[ActivitySegment]:
        for segment in reversed(self.segments):
            if segment.is_open:
                return segment
        return None

    @property
    def last_segment(self) -> Optional[ActivitySegment]:
        return self.segments[-1] if self.segments else None

    def remove_subscriptions(self, stale: List[Subscription]) -> None:
        stale_ids = {sub.destination_id for sub in stale}
        self.removed_destination_ids.update(stale_ids)
        self.subscriptions = [
            sub for sub in self.subscriptions
            if sub.destination_id not in stale_ids
        ]
