from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from core.monitoring.models import NO_ACTIVITY


def normalize_activity(name: Optional[str]) -> str:
    """Blank or missing categories collapse to the NO_ACTIVITY sentinel."""
    cleaned = (name or "").strip()
    return cleaned or NO_ACTIVITY


def _parse_timestamp(value: str) -> datetime:
    # Helix emits RFC3339 with a trailing Z
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


@dataclass
class StreamSnapshot:
    """
    Normalized view of a live Twitch stream (Helix `streams` item).

    Ephemeral: produced by the probe on every tick and never persisted.
    """

    created_at: datetime
    title: str
    activity_name: str
    viewer_count: int
    thumbnail_template: str

    user_login: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.activity_name = normalize_activity(self.activity_name)

    def thumbnail_url(self, width: int = 1920, height: int = 1080) -> str:
        return (
            self.thumbnail_template
            .replace("{width}", str(width))
            .replace("{height}", str(height))
        )

    @classmethod
    def from_helix(cls, item: Dict[str, Any]) -> "StreamSnapshot":
        """
        Build a snapshot from a Helix stream payload.

        Raises ValueError when required fields are missing or malformed.
        """
        started_at = item.get("started_at")
        if not started_at:
            raise ValueError("stream payload is missing started_at")

        try:
            viewer_count = int(item.get("viewer_count") or 0)
        except (TypeError, ValueError) as e:
            raise ValueError(f"invalid viewer_count: {e}") from e

        return cls(
            created_at=_parse_timestamp(started_at),
            title=item.get("title") or "",
            activity_name=item.get("game_name") or "",
            viewer_count=viewer_count,
            thumbnail_template=item.get("thumbnail_url") or "",
            user_login=item.get("user_login"),
            raw=item,
        )
