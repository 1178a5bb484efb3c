"""Shared fixtures for monitoring tests."""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from core.monitoring.models import MonitoredChannel, Subscription
from services.discord.embeds import AnnouncementContent
from services.twitch.models.stream import StreamSnapshot
from shared.storage.channel_store import MonitoredChannelStore

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


class FakePlatform:
    """In-memory stand-in for DiscordNotificationPlatform."""

    def __init__(self, destination_ids=()):
        self.destinations = {
            int(dest_id): SimpleNamespace(id=int(dest_id)) for dest_id in destination_ids
        }
        # (destination_id, message_id) -> AnnouncementContent
        self.messages = {}
        self.created = []
        self.edited = []
        self.failing = set()
        self._next_id = 1000

    def resolve_destination(self, destination_id):
        return self.destinations.get(int(destination_id))

    async def create_message(self, destination, content: AnnouncementContent) -> int:
        if destination.id in self.failing:
            raise RuntimeError(f"send to {destination.id} failed")
        self._next_id += 1
        self.messages[(destination.id, self._next_id)] = content
        self.created.append((destination.id, self._next_id))
        return self._next_id

    async def fetch_message(self, destination, message_id):
        key = (destination.id, int(message_id))
        if key not in self.messages:
            return None
        return SimpleNamespace(id=int(message_id))

    async def edit_message(self, destination, message_id, content) -> bool:
        if destination.id in self.failing:
            raise RuntimeError(f"edit in {destination.id} failed")
        key = (destination.id, int(message_id))
        if key not in self.messages:
            return False
        self.messages[key] = content
        self.edited.append(key)
        return True

    def delete(self, destination_id, message_id):
        self.messages.pop((destination_id, message_id), None)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def make_channel():
    def _make(
        *,
        live: bool = False,
        started_ago: timedelta = timedelta(hours=1),
        ended_ago: timedelta = timedelta(hours=2),
        destinations=(),
        channel_id: str = "11249217",
        display_name: str = "JakenbakeLIVE",
        timezone_override=None,
    ) -> MonitoredChannel:
        """Live channels have start after end; settled ones the reverse."""
        if live:
            session_start = NOW - started_ago
            session_end = session_start - timedelta(days=1)
        else:
            session_end = NOW - ended_ago
            session_start = session_end - timedelta(hours=3)

        return MonitoredChannel(
            channel_id=channel_id,
            display_name=display_name,
            session_start=session_start,
            session_end=session_end,
            timezone_override=timezone_override,
            subscriptions=[Subscription(destination_id=d) for d in destinations],
        )

    return _make


@pytest.fixture
def make_snapshot():
    def _make(
        *,
        activity: str = "Just Chatting",
        created_at: datetime = NOW - timedelta(minutes=1),
        title: str = "IRL in Tokyo",
        viewers: int = 1234,
    ) -> StreamSnapshot:
        return StreamSnapshot(
            created_at=created_at,
            title=title,
            activity_name=activity,
            viewer_count=viewers,
            thumbnail_template="https://static-cdn.jtvnw.net/live_user_jakenbakelive-{width}x{height}.jpg",
            user_login="jakenbakelive",
        )

    return _make


@pytest.fixture
def probe():
    mock_probe = MagicMock()
    mock_probe.is_live = AsyncMock(return_value=False)
    mock_probe.fetch_snapshot = AsyncMock(return_value=None)
    mock_probe.fetch_profile_image = AsyncMock(return_value="https://cdn.example/avatar.png")
    return mock_probe


@pytest.fixture
def platform():
    return FakePlatform(destination_ids=(111, 222))


@pytest.fixture
def store(tmp_path):
    return MonitoredChannelStore(tmp_path / "livewatch.db")
