from typing import Optional

from services.twitch.api.streams import TwitchStreamsAPI
from services.twitch.models.stream import StreamSnapshot
from shared.logging.logger import get_logger

log = get_logger("twitch.stream_probe", runtime="livewatch")


class TwitchStreamProbe:
    """
    Liveness probe for a Twitch broadcaster.

    Responsibilities:
    - Report whether a channel is live (None when unknown)
    - Produce a normalized StreamSnapshot for live channels
    - Never raise for "not live" or transport failures
    """

    def __init__(self, api: TwitchStreamsAPI):
        self._api = api

    # ------------------------------------------------------------------ #

    async def is_live(self, channel_id: str) -> Optional[bool]:
        streams = await self._api.get_streams(channel_id)
        if streams is None:
            log.warning(f"[{channel_id}] Liveness unknown (probe failed)")
            return None
        return any(item.get("type", "live") == "live" for item in streams)

    async def fetch_snapshot(self, channel_id: str) -> Optional[StreamSnapshot]:
        streams = await self._api.get_streams(channel_id)
        if not streams:
            log.info(f"[{channel_id}] No live stream payload available")
            return None

        try:
            return StreamSnapshot.from_helix(streams[0])
        except ValueError as e:
            log.warning(f"[{channel_id}] Malformed stream payload: {e}")
            return None

    async def fetch_profile_image(self, channel_id: str) -> Optional[str]:
        user = await self._api.get_user(channel_id)
        if not user:
            return None
        return user.get("profile_image_url") or None
