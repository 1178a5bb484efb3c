import httpx
from typing import Any, Dict, List, Optional

from shared.logging.logger import get_logger

log = get_logger("twitch.streams", runtime="livewatch")


class TwitchStreamsAPI:
    """
    Twitch Helix read-only client for stream status.

    Responsibilities:
    - Obtain an app access token (client-credentials grant)
    - Look up the live stream of a broadcaster
    - Look up broadcaster profile data

    Transport and HTTP failures are logged and surface as None so callers
    can tell "not live" (empty list) apart from "unknown" (None).
    """

    TOKEN_URL = "https://id.twitch.tv/oauth2/token"
    STREAMS_URL = "https://api.twitch.tv/helix/streams"
    USERS_URL = "https://api.twitch.tv/helix/users"

    def __init__(
        self,
        *,
        client_id: str,
        client_secret: str,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not client_id:
            raise RuntimeError("Twitch client_id is required")
        if not client_secret:
            raise RuntimeError("Twitch client_secret is required")

        self.client_id = client_id
        self.client_secret = client_secret
        self.timeout = timeout
        self._transport = transport
        self._access_token: Optional[str] = None

    # ------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------

    async def _fetch_app_token(self) -> Optional[str]:
        params = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "grant_type": "client_credentials",
        }

        async with self._client() as client:
            try:
                r = await client.post(self.TOKEN_URL, params=params)
                r.raise_for_status()
                data = r.json()
            except Exception as e:
                log.warning(f"Twitch app token request failed: {e}")
                return None

        token = data.get("access_token")
        if not token:
            log.warning("Twitch app token response had no access_token")
        return token

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    def _headers(self) -> Dict[str, str]:
        return {
            "Client-ID": self.client_id,
            "Authorization": f"Bearer {self._access_token}",
        }

    # ------------------------------------------------------------

    async def _get_data(self, url: str, params: Dict[str, Any]) -> Optional[List[Dict[str, Any]]]:
        """
        GET a Helix collection endpoint and return its `data` list.

        A 401 invalidates the cached token and retries once.
        """
        for attempt in range(2):
            if not self._access_token:
                self._access_token = await self._fetch_app_token()
                if not self._access_token:
                    return None

            async with self._client() as client:
                try:
                    r = await client.get(url, params=params, headers=self._headers())
                    if r.status_code == 401 and attempt == 0:
                        log.info("Twitch app token rejected; requesting a new one")
                        self._access_token = None
                        continue
                    r.raise_for_status()
                    payload = r.json()
                except Exception as e:
                    log.warning(f"Twitch request to {url} failed: {e}")
                    return None

            data = payload.get("data") if isinstance(payload, dict) else None
            if not isinstance(data, list):
                log.warning(f"Twitch response from {url} had no data list")
                return None
            return data

        return None

    # ------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------

    async def get_streams(self, user_id: str) -> Optional[List[Dict[str, Any]]]:
        """Live streams for a broadcaster; empty when offline."""
        return await self._get_data(self.STREAMS_URL, {"user_id": user_id})

    async def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        users = await self._get_data(self.USERS_URL, {"id": user_id})
        if not users:
            return None
        return users[0]
