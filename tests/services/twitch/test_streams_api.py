"""Tests for the Helix client using httpx.MockTransport."""

import httpx
import pytest

from services.twitch.api.streams import TwitchStreamsAPI


def _api(handler) -> TwitchStreamsAPI:
    return TwitchStreamsAPI(
        client_id="cid",
        client_secret="secret",
        transport=httpx.MockTransport(handler),
    )


class TestTwitchStreamsAPI:
    def test_credentials_required(self):
        with pytest.raises(RuntimeError):
            TwitchStreamsAPI(client_id="", client_secret="secret")

    async def test_get_streams_authenticates(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            if request.url.host == "id.twitch.tv":
                return httpx.Response(200, json={"access_token": "tok", "expires_in": 3600})
            return httpx.Response(200, json={"data": [{"type": "live", "user_id": "11249217"}]})

        streams = await _api(handler).get_streams("11249217")

        assert streams == [{"type": "live", "user_id": "11249217"}]
        helix = seen[-1]
        assert helix.url.params["user_id"] == "11249217"
        assert helix.headers["Client-ID"] == "cid"
        assert helix.headers["Authorization"] == "Bearer tok"

    async def test_offline_is_empty_list(self):
        def handler(request):
            if request.url.host == "id.twitch.tv":
                return httpx.Response(200, json={"access_token": "tok"})
            return httpx.Response(200, json={"data": []})

        assert await _api(handler).get_streams("11249217") == []

    async def test_rejected_token_is_refreshed_once(self):
        tokens = iter(["stale", "fresh"])

        def handler(request):
            if request.url.host == "id.twitch.tv":
                return httpx.Response(200, json={"access_token": next(tokens)})
            if request.headers["Authorization"] == "Bearer stale":
                return httpx.Response(401, json={"message": "Invalid OAuth token"})
            return httpx.Response(200, json={"data": []})

        assert await _api(handler).get_streams("11249217") == []

    async def test_server_error_is_none(self):
        def handler(request):
            if request.url.host == "id.twitch.tv":
                return httpx.Response(200, json={"access_token": "tok"})
            return httpx.Response(503)

        assert await _api(handler).get_streams("11249217") is None

    async def test_token_failure_is_none(self):
        def handler(request):
            return httpx.Response(400, json={"message": "invalid client"})

        assert await _api(handler).get_streams("11249217") is None

    async def test_get_user(self):
        def handler(request):
            if request.url.host == "id.twitch.tv":
                return httpx.Response(200, json={"access_token": "tok"})
            assert request.url.params["id"] == "11249217"
            return httpx.Response(200, json={"data": [{"profile_image_url": "https://cdn.example/a.png"}]})

        user = await _api(handler).get_user("11249217")

        assert user == {"profile_image_url": "https://cdn.example/a.png"}
