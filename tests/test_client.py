"""Tests for SakuraClient construction and lifecycle."""

from unittest.mock import patch

import httpx

from sakurafm.client import USER_AGENTS, SakuraClient, default_headers


class TestDefaultHeaders:
    def test_browser_headers(self):
        headers = default_headers("agent/1.0")
        assert headers["Accept"] == "application/json"
        assert headers["RSC"] == "1"
        assert headers["Referer"] == "https://www.sakura.fm"
        assert headers["User-Agent"] == "agent/1.0"

    def test_configured_user_agent(self, monkeypatch):
        monkeypatch.setattr("sakurafm.config.settings.user_agent", "configured/2.0")
        assert default_headers()["User-Agent"] == "configured/2.0"

    def test_random_user_agent(self):
        assert default_headers()["User-Agent"] in USER_AGENTS


class TestLifecycle:
    async def test_headers_applied_to_requests(self, client, sakura):
        sakura.add("GET", "/", text='1:{"characters":[]}\n')

        await client.search("x")

        request = sakura.calls("GET", "/")[0]
        assert request.headers["user-agent"] == "pytest-agent"
        assert request.headers["rsc"] == "1"

    async def test_injected_http_client_headers_untouched(self, client, http, sakura):
        await client.session.ensure_fresh()

        assert "rsc" not in http.headers
        assert http.headers["user-agent"] != "pytest-agent"
        assert sakura.calls("GET", "/v1/client")[0].headers["user-agent"] == "pytest-agent"

    async def test_owned_http_client_closed(self):
        async with SakuraClient() as client:
            http = client._http
        assert http.is_closed

    async def test_owned_http_client_uses_configured_timeout(self, monkeypatch):
        monkeypatch.setattr("sakurafm.config.settings.request_timeout", 7.5)
        client = SakuraClient()
        try:
            assert client._http.timeout.read == 7.5
        finally:
            await client.aclose()

    async def test_zero_timeout_is_kept(self):
        client = SakuraClient(timeout=0)
        try:
            assert client._http.timeout.read == 0
        finally:
            await client.aclose()

    async def test_injected_http_client_left_open(self, http):
        async with SakuraClient(http=http):
            pass
        assert not http.is_closed

    async def test_aclose_closes_owned_client(self):
        client = SakuraClient(timeout=3)
        with patch.object(client._http, "aclose") as mock_close:
            await client.aclose()
        mock_close.assert_awaited_once()
        await client._http.aclose()

    async def test_cookie_session_shares_http_client(self, client):
        assert client.session._http is client._http
        assert isinstance(client._http, httpx.AsyncClient)
