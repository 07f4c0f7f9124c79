"""Clerk cookie session shared by every request a client makes."""

from __future__ import annotations

import asyncio
import logging
import math
import time

import httpx

from sakurafm.config import settings
from sakurafm.errors import SakuraError, raise_for_status

logger = logging.getLogger(__name__)


def parse_set_cookie(resp: httpx.Response) -> dict[str, str]:
    """Return ``name -> value`` for every Set-Cookie header on *resp*."""
    cookies: dict[str, str] = {}
    for header in resp.headers.get_list("set-cookie"):
        pair = header.split(";", 1)[0].strip()
        name, sep, value = pair.partition("=")
        if sep and name:
            cookies[name.strip()] = value.strip()
    return cookies


class CookieSession:
    """Holds the Clerk cookie set and refreshes it on a fixed interval.

    The cookie set is sent as ambient credentials with auth and chat calls.
    It is fetched on first use, again once more than ``refresh_interval``
    seconds have passed, or whenever a caller forces it. Refreshes are
    serialized by one lock, so concurrent callers on a stale session cause a
    single fetch. The HTTP client's cookie jar is cleared before each fetch.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        *,
        refresh_interval: float | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        self._http = http
        self._headers = headers or {}
        self._refresh_interval = (
            settings.cookie_refresh_interval if refresh_interval is None else refresh_interval
        )
        self._cookie: str | None = None
        self._refreshed_at = 0.0
        self._lock = asyncio.Lock()

    @property
    def cookie(self) -> str | None:
        """The current joined cookie header value, or None before the first refresh."""
        return self._cookie

    @property
    def age(self) -> float:
        """Seconds since the last refresh (infinite before the first one)."""
        if self._cookie is None:
            return math.inf
        return time.monotonic() - self._refreshed_at

    def is_stale(self) -> bool:
        return self.age > self._refresh_interval

    async def ensure_fresh(self, force: bool = False) -> str:
        """Return a cookie header value no older than the refresh interval."""
        if not force and not self.is_stale():
            return self._cookie

        async with self._lock:
            # Another caller may have refreshed while we waited
            if not force and not self.is_stale():
                return self._cookie
            self._cookie = await self._fetch()
            self._refreshed_at = time.monotonic()

        return self._cookie

    async def _fetch(self) -> str:
        """Bootstrap a new Clerk client and join the cookies it sets."""
        # Start from an empty jar so the provider issues a brand-new client
        self._http.cookies.clear()

        url = f"{settings.clerk_url}/v1/client"
        resp = await self._http.get(url, params=settings.clerk_params(), headers=self._headers)
        raise_for_status(resp, "Failed to initialize cookie session")

        cookies = parse_set_cookie(resp)
        if not cookies:
            raise SakuraError.from_response(
                "Failed to initialize cookie session: no cookies were set", resp
            )

        logger.info("Cookie session refreshed (%d cookies)", len(cookies))
        return "; ".join(f"{name}={value}" for name, value in cookies.items())
