"""Async SakuraFM client: email-link login, tokens, character lookup and chat."""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from sakurafm.config import settings
from sakurafm.errors import SakuraError, raise_for_status
from sakurafm.models import (
    AuthorizedUser,
    Category,
    CategoryMatchType,
    ChatMessage,
    ChatResponse,
    SakuraCharacter,
    SignInAttempt,
)
from sakurafm.payload import (
    PayloadError,
    extract_chat_response,
    locate_fragment,
    resolve_references,
)
from sakurafm.session import CookieSession, parse_set_cookie

if TYPE_CHECKING:
    from types import TracebackType

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

# Clerk marks a client without a signed-in session with this cookie value
PENDING_CLIENT_COOKIE = "0"

USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/125.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/125.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/125.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:126.0) Gecko/20100101 Firefox/126.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 14.5; rv:126.0) Gecko/20100101 Firefox/126.0",
    "Mozilla/5.0 (X11; Linux x86_64; rv:126.0) Gecko/20100101 Firefox/126.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_5) AppleWebKit/605.1.15 (KHTML, like Gecko) "
    "Version/17.4.1 Safari/605.1.15",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/125.0.0.0 Safari/537.36 Edg/125.0.2535.67",
]


def default_headers(user_agent: str | None = None) -> dict[str, str]:
    """Browser-like headers sent with every request."""
    return {
        "Accept": "application/json",
        "Accept-Language": "en-US,en;q=0.5",
        "Referer": settings.frontend_url,
        "RSC": "1",
        "User-Agent": user_agent or settings.user_agent or random.choice(USER_AGENTS),
    }


class SakuraClient:
    """Client for the SakuraFM web service.

    Owns one ``httpx.AsyncClient`` (unless one is passed in) and one
    :class:`CookieSession`. Use as an async context manager, or call
    :meth:`aclose` when done.

    A caller-supplied ``http`` client keeps its own default headers; the
    browser headers are sent on each request instead. Its cookie jar is
    cleared whenever the cookie session is bootstrapped, so do not share
    one client between services that rely on its jar.

    Usage::

        async with SakuraClient() as client:
            attempt = await client.send_login_email("me@example.com")
            user = await client.wait_for_login(attempt)
            chat = await client.create_new_chat(
                user.session_id, user.refresh_token, character, "Hi!"
            )
    """

    def __init__(
        self,
        *,
        http: httpx.AsyncClient | None = None,
        timeout: float | None = None,
        user_agent: str | None = None,
    ) -> None:
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(
            timeout=settings.request_timeout if timeout is None else timeout,
            follow_redirects=True,
        )
        self._headers = default_headers(user_agent)
        self.session = CookieSession(self._http, headers=self._headers)

    async def aclose(self) -> None:
        """Release the connection pool if this client created it."""
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> SakuraClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send a request with the browser headers under any call-specific ones."""
        kwargs["headers"] = {**self._headers, **(kwargs.get("headers") or {})}
        return await self._http.request(method, url, **kwargs)

    # -- Login -----------------------------------------------------------------

    async def send_login_email(self, email: str) -> SignInAttempt:
        """Start an email-link sign-in and have Clerk mail the link.

        Returns the attempt to poll with :meth:`ensure_login_by_email`.
        """
        cookie = await self.session.ensure_fresh(force=True)
        headers = {"Cookie": cookie}

        resp = await self._request(
            "POST",
            f"{settings.clerk_url}/v1/client/sign_ins",
            params=settings.clerk_params(),
            data={"identifier": email},
            headers=headers,
        )
        failure = f"Failed to send login link to email {email}"
        raise_for_status(resp, failure)

        body = _json(resp, failure)
        sign_in = body.get("response") or {}
        attempt_id = sign_in.get("id")
        email_id = next(
            (
                factor["email_address_id"]
                for factor in sign_in.get("supported_first_factors") or []
                if factor.get("email_address_id")
            ),
            None,
        )
        if not attempt_id or not email_id:
            raise SakuraError.from_response(
                f"{failure}: signInAttemptId or emailId is missing", resp
            )

        resp = await self._request(
            "POST",
            f"{settings.clerk_url}/v1/client/sign_ins/{attempt_id}/prepare_first_factor",
            params=settings.clerk_params(),
            data={
                "email_address_id": email_id,
                "redirect_url": f"{settings.frontend_url}/sign-in#/verify",
                "strategy": "email_link",
            },
            headers=headers,
        )
        raise_for_status(resp, f"Failed to prepare first factor {email}")

        logger.info("Login link sent (attempt %s)", attempt_id)
        return SignInAttempt(id=attempt_id, cookie=cookie, email=email)

    async def ensure_login_by_email(self, attempt: SignInAttempt) -> AuthorizedUser | None:
        """Check once whether the emailed link has been followed.

        Returns None while the sign-in is still pending.
        """
        resp = await self._request(
            "GET",
            f"{settings.clerk_url}/v1/client/sign_ins/{attempt.id}",
            params=settings.clerk_params(),
            headers={"Cookie": attempt.cookie},
        )
        raise_for_status(resp, "Failed to authorize user", allowed=(httpx.codes.UNAUTHORIZED,))

        token = parse_set_cookie(resp).get("__client")
        if not token or token == PENDING_CLIENT_COOKIE:
            logger.debug("Sign-in %s still pending", attempt.id)
            return None

        body = _json(resp, "Failed to authorize user")
        client = body.get("client") or {}
        sessions = client.get("sessions") or []
        if not sessions:
            logger.debug("Sign-in %s has a client cookie but no session yet", attempt.id)
            return None

        session = sessions[0]
        user = session.get("user") or {}
        try:
            return AuthorizedUser(
                user_id=user.get("id") or "",
                username=user.get("username") or "",
                user_email=(body.get("response") or {}).get("identifier") or attempt.email,
                user_image_url=user.get("image_url") or "",
                refresh_token=token,
                client_id=client.get("id") or "",
                session_id=session["id"],
            )
        except (KeyError, ValidationError) as exc:
            raise SakuraError.from_response(f"Failed to authorize user: {exc}", resp) from exc

    async def wait_for_login(
        self,
        attempt: SignInAttempt,
        *,
        max_attempts: int | None = None,
        interval: float | None = None,
    ) -> AuthorizedUser | None:
        """Poll :meth:`ensure_login_by_email` until authorized or out of attempts.

        Returns None if the link was not followed in time. Cancel the awaiting
        task to stop early.
        """
        max_attempts = settings.login_poll_attempts if max_attempts is None else max_attempts
        interval = settings.login_poll_interval if interval is None else interval

        for number in range(1, max_attempts + 1):
            user = await self.ensure_login_by_email(attempt)
            if user is not None:
                logger.info("Signed in as %s after %d poll(s)", user.username or user.user_id, number)
                return user
            if number < max_attempts:
                await asyncio.sleep(interval)

        logger.warning("Sign-in %s not confirmed after %d attempts", attempt.id, max_attempts)
        return None

    # -- Tokens ----------------------------------------------------------------

    async def get_access_token(self, session_id: str, refresh_token: str) -> str:
        """Exchange a refresh token for a short-lived access token (JWT)."""
        cookie = await self.session.ensure_fresh()

        resp = await self._request(
            "POST",
            f"{settings.clerk_url}/v1/client/sessions/{session_id}/tokens",
            params=settings.clerk_params(),
            headers={"Cookie": f"__client={refresh_token}; {cookie}"},
        )
        failure = "Failed to get access token"
        raise_for_status(resp, failure)

        jwt = _json(resp, failure).get("jwt")
        if not jwt:
            raise SakuraError.from_response(f"{failure}: jwt is missing", resp)
        return jwt

    # -- Characters ------------------------------------------------------------

    async def search(
        self,
        query: str,
        *,
        allow_nsfw: bool = True,
        categories: Iterable[Category | str] | None = None,
        match_type: CategoryMatchType | str = CategoryMatchType.ANY,
    ) -> list[SakuraCharacter]:
        """Search public characters by name, optionally filtered by category."""
        params = {"search": query, "allowNsfw": str(allow_nsfw).lower()}
        if categories:
            labels = [Category(c).value for c in categories]
            params["categories"] = ",".join(labels)
            if len(labels) > 1:
                params["matchType"] = CategoryMatchType(match_type).value

        resp = await self._request("GET", f"{settings.frontend_url}/", params=params)
        failure = "Failed to perform search"
        raise_for_status(resp, failure)

        body = resp.text
        try:
            fragment = locate_fragment(body, '{"characters"', start='{"characters"', last=True)
        except PayloadError as exc:
            raise SakuraError.from_response(f"{failure}: {exc}", resp) from exc

        characters = [
            _validate(SakuraCharacter, resolve_references(entry, body), resp, failure)
            for entry in fragment.get("characters") or []
            if isinstance(entry, dict)
        ]
        logger.debug("Search %r returned %d characters", query, len(characters))
        return characters

    async def get_character_info(self, character_id: str) -> SakuraCharacter:
        """Fetch one character's full metadata from its chat page."""
        resp = await self._request("GET", f"{settings.frontend_url}/chat/{character_id}")
        failure = "Failed to get character info"
        raise_for_status(resp, failure)

        body = resp.text
        try:
            fragment = locate_fragment(body, '"success"')
        except PayloadError as exc:
            raise SakuraError.from_response(f"{failure}: {exc}", resp) from exc

        if not fragment.get("success"):
            raise SakuraError.from_response("Character not found", resp)

        character = (fragment.get("data") or {}).get("character")
        if not isinstance(character, dict):
            raise SakuraError.from_response(f"{failure}: character is missing", resp)
        return _validate(SakuraCharacter, resolve_references(character, body), resp, failure)

    # -- Chat ------------------------------------------------------------------

    async def create_new_chat(
        self,
        session_id: str,
        refresh_token: str,
        character: SakuraCharacter,
        first_message: str,
        locale: str | None = None,
    ) -> ChatResponse:
        """Open a chat with *character* and send the first user message."""
        payload = {
            "context": {
                "characterId": character.id,
                "locale": locale or settings.default_locale,
                "messages": [
                    ChatMessage(
                        role="assistant", content=character.first_message or ""
                    ).model_dump(by_alias=True, exclude_none=True)
                ],
            },
            "action": {"content": first_message, "type": "append"},
        }
        result = await self._post_chat(
            session_id, refresh_token, payload, "Failed to create new chat"
        )
        logger.info("Created chat %s with character %s", result.chat_id, character.id)
        return result

    async def send_message_to_chat(
        self,
        session_id: str,
        refresh_token: str,
        chat_id: str,
        message: str,
        locale: str | None = None,
    ) -> ChatMessage:
        """Send *message* to an existing chat and return the character's reply."""
        payload = {
            "context": {"chatId": chat_id, "locale": locale or settings.default_locale},
            "action": {"content": message, "type": "append"},
        }
        result = await self._post_chat(session_id, refresh_token, payload, "Failed to send message")
        return result.messages[-1]

    async def _post_chat(
        self,
        session_id: str,
        refresh_token: str,
        payload: dict[str, Any],
        failure: str,
    ) -> ChatResponse:
        access_token = await self.get_access_token(session_id, refresh_token)
        cookie = await self.session.ensure_fresh()

        resp = await self._request(
            "POST",
            f"{settings.api_url}/api/chat",
            json=payload,
            headers={"Cookie": cookie, "Authorization": f"Bearer {access_token}"},
        )
        raise_for_status(resp, failure)

        try:
            data = extract_chat_response(resp.text)
        except PayloadError as exc:
            raise SakuraError.from_response(f"{failure}: {exc}", resp) from exc

        result = _validate(ChatResponse, data, resp, failure)
        if not result.success:
            raise SakuraError.from_response(f"{failure}: service reported failure", resp)
        if not result.messages:
            raise SakuraError.from_response(f"{failure}: response has no messages", resp)
        return result


def _json(resp: httpx.Response, failure: str) -> dict[str, Any]:
    """Decode a JSON object body or raise SakuraError."""
    try:
        body = resp.json()
    except ValueError as exc:
        raise SakuraError.from_response(f"{failure}: response is not JSON", resp) from exc
    if not isinstance(body, dict):
        raise SakuraError.from_response(f"{failure}: unexpected response shape", resp)
    return body


def _validate(
    model: type[ModelT], data: dict[str, Any], resp: httpx.Response, failure: str
) -> ModelT:
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise SakuraError.from_response(f"{failure}: {exc}", resp) from exc
