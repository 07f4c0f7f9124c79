"""The client's single error type and helpers for describing failed responses."""

from __future__ import annotations

import httpx
from pydantic import ValidationError

from sakurafm.models import ClerkErrorResponse


class SakuraError(Exception):
    """Raised when a SakuraFM or Clerk call fails.

    Covers non-2xx responses, missing fields in a response body, payloads
    that cannot be scraped and ``success: false`` answers.

    Attributes:
        status_code: HTTP status of the response that caused the failure.
        details: Humanized dump of status, headers and body.
    """

    def __init__(self, message: str, status_code: int, details: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.details = details

    def dump(self) -> str:
        """Return the message followed by the full response dump."""
        return f"{self}\n[ Response ]\n{self.details or 'none'}"

    @classmethod
    def from_response(cls, message: str, resp: httpx.Response) -> SakuraError:
        return cls(message, resp.status_code, humanize_response(resp))


def humanize_response(resp: httpx.Response | None) -> str:
    """Render status, headers and body of *resp* for error reports."""
    if resp is None:
        return "Failed to get response from SakuraFM"

    lines = [f"{resp.status_code} ({resp.reason_phrase})"]
    if resp.headers:
        lines.append("Headers:")
        lines.extend(f"[ '{name}'='{value}' ]" for name, value in resp.headers.multi_items())
    else:
        lines.append("Headers: none")
    lines.append(f"Content: {resp.text or 'none'}")
    return "\n".join(lines)


def describe_error(content: str | None) -> str:
    """Summarize a Clerk error body, falling back to a generic message."""
    if not content:
        return "Something went wrong"
    try:
        return ClerkErrorResponse.model_validate_json(content).humanize()
    except ValidationError:
        return "Something went wrong"


def raise_for_status(resp: httpx.Response, message: str, *, allowed: tuple[int, ...] = ()) -> None:
    """Raise SakuraError unless *resp* is 2xx or its status is in *allowed*."""
    if resp.is_success or resp.status_code in allowed:
        return
    raise SakuraError.from_response(f"{message}: {describe_error(resp.text)}", resp)
