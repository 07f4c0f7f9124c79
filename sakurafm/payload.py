"""Extraction of JSON fragments from server-rendered SakuraFM pages.

The search and character pages are React Server Component payloads: one row
per line, each row a key followed by serialized data. Long strings are moved
out of the JSON into text rows (``<key>:T<hex byte length>,<text>``) and the
JSON keeps a ``$<key>`` back-reference in their place.

Everything here depends on the upstream rendering format and is kept
independent of the network code so it can be tested against captured pages.
"""

import json
import logging
import re
from typing import Any

logger = logging.getLogger(__name__)

REFERENCE_PREFIX = "$"

_decoder = json.JSONDecoder()
_REFERENCE_RE = re.compile(r"^\$([0-9a-f]+)$")
_TEXT_ROW_RE = re.compile(r"([0-9a-f]+):T([0-9a-f]+),")
# A header not directly after a text row must start its own token
_TEXT_ROW_START_RE = re.compile(r"(?<![0-9A-Za-z])([0-9a-f]+):T([0-9a-f]+),")


class PayloadError(ValueError):
    """Raised when an expected fragment is missing from a payload."""


def locate_fragment(
    body: str,
    marker: str,
    *,
    start: str | None = None,
    last: bool = False,
) -> dict[str, Any]:
    """Decode the JSON object embedded in the line of *body* containing *marker*.

    Args:
        body: Full response text.
        marker: Substring identifying the row of interest.
        start: Token where the object begins within that row. Defaults to the
            first ``{`` on the line.
        last: Use the last matching line instead of the first.

    Anything after the decoded object on the same line is ignored.
    """
    lines = [line for line in body.splitlines() if marker in line]
    if not lines:
        msg = f"No payload row contains {marker!r}"
        raise PayloadError(msg)

    line = lines[-1] if last else lines[0]
    token = start or "{"
    index = line.find(token)
    if index < 0:
        msg = f"Payload row containing {marker!r} has no {token!r}"
        raise PayloadError(msg)

    try:
        fragment, _ = _decoder.raw_decode(line, index)
    except json.JSONDecodeError as exc:
        msg = f"Payload row containing {marker!r} is not valid JSON: {exc}"
        raise PayloadError(msg) from exc

    if not isinstance(fragment, dict):
        msg = f"Payload row containing {marker!r} does not hold a JSON object"
        raise PayloadError(msg)
    return fragment


def text_rows(body: str) -> dict[str, str]:
    """Map every text row key in *body* to its text.

    Rows are read in order. Each row's byte length is skipped before looking
    for the next header, so a row that directly follows the previous text
    (text rows carry no trailing newline) is still found, and header-like
    sequences inside a row's text are never mistaken for rows.
    """
    rows: dict[str, str] = {}
    pos = 0
    while True:
        header = _TEXT_ROW_RE.match(body, pos) or _TEXT_ROW_START_RE.search(body, pos)
        if header is None:
            return rows
        key, length = header.group(1), int(header.group(2), 16)
        # The row length counts UTF-8 bytes; a slice of `length` characters always covers it
        raw = body[header.end() : header.end() + length]
        text = raw.encode("utf-8")[:length].decode("utf-8", errors="ignore")
        rows.setdefault(key, text)
        pos = header.end() + len(text)


def resolve_reference(value: str, body: str, rows: dict[str, str] | None = None) -> str:
    """Replace a ``$<key>`` back-reference with the text row it points at.

    Values that are not references, or whose key has no text row in *body*,
    are returned unchanged. Pass *rows* from :func:`text_rows` to avoid
    rescanning *body* for every value.
    """
    match = _REFERENCE_RE.match(value)
    if match is None:
        return value

    if rows is None:
        rows = text_rows(body)
    text = rows.get(match.group(1))
    if text is None:
        logger.debug("No text row for reference %s", value)
        return value
    return text


def resolve_references(data: dict[str, Any], body: str) -> dict[str, Any]:
    """Return a copy of *data* with top-level string references resolved."""
    rows = text_rows(body)
    resolved = dict(data)
    for field, value in data.items():
        if isinstance(value, str) and value.startswith(REFERENCE_PREFIX):
            resolved[field] = resolve_reference(value, body, rows)
    return resolved


def _loads_object(fragment: str) -> dict[str, Any] | None:
    """Decode *fragment* as a JSON object, allowing one level of string escaping."""
    try:
        parsed = json.loads(fragment)
    except json.JSONDecodeError:
        try:
            parsed = json.loads(json.loads(f'"{fragment}"'))
        except json.JSONDecodeError:
            return None
    return parsed if isinstance(parsed, dict) else None


def extract_chat_response(body: str) -> dict[str, Any]:
    """Return the last JSON object carrying ``success`` in a chat response.

    The chat endpoint answers with streamed text rows mixed with the final
    result object, which may arrive escaped.
    """
    for line in reversed(body.splitlines()):
        if "success" not in line:
            continue
        start = line.find("{")
        end = line.rfind("}")
        if start < 0 or end < start:
            continue
        parsed = _loads_object(line[start : end + 1])
        if parsed is not None and "success" in parsed:
            return parsed

    msg = "No chat result object in response"
    raise PayloadError(msg)
