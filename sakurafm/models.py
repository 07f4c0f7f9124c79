"""Data models for SakuraFM auth state, characters and chats."""

from __future__ import annotations

import json
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class SakuraModel(BaseModel):
    """Base model: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# -- Auth ---------------------------------------------------------------------


class SignInAttempt(BaseModel):
    """An in-progress email-link sign-in.

    ``cookie`` is the cookie header captured when the attempt started; the
    poll must present the same Clerk client cookie to see the attempt.
    """

    id: str
    cookie: str
    email: str


class AuthorizedUser(BaseModel):
    """A signed-in user.

    Only ``refresh_token`` and ``session_id`` are needed for chat calls, so
    callers that stored those two values can rebuild a usable user from them.
    """

    user_id: str = ""
    username: str = ""
    user_email: str = ""
    user_image_url: str = ""
    refresh_token: str
    client_id: str = ""
    session_id: str


class ClerkError(BaseModel):
    message: str | None = None
    long_message: str | None = None
    code: str | None = None


class ClerkErrorResponse(BaseModel):
    """Error document returned by the Clerk frontend API."""

    errors: list[ClerkError] | None = None
    clerk_trace_id: str | None = None

    def humanize(self) -> str:
        if not self.errors:
            return self.clerk_trace_id or "Something went wrong"
        parts = [json.dumps(e.model_dump()) for e in self.errors]
        return f"Error: {', '.join(parts)}"


# -- Characters ---------------------------------------------------------------


class Category(str, Enum):
    """Search categories, valued by the label the site uses in query strings."""

    MALE = "Male"
    FEMALE = "Female"
    ANIME = "Anime"
    MOVIES_AND_TV = "Movies & TV"
    YANDERE = "Yandere"
    TSUNDERE = "Tsundere"
    GAY = "Gay"
    LESBIAN = "Lesbian"
    FEMBOY = "Femboy"
    FUTANARI = "Futanari"
    VIDEO_GAMES = "Video Games"
    FURRY = "Furry"
    HORROR = "Horror"
    OC = "OC"
    VAMPIRE = "Vampire"
    NON_BINARY = "Non-binary"
    DOMINANT = "Dominant"
    SUBMISSIVE = "Submissive"
    MILF = "MILF"
    DILF = "DILF"


class CategoryMatchType(str, Enum):
    ANY = "any"
    ALL = "all"


class ExampleConversation(SakuraModel):
    role: str = ""
    content: str = ""


# RSC marker for a value the server left unset
UNDEFINED = "$undefined"


class SakuraCharacter(SakuraModel):
    """Character metadata as served by the search and chat pages."""

    id: str = ""
    name: str = ""
    description: str | None = None
    nsfw: bool = False
    persona: str | None = None
    image_uri: str | None = None
    scenario: str | None = None
    first_message: str | None = None
    instructions: str | None = None
    gender_identity: str | None = None
    example_conversation: list[ExampleConversation] = Field(default_factory=list)
    truncated: bool = False
    message_count: int = 0
    created_at: datetime | None = None
    creator_id: str | None = None
    creator_username: str | None = None
    visibility: str | None = None
    tags: Any = None
    categories: list[str] | None = None
    favorited: bool = False
    creator_tier: Any = None
    moderation_labels: Any = None
    creator_image_url: str | None = None
    explicit_image: bool = False

    @model_validator(mode="before")
    @classmethod
    def _drop_undefined(cls, data: Any) -> Any:
        # Unset values fall back to the field defaults
        if isinstance(data, dict):
            return {key: value for key, value in data.items() if value != UNDEFINED}
        return data

    @field_validator("created_at", mode="before")
    @classmethod
    def _parse_rsc_date(cls, value: Any) -> Any:
        # RSC serializes dates as "$D<iso>"
        if isinstance(value, str) and value.startswith("$D"):
            return value[2:]
        return value

    @field_validator("example_conversation", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return value or []


# -- Chat ---------------------------------------------------------------------


class ChatMessage(SakuraModel):
    """A single chat message. ``id`` is only present in responses."""

    role: str
    content: str
    type: str = "text"
    id: str | None = None


class ChatResponse(SakuraModel):
    chat_id: str = ""
    messages: list[ChatMessage] = Field(default_factory=list)
    success: bool = False
