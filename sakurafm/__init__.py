"""Unofficial async client for the SakuraFM chat-character service."""

from sakurafm.client import SakuraClient
from sakurafm.errors import SakuraError
from sakurafm.models import (
    AuthorizedUser,
    Category,
    CategoryMatchType,
    ChatMessage,
    ChatResponse,
    ExampleConversation,
    SakuraCharacter,
    SignInAttempt,
)
from sakurafm.session import CookieSession

__all__ = [
    "SakuraClient",
    "CookieSession",
    "SakuraError",
    "AuthorizedUser",
    "SignInAttempt",
    "SakuraCharacter",
    "ExampleConversation",
    "ChatMessage",
    "ChatResponse",
    "Category",
    "CategoryMatchType",
]
