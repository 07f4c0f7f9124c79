"""Tests for SakuraFM data models."""

from datetime import datetime

import pytest
from pydantic import ValidationError

from sakurafm.models import (
    AuthorizedUser,
    Category,
    ChatMessage,
    ChatResponse,
    ClerkErrorResponse,
    SakuraCharacter,
)


class TestCategory:
    def test_labels_match_site_values(self):
        assert Category.MOVIES_AND_TV.value == "Movies & TV"
        assert Category.VIDEO_GAMES.value == "Video Games"
        assert Category.NON_BINARY.value == "Non-binary"
        assert Category.DILF.value == "DILF"

    def test_lookup_by_label(self):
        assert Category("Tsundere") is Category.TSUNDERE

    def test_twenty_categories(self):
        assert len(Category) == 20


class TestSakuraCharacter:
    def test_accepts_wire_names(self):
        character = SakuraCharacter.model_validate(
            {"id": "fqDaOBZ", "name": "Kurisu", "firstMessage": "Hey", "creatorImageUrl": "u"}
        )
        assert character.first_message == "Hey"
        assert character.creator_image_url == "u"

    def test_accepts_python_names(self):
        character = SakuraCharacter(id="fqDaOBZ", first_message="Hey")
        assert character.first_message == "Hey"
        assert character.name == ""
        assert character.example_conversation == []

    def test_ignores_unknown_fields(self):
        character = SakuraCharacter.model_validate({"id": "x", "somethingNew": 1})
        assert not hasattr(character, "somethingNew")

    def test_rsc_date(self):
        character = SakuraCharacter.model_validate({"createdAt": "$D2024-01-02T03:04:05Z"})
        assert character.created_at.replace(tzinfo=None) == datetime(2024, 1, 2, 3, 4, 5)

    def test_rsc_undefined_date(self):
        character = SakuraCharacter.model_validate({"createdAt": "$undefined"})
        assert character.created_at is None

    def test_rsc_undefined_uses_defaults(self):
        character = SakuraCharacter.model_validate(
            {
                "id": "abcdefg",
                "name": "Kurisu",
                "favorited": "$undefined",
                "messageCount": "$undefined",
            }
        )
        assert character.name == "Kurisu"
        assert character.favorited is False
        assert character.message_count == 0

    def test_plain_date(self):
        character = SakuraCharacter.model_validate({"createdAt": "2023-11-04T14:50:09.006572Z"})
        assert character.created_at.year == 2023


class TestChatModels:
    def test_message_dump_uses_wire_shape(self):
        message = ChatMessage(role="user", content="Hi")
        assert message.model_dump(by_alias=True, exclude_none=True) == {
            "role": "user",
            "content": "Hi",
            "type": "text",
        }

    def test_chat_response_from_wire(self):
        response = ChatResponse.model_validate(
            {"chatId": "aBcDeFg", "messages": [{"role": "assistant", "content": "Yo"}], "success": True}
        )
        assert response.chat_id == "aBcDeFg"
        assert response.messages[0].type == "text"
        assert response.messages[0].id is None

    def test_message_requires_role(self):
        with pytest.raises(ValidationError):
            ChatMessage.model_validate({"content": "Hi"})


class TestAuthModels:
    def test_authorized_user_from_stored_credentials(self):
        user = AuthorizedUser(refresh_token="r", session_id="sess_1")
        assert user.username == ""
        assert user.client_id == ""

    def test_authorized_user_requires_session(self):
        with pytest.raises(ValidationError):
            AuthorizedUser(refresh_token="r")


class TestClerkErrorResponse:
    def test_humanize_errors(self):
        error = ClerkErrorResponse.model_validate(
            {"errors": [{"message": "Not found", "code": "resource_not_found"}]}
        )
        summary = error.humanize()
        assert summary.startswith("Error: ")
        assert "resource_not_found" in summary

    def test_humanize_falls_back_to_trace_id(self):
        assert ClerkErrorResponse(clerk_trace_id="trace_1").humanize() == "trace_1"

    def test_humanize_generic(self):
        assert ClerkErrorResponse().humanize() == "Something went wrong"
