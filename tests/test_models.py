"""Tests for request/response models."""

import pytest

from edugate.models import (
    DEFAULT_USER_ID,
    MAX_USER_ID_LENGTH,
    Action,
    ChatRequest,
    ChatResponse,
    HealthResponse,
    parse_flag,
)


class TestChatRequest:

    def test_defaults(self):
        req = ChatRequest.model_validate({})
        assert req.user_id == DEFAULT_USER_ID
        assert req.action is Action.CHAT
        assert req.message == ""
        assert req.use_search is None
        assert req.use_reasoning is None

    def test_camel_case_and_legacy_aliases(self):
        req = ChatRequest.model_validate({
            "user": "kid-1",
            "gradeLevel": "grade 4",
            "useBraveSearch": "yes",
            "useReasoning": "0",
            "searchQuery": "  volcanoes ",
        })
        assert req.user_id == "kid-1"
        assert req.grade == "grade 4"
        assert req.use_search is True
        assert req.use_reasoning is False
        assert req.search_query == "volcanoes"

    def test_user_id_trimmed_and_bounded(self):
        req = ChatRequest.model_validate({"userId": "x" * 500})
        assert len(req.user_id) == MAX_USER_ID_LENGTH
        assert ChatRequest.model_validate({"userId": "   "}).user_id == DEFAULT_USER_ID

    def test_unknown_action_is_chat(self):
        assert ChatRequest.model_validate({"action": "launch_rocket"}).action is Action.CHAT
        assert ChatRequest.model_validate({"action": "ANALYZE_ESSAY"}).action is Action.ANALYZE_ESSAY

    def test_non_string_text_fields(self):
        req = ChatRequest.model_validate({"message": {"nested": 1}, "essay": 42})
        assert req.message == ""
        assert req.essay == ""

    def test_intent_text_includes_url(self):
        req = ChatRequest.model_validate({"message": "summarize", "url": "https://x.example"})
        assert req.intent_text == "summarize\nhttps://x.example"

    def test_legacy_messages_intent(self):
        req = ChatRequest.model_validate({"messages": [
            {"role": "user", "content": "first"},
            {"role": "assistant", "content": "reply"},
            {"role": "user", "content": "latest"},
        ]})
        assert req.intent_message == "latest"
        assert ChatRequest.model_validate({"message": "explicit", "messages": [
            {"role": "user", "content": "legacy"},
        ]}).intent_message == "explicit"

    @pytest.mark.parametrize("messages", ["oops", 3, {"role": "user"}, None])
    def test_non_list_messages_ignored(self, messages):
        req = ChatRequest.model_validate({"message": "hi", "messages": messages})
        assert req.messages == []
        assert req.intent_message == "hi"

    def test_non_object_messages_dropped(self):
        req = ChatRequest.model_validate({"messages": ["junk", 7, {"role": "user", "content": "kept"}]})
        assert len(req.messages) == 1
        assert req.intent_message == "kept"


class TestChatResponse:

    def test_to_json_aliases(self):
        body = ChatResponse(
            reply="ok", used_search=True, used_reasoning=True,
            search_results={"web": {}}, from_cache=False,
        ).to_json()
        assert body == {
            "reply": "ok",
            "refused": False,
            "essayWarning": None,
            "usedSearch": True,
            "usedReasoning": True,
            "searchResults": {"web": {}},
            "fromCache": False,
        }

    def test_refusal_shape(self):
        body = ChatResponse(reply="no", refused=True, reason=["cheating"]).to_json()
        assert body["reason"] == ["cheating"]
        assert body["essayWarning"] is None
        assert "fromCache" not in body
        assert "searchResults" not in body


def test_health_aliases():
    body = HealthResponse(version="0.2.0", durable_store=True).model_dump(by_alias=True)
    assert body["durableStore"] is True
    assert body["pageFetch"] is False


@pytest.mark.parametrize("value, expected", [
    (True, True), (False, False), ("TRUE", True), ("on", True), ("no", False),
    ("", False), ("maybe", None), (None, None), (1, True), (0, False),
])
def test_parse_flag(value, expected):
    assert parse_flag(value) is expected
