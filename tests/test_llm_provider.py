"""Tests for CompletionClient and reply normalization."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from edugate.llm_provider import (
    ERROR_REPLY_PREFIX,
    MAX_RAW_REPLY_CHARS,
    NOT_CONFIGURED_REPLY,
    CompletionClient,
    is_degraded_reply,
    normalize_reply,
)
from edugate.models import CompletionOptions


def _client(handler, **kwargs) -> CompletionClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return CompletionClient(api_key="secret", url="https://llm.example/v1/generate", http_client=http, **kwargs)


class TestNormalizeReply:

    @pytest.mark.parametrize("payload", [
        {"output": {"text": "hello"}},
        {"choices": [{"text": "hello"}]},
        {"choices": [{"message": {"content": "hello"}}]},
        {"text": "hello"},
    ])
    def test_known_shapes(self, payload):
        assert normalize_reply(payload) == "hello"

    def test_precedence(self):
        payload = {"output": {"text": "first"}, "choices": [{"text": "second"}], "text": "third"}
        assert normalize_reply(payload) == "first"

    def test_unknown_shape_is_truncated_dump(self):
        payload = {"weird": "x" * 5000}
        reply = normalize_reply(payload)
        assert reply.startswith('{"weird": "xxx')
        assert len(reply) == MAX_RAW_REPLY_CHARS

    def test_empty_choices(self):
        assert normalize_reply({"choices": []}) == json.dumps({"choices": []})


class TestCompletionClient:

    @pytest.mark.asyncio
    async def test_not_configured_sentinel(self):
        client = CompletionClient(api_key="", url="https://llm.example")
        reply = await client.complete("hi")
        assert reply == NOT_CONFIGURED_REPLY
        assert is_degraded_reply(reply)

    @pytest.mark.asyncio
    async def test_http_request_shape(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"output": {"text": "Here is a hint."}})

        client = _client(handler)
        reply = await client.complete("Explain fractions", CompletionOptions(temperature=0.15, max_tokens=1200))
        await client.aclose()

        assert reply == "Here is a hint."
        assert seen["auth"] == "Bearer secret"
        assert seen["body"] == {"prompt": "Explain fractions", "temperature": 0.15, "max_tokens": 1200}

    @pytest.mark.asyncio
    async def test_default_options(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"text": "ok"})

        client = _client(handler)
        await client.complete("hi")
        assert seen["body"]["temperature"] == 0.2
        assert seen["body"]["max_tokens"] == 600

    @pytest.mark.asyncio
    async def test_transport_error_becomes_error_string(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused")

        reply = await _client(handler).complete("hi")
        assert reply.startswith(ERROR_REPLY_PREFIX)
        assert "connection refused" in reply
        assert is_degraded_reply(reply)

    @pytest.mark.asyncio
    async def test_non_json_body_becomes_error_string(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(502, text="<html>Bad gateway</html>")

        reply = await _client(handler).complete("hi")
        assert reply.startswith(ERROR_REPLY_PREFIX)

    @pytest.mark.asyncio
    async def test_litellm_path(self):
        response = MagicMock()
        response.choices = [MagicMock(message=MagicMock(content="From the model."))]
        mock = AsyncMock(return_value=response)

        client = CompletionClient(api_key="secret", model="gemini/gemini-1.5-flash")
        with patch("litellm.acompletion", new=mock):
            reply = await client.complete("hi", CompletionOptions(temperature=0.15, max_tokens=1200))

        assert reply == "From the model."
        kwargs = mock.call_args.kwargs
        assert kwargs["model"] == "gemini/gemini-1.5-flash"
        assert kwargs["messages"] == [{"role": "user", "content": "hi"}]
        assert kwargs["max_tokens"] == 1200

    @pytest.mark.asyncio
    async def test_litellm_failure_is_error_string(self):
        client = CompletionClient(api_key="secret", model="gemini/gemini-1.5-flash")
        with patch("litellm.acompletion", new=AsyncMock(side_effect=RuntimeError("quota exceeded"))):
            reply = await client.complete("hi")
        assert reply == f"{ERROR_REPLY_PREFIX}quota exceeded"


def test_is_degraded_reply():
    assert not is_degraded_reply("A normal answer.")
    assert is_degraded_reply("LLM error: timeout")
