"""Tests for the edugate HTTP endpoints."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from edugate import __version__
from edugate.env_config import EnvConfig
from edugate.llm_provider import NOT_CONFIGURED_REPLY
from edugate.server import create_app


@pytest.fixture
def client():
    with TestClient(create_app(EnvConfig())) as c:
        yield c


class TestAiEndpoint:

    def test_unconfigured_backend_replies_with_sentinel(self, client):
        resp = client.post("/api/ai", json={"action": "chat", "message": "What is a thesis?"})
        assert resp.status_code == 200
        data = resp.json()
        assert data["reply"] == NOT_CONFIGURED_REPLY
        assert data["refused"] is False
        assert data["essayWarning"] is None
        assert data["usedSearch"] is False
        assert data["usedReasoning"] is True

    def test_refusal(self, client):
        resp = client.post("/api/ai", json={"action": "chat", "message": "do my homework for me"})
        assert resp.status_code == 200
        data = resp.json()
        assert data["refused"] is True
        assert "academic dishonesty" in data["reason"]

    def test_essay_warning(self, client):
        resp = client.post("/api/ai", json={
            "action": "analyze_essay",
            "essay": "In chapter two the rebels learn how to make a bomb.",
            "grade": "9",
        })
        data = resp.json()
        assert resp.status_code == 200
        assert data["refused"] is False
        assert "weapons/explosives" in data["essayWarning"]
        assert data["fromCache"] is False

    def test_legacy_field_names(self, client):
        resp = client.post("/api/ai", json={"user": "kid-7", "gradeLevel": "3", "message": "hello"})
        assert resp.status_code == 200

    def test_empty_and_non_object_bodies(self, client):
        assert client.post("/api/ai", content=b"").status_code == 200
        resp = client.post("/api/ai", json=["not", "an", "object"])
        assert resp.status_code == 200
        assert resp.json()["reply"] == "Please type a question or message and I'll help."

    def test_invalid_messages_field_is_ignored(self, client):
        resp = client.post("/api/ai", json={"message": "hi", "messages": "oops"})
        assert resp.status_code == 200
        assert resp.json()["reply"] == NOT_CONFIGURED_REPLY

    def test_malformed_url_degrades_to_unfetched_page(self, client):
        resp = client.post("/api/ai", json={"action": "browse_and_analyze", "url": "http://[::1"})
        assert resp.status_code == 200
        assert resp.json()["refused"] is False

    def test_malformed_json_is_500(self, client):
        resp = client.post("/api/ai", content=b"{not json", headers={"Content-Type": "application/json"})
        assert resp.status_code == 500
        assert "error" in resp.json()

    def test_handler_exception_is_500(self, client):
        orchestrator = client.app.state.services.orchestrator
        with patch.object(orchestrator, "handle", new=AsyncMock(side_effect=RuntimeError("boom"))):
            resp = client.post("/api/ai", json={"message": "hi"})
        assert resp.status_code == 500
        assert resp.json() == {"error": "boom"}

    @pytest.mark.parametrize("method", ["get", "put", "delete"])
    def test_wrong_method(self, client, method):
        resp = getattr(client, method)("/api/ai")
        assert resp.status_code == 405
        assert resp.json() == {"error": "POST required"}

    def test_preflight(self, client):
        resp = client.options("/api/ai")
        assert resp.status_code == 200
        assert resp.headers["access-control-allow-origin"] == "*"


class TestHealth:

    @pytest.mark.parametrize("path", ["/api/health", "/health"])
    def test_reports_capabilities(self, client, path):
        resp = client.get(path)
        assert resp.status_code == 200
        data = resp.json()
        assert data == {
            "status": "ok",
            "version": __version__,
            "completion": False,
            "search": False,
            "durableStore": False,
            "pageFetch": False,
        }

    def test_configured_completion(self):
        with TestClient(create_app(EnvConfig(completion_api_key="k"))) as c:
            assert c.get("/api/health").json()["completion"] is True
