from __future__ import annotations

import json

import httpx
import pytest

from order_intake.llm.client import TextGenerationClient, TextGenerationError
from order_intake.models.config_models import LLMConfig


def _client(handler) -> TextGenerationClient:
    return TextGenerationClient(LLMConfig(), http_client=httpx.Client(transport=httpx.MockTransport(handler)))


def test_generate_posts_prompt_and_returns_first_candidate(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": '{"ok": true}'}]}}]})

    text = _client(handler).generate("map these columns")
    assert text == '{"ok": true}'
    assert "/gemini-2.0-flash:generateContent" in seen["url"]
    assert "key=test-key" in seen["url"]
    assert seen["body"] == {"contents": [{"parts": [{"text": "map these columns"}]}]}


def test_missing_api_key_fails_without_request():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover
        calls.append(request)
        return httpx.Response(200)

    with pytest.raises(TextGenerationError, match="GEMINI_API_KEY"):
        _client(handler).generate("x")
    assert calls == []


def test_rate_limit_status(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "k")
    client = _client(lambda request: httpx.Response(429, text="quota exceeded"))
    with pytest.raises(TextGenerationError) as exc:
        client.generate("x")
    assert exc.value.status_code == 429
    assert exc.value.rate_limited


def test_server_error_and_empty_answer(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "k")
    with pytest.raises(TextGenerationError) as exc:
        _client(lambda request: httpx.Response(500, text="boom")).generate("x")
    assert not exc.value.rate_limited
    with pytest.raises(TextGenerationError, match="no content"):
        _client(lambda request: httpx.Response(200, json={"candidates": []})).generate("x")


def test_transport_error_is_wrapped(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "k")

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("offline", request=request)

    with pytest.raises(TextGenerationError) as exc:
        _client(handler).generate("x")
    assert isinstance(exc.value.__cause__, httpx.ConnectError)
