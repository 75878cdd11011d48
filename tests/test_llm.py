"""Summary: Tests for chat completion providers and stream handling.

Importance: Upstream failures must map to typed errors and streams must release connections.
Alternatives: Only test against a live Groq account.
"""

from __future__ import annotations

import io
import json
import urllib.error
import urllib.request
from dataclasses import replace

import pytest

from akronom.config import AppConfig
from akronom.llm import (
    ChatProviderFactory,
    ChatStream,
    LlmRateLimitError,
    LlmServiceError,
    MockChatProvider,
    OpenAiCompatibleProvider,
    build_messages,
    parse_sse_text,
)
from akronom.models import ChatMessage


def _config() -> AppConfig:
    return AppConfig(
        db_path="test.db",
        ai_provider="mock",
        groq_api_key=None,
        groq_model="llama-3.1-8b-instant",
        groq_base_url="https://api.groq.com/openai/v1",
        openai_api_key=None,
        openai_model="gpt-4o-mini",
        llm_max_tokens=4096,
        api_host="127.0.0.1",
        api_port=8000,
        default_user_name="Local User",
        default_user_email="local@akronom",
        google_client_id="",
        google_client_secret="",
        oauth_redirect_uri="http://localhost:8000/oauth/callback",
        google_token_url="https://oauth2.googleapis.com/token",
        google_userinfo_url="https://www.googleapis.com/oauth2/v2/userinfo",
        gmail_api_base_url="https://gmail.googleapis.com/gmail/v1",
        calendar_api_base_url="https://www.googleapis.com/calendar/v3",
        calendar_timezone="UTC",
        token_secret="secret",
        rate_limit_requests=20,
        rate_limit_window_seconds=60,
    )


class FakeResponse:
    def __init__(self, body: bytes) -> None:
        self._buffer = io.BytesIO(body)
        self.closed = False

    def read(self, size: int = -1) -> bytes:
        return self._buffer.read(size)

    def close(self) -> None:
        self.closed = True


def test_factory_selects_providers() -> None:
    assert isinstance(ChatProviderFactory(_config()).build(), MockChatProvider)
    groq = replace(_config(), ai_provider="groq", groq_api_key="gsk-test")
    assert isinstance(ChatProviderFactory(groq).build(), OpenAiCompatibleProvider)


def test_factory_rejects_missing_keys() -> None:
    """Summary: Ensure a missing API key is a configuration error.

    Importance: The API turns this into a 500 rather than a silent mock reply.
    Alternatives: Fall back to the mock provider.
    """

    with pytest.raises(ValueError, match="GROQ_API_KEY is not configured"):
        ChatProviderFactory(replace(_config(), ai_provider="groq")).build()
    with pytest.raises(ValueError, match="OPENAI_API_KEY"):
        ChatProviderFactory(replace(_config(), ai_provider="openai")).build()
    with pytest.raises(ValueError, match="Unknown AI provider"):
        ChatProviderFactory(replace(_config(), ai_provider="ollama")).build()


def test_mock_stream_is_valid_sse() -> None:
    stream = MockChatProvider().open_stream("system", [ChatMessage(role="user", content="hello world")])
    chunks = list(stream)
    assert chunks[-1] == b"data: [DONE]\n\n"
    assert parse_sse_text(chunks) == "[mock] hello world"
    assert stream.closed is True


def test_chat_stream_closes_source_on_early_exit() -> None:
    source = FakeResponse(b"")
    stream = ChatStream(iter([b"a", b"", b"b"]), source=source)
    iterator = iter(stream)
    assert next(iterator) == b"a"
    iterator.close()
    assert source.closed is True


def test_openai_provider_posts_streaming_request(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict[str, object] = {}
    event = {"choices": [{"delta": {"content": "Hi"}}]}
    response = FakeResponse(f"data: {json.dumps(event)}\n\ndata: [DONE]\n\n".encode("utf-8"))

    def fake_urlopen(request: urllib.request.Request, timeout: int = 0) -> FakeResponse:
        captured["url"] = request.full_url
        captured["payload"] = json.loads(request.data.decode("utf-8"))
        captured["auth"] = request.get_header("Authorization")
        return response

    monkeypatch.setattr("akronom.llm.urllib.request.urlopen", fake_urlopen)
    provider = OpenAiCompatibleProvider("https://api.groq.com/openai/v1/", "gsk-test", "llama", 512)
    stream = provider.open_stream("system prompt", [ChatMessage(role="user", content="hey")])
    assert parse_sse_text(stream) == "Hi"
    assert response.closed is True
    assert captured["url"] == "https://api.groq.com/openai/v1/chat/completions"
    assert captured["auth"] == "Bearer gsk-test"
    payload = captured["payload"]
    assert payload["stream"] is True
    assert payload["max_tokens"] == 512
    assert payload["messages"][0] == {"role": "system", "content": "system prompt"}


@pytest.mark.parametrize(
    ("status", "error_type"),
    [(429, LlmRateLimitError), (500, LlmServiceError), (401, LlmServiceError)],
)
def test_openai_provider_maps_http_errors(
    monkeypatch: pytest.MonkeyPatch, status: int, error_type: type[Exception]
) -> None:
    def fake_urlopen(request: urllib.request.Request, timeout: int = 0) -> FakeResponse:
        raise urllib.error.HTTPError(
            request.full_url, status, "error", {}, io.BytesIO(b'{"error": "nope"}')
        )

    monkeypatch.setattr("akronom.llm.urllib.request.urlopen", fake_urlopen)
    provider = OpenAiCompatibleProvider("https://example.test/v1", "key", "model", 100)
    with pytest.raises(error_type):
        provider.open_stream("system", [ChatMessage(role="user", content="hi")])


def test_build_messages_prepends_system_prompt() -> None:
    messages = build_messages(
        "sys",
        [ChatMessage(role="user", content="a"), ChatMessage(role="assistant", content="b")],
    )
    assert [message["role"] for message in messages] == ["system", "user", "assistant"]
