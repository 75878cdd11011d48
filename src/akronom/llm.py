"""Summary: Streaming chat completion providers.

Importance: Centralizes LLM access so the chat core only sees a byte stream or a typed error.
Alternatives: Call provider SDKs directly from the API layer.
"""

from __future__ import annotations

import json
import logging
import urllib.error
import urllib.request
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Iterable, Iterator, Sequence

from akronom.config import AppConfig
from akronom.models import ChatMessage


logger = logging.getLogger(__name__)

OPENAI_BASE_URL = "https://api.openai.com/v1"
CHUNK_SIZE = 1024


class LlmRateLimitError(RuntimeError):
    """Raised when the upstream LLM answers with HTTP 429."""


class LlmServiceError(RuntimeError):
    """Raised for any other upstream LLM failure."""


class ChatStream:
    """Summary: Iterable over raw response chunks that closes its source when done.

    Importance: A client disconnect stops iteration and must release the upstream connection.
    Alternatives: Read the whole response into memory before returning it.
    """

    def __init__(self, chunks: Iterable[bytes], source: Any = None) -> None:
        self._chunks = chunks
        self._source = source
        self._closed = False

    def __iter__(self) -> Iterator[bytes]:
        try:
            for chunk in self._chunks:
                if chunk:
                    yield chunk
        finally:
            self.close()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._source is not None:
            self._source.close()

    @property
    def closed(self) -> bool:
        return self._closed


class ChatCompletionProvider(ABC):
    """Summary: Abstract interface for streaming chat completions.

    Importance: Allows switching between Groq, OpenAI, and a mock without refactors.
    Alternatives: Use a single vendor SDK and accept lock-in risk.
    """

    @abstractmethod
    def open_stream(self, system_prompt: str, transcript: Sequence[ChatMessage]) -> ChatStream:
        """Summary: Start a streaming completion for the prompt and transcript.

        Importance: Errors surface before the first byte so the API can pick a status code.
        Alternatives: Report upstream errors inside the event stream.
        """


def build_messages(system_prompt: str, transcript: Sequence[ChatMessage]) -> list[dict[str, str]]:
    return [{"role": "system", "content": system_prompt}] + [
        {"role": message.role, "content": message.content} for message in transcript
    ]


class OpenAiCompatibleProvider(ChatCompletionProvider):
    """Summary: Provider for OpenAI-compatible chat completion endpoints.

    Importance: Groq and OpenAI share the same wire format, so one class serves both.
    Alternatives: One class per vendor.
    """

    def __init__(self, base_url: str, api_key: str, model: str, max_tokens: int) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._model = model
        self._max_tokens = max_tokens

    def open_stream(self, system_prompt: str, transcript: Sequence[ChatMessage]) -> ChatStream:
        payload = {
            "model": self._model,
            "messages": build_messages(system_prompt, transcript),
            "stream": True,
            "max_tokens": self._max_tokens,
        }
        request = urllib.request.Request(
            url=f"{self._base_url}/chat/completions",
            data=json.dumps(payload).encode("utf-8"),
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {self._api_key}",
            },
            method="POST",
        )
        try:
            response = urllib.request.urlopen(request, timeout=60)
        except urllib.error.HTTPError as exc:
            error_body = exc.read().decode("utf-8", errors="ignore")
            logger.error("LLM API error %s: %s", exc.code, error_body)
            if exc.code == 429:
                raise LlmRateLimitError("Rate limit exceeded. Please try again in a moment.") from exc
            raise LlmServiceError("AI service error") from exc
        except urllib.error.URLError as exc:
            logger.error("LLM API unreachable: %s", exc.reason)
            raise LlmServiceError("AI service error") from exc
        logger.info("Streaming response started.")
        return ChatStream(iter(lambda: response.read(CHUNK_SIZE), b""), source=response)


class MockChatProvider(ChatCompletionProvider):
    """Summary: Deterministic provider emitting OpenAI-style server-sent events.

    Importance: Enables offline development and repeatable API tests.
    Alternatives: Record and replay real provider responses.
    """

    def open_stream(self, system_prompt: str, transcript: Sequence[ChatMessage]) -> ChatStream:
        last = transcript[-1].content if transcript else ""
        reply = f"[mock] {last[:240]}"
        return ChatStream(_sse_chunks(reply.split(" ")))


def _sse_chunks(words: list[str]) -> Iterator[bytes]:
    for index, word in enumerate(words):
        text = word if index == 0 else f" {word}"
        event = {"choices": [{"index": 0, "delta": {"content": text}}]}
        yield f"data: {json.dumps(event)}\n\n".encode("utf-8")
    yield b"data: [DONE]\n\n"


@dataclass(frozen=True)
class ChatProviderFactory:
    """Summary: Factory for selecting chat providers from configuration.

    Importance: A missing API key is a hard configuration failure, not a silent fallback.
    Alternatives: Wire providers manually at the application entrypoint.
    """

    config: AppConfig

    def build(self) -> ChatCompletionProvider:
        if self.config.ai_provider == "mock":
            return MockChatProvider()
        if self.config.ai_provider == "openai":
            if not self.config.openai_api_key:
                raise ValueError("OPENAI_API_KEY is required for openai provider")
            return OpenAiCompatibleProvider(
                OPENAI_BASE_URL,
                self.config.openai_api_key,
                self.config.openai_model,
                self.config.llm_max_tokens,
            )
        if self.config.ai_provider == "groq":
            if not self.config.groq_api_key:
                raise ValueError("GROQ_API_KEY is not configured")
            return OpenAiCompatibleProvider(
                self.config.groq_base_url,
                self.config.groq_api_key,
                self.config.groq_model,
                self.config.llm_max_tokens,
            )
        raise ValueError(f"Unknown AI provider: {self.config.ai_provider}")


def parse_sse_text(chunks: Iterable[bytes]) -> str:
    """Summary: Join the content deltas of an OpenAI-style event stream.

    Importance: Lets the CLI print a streamed reply as plain text.
    Alternatives: Use the provider SDK's stream helpers.
    """

    buffer = b"".join(chunks).decode("utf-8", errors="ignore")
    parts: list[str] = []
    for line in buffer.splitlines():
        if not line.startswith("data:"):
            continue
        data = line[len("data:"):].strip()
        if not data or data == "[DONE]":
            continue
        try:
            event = json.loads(data)
        except ValueError:
            continue
        for choice in event.get("choices", []):
            parts.append((choice.get("delta") or {}).get("content") or "")
    return "".join(parts)
