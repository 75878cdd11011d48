"""Summary: Tests for the Gmail client and message parsing.

Importance: Ensures Gmail payloads are parsed into usable summaries and sends are well-formed.
Alternatives: Validate Gmail parsing manually with live data.
"""

from __future__ import annotations

import base64
from email import message_from_bytes
from email.header import decode_header, make_header
from typing import Any

import pytest

from akronom.gmail import GmailClient, build_raw_message, parse_gmail_message
from akronom.google_api import GoogleApiError
from akronom.models import SendEmailIntent


BASE_URL = "https://gmail.googleapis.com/gmail/v1"


def _encode(value: str) -> str:
    return base64.urlsafe_b64encode(value.encode("utf-8")).decode("utf-8").rstrip("=")


def _message(message_id: str) -> dict[str, Any]:
    return {
        "id": message_id,
        "snippet": f"Snippet {message_id}",
        "payload": {
            "headers": [
                {"name": "Subject", "value": f"Subject {message_id}"},
                {"name": "FROM", "value": "Alice <alice@example.com>"},
                {"name": "Date", "value": "Mon, 1 Jan 2026 10:00:00 +0000"},
            ],
            "parts": [
                {"mimeType": "text/html", "body": {"data": _encode("<p>Hello</p>")}},
                {"mimeType": "text/plain", "body": {"data": _encode("Hello there")}},
            ],
        },
    }


def test_parse_gmail_message_prefers_plain_text() -> None:
    """Summary: Ensure Gmail parsing extracts headers and the text/plain body.

    Importance: Prompts should quote readable text, not HTML.
    Alternatives: Use the snippet only.
    """

    summary = parse_gmail_message(_message("m1"))
    assert summary.subject == "Subject m1"
    assert summary.sender == "Alice <alice@example.com>"
    assert summary.body == "Hello there"
    assert summary.snippet == "Snippet m1"


def test_parse_gmail_message_defaults() -> None:
    summary = parse_gmail_message({"id": "m2", "payload": {"body": {"data": _encode("x" * 1500)}}})
    assert summary.subject == "(no subject)"
    assert summary.sender == "Unknown"
    assert len(summary.body) == 1000
    assert summary.snippet.startswith("xxx")


def test_list_messages_fetches_details(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[tuple[str, str, dict[str, Any] | None]] = []

    def fake_request(method, url, access_token, payload=None, params=None, timeout=10):
        calls.append((method, url, params))
        if url.endswith("/users/me/messages"):
            return {"messages": [{"id": "m1"}, {"id": "m2"}]}
        return _message(url.rsplit("/", 1)[-1])

    monkeypatch.setattr("akronom.gmail.google_api_request", fake_request)
    messages = GmailClient("token", BASE_URL).list_messages(limit=2)
    assert [message.id for message in messages] == ["m1", "m2"]
    assert calls[0] == ("GET", f"{BASE_URL}/users/me/messages", {"maxResults": 2, "q": None})
    assert {call[2]["format"] for call in calls[1:]} == {"full"}


def test_list_messages_handles_empty_mailbox(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("akronom.gmail.google_api_request", lambda *args, **kwargs: {})
    assert GmailClient("token", BASE_URL).list_messages() == []


def test_send_message_posts_raw(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict[str, Any] = {}

    def fake_request(method, url, access_token, payload=None, params=None, timeout=10):
        captured.update(method=method, url=url, payload=payload, token=access_token)
        return {"id": "sent-1"}

    monkeypatch.setattr("akronom.gmail.google_api_request", fake_request)
    intent = SendEmailIntent(to="a@b.com", subject="Hello", body="Hi there")
    assert GmailClient("token", BASE_URL).send_message(intent) == "sent-1"
    assert captured["method"] == "POST"
    assert captured["url"] == f"{BASE_URL}/users/me/messages/send"
    assert captured["payload"] == {"raw": build_raw_message(intent)}


def test_build_raw_message_is_unpadded_base64url() -> None:
    raw = build_raw_message(SendEmailIntent(to="a@b.com", subject="Hello", body="Hi there"))
    assert "=" not in raw
    parsed = message_from_bytes(base64.urlsafe_b64decode(raw + "=" * (-len(raw) % 4)))
    assert parsed["To"] == "a@b.com"
    assert parsed["Subject"] == "Hello"
    assert parsed.get_content_type() == "text/plain"
    assert parsed.get_payload(decode=True).decode("utf-8") == "Hi there"


def test_build_raw_message_encodes_non_ascii_headers() -> None:
    """Summary: Ensure non-ASCII subjects are header-encoded instead of sent as raw bytes.

    Importance: Raw UTF-8 headers show up garbled in many mail clients.
    Alternatives: Strip non-ASCII characters from subjects.
    """

    intent = SendEmailIntent(to="a@b.com", subject="Café réunion", body="À bientôt")
    raw = build_raw_message(intent)
    data = base64.urlsafe_b64decode(raw + "=" * (-len(raw) % 4))
    assert data.isascii()
    parsed = message_from_bytes(data)
    assert str(make_header(decode_header(parsed["Subject"]))) == "Café réunion"
    assert parsed.get_payload(decode=True).decode("utf-8") == "À bientôt"


def test_send_message_propagates_api_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    def failing_request(*args, **kwargs):
        raise GoogleApiError("Google API request failed (401): Invalid Credentials", status=401)

    monkeypatch.setattr("akronom.gmail.google_api_request", failing_request)
    with pytest.raises(GoogleApiError):
        GmailClient("token", BASE_URL).send_message(
            SendEmailIntent(to="a@b.com", subject="Hello", body="Hi")
        )
