"""Summary: Gmail REST client used by chat and the HTTP API.

Importance: Lists, reads, and sends messages on behalf of a connected Google account.
Alternatives: Use IMAP/SMTP or the official Gmail SDK.
"""

from __future__ import annotations

import base64
import logging
from concurrent.futures import ThreadPoolExecutor
from email.mime.text import MIMEText
from typing import Any

from akronom.google_api import google_api_request
from akronom.models import EmailSummary, SendEmailIntent


logger = logging.getLogger(__name__)

BODY_LIMIT = 1000
DETAIL_WORKERS = 5


class GmailClient:
    """Summary: Reads and sends Gmail messages with an OAuth access token.

    Importance: Provides the email side of the assistant's context and actions.
    Alternatives: Sync the mailbox locally and query it instead.
    """

    def __init__(self, access_token: str, base_url: str) -> None:
        self._access_token = access_token
        self._base_url = base_url.rstrip("/")

    def list_messages(self, query: str | None = None, limit: int = 10) -> list[EmailSummary]:
        """Summary: Fetch the most recent messages with headers and bodies.

        Importance: Detail requests run concurrently so a page of ten stays responsive.
        Alternatives: Use Gmail batch requests or the metadata format only.
        """

        payload = google_api_request(
            "GET",
            f"{self._base_url}/users/me/messages",
            self._access_token,
            params={"maxResults": limit, "q": query or None},
        )
        message_ids = [item["id"] for item in payload.get("messages", []) if item.get("id")]
        if not message_ids:
            return []
        with ThreadPoolExecutor(max_workers=min(DETAIL_WORKERS, len(message_ids))) as pool:
            details = list(pool.map(self._fetch_detail, message_ids))
        return [parse_gmail_message(detail) for detail in details]

    def read_message(self, message_id: str) -> EmailSummary:
        return parse_gmail_message(self._fetch_detail(message_id))

    def send_message(self, intent: SendEmailIntent) -> str:
        """Summary: Send a plain-text message and return its Gmail ID.

        Importance: Executes the send-email action for the chat dispatcher.
        Alternatives: Create a draft and let the user send it from Gmail.
        """

        raw = build_raw_message(intent)
        payload = google_api_request(
            "POST",
            f"{self._base_url}/users/me/messages/send",
            self._access_token,
            payload={"raw": raw},
        )
        message_id = payload.get("id", "")
        logger.info("Sent Gmail message %s.", message_id)
        return message_id

    def _fetch_detail(self, message_id: str) -> dict[str, Any]:
        return google_api_request(
            "GET",
            f"{self._base_url}/users/me/messages/{message_id}",
            self._access_token,
            params={"format": "full"},
        )


def build_raw_message(intent: SendEmailIntent) -> str:
    """Summary: Build an RFC 2822 message encoded as unpadded base64url.

    Importance: Gmail's send endpoint only accepts the raw message form.
    Alternatives: Concatenate header lines by hand.
    """

    message = MIMEText(intent.body, "plain", "utf-8")
    message["To"] = intent.to
    message["Subject"] = intent.subject
    encoded = base64.urlsafe_b64encode(message.as_bytes()).decode("ascii")
    return encoded.rstrip("=")


def parse_gmail_message(message: dict[str, Any]) -> EmailSummary:
    """Summary: Parse a Gmail message payload into an EmailSummary.

    Importance: Normalizes Gmail payloads for prompts and API responses.
    Alternatives: Forward raw payloads and parse at render time.
    """

    payload = message.get("payload") or {}
    headers = _parse_gmail_headers(payload.get("headers", []))
    body = _extract_gmail_body(payload)
    snippet = message.get("snippet", "")
    if not snippet:
        snippet = body[:200].replace("\n", " ") if body else ""
    return EmailSummary(
        id=message.get("id", ""),
        subject=headers.get("subject") or "(no subject)",
        sender=headers.get("from") or "Unknown",
        date=headers.get("date", ""),
        snippet=snippet,
        body=(body or snippet)[:BODY_LIMIT],
        recipients=headers.get("to", ""),
    )


def _parse_gmail_headers(headers: list[dict[str, Any]]) -> dict[str, str]:
    """Header names are case-insensitive in RFC 2822, so keys are lower-cased."""

    normalized: dict[str, str] = {}
    for header in headers:
        name = header.get("name")
        value = header.get("value")
        if name and value:
            normalized[name.lower()] = value
    return normalized


def _extract_gmail_body(payload: dict[str, Any]) -> str:
    """Summary: Extract a plain text body from a Gmail payload.

    Importance: Prefers text/plain parts and falls back to any decoded part.
    Alternatives: Use the snippet only.
    """

    text_parts: list[str] = []
    fallback_parts: list[str] = []
    for part in _walk_gmail_parts(payload):
        data = (part.get("body") or {}).get("data")
        if not data:
            continue
        decoded = _decode_base64url(data)
        if part.get("mimeType") == "text/plain":
            text_parts.append(decoded)
        else:
            fallback_parts.append(decoded)
    chosen = text_parts or fallback_parts
    return "\n".join(item.strip() for item in chosen if item.strip()).strip()


def _walk_gmail_parts(payload: dict[str, Any]) -> list[dict[str, Any]]:
    parts: list[dict[str, Any]] = [payload]
    for part in payload.get("parts", []) or []:
        parts.extend(_walk_gmail_parts(part))
    return parts


def _decode_base64url(data: str) -> str:
    padded = data + "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(padded.encode("utf-8")).decode("utf-8", errors="ignore")
