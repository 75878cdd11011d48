"""Summary: Shared HTTP helper for Google REST APIs.

Importance: Gives Gmail and Calendar clients one place for auth headers and error mapping.
Alternatives: Use google-api-python-client or a third-party HTTP client.
"""

from __future__ import annotations

import json
import urllib.error
import urllib.parse
import urllib.request
from typing import Any


class GoogleApiError(RuntimeError):
    """Summary: Raised when a Google API call returns a non-success status.

    Importance: Lets callers fold provider failures into chat context instead of crashing.
    Alternatives: Let urllib HTTPError escape to every caller.
    """

    def __init__(self, message: str, status: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.status = status
        self.body = body


def google_api_request(
    method: str,
    url: str,
    access_token: str,
    payload: dict[str, Any] | None = None,
    params: dict[str, Any] | None = None,
    timeout: int = 10,
) -> dict[str, Any]:
    """Summary: Send an authenticated JSON request to a Google API.

    Importance: Normalizes JSON encoding, bearer auth, and error reporting.
    Alternatives: Build urllib requests inline in each client.
    """

    if params:
        query = urllib.parse.urlencode(
            {key: value for key, value in params.items() if value is not None}
        )
        if query:
            url = f"{url}?{query}"
    headers = {"Authorization": f"Bearer {access_token}"}
    data = None
    if payload is not None:
        data = json.dumps(payload).encode("utf-8")
        headers["Content-Type"] = "application/json"
    request = urllib.request.Request(url, data=data, headers=headers, method=method)
    try:
        with urllib.request.urlopen(request, timeout=timeout) as response:
            raw = response.read().decode("utf-8")
    except urllib.error.HTTPError as exc:
        error_body = exc.read().decode("utf-8", errors="ignore")
        raise GoogleApiError(
            f"Google API request failed ({exc.code}): {_error_message(error_body) or exc.reason}",
            status=exc.code,
            body=error_body,
        ) from exc
    except urllib.error.URLError as exc:
        raise GoogleApiError(f"Google API request failed: {exc.reason}") from exc
    if not raw.strip():
        return {}
    return json.loads(raw)


def _error_message(body: str) -> str:
    """Pull `error.message` out of a Google error payload when present."""

    try:
        parsed = json.loads(body)
    except ValueError:
        return body
    error = parsed.get("error") if isinstance(parsed, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    return body
