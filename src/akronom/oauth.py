"""Summary: Google OAuth helpers for the Gmail and Calendar connectors.

Importance: Generates authorization URLs, exchanges codes, and refreshes tokens without extra dependencies.
Alternatives: Use google-auth-oauthlib for the OAuth flows.
"""

from __future__ import annotations

import json
import secrets
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from akronom.config import AppConfig


GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
USERINFO_EMAIL_SCOPE = "https://www.googleapis.com/auth/userinfo.email"

SERVICE_SCOPES: dict[str, tuple[str, ...]] = {
    "gmail": (
        "https://www.googleapis.com/auth/gmail.readonly",
        "https://www.googleapis.com/auth/gmail.send",
        "https://www.googleapis.com/auth/gmail.compose",
        USERINFO_EMAIL_SCOPE,
    ),
    "calendar": (
        "https://www.googleapis.com/auth/calendar.readonly",
        "https://www.googleapis.com/auth/calendar.events",
        USERINFO_EMAIL_SCOPE,
    ),
}
SERVICES = tuple(SERVICE_SCOPES)


@dataclass(frozen=True)
class OAuthTokenResult:
    """Summary: Normalized OAuth token response data.

    Importance: Provides a consistent token representation for storage and refresh.
    Alternatives: Store the raw provider response without normalization.
    """

    access_token: str
    refresh_token: str | None
    expires_at: str | None
    scope: str | None
    raw: dict[str, Any]

    @staticmethod
    def from_response(payload: dict[str, Any]) -> "OAuthTokenResult":
        expires_in = payload.get("expires_in")
        expires_at = None
        if isinstance(expires_in, int):
            expires_at = (datetime.utcnow() + timedelta(seconds=expires_in)).isoformat()
        return OAuthTokenResult(
            access_token=payload["access_token"],
            refresh_token=payload.get("refresh_token"),
            expires_at=expires_at,
            scope=payload.get("scope"),
            raw=payload,
        )

    @property
    def scopes(self) -> tuple[str, ...]:
        return tuple(self.scope.split()) if self.scope else ()


def ensure_service(service: str) -> str:
    if service not in SERVICE_SCOPES:
        raise ValueError(f"Unknown Google service: {service}")
    return service


def create_state_token() -> str:
    """Summary: Generate a CSRF state token.

    Importance: Protects OAuth flows from CSRF attacks.
    Alternatives: Use server-side session storage with pre-generated tokens.
    """

    return secrets.token_urlsafe(24)


def build_google_auth_url(config: AppConfig, service: str, state: str) -> str:
    """Summary: Build a Google OAuth authorization URL for one service.

    Importance: Each connector asks only for the scopes it needs.
    Alternatives: Request every scope in a single consent screen.
    """

    params = {
        "client_id": config.google_client_id,
        "redirect_uri": config.oauth_redirect_uri,
        "response_type": "code",
        "access_type": "offline",
        "prompt": "consent",
        "scope": " ".join(SERVICE_SCOPES[ensure_service(service)]),
        "state": state,
    }
    return f"{GOOGLE_AUTH_URL}?" + urllib.parse.urlencode(params)


def exchange_oauth_code(config: AppConfig, code: str) -> OAuthTokenResult:
    """Summary: Exchange an OAuth authorization code for tokens.

    Importance: Completes the connector flow by retrieving access and refresh tokens.
    Alternatives: Use provider SDKs or external auth services.
    """

    _ensure_oauth_config(config)
    payload = {
        "client_id": config.google_client_id,
        "client_secret": config.google_client_secret,
        "code": code,
        "grant_type": "authorization_code",
        "redirect_uri": config.oauth_redirect_uri,
    }
    return OAuthTokenResult.from_response(_post_form(config.google_token_url, payload))


def refresh_oauth_token(config: AppConfig, refresh_token: str) -> OAuthTokenResult:
    """Summary: Refresh an access token using a stored refresh token.

    Importance: Keeps connectors usable after the hour-long access token expires.
    Alternatives: Ask the user to reconnect whenever a token expires.
    """

    _ensure_oauth_config(config)
    payload = {
        "client_id": config.google_client_id,
        "client_secret": config.google_client_secret,
        "refresh_token": refresh_token,
        "grant_type": "refresh_token",
    }
    return OAuthTokenResult.from_response(_post_form(config.google_token_url, payload))


def fetch_account_email(config: AppConfig, access_token: str) -> str | None:
    """Summary: Look up the Google account email for an access token.

    Importance: Lets the assistant tell the user which mailbox sent a message.
    Alternatives: Decode the email claim from an ID token.
    """

    request = urllib.request.Request(
        config.google_userinfo_url,
        headers={"Authorization": f"Bearer {access_token}"},
        method="GET",
    )
    try:
        with urllib.request.urlopen(request, timeout=10) as response:
            raw = json.loads(response.read().decode("utf-8"))
    except urllib.error.HTTPError as exc:
        error_body = exc.read().decode("utf-8")
        raise RuntimeError(f"Userinfo request failed: {error_body or exc.reason}") from exc
    return raw.get("email")


def _ensure_oauth_config(config: AppConfig) -> None:
    if not config.google_client_id or not config.google_client_secret:
        raise ValueError("Missing OAuth client credentials for google")


def _post_form(url: str, payload: dict[str, str]) -> dict[str, Any]:
    """Summary: Send a form-encoded POST request and parse JSON.

    Importance: Avoids new dependencies while supporting OAuth exchanges.
    Alternatives: Use requests or a provider SDK.
    """

    data = urllib.parse.urlencode(payload).encode("utf-8")
    request = urllib.request.Request(
        url,
        data=data,
        headers={"Content-Type": "application/x-www-form-urlencoded"},
        method="POST",
    )
    try:
        with urllib.request.urlopen(request, timeout=10) as response:
            raw = response.read().decode("utf-8")
    except urllib.error.HTTPError as exc:
        error_body = exc.read().decode("utf-8")
        raise RuntimeError(f"Token request failed: {error_body or exc.reason}") from exc
    return json.loads(raw)
