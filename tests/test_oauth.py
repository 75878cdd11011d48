"""Summary: Tests for Google OAuth helpers.

Importance: Ensures OAuth URLs and token exchanges use config values correctly.
Alternatives: Validate OAuth flows manually.
"""

from __future__ import annotations

import io
import json
import urllib.parse
from dataclasses import replace

import pytest

from akronom.config import AppConfig
from akronom.oauth import (
    SERVICE_SCOPES,
    OAuthTokenResult,
    build_google_auth_url,
    exchange_oauth_code,
    refresh_oauth_token,
)


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
        google_client_id="google-client",
        google_client_secret="google-secret",
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


class FakeResponse(io.BytesIO):
    def __enter__(self) -> "FakeResponse":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


def test_google_auth_url_requests_service_scopes() -> None:
    url = build_google_auth_url(_config(), "calendar", "state123")
    query = urllib.parse.parse_qs(urllib.parse.urlparse(url).query)
    assert query["client_id"] == ["google-client"]
    assert query["state"] == ["state123"]
    assert query["access_type"] == ["offline"]
    assert query["scope"][0].split(" ") == list(SERVICE_SCOPES["calendar"])


def test_google_auth_url_rejects_unknown_service() -> None:
    with pytest.raises(ValueError):
        build_google_auth_url(_config(), "drive", "state123")


def test_exchange_code_posts_form(monkeypatch: pytest.MonkeyPatch) -> None:
    """Summary: Ensure the code exchange sends the redirect URI and parses tokens.

    Importance: Google rejects exchanges whose redirect URI differs from the auth request.
    Alternatives: Use google-auth-oauthlib.
    """

    captured: dict[str, object] = {}

    def fake_urlopen(request, timeout: int = 0) -> FakeResponse:
        captured["url"] = request.full_url
        captured["form"] = urllib.parse.parse_qs(request.data.decode("utf-8"))
        body = {"access_token": "access", "refresh_token": "refresh", "expires_in": 3600, "scope": "a b"}
        return FakeResponse(json.dumps(body).encode("utf-8"))

    monkeypatch.setattr("akronom.oauth.urllib.request.urlopen", fake_urlopen)
    result = exchange_oauth_code(_config(), "code123")
    assert captured["url"] == "https://oauth2.googleapis.com/token"
    assert captured["form"]["redirect_uri"] == ["http://localhost:8000/oauth/callback"]
    assert captured["form"]["grant_type"] == ["authorization_code"]
    assert result.access_token == "access"
    assert result.refresh_token == "refresh"
    assert result.expires_at is not None
    assert result.scopes == ("a", "b")


def test_refresh_requires_client_credentials() -> None:
    config = replace(_config(), google_client_secret="")
    with pytest.raises(ValueError):
        refresh_oauth_token(config, "refresh")


def test_token_result_without_expiry() -> None:
    result = OAuthTokenResult.from_response({"access_token": "access"})
    assert result.expires_at is None
    assert result.refresh_token is None
    assert result.scopes == ()
