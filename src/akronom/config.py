"""Summary: Application configuration for Akronom.

Importance: Centralizes environment, .env, and config defaults for consistent behavior.
Alternatives: Use a dedicated settings library like Pydantic Settings.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from dataclasses import dataclass


@dataclass(frozen=True)
class AppConfig:
    """Summary: Holds configuration values for the LLM, Google APIs, and storage.

    Importance: Ensures all services derive settings from a single source of truth.
    Alternatives: Store settings in a shared config file and parse at startup.
    """

    db_path: str
    ai_provider: str
    groq_api_key: str | None
    groq_model: str
    groq_base_url: str
    openai_api_key: str | None
    openai_model: str
    llm_max_tokens: int
    api_host: str
    api_port: int
    default_user_name: str
    default_user_email: str
    google_client_id: str
    google_client_secret: str
    oauth_redirect_uri: str
    google_token_url: str
    google_userinfo_url: str
    gmail_api_base_url: str
    calendar_api_base_url: str
    calendar_timezone: str
    token_secret: str
    rate_limit_requests: int
    rate_limit_window_seconds: int

    @staticmethod
    def from_env() -> "AppConfig":
        """Summary: Build configuration from defaults, .env, and environment.

        Importance: Keeps all variables defined in config defaults while allowing overrides.
        Alternatives: Parse only environment variables without a defaults file.
        """

        defaults = load_defaults(Path("config") / "defaults.json")
        load_dotenv(Path(".env"))
        return AppConfig(
            db_path=os.getenv("AKRONOM_DB_PATH", defaults["db_path"]),
            ai_provider=os.getenv("AKRONOM_AI_PROVIDER", defaults["ai_provider"]),
            groq_api_key=os.getenv("GROQ_API_KEY") or defaults["groq_api_key"] or None,
            groq_model=os.getenv("GROQ_MODEL", defaults["groq_model"]),
            groq_base_url=os.getenv("GROQ_BASE_URL", defaults["groq_base_url"]),
            openai_api_key=os.getenv("OPENAI_API_KEY") or defaults["openai_api_key"] or None,
            openai_model=os.getenv("OPENAI_MODEL", defaults["openai_model"]),
            llm_max_tokens=int(os.getenv("AKRONOM_LLM_MAX_TOKENS", defaults["llm_max_tokens"])),
            api_host=os.getenv("AKRONOM_API_HOST", defaults["api_host"]),
            api_port=int(os.getenv("AKRONOM_API_PORT", defaults["api_port"])),
            default_user_name=os.getenv(
                "AKRONOM_DEFAULT_USER_NAME", defaults["default_user_name"]
            ),
            default_user_email=os.getenv(
                "AKRONOM_DEFAULT_USER_EMAIL", defaults["default_user_email"]
            ),
            google_client_id=os.getenv("GOOGLE_CLIENT_ID", defaults["google_client_id"]),
            google_client_secret=os.getenv("GOOGLE_CLIENT_SECRET", defaults["google_client_secret"]),
            oauth_redirect_uri=os.getenv(
                "AKRONOM_OAUTH_REDIRECT_URI", defaults["oauth_redirect_uri"]
            ),
            google_token_url=os.getenv("GOOGLE_TOKEN_URL", defaults["google_token_url"]),
            google_userinfo_url=os.getenv("GOOGLE_USERINFO_URL", defaults["google_userinfo_url"]),
            gmail_api_base_url=os.getenv("GMAIL_API_BASE_URL", defaults["gmail_api_base_url"]),
            calendar_api_base_url=os.getenv(
                "CALENDAR_API_BASE_URL", defaults["calendar_api_base_url"]
            ),
            calendar_timezone=os.getenv("AKRONOM_CALENDAR_TIMEZONE", defaults["calendar_timezone"]),
            token_secret=os.getenv("AKRONOM_TOKEN_SECRET", defaults["token_secret"]),
            rate_limit_requests=int(
                os.getenv("AKRONOM_RATE_LIMIT_REQUESTS", defaults["rate_limit_requests"])
            ),
            rate_limit_window_seconds=int(
                os.getenv(
                    "AKRONOM_RATE_LIMIT_WINDOW_SECONDS", defaults["rate_limit_window_seconds"]
                )
            ),
        )


def load_defaults(path: Path) -> dict[str, str]:
    """Summary: Load configuration defaults from JSON.

    Importance: Ensures all variables exist in a single config file.
    Alternatives: Inline defaults in the AppConfig initializer.
    """

    if not path.exists():
        raise FileNotFoundError(f"Defaults file not found: {path}")
    return json.loads(path.read_text(encoding="utf-8"))


def load_dotenv(path: Path) -> None:
    """Summary: Load key-value pairs from a .env file into the environment.

    Importance: Keeps secrets such as GROQ_API_KEY out of code.
    Alternatives: Use python-dotenv or OS-specific secret stores.
    """

    if not path.exists():
        return
    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        os.environ.setdefault(key.strip(), value.strip().strip('"').strip("'"))
