"""Summary: Tests for configuration loading.

Importance: Ensures defaults, .env, and environment overrides behave correctly.
Alternatives: Validate configuration manually during runtime.
"""

from __future__ import annotations

import json
import os
import shutil
from pathlib import Path

import pytest

from akronom.config import AppConfig, load_defaults, load_dotenv


REPO_DEFAULTS = Path(__file__).resolve().parents[1] / "config" / "defaults.json"

OVERRIDABLE = (
    "AKRONOM_DB_PATH",
    "AKRONOM_AI_PROVIDER",
    "GROQ_API_KEY",
    "GROQ_MODEL",
    "AKRONOM_CALENDAR_TIMEZONE",
    "AKRONOM_RATE_LIMIT_REQUESTS",
)


def _prepare(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    (tmp_path / "config").mkdir()
    shutil.copy(REPO_DEFAULTS, tmp_path / "config" / "defaults.json")
    monkeypatch.chdir(tmp_path)
    for name in OVERRIDABLE:
        monkeypatch.delenv(name, raising=False)


def test_load_defaults_reads_json(tmp_path: Path) -> None:
    defaults_path = tmp_path / "defaults.json"
    defaults_path.write_text("{\"db_path\": \"test.db\"}", encoding="utf-8")
    assert load_defaults(defaults_path)["db_path"] == "test.db"


def test_load_defaults_requires_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_defaults(tmp_path / "missing.json")


def test_load_dotenv_sets_env_without_overriding(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Summary: Ensure .env values populate but never override the environment.

    Importance: Real environment variables must win over a stale .env file.
    Alternatives: Let .env values overwrite the environment.
    """

    env_path = tmp_path / ".env"
    env_path.write_text(
        "# comment\nAKRONOM_AI_PROVIDER=\"mock\"\nGROQ_MODEL=from-dotenv\n", encoding="utf-8"
    )
    # setenv first so the value written by load_dotenv is undone after the test
    monkeypatch.setenv("AKRONOM_AI_PROVIDER", "placeholder")
    monkeypatch.delenv("AKRONOM_AI_PROVIDER")
    monkeypatch.setenv("GROQ_MODEL", "from-env")
    load_dotenv(env_path)
    assert os.getenv("AKRONOM_AI_PROVIDER") == "mock"
    assert os.getenv("GROQ_MODEL") == "from-env"


def test_app_config_uses_defaults(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Summary: Verify AppConfig honors the defaults file when env is absent.

    Importance: Confirms the config file is the baseline for every variable.
    Alternatives: Inline defaults directly in the AppConfig class.
    """

    _prepare(tmp_path, monkeypatch)
    config = AppConfig.from_env()
    defaults = json.loads(REPO_DEFAULTS.read_text(encoding="utf-8"))
    assert config.db_path == defaults["db_path"]
    assert config.ai_provider == "groq"
    assert config.groq_api_key is None
    assert config.groq_model == "llama-3.1-8b-instant"
    assert config.llm_max_tokens == 4096
    assert config.calendar_timezone == "UTC"
    assert config.rate_limit_requests == 20
    assert config.rate_limit_window_seconds == 60


def test_app_config_env_overrides(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _prepare(tmp_path, monkeypatch)
    monkeypatch.setenv("AKRONOM_AI_PROVIDER", "mock")
    monkeypatch.setenv("GROQ_API_KEY", "gsk-test")
    monkeypatch.setenv("AKRONOM_CALENDAR_TIMEZONE", "Europe/Berlin")
    monkeypatch.setenv("AKRONOM_RATE_LIMIT_REQUESTS", "5")
    config = AppConfig.from_env()
    assert config.ai_provider == "mock"
    assert config.groq_api_key == "gsk-test"
    assert config.calendar_timezone == "Europe/Berlin"
    assert config.rate_limit_requests == 5
