"""Summary: Tests for the command-line interface.

Importance: The CLI is the quickest way to administer users and try a chat turn.
Alternatives: Exercise the same services only through the HTTP API.
"""

from __future__ import annotations

import shutil
from pathlib import Path

import pytest

from akronom.cli import build_parser, run_cli


REPO_DEFAULTS = Path(__file__).resolve().parents[1] / "config" / "defaults.json"


def _prepare(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    (tmp_path / "config").mkdir()
    shutil.copy(REPO_DEFAULTS, tmp_path / "config" / "defaults.json")
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("AKRONOM_DB_PATH", str(tmp_path / "cli.db"))
    monkeypatch.setenv("AKRONOM_AI_PROVIDER", "mock")


def test_parser_rejects_unknown_service() -> None:
    with pytest.raises(SystemExit):
        build_parser().parse_args(["oauth-url", "drive"])


def test_cli_user_and_key_commands(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    _prepare(tmp_path, monkeypatch)
    run_cli(["create-user", "Ada", "ada@example.com"])
    run_cli(["list-users"])
    run_cli(["create-api-key", "--email", "ada@example.com", "--label", "laptop"])
    output = capsys.readouterr().out
    assert "ada@example.com" in output
    assert "Ada <ada@example.com>" in output
    assert "API key 1:" in output
    with pytest.raises(SystemExit):
        run_cli(["create-api-key", "--email", "nobody@example.com"])


def test_cli_chat_reports_outcomes(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    """Summary: Ensure a one-shot chat prints domain states and the streamed reply.

    Importance: Lets developers check dispatcher decisions without a browser.
    Alternatives: Inspect logs after an API call.
    """

    _prepare(tmp_path, monkeypatch)
    run_cli(["chat", "check my inbox", "--show-prompt"])
    output = capsys.readouterr().out
    assert "[gmail] not_connected" in output
    assert "[calendar] not_connected" in output
    assert "Gmail is not connected" in output
    assert "[mock] check my inbox" in output


def test_cli_connections(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    _prepare(tmp_path, monkeypatch)
    run_cli(["connections"])
    run_cli(["disconnect", "gmail"])
    output = capsys.readouterr().out
    assert "gmail: not connected" in output
    assert "gmail was not connected." in output
