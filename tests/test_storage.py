"""Summary: Tests for SQLite storage behavior.

Importance: Ensures users, API keys, and Google credentials persist correctly.
Alternatives: Use integration tests against a hosted database.
"""

from __future__ import annotations

from pathlib import Path

from akronom.models import User
from akronom.storage.sqlite_store import SqliteStore


def _store(tmp_path: Path) -> SqliteStore:
    store = SqliteStore(str(tmp_path / "akronom.db"))
    store.initialize()
    return store


def test_ensure_user_is_idempotent(tmp_path: Path) -> None:
    store = _store(tmp_path)
    first = store.ensure_user(User(display_name="Ada", email="ada@example.com"))
    second = store.ensure_user(User(display_name="Ada L.", email="ada@example.com"))
    assert first == second
    assert [user.email for user in store.list_users()] == ["ada@example.com"]


def test_upsert_credential_keeps_one_row_per_service(tmp_path: Path) -> None:
    """Summary: Ensure re-authorization updates the existing credential in place.

    Importance: A user has at most one credential record per Google service.
    Alternatives: Append a row per authorization and read the newest.
    """

    store = _store(tmp_path)
    user_id = store.ensure_user(User(display_name="Ada", email="ada@example.com"))
    first_id = store.upsert_credential(
        user_id, "gmail", "access-1", "refresh-1", "2026-01-01T00:00:00", "ada@gmail.com", ("scope-a",)
    )
    second_id = store.upsert_credential(user_id, "gmail", "access-2", None, None, None, ())
    assert first_id == second_id
    record = store.get_credential(user_id, "gmail")
    assert record is not None
    assert record.access_token == "access-2"
    assert record.refresh_token == "refresh-1"
    assert record.account_email == "ada@gmail.com"
    assert record.expires_at is None
    assert record.scope_list == ("scope-a",)
    assert len(store.list_credentials(user_id)) == 1


def test_credentials_are_scoped_per_user(tmp_path: Path) -> None:
    store = _store(tmp_path)
    ada = store.ensure_user(User(display_name="Ada", email="ada@example.com"))
    bob = store.ensure_user(User(display_name="Bob", email="bob@example.com"))
    store.upsert_credential(ada, "calendar", "token", None, None, None, ())
    assert store.get_credential(bob, "calendar") is None
    assert store.delete_credential(bob, "calendar") is False
    assert store.delete_credential(ada, "calendar") is True


def test_delete_user_cascades(tmp_path: Path) -> None:
    store = _store(tmp_path)
    user_id = store.ensure_user(User(display_name="Ada", email="ada@example.com"))
    store.create_api_key(user_id, "hash", "laptop", "2026-01-01T00:00:00")
    store.upsert_credential(user_id, "gmail", "token", None, None, None, ())
    assert store.delete_user(user_id) is True
    assert store.get_user_id_by_api_key("hash") is None
    assert store.list_credentials(user_id) == []
