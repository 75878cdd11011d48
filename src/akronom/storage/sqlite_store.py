"""Summary: SQLite storage implementation for Akronom.

Importance: Persists users, API keys, and Google credentials for the chat backend.
Alternatives: Use an ORM or a hosted Postgres database with row-level security.
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Iterator

from akronom.models import User


@dataclass(frozen=True)
class StoredUser:
    """Summary: User record with database identifier.

    Importance: Anchors API keys and credentials to an owner.
    Alternatives: Keep only a single implicit user without records.
    """

    id: int
    display_name: str
    email: str


@dataclass(frozen=True)
class StoredApiKey:
    """Summary: API key record with hashed token.

    Importance: Supports per-user authentication without storing raw keys.
    Alternatives: Store plaintext keys in the database.
    """

    id: int
    user_id: int
    token_hash: str
    label: str | None
    created_at: str


@dataclass(frozen=True)
class StoredCredential:
    """Summary: Google credential row with encoded tokens.

    Importance: One row per user and service holds everything needed to call Google.
    Alternatives: Split access and refresh tokens into separate tables.
    """

    id: int
    user_id: int
    service: str
    access_token: str
    refresh_token: str | None
    expires_at: str | None
    account_email: str | None
    scopes: str
    created_at: str
    updated_at: str

    @property
    def scope_list(self) -> tuple[str, ...]:
        return tuple(scope for scope in self.scopes.split(" ") if scope)


class SqliteStore:
    """Summary: SQLite-backed storage for Akronom.

    Importance: Enables local-first persistence with minimal dependencies.
    Alternatives: Use Postgres and SQLAlchemy from day one.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = Path(db_path)

    def initialize(self) -> None:
        """Summary: Create tables if they do not exist.

        Importance: Ensures the database is ready before the first request.
        Alternatives: Run migrations using a dedicated migration tool.
        """

        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    display_name TEXT NOT NULL,
                    email TEXT NOT NULL UNIQUE
                )
                """
            )
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS api_keys (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                    token_hash TEXT NOT NULL UNIQUE,
                    label TEXT,
                    created_at TEXT NOT NULL
                )
                """
            )
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS google_credentials (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                    service TEXT NOT NULL,
                    access_token TEXT NOT NULL,
                    refresh_token TEXT,
                    expires_at TEXT,
                    account_email TEXT,
                    scopes TEXT NOT NULL DEFAULT '',
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    UNIQUE(user_id, service)
                )
                """
            )
            connection.commit()

    def ensure_user(self, user: User) -> int:
        """Summary: Ensure a user exists and return their ID.

        Importance: Provides a stable user record for data ownership.
        Alternatives: Omit user records in single-user mode.
        """

        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                "INSERT OR IGNORE INTO users (display_name, email) VALUES (?, ?)",
                (user.display_name, user.email),
            )
            if cursor.rowcount:
                user_id = cursor.lastrowid
            else:
                cursor.execute("SELECT id FROM users WHERE email = ?", (user.email,))
                row = cursor.fetchone()
                user_id = int(row[0]) if row else 0
            connection.commit()
        return int(user_id)

    def list_users(self) -> list[StoredUser]:
        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute("SELECT id, display_name, email FROM users ORDER BY id")
            rows = cursor.fetchall()
        return [StoredUser(*row) for row in rows]

    def get_user_by_email(self, email: str) -> StoredUser | None:
        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute("SELECT id, display_name, email FROM users WHERE email = ?", (email,))
            row = cursor.fetchone()
        return StoredUser(*row) if row else None

    def delete_user(self, user_id: int) -> bool:
        """Summary: Delete a user and, through cascades, their keys and credentials.

        Importance: Removing an account must not leave Google tokens behind.
        Alternatives: Soft-delete users and purge credentials in a batch job.
        """

        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute("DELETE FROM users WHERE id = ?", (user_id,))
            deleted = cursor.rowcount > 0
            connection.commit()
        return deleted

    def create_api_key(
        self, user_id: int, token_hash: str, label: str | None, created_at: str
    ) -> int:
        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                "INSERT INTO api_keys (user_id, token_hash, label, created_at) VALUES (?, ?, ?, ?)",
                (user_id, token_hash, label, created_at),
            )
            key_id = cursor.lastrowid
            connection.commit()
        return int(key_id)

    def list_api_keys(self, user_id: int) -> list[StoredApiKey]:
        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                """
                SELECT id, user_id, token_hash, label, created_at
                FROM api_keys
                WHERE user_id = ?
                ORDER BY id
                """,
                (user_id,),
            )
            rows = cursor.fetchall()
        return [StoredApiKey(*row) for row in rows]

    def delete_api_key(self, user_id: int, key_id: int) -> bool:
        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                "DELETE FROM api_keys WHERE id = ? AND user_id = ?",
                (key_id, user_id),
            )
            deleted = cursor.rowcount > 0
            connection.commit()
        return deleted

    def get_user_id_by_api_key(self, token_hash: str) -> int | None:
        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute("SELECT user_id FROM api_keys WHERE token_hash = ?", (token_hash,))
            row = cursor.fetchone()
        return int(row[0]) if row else None

    def upsert_credential(
        self,
        user_id: int,
        service: str,
        access_token: str,
        refresh_token: str | None,
        expires_at: str | None,
        account_email: str | None,
        scopes: tuple[str, ...],
    ) -> int:
        """Summary: Insert or update the credential row for a user and service.

        Importance: Keeps one record per user and service across re-authorizations.
        Alternatives: Delete and re-insert the row on every authorization.
        """

        now = datetime.utcnow().isoformat()
        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                """
                INSERT INTO google_credentials (
                    user_id, service, access_token, refresh_token, expires_at,
                    account_email, scopes, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(user_id, service) DO UPDATE SET
                    access_token = excluded.access_token,
                    refresh_token = COALESCE(excluded.refresh_token, google_credentials.refresh_token),
                    expires_at = excluded.expires_at,
                    account_email = COALESCE(excluded.account_email, google_credentials.account_email),
                    scopes = CASE WHEN excluded.scopes = '' THEN google_credentials.scopes
                                  ELSE excluded.scopes END,
                    updated_at = excluded.updated_at
                """,
                (
                    user_id,
                    service,
                    access_token,
                    refresh_token,
                    expires_at,
                    account_email,
                    " ".join(scopes),
                    now,
                    now,
                ),
            )
            cursor.execute(
                "SELECT id FROM google_credentials WHERE user_id = ? AND service = ?",
                (user_id, service),
            )
            row = cursor.fetchone()
            connection.commit()
        return int(row[0])

    def get_credential(self, user_id: int, service: str) -> StoredCredential | None:
        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                """
                SELECT id, user_id, service, access_token, refresh_token, expires_at,
                       account_email, scopes, created_at, updated_at
                FROM google_credentials
                WHERE user_id = ? AND service = ?
                """,
                (user_id, service),
            )
            row = cursor.fetchone()
        return StoredCredential(*row) if row else None

    def list_credentials(self, user_id: int) -> list[StoredCredential]:
        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                """
                SELECT id, user_id, service, access_token, refresh_token, expires_at,
                       account_email, scopes, created_at, updated_at
                FROM google_credentials
                WHERE user_id = ?
                ORDER BY service
                """,
                (user_id,),
            )
            rows = cursor.fetchall()
        return [StoredCredential(*row) for row in rows]

    def delete_credential(self, user_id: int, service: str) -> bool:
        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                "DELETE FROM google_credentials WHERE user_id = ? AND service = ?",
                (user_id, service),
            )
            deleted = cursor.rowcount > 0
            connection.commit()
        return deleted

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        """Summary: Context manager for SQLite connections.

        Importance: Closes connections after use and enables foreign key cascades.
        Alternatives: Keep a single long-lived connection.
        """

        connection = sqlite3.connect(self._db_path)
        connection.execute("PRAGMA foreign_keys = ON")
        try:
            yield connection
        finally:
            connection.close()
