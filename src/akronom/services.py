"""Summary: Account-level services for Akronom.

Importance: Manages users, API keys, and Google credentials behind the chat core.
Alternatives: Build a full service layer with a dependency injection framework.
"""

from __future__ import annotations

import hashlib
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta

from akronom.config import AppConfig
from akronom.models import CredentialRecord, TokenGrant, User
from akronom.oauth import SERVICES, OAuthTokenResult, ensure_service, refresh_oauth_token
from akronom.storage.sqlite_store import SqliteStore, StoredApiKey, StoredUser
from akronom.token_codec import TokenCodec


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserService:
    """Summary: Manages user records for multi-user workflows.

    Importance: Provides user creation and lookup for per-user auth.
    Alternatives: Use an external identity provider.
    """

    store: SqliteStore

    def create_user(self, display_name: str, email: str) -> int:
        return self.store.ensure_user(User(display_name=display_name, email=email))

    def list_users(self) -> list[StoredUser]:
        return self.store.list_users()

    def get_user_by_email(self, email: str) -> StoredUser | None:
        return self.store.get_user_by_email(email)

    def delete_user(self, user_id: int) -> bool:
        """Summary: Delete a user with their keys and Google credentials.

        Importance: Credentials are removed by the storage cascade, never orphaned.
        Alternatives: Delete dependent rows explicitly before the user.
        """

        deleted = self.store.delete_user(user_id)
        if deleted:
            logger.info("Deleted user %s.", user_id)
        return deleted


@dataclass(frozen=True)
class ApiKeyService:
    """Summary: Issues and verifies API keys for users.

    Importance: Enables per-user API authentication tokens.
    Alternatives: Use OAuth or an external auth service.
    """

    store: SqliteStore
    token_secret: str

    def create_api_key(self, user_id: int, label: str | None = None) -> tuple[int, str]:
        """Summary: Create a new API key for a user.

        Importance: Returns a one-time plaintext token for client storage.
        Alternatives: Store raw tokens in the database.
        """

        raw_token = secrets.token_urlsafe(32)
        key_id = self.store.create_api_key(
            user_id=user_id,
            token_hash=self._hash_token(raw_token),
            label=label,
            created_at=datetime.utcnow().isoformat(),
        )
        return key_id, raw_token

    def revoke_api_key(self, user_id: int, key_id: int) -> bool:
        return self.store.delete_api_key(user_id, key_id)

    def list_api_keys(self, user_id: int) -> list[StoredApiKey]:
        return self.store.list_api_keys(user_id)

    def resolve_user_id(self, token: str) -> int | None:
        return self.store.get_user_id_by_api_key(self._hash_token(token))

    def _hash_token(self, token: str) -> str:
        salt = self.token_secret or "akronom"
        return hashlib.sha256(f"{salt}:{token}".encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class CredentialService:
    """Summary: Stores Google credentials and hands out live access tokens.

    Importance: Is the only component that knows about expiry and refresh.
    Alternatives: Refresh tokens inside each Google client.
    """

    store: SqliteStore
    user_id: int
    codec: TokenCodec
    config: AppConfig

    def save_credentials(
        self,
        service: str,
        token_result: OAuthTokenResult,
        account_email: str | None = None,
    ) -> int:
        """Summary: Insert or update the credential record for a service.

        Importance: Re-authorization updates the existing record in place.
        Alternatives: Keep a history of grants per service.
        """

        ensure_service(service)
        record_id = self.store.upsert_credential(
            user_id=self.user_id,
            service=service,
            access_token=self.codec.encode(token_result.access_token),
            refresh_token=(
                self.codec.encode(token_result.refresh_token)
                if token_result.refresh_token
                else None
            ),
            expires_at=token_result.expires_at,
            account_email=account_email,
            scopes=token_result.scopes,
        )
        logger.info("Stored Google credentials for %s.", service)
        return record_id

    def load_credentials(self, service: str) -> CredentialRecord | None:
        record = self.store.get_credential(self.user_id, ensure_service(service))
        if not record:
            return None
        return CredentialRecord(
            user_id=record.user_id,
            service=record.service,
            access_token=self.codec.decode(record.access_token),
            refresh_token=(
                self.codec.decode(record.refresh_token) if record.refresh_token else None
            ),
            expires_at=record.expires_at,
            account_email=record.account_email,
            scopes=record.scope_list,
        )

    def get_valid_token(self, service: str) -> TokenGrant | None:
        """Summary: Return a usable access token, refreshing it when near expiry.

        Importance: A missing or unrefreshable credential reads as "not connected".
        Alternatives: Raise and force callers to handle every auth failure mode.
        """

        record = self.load_credentials(service)
        if record is None:
            return None
        if not self._expires_soon(record.expires_at):
            return TokenGrant(token=record.access_token, account_email=record.account_email)
        if not record.refresh_token:
            logger.warning("Token for %s expired and no refresh token is stored.", service)
            return None
        try:
            token_result = refresh_oauth_token(self.config, record.refresh_token)
        except (RuntimeError, ValueError, OSError) as exc:
            logger.warning("Token refresh for %s failed: %s", service, exc)
            return None
        self.store.upsert_credential(
            user_id=self.user_id,
            service=service,
            access_token=self.codec.encode(token_result.access_token),
            refresh_token=(
                self.codec.encode(token_result.refresh_token)
                if token_result.refresh_token
                else None
            ),
            expires_at=token_result.expires_at,
            account_email=None,
            scopes=token_result.scopes,
        )
        logger.info("Refreshed Google token for %s.", service)
        return TokenGrant(token=token_result.access_token, account_email=record.account_email)

    def connection_status(self) -> dict[str, dict[str, object]]:
        status: dict[str, dict[str, object]] = {
            service: {"connected": False, "email": None} for service in SERVICES
        }
        for record in self.store.list_credentials(self.user_id):
            if record.service in status:
                status[record.service] = {"connected": True, "email": record.account_email}
        return status

    def disconnect(self, service: str) -> bool:
        deleted = self.store.delete_credential(self.user_id, ensure_service(service))
        if deleted:
            logger.info("Disconnected %s.", service)
        return deleted

    def _expires_soon(self, expires_at: str | None) -> bool:
        """Summary: Check if a token is expired or within 60 seconds of expiry.

        Importance: Avoids handing out tokens that die mid-request.
        Alternatives: Always refresh tokens before use.
        """

        if not expires_at:
            return False
        try:
            expires = datetime.fromisoformat(expires_at)
        except ValueError:
            return False
        return expires <= datetime.utcnow() + timedelta(seconds=60)
