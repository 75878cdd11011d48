"""Summary: Application factory wiring core services.

Importance: Centralizes dependency creation for the CLI and API layers.
Alternatives: Instantiate services manually in each entrypoint.
"""

from __future__ import annotations

from dataclasses import dataclass

from akronom.calendar import GoogleCalendarClient
from akronom.chat import ChatService
from akronom.config import AppConfig
from akronom.gmail import GmailClient
from akronom.llm import ChatProviderFactory
from akronom.models import User
from akronom.rate_limit import RateLimiter
from akronom.services import ApiKeyService, CredentialService, UserService
from akronom.storage.sqlite_store import SqliteStore
from akronom.token_codec import TokenCodec


@dataclass(frozen=True)
class AppContext:
    """Summary: Shared application context for building user services.

    Importance: Reuses storage, the token codec, and the rate limiter across users.
    Alternatives: Rebuild dependencies for every request.
    """

    store: SqliteStore
    codec: TokenCodec
    rate_limiter: RateLimiter
    provider_factory: ChatProviderFactory
    config: AppConfig

    def services_for_user(self, user_id: int) -> "AppServices":
        """Summary: Build user-scoped services from shared context.

        Importance: Keeps every credential lookup bound to one user.
        Alternatives: Use a multi-tenant database with row-level security.
        """

        credentials = CredentialService(
            store=self.store,
            user_id=user_id,
            codec=self.codec,
            config=self.config,
        )
        return AppServices(
            credentials=credentials,
            users=UserService(store=self.store),
            api_keys=ApiKeyService(store=self.store, token_secret=self.config.token_secret),
            provider_factory=self.provider_factory,
            config=self.config,
            store=self.store,
            user_id=user_id,
        )


@dataclass(frozen=True)
class AppServices:
    """Summary: Bundle of user-scoped services for Akronom.

    Importance: Simplifies passing dependencies to the CLI and API layers.
    Alternatives: Use a dependency injection container.
    """

    credentials: CredentialService
    users: UserService
    api_keys: ApiKeyService
    provider_factory: ChatProviderFactory
    config: AppConfig
    store: SqliteStore
    user_id: int

    def gmail_client(self, access_token: str) -> GmailClient:
        return GmailClient(access_token, self.config.gmail_api_base_url)

    def calendar_client(self, access_token: str) -> GoogleCalendarClient:
        return GoogleCalendarClient(
            access_token,
            self.config.calendar_api_base_url,
            timezone=self.config.calendar_timezone,
        )

    def chat(self) -> ChatService:
        """Summary: Build the chat dispatcher for this user.

        Importance: The LLM provider is resolved per call, so a missing key only
        fails chat requests and not the whole app.
        Alternatives: Build the provider once at startup and refuse to boot.
        """

        return ChatService(
            credentials=self.credentials,
            chat_provider=self.provider_factory.build(),
            gmail_factory=self.gmail_client,
            calendar_factory=self.calendar_client,
            timezone=self.config.calendar_timezone,
        )


def build_context(config: AppConfig) -> AppContext:
    """Summary: Build shared context for user-scoped services.

    Importance: Initializes storage once per process.
    Alternatives: Construct dependencies separately per request.
    """

    store = SqliteStore(config.db_path)
    store.initialize()
    return AppContext(
        store=store,
        codec=TokenCodec(config.token_secret),
        rate_limiter=RateLimiter(config.rate_limit_requests, config.rate_limit_window_seconds),
        provider_factory=ChatProviderFactory(config),
        config=config,
    )


def build_services(config: AppConfig) -> AppServices:
    """Summary: Build services for the configured default user.

    Importance: Gives the CLI a single construction path.
    Alternatives: Require a user flag on every CLI command.
    """

    context = build_context(config)
    user = User(display_name=config.default_user_name, email=config.default_user_email)
    user_id = context.store.ensure_user(user)
    return context.services_for_user(user_id)
