"""Summary: Command-line interface for Akronom.

Importance: Provides local administration and a one-shot chat without a browser.
Alternatives: Build an admin web UI first.
"""

from __future__ import annotations

import argparse
import logging

from akronom.app import build_context, build_services
from akronom.config import AppConfig
from akronom.llm import parse_sse_text
from akronom.models import ChatMessage
from akronom.oauth import SERVICES, build_google_auth_url, create_state_token


def build_parser() -> argparse.ArgumentParser:
    """Summary: Build the CLI argument parser.

    Importance: Defines supported commands for local operation.
    Alternatives: Use a CLI framework like Typer or Click.
    """

    parser = argparse.ArgumentParser(description="Akronom CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    create_user = subparsers.add_parser("create-user", help="Create a user")
    create_user.add_argument("display_name", type=str)
    create_user.add_argument("email", type=str)

    subparsers.add_parser("list-users", help="List users")

    create_key = subparsers.add_parser("create-api-key", help="Issue an API key for a user")
    create_key.add_argument("--email", type=str, default=None)
    create_key.add_argument("--label", type=str, default=None)

    revoke_key = subparsers.add_parser("revoke-api-key", help="Revoke an API key")
    revoke_key.add_argument("key_id", type=int)
    revoke_key.add_argument("--email", type=str, default=None)

    oauth_url = subparsers.add_parser("oauth-url", help="Print a Google OAuth URL")
    oauth_url.add_argument("service", choices=SERVICES)

    subparsers.add_parser("connections", help="Show Google connection status")

    disconnect = subparsers.add_parser("disconnect", help="Remove stored Google credentials")
    disconnect.add_argument("service", choices=SERVICES)

    chat = subparsers.add_parser("chat", help="Send one message to the assistant")
    chat.add_argument("message", type=str)
    chat.add_argument("--show-prompt", action="store_true")

    subparsers.add_parser("serve", help="Run the HTTP API")

    return parser


def run_cli(argv: list[str] | None = None) -> None:
    """Summary: Execute CLI commands based on arguments.

    Importance: Commands act on the default user unless --email selects another.
    Alternatives: Invoke services via the HTTP API.
    """

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    args = build_parser().parse_args(argv)
    config = AppConfig.from_env()

    if args.command == "serve":
        import uvicorn

        from akronom.api import create_app

        uvicorn.run(create_app(config), host=config.api_host, port=config.api_port)
        return

    services = build_services(config)

    if args.command == "create-user":
        user_id = services.users.create_user(args.display_name, args.email)
        print(f"User {user_id}: {args.email}")
        return

    if args.command == "list-users":
        for user in services.users.list_users():
            print(f"{user.id}: {user.display_name} <{user.email}>")
        return

    if args.command in ("create-api-key", "revoke-api-key"):
        user_id = services.user_id
        if args.email:
            user = services.users.get_user_by_email(args.email)
            if user is None:
                raise SystemExit(f"No user with email {args.email}")
            user_id = user.id
        if args.command == "create-api-key":
            key_id, token = services.api_keys.create_api_key(user_id, label=args.label)
            print(f"API key {key_id}: {token}")
        else:
            revoked = services.api_keys.revoke_api_key(user_id, args.key_id)
            print("Revoked." if revoked else "API key not found.")
        return

    if args.command == "oauth-url":
        print(build_google_auth_url(config, args.service, create_state_token()))
        return

    if args.command == "connections":
        for service, status in services.credentials.connection_status().items():
            label = f"connected ({status['email'] or 'unknown account'})" if status["connected"] else "not connected"
            print(f"{service}: {label}")
        return

    if args.command == "disconnect":
        removed = services.credentials.disconnect(args.service)
        print(f"Disconnected {args.service}." if removed else f"{args.service} was not connected.")
        return

    if args.command == "chat":
        result = services.chat().handle_turn([ChatMessage(role="user", content=args.message)])
        for outcome in result.outcomes.values():
            print(f"[{outcome.service}] {outcome.state.value}")
        if args.show_prompt:
            print(result.system_prompt)
            print("---")
        print(parse_sse_text(result.stream))
        return


if __name__ == "__main__":
    run_cli()
