"""Summary: FastAPI application for Akronom.

Importance: Exposes the chat stream, Google connectors, and Gmail/Calendar endpoints over HTTP.
Alternatives: Use a CLI-only workflow or a different web framework.
"""

from __future__ import annotations

import logging
from dataclasses import asdict
from datetime import datetime, timedelta
from typing import Any, Literal

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse, JSONResponse, StreamingResponse
from pydantic import BaseModel, Field

from akronom.app import AppContext, AppServices, build_context
from akronom.config import AppConfig
from akronom.google_api import GoogleApiError
from akronom.llm import LlmRateLimitError, LlmServiceError
from akronom.models import ChatMessage, CreateEventIntent, SendEmailIntent, TokenGrant
from akronom.oauth import (
    build_google_auth_url,
    create_state_token,
    ensure_service,
    exchange_oauth_code,
    fetch_account_email,
)
from akronom.services import ApiKeyService


logger = logging.getLogger(__name__)

RATE_LIMIT_MESSAGE = "Rate limit exceeded. Please try again in a moment."


class ChatMessageIn(BaseModel):
    """Summary: One transcript message in a chat request.

    Importance: Restricts roles to the two the dispatcher understands.
    Alternatives: Accept arbitrary roles and filter them later.
    """

    role: Literal["user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    """Summary: Request payload for a chat turn.

    Importance: The client sends the whole transcript; the server keeps no conversation state.
    Alternatives: Store conversations server-side and send only the new message.
    """

    messages: list[ChatMessageIn] = Field(min_length=1)


class SendEmailRequest(BaseModel):
    to: str = Field(min_length=3)
    subject: str = Field(min_length=1)
    body: str = ""


class EventCreateRequest(BaseModel):
    """Summary: Request payload for creating a calendar event.

    Importance: End defaults to one hour (or one day when all-day) after start.
    Alternatives: Require clients to always send an end time.
    """

    title: str = Field(min_length=1)
    start: datetime
    end: datetime | None = None
    all_day: bool = False
    location: str | None = None
    description: str | None = None
    attendees: list[str] = Field(default_factory=list)


class EventUpdateRequest(BaseModel):
    title: str | None = None
    start: datetime | None = None
    end: datetime | None = None
    all_day: bool = False
    location: str | None = None
    description: str | None = None


def create_app(config: AppConfig, context: AppContext | None = None) -> FastAPI:
    """Summary: Create a FastAPI app wired to Akronom services.

    Importance: Ensures the API layer shares the same configuration and storage.
    Alternatives: Instantiate services globally outside the factory.
    """

    if not logging.getLogger().handlers:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    app = FastAPI(title="Akronom API", version="0.1.0")
    context = context or build_context(config)
    api_keys = ApiKeyService(store=context.store, token_secret=config.token_secret)
    app.state.oauth_states = {}

    @app.exception_handler(RequestValidationError)
    def validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})

    def _register_state(service: str, user_id: int, state: str) -> None:
        app.state.oauth_states[state] = {
            "service": service,
            "user_id": user_id,
            "created_at": datetime.utcnow(),
        }

    def _consume_state(state: str) -> dict[str, Any]:
        """Summary: Validate and consume an OAuth state token.

        Importance: Reduces CSRF risks and binds the callback to the user who started the flow.
        Alternatives: Use signed cookies for state.
        """

        record = app.state.oauth_states.pop(state, None)
        if not record:
            raise HTTPException(status_code=400, detail="Invalid OAuth state")
        if datetime.utcnow() - record["created_at"] > timedelta(minutes=10):
            raise HTTPException(status_code=400, detail="OAuth state expired")
        return record

    def current_services(authorization: str | None = Header(default=None)) -> AppServices:
        """Summary: Resolve the caller from an `Authorization: Bearer` API key.

        Importance: Every user-scoped endpoint runs with that user's credentials only.
        Alternatives: Use session cookies.
        """

        if not authorization or not authorization.lower().startswith("bearer "):
            raise HTTPException(status_code=401, detail="Missing API key")
        user_id = api_keys.resolve_user_id(authorization[len("bearer "):].strip())
        if user_id is None:
            raise HTTPException(status_code=401, detail="Invalid API key")
        return context.services_for_user(user_id)

    def _require_grant(services: AppServices, service: str) -> TokenGrant:
        grant = services.credentials.get_valid_token(service)
        if grant is None:
            raise HTTPException(
                status_code=401,
                detail={"error": f"{service} is not connected", "needs_auth": True},
            )
        return grant

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/chat")
    def chat(payload: ChatRequest, services: AppServices = Depends(current_services)) -> StreamingResponse:
        """Summary: Run one chat turn and stream the LLM response.

        Importance: Status codes distinguish local limits, upstream limits, and configuration errors.
        Alternatives: Always return 200 and report errors inside the stream.
        """

        if not context.rate_limiter.allow(str(services.user_id)):
            raise HTTPException(status_code=429, detail=RATE_LIMIT_MESSAGE)
        transcript = [ChatMessage(role=item.role, content=item.content) for item in payload.messages]
        logger.info("Starting chat request with %s messages.", len(transcript))
        try:
            chat_service = services.chat()
        except ValueError as exc:
            logger.error("Chat provider misconfigured: %s", exc)
            raise HTTPException(status_code=500, detail=str(exc)) from exc
        try:
            result = chat_service.handle_turn(transcript)
        except LlmRateLimitError as exc:
            raise HTTPException(status_code=429, detail=str(exc)) from exc
        except LlmServiceError as exc:
            raise HTTPException(status_code=500, detail=str(exc)) from exc
        remaining = context.rate_limiter.remaining(str(services.user_id))
        return StreamingResponse(
            result.stream,
            media_type="text/event-stream",
            headers={"X-RateLimit-Remaining": str(remaining)},
        )

    @app.get("/oauth/google")
    def oauth_google(
        service: str, services: AppServices = Depends(current_services)
    ) -> dict[str, str]:
        try:
            ensure_service(service)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        state = create_state_token()
        _register_state(service, services.user_id, state)
        return {"url": build_google_auth_url(config, service, state), "state": state}

    @app.get("/oauth/callback", response_class=HTMLResponse)
    def oauth_callback(code: str, state: str) -> str:
        """Summary: Complete the Google OAuth flow and store credentials.

        Importance: Re-authorizing a service updates its single credential record.
        Alternatives: Hand tokens to the browser and let it post them back.
        """

        record = _consume_state(state)
        try:
            token_result = exchange_oauth_code(config, code)
        except (RuntimeError, ValueError) as exc:
            logger.warning("OAuth exchange failed: %s", exc)
            raise HTTPException(status_code=400, detail="OAuth exchange failed") from exc
        try:
            account_email = fetch_account_email(config, token_result.access_token)
        except RuntimeError as exc:
            logger.warning("Could not fetch Google account email: %s", exc)
            account_email = None
        services = context.services_for_user(record["user_id"])
        services.credentials.save_credentials(record["service"], token_result, account_email)
        return (
            f"<html><body><h2>{record['service'].title()} connected</h2>"
            f"<p>{account_email or 'Your Google account'} is now linked. "
            "You can close this window.</p></body></html>"
        )

    @app.get("/connections")
    def connections(services: AppServices = Depends(current_services)) -> dict[str, Any]:
        return services.credentials.connection_status()

    @app.delete("/connections/{service}")
    def disconnect(service: str, services: AppServices = Depends(current_services)) -> dict[str, bool]:
        try:
            deleted = services.credentials.disconnect(service)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return {"disconnected": deleted}

    @app.get("/gmail/messages")
    def gmail_messages(
        query: str | None = None,
        limit: int = 10,
        services: AppServices = Depends(current_services),
    ) -> list[dict[str, Any]]:
        grant = _require_grant(services, "gmail")
        client = services.gmail_client(grant.token)
        try:
            return [asdict(item) for item in client.list_messages(query=query, limit=limit)]
        except GoogleApiError as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc

    @app.get("/gmail/messages/{message_id}")
    def gmail_message(message_id: str, services: AppServices = Depends(current_services)) -> dict[str, Any]:
        grant = _require_grant(services, "gmail")
        try:
            return asdict(services.gmail_client(grant.token).read_message(message_id))
        except GoogleApiError as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc

    @app.post("/gmail/send")
    def gmail_send(payload: SendEmailRequest, services: AppServices = Depends(current_services)) -> dict[str, Any]:
        grant = _require_grant(services, "gmail")
        intent = SendEmailIntent(
            to=payload.to,
            subject=payload.subject,
            body=payload.body or f"Regarding: {payload.subject}",
        )
        try:
            message_id = services.gmail_client(grant.token).send_message(intent)
        except GoogleApiError as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        return {"success": True, "id": message_id}

    @app.get("/calendar/events")
    def calendar_events(
        time_min: datetime | None = None,
        time_max: datetime | None = None,
        limit: int = 15,
        query: str | None = None,
        services: AppServices = Depends(current_services),
    ) -> list[dict[str, Any]]:
        grant = _require_grant(services, "calendar")
        client = services.calendar_client(grant.token)
        try:
            events = client.list_events(time_min=time_min, time_max=time_max, limit=limit, query=query)
        except GoogleApiError as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        return [asdict(event) for event in events]

    @app.post("/calendar/events")
    def calendar_create(
        payload: EventCreateRequest, services: AppServices = Depends(current_services)
    ) -> dict[str, Any]:
        grant = _require_grant(services, "calendar")
        end = payload.end or payload.start + (
            timedelta(days=1) if payload.all_day else timedelta(hours=1)
        )
        if end < payload.start:
            raise HTTPException(status_code=400, detail="Event end must not be before its start")
        intent = CreateEventIntent(
            title=payload.title,
            start=payload.start,
            end=end,
            all_day=payload.all_day,
            location=payload.location,
            description=payload.description,
            attendees=tuple(payload.attendees),
        )
        try:
            event = services.calendar_client(grant.token).create_event(intent)
        except GoogleApiError as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        return asdict(event)

    @app.patch("/calendar/events/{event_id}")
    def calendar_update(
        event_id: str,
        payload: EventUpdateRequest,
        services: AppServices = Depends(current_services),
    ) -> dict[str, Any]:
        grant = _require_grant(services, "calendar")
        try:
            event = services.calendar_client(grant.token).update_event(
                event_id,
                title=payload.title,
                start=payload.start,
                end=payload.end,
                all_day=payload.all_day,
                location=payload.location,
                description=payload.description,
            )
        except GoogleApiError as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        return asdict(event)

    @app.delete("/calendar/events/{event_id}")
    def calendar_delete(event_id: str, services: AppServices = Depends(current_services)) -> dict[str, bool]:
        grant = _require_grant(services, "calendar")
        try:
            services.calendar_client(grant.token).delete_event(event_id)
        except GoogleApiError as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        return {"deleted": True}

    return app
