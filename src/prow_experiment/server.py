"""HTTP listener for pull request webhooks."""

from __future__ import annotations

import hashlib
import hmac

from fastapi import FastAPI, HTTPException, Request
from pydantic import ValidationError

from . import log
from .dispatch import EventDispatcher
from .models import PullRequestEvent
from .settings import Settings

PULL_REQUEST_EVENT = "pull_request"


def verify_signature(secret: str, raw_body: bytes, signature_header: str | None) -> None:
    """Verify ``X-Hub-Signature-256`` against the shared webhook secret."""
    if not signature_header or not signature_header.startswith("sha256="):
        raise HTTPException(status_code=401, detail="Missing/invalid signature header")
    expected = hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()
    received = signature_header.removeprefix("sha256=")
    if not hmac.compare_digest(expected, received):
        raise HTTPException(status_code=401, detail="Invalid signature")


def create_app(
    settings: Settings,
    dispatcher: EventDispatcher,
    *,
    logger: log.Logger | None = None,
) -> FastAPI:
    """Build the webhook application.

    Accepted events are handed to ``dispatcher`` and the response returns
    without waiting for them.
    """
    logger = logger or log.get_logger("server")
    app = FastAPI()

    @app.get("/health")
    def health() -> dict:
        return {"ok": True}

    @app.post("/")
    async def events(request: Request) -> dict:
        raw = await request.body()
        if settings.webhook_secret:
            verify_signature(
                settings.webhook_secret, raw, request.headers.get("X-Hub-Signature-256")
            )

        event_type = request.headers.get("X-GitHub-Event", PULL_REQUEST_EVENT)
        if event_type != PULL_REQUEST_EVENT:
            logger.debug(f"ignoring {event_type} event")
            return {"ok": True, "triggered": False}

        try:
            event = PullRequestEvent.model_validate_json(raw)
        except ValidationError as exc:
            logger.error(f"Error handling event: {exc}")
            return {"ok": False, "triggered": False}

        if not event.guid:
            delivery = request.headers.get("X-GitHub-Delivery", "")
            if delivery:
                event = event.model_copy(update={"guid": delivery})

        if event.action and event.action not in settings.handled_actions:
            logger.debug(f"ignoring action {event.action} for PR {event.number}")
            return {"ok": True, "triggered": False}

        future = dispatcher.submit(event)
        return {"ok": future is not None, "triggered": future is not None}

    return app
