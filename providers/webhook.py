"""Webhook endpoint for Statuspage notifications.

Statuspage POSTs a JSON document per notification and gives up on slow
endpoints, so the handler only parses the body and leaves the posting to
a background task.  Every request that got this far is answered 200 with
an empty body; failures show up in the logs only.
"""
from __future__ import annotations

import json
import logging
from collections.abc import Callable

from fastapi import BackgroundTasks, FastAPI, Request, Response

from core.dispatcher import NotificationDispatcher
from core.errors import GatewayError, InvalidAuthError
from models.incident import Notification

log = logging.getLogger(__name__)


def create_app(
    dispatcher: NotificationDispatcher,
    on_fatal: Callable[[Exception], None] | None = None,
) -> FastAPI:
    """Build the webhook app.

    ``on_fatal`` is called with the error when the chat service rejects
    our credentials, so the caller can stop the process.
    """
    app = FastAPI(title="statusbot", docs_url=None, redoc_url=None, openapi_url=None)

    async def dispatch_safe(notification: Notification) -> None:
        incident = notification.incident
        try:
            await dispatcher.dispatch_notification(notification)
        except InvalidAuthError as exc:
            log.critical("Invalid credentials while posting incident %s", incident.id)
            if on_fatal is not None:
                on_fatal(exc)
        except GatewayError as exc:
            log.error("Handler failed for incident %s: %s", incident.id, exc)
        except Exception:
            log.exception("Handler crashed for incident %s", incident.id)

    @app.get("/healthz")
    async def healthz() -> dict[str, bool]:
        return {"ok": True}

    @app.post("/")
    @app.post("/webhook")
    async def receive(request: Request, background_tasks: BackgroundTasks) -> Response:
        log.info("%s %s", request.method, request.url.path)
        empty = Response(status_code=200)

        try:
            payload = await request.body()
        except Exception as exc:
            log.error("Error reading body: %s", exc)
            return empty

        try:
            parsed = json.loads(payload)
        except ValueError as exc:
            log.error("Error unmarshalling webhook: %s", exc)
            return empty

        if not isinstance(parsed, dict):
            log.error("Error unmarshalling webhook: expected an object")
            return empty

        if "component" in parsed:
            log.info("Skipping component update webhook")
            return empty

        if "incident" not in parsed:
            log.info("Skipping webhook without an incident (keys: %s)", sorted(parsed))
            return empty

        try:
            notification = Notification.from_dict(parsed)
        except ValueError as exc:
            log.error("Error unmarshalling webhook: %s", exc)
            return empty

        incident = notification.incident
        log.info(
            "Incident %s %r is %s with %d update(s): %s",
            incident.id,
            incident.name,
            incident.status or "unknown",
            len(incident.incident_updates),
            ", ".join(f"{u.id}={u.status}" for u in incident.chronological_updates()),
        )

        background_tasks.add_task(dispatch_safe, notification)
        return empty

    return app
