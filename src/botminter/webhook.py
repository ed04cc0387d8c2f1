"""FastAPI application for the daemon's webhook mode.

``POST /webhook`` accepts every GitHub delivery. Deliveries whose
``X-GitHub-Event`` type is relevant schedule the wake callback as a background
task after the response is sent; all others are acknowledged and ignored.
Unknown paths fall through to FastAPI's 404.
"""

from __future__ import annotations

import threading
from typing import Callable

from fastapi import BackgroundTasks, FastAPI, Request

from . import log as bm_log

EVENT_HEADER = "X-GitHub-Event"
RELEVANT_WEBHOOK_EVENTS = frozenset(
    {
        "issues",
        "issue_comment",
        "pull_request",
        "pull_request_review",
        "pull_request_review_comment",
        "project_v2_item",
    }
)

EventHandler = Callable[[str], None]


def is_relevant_event(event_type: str) -> bool:
    """Return whether a webhook event type should wake members.

    Example:
        >>> is_relevant_event("issue_comment")
        True
        >>> is_relevant_event("star")
        False
    """
    return event_type in RELEVANT_WEBHOOK_EVENTS


def serialized(handler: EventHandler) -> EventHandler:
    """Run ``handler`` under a lock so concurrent deliveries wake members one at a time."""
    lock = threading.Lock()

    def run(event_type: str) -> None:
        with lock:
            handler(event_type)

    return run


def create_app(on_event: EventHandler, *, team_name: str = "") -> FastAPI:
    """Create the webhook app.

    Args:
        on_event: Called with the event type of each relevant delivery.
        team_name: Shown in the health payload.
    """
    app = FastAPI(title=f"botminter daemon {team_name}".strip())
    dispatch = serialized(on_event)

    @app.post("/webhook")
    async def webhook(request: Request, background: BackgroundTasks) -> dict[str, str]:
        event_type = request.headers.get(EVENT_HEADER, "").strip()
        await request.body()
        if not is_relevant_event(event_type):
            bm_log.debug(f"ignoring webhook event {event_type or '(none)'}")
            return {"status": "ignored", "event": event_type}
        bm_log.info(f"received webhook event {event_type}")
        background.add_task(dispatch, event_type)
        return {"status": "accepted", "event": event_type}

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    return app
