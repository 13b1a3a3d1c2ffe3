from __future__ import annotations

import logging
from typing import NamedTuple

from core.config import Settings
from models.incident import IncidentUpdate
from models.message import RenderedMessage

log = logging.getLogger(__name__)

RED = "#B03A2E"
GREEN = "#36a64f"


class _Style(NamedTuple):
    title: str
    color: str | None = None
    show_body: bool = True


# Real-time incidents, then scheduled maintenance.
STATUS_STYLES: dict[str, _Style] = {
    "identified": _Style("An incident has been identified: {name} 💡", RED),
    "investigating": _Style("We are investigating an incident: {name} 🚨", RED),
    "monitoring": _Style("We are monitoring an incident: {name} 👀", GREEN),
    "resolved": _Style("An incident has been resolved: {name} 🎉", GREEN),
    "postmortem": _Style(
        "We've posted a postmortem for an incident: {name} ⚖️", show_body=False
    ),
    "scheduled": _Style("We've scheduled some downtime: {name}"),
    "inprogress": _Style("Scheduled downtime is in progress: {name}"),
    "in_progress": _Style("Scheduled downtime is in progress: {name}"),
    "verifying": _Style("Scheduled downtime is complete and we are monitoring: {name}"),
    "completed": _Style("Scheduled downtime is complete: {name}"),
}


def status_label(status: str) -> str:
    """``resolved`` -> ``Resolved``; only the first letter changes."""
    return status[:1].upper() + status[1:]


def render_update(
    incident_name: str,
    update: IncidentUpdate,
    settings: Settings,
) -> RenderedMessage | None:
    """Render one update, or return None (after logging) for unknown statuses."""
    style = STATUS_STYLES.get(update.status)
    if style is None:
        log.warning(
            'Unhandled status "%s" for update %s (incident %s)',
            update.status,
            update.id,
            update.incident_id,
        )
        return None

    return RenderedMessage(
        title=style.title.format(name=incident_name),
        title_link=settings.incident_url(update.incident_id),
        text=update.body if style.show_body else "",
        status=status_label(update.status),
        footer=settings.brand,
        ts=update.created_unix,
        callback_id=update.id,
        color=style.color,
    )
