from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


def parse_timestamp(raw: str) -> datetime:
    """Parse ISO 8601 timestamps that may include fractional seconds."""
    cleaned = raw.replace("Z", "+00:00")
    parsed = datetime.fromisoformat(cleaned)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _optional_timestamp(raw: Any) -> datetime | None:
    if not raw:
        return None
    return parse_timestamp(str(raw))


def _require_mapping(raw: Any, what: str) -> dict[str, Any]:
    if not isinstance(raw, dict):
        raise ValueError(f"{what} must be a JSON object, got {type(raw).__name__}")
    return raw


@dataclass(frozen=True)
class IncidentUpdate:
    """A single time-stamped entry on an incident; the unit of publication.

    Fields:
        id:          Stable update identifier, stamped into posted messages
                     as the attachment ``callback_id``.
        incident_id: Owning incident, used to build the incident URL.
        status:      Statuspage status string (``investigating``, ...).
        body:        Free-form text shown in the message.
        created_at:  When the update was authored (UTC).
    """

    id: str
    incident_id: str
    status: str
    body: str
    created_at: datetime
    updated_at: datetime | None = None
    display_at: datetime | None = None

    @property
    def created_unix(self) -> int:
        return int(self.created_at.timestamp())

    @classmethod
    def from_dict(cls, raw: Any, incident_id: str = "") -> IncidentUpdate:
        data = _require_mapping(raw, "incident update")
        update_id = data.get("id")
        created_at = data.get("created_at")
        if not update_id:
            raise ValueError("incident update is missing 'id'")
        if not created_at:
            raise ValueError(f"incident update {update_id} is missing 'created_at'")
        return cls(
            id=str(update_id),
            incident_id=str(data.get("incident_id") or incident_id),
            status=str(data.get("status") or ""),
            body=str(data.get("body") or ""),
            created_at=parse_timestamp(str(created_at)),
            updated_at=_optional_timestamp(data.get("updated_at")),
            display_at=_optional_timestamp(data.get("display_at")),
        )


@dataclass(frozen=True)
class Incident:
    """An outage or maintenance window and its updates.

    Only the fields the relay reads are kept; the rest of the Statuspage
    schema is ignored.
    """

    id: str
    name: str
    status: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None
    shortlink: str = ""
    impact: str = ""
    incident_updates: tuple[IncidentUpdate, ...] = field(default_factory=tuple)

    def chronological_updates(self) -> list[IncidentUpdate]:
        """Updates oldest first, whatever order the source listed them in."""
        return sorted(self.incident_updates, key=lambda u: u.created_at)

    @classmethod
    def from_dict(cls, raw: Any) -> Incident:
        data = _require_mapping(raw, "incident")
        incident_id = str(data.get("id") or "")
        raw_updates = data.get("incident_updates") or []
        if not isinstance(raw_updates, list):
            raise ValueError("'incident_updates' must be a list")
        return cls(
            id=incident_id,
            name=str(data.get("name") or ""),
            status=str(data.get("status") or ""),
            created_at=_optional_timestamp(data.get("created_at")),
            updated_at=_optional_timestamp(data.get("updated_at")),
            shortlink=str(data.get("shortlink") or ""),
            impact=str(data.get("impact") or ""),
            incident_updates=tuple(
                IncidentUpdate.from_dict(u, incident_id) for u in raw_updates
            ),
        )


@dataclass(frozen=True)
class Notification:
    """Webhook delivery carrying one incident and its recent updates."""

    incident: Incident
    page_id: str = ""
    status_indicator: str = ""
    status_description: str = ""
    generated_at: datetime | None = None

    @classmethod
    def from_dict(cls, raw: Any) -> Notification:
        data = _require_mapping(raw, "notification")
        if "incident" not in data:
            raise ValueError("notification has no 'incident'")
        page = data.get("page") or {}
        meta = data.get("meta") or {}
        return cls(
            incident=Incident.from_dict(data["incident"]),
            page_id=str(page.get("id") or ""),
            status_indicator=str(page.get("status_indicator") or ""),
            status_description=str(page.get("status_description") or ""),
            generated_at=_optional_timestamp(meta.get("generated_at")),
        )


@dataclass(frozen=True)
class Channel:
    """A chat channel the bot belongs to; ``name`` carries the leading ``#``."""

    id: str
    name: str
