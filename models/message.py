from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class RenderedMessage:
    """An incident update rendered for posting as a Slack attachment.

    ``callback_id`` is the update id and ``title_link`` + ``ts`` identify
    the update for messages written before callback ids were stamped;
    both are always emitted so either can be matched later.
    """

    title: str
    title_link: str
    text: str
    status: str
    footer: str
    ts: int
    callback_id: str
    color: str | None = None

    def to_attachment(self) -> dict[str, Any]:
        attachment: dict[str, Any] = {
            "fallback": self.title,
            "title": self.title,
            "title_link": self.title_link,
            "text": self.text,
            "footer": self.footer,
            "ts": self.ts,
            "callback_id": self.callback_id,
            "fields": [{"title": "Status", "value": self.status, "short": True}],
        }
        if self.color:
            attachment["color"] = self.color
        return attachment
