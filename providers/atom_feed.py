from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from datetime import datetime, timezone
from typing import Any
from urllib.parse import urlparse

import feedparser
import httpx

from core.config import DATE_FORMAT
from core.errors import FeedError, PayloadError
from models.incident import Incident, parse_timestamp
from providers.base import DEFAULT_POLL_INTERVAL, StatusProvider

log = logging.getLogger(__name__)


def _entry_published(entry: Any) -> datetime | None:
    """Return the entry's ``published`` instant as aware UTC, or None."""
    raw = entry.get("published")
    if raw:
        try:
            return parse_timestamp(raw)
        except ValueError:
            pass
    parsed = entry.get("published_parsed")
    if parsed:
        return datetime(*parsed[:6], tzinfo=timezone.utc)
    return None


def _entry_link(entry: Any) -> str | None:
    href = entry.get("link")
    if href:
        return href
    for link in entry.get("links", []):
        if link.get("href"):
            return link["href"]
    return None


class AtomFeedProvider(StatusProvider):
    """Provider for a Statuspage Atom feed.

    Entries are read newest first.  Each one links to an incident page;
    ``{link}.json`` is fetched and parsed into a full ``Incident``.  Reading
    stops at the first entry published before ``after``.

    The whole feed is fetched on every call; nothing is remembered between
    cycles.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        feed_url: str,
        after: datetime | None = None,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        super().__init__(client)
        self._feed_url = feed_url
        self._after = after
        self._poll_interval = poll_interval_seconds

    @property
    def name(self) -> str:
        return urlparse(self._feed_url).netloc or self._feed_url

    @property
    def poll_interval_seconds(self) -> float:
        return self._poll_interval

    async def _fetch(self, url: str) -> httpx.Response:
        log.info("Fetching %s", url)
        try:
            return await self._client.get(url)
        except httpx.HTTPError as exc:
            raise FeedError(f"HTTP error fetching {url}: {exc!r}") from exc

    async def fetch_entries(self) -> list[Any]:
        """Fetch and parse the feed."""
        resp = await self._fetch(self._feed_url)
        if resp.status_code != 200:
            raise FeedError(
                f"Unexpected status {resp.status_code} fetching {self._feed_url}"
            )

        feed = feedparser.parse(resp.text)
        if feed.bozo and not feed.entries:
            raise FeedError(f"Could not parse feed: {feed.get('bozo_exception')}")
        return list(feed.entries)

    async def fetch_incident(self, link: str) -> Incident:
        url = f"{link}.json"
        resp = await self._fetch(url)
        if resp.status_code != 200:
            raise FeedError(f"Unexpected status {resp.status_code} fetching {url}")
        try:
            return Incident.from_dict(resp.json())
        except ValueError as exc:
            raise PayloadError(f"Could not parse incident at {url}: {exc}") from exc

    async def iter_incidents(self) -> AsyncIterator[Incident]:
        for entry in await self.fetch_entries():
            published = _entry_published(entry)
            if published is None:
                log.warning(
                    "[%s] Skipping entry %s with unparseable published date %r",
                    self.name,
                    entry.get("id", "?"),
                    entry.get("published"),
                )
                continue

            if self._after is not None and published < self._after:
                log.info(
                    "Finishing processing feed, %s is before cutoff %s",
                    published.strftime(DATE_FORMAT),
                    self._after.strftime(DATE_FORMAT),
                )
                return

            link = _entry_link(entry)
            if not link:
                log.warning("[%s] Skipping entry %s without a link", self.name, entry.get("id", "?"))
                continue

            try:
                incident = await self.fetch_incident(link)
            except (FeedError, PayloadError) as exc:
                log.error("[%s] Skipping entry %s: %s", self.name, link, exc)
                continue

            yield incident
