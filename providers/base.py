from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

import httpx

from models.incident import Incident

DEFAULT_POLL_INTERVAL = 300


class StatusProvider(ABC):
    """Abstract base for pull-style status page sources.

    Each concrete provider fetches its own data source (Atom feed, JSON
    API, etc.) and resolves it into full ``Incident`` objects for the
    dispatcher.

    A shared ``httpx.AsyncClient`` is injected at construction time so
    that all providers reuse one connection pool.
    """

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable provider name (e.g. 'buildkitestatus.com')."""

    @property
    def poll_interval_seconds(self) -> float:
        """Seconds between fetch cycles for this provider."""
        return DEFAULT_POLL_INTERVAL

    @abstractmethod
    def iter_incidents(self) -> AsyncIterator[Incident]:
        """Yield incidents, newest first, stopping at the provider's cutoff.

        Raises ``FeedError`` when the source itself cannot be read.
        Problems with a single incident are logged and that incident is
        skipped.
        """
