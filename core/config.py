"""Command line and environment configuration.

Flags select the ingestion mode (one-shot feed, polled feed alongside the
webhook server, or webhook server only); the environment carries secrets
and deployment settings.
"""
from __future__ import annotations

import argparse
import math
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from urllib.parse import urlparse

from core.errors import ConfigError

DEFAULT_BASE_URL = "https://buildkitestatus.com"
DEFAULT_USERNAME = "Buildkite Status"
DEFAULT_ICON_URL = (
    "https://pbs.twimg.com/profile_images/543308685846392834/MFz0QmKq_400x400.jpeg"
)
DEFAULT_PORT = 8080
DEFAULT_POLL_FREQUENCY = 300.0
DEFAULT_HTTP_TIMEOUT = 30.0
DATE_FORMAT = "%Y-%m-%d"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

_DURATION_RE = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")
_DURATION_UNITS = {"h": 3600.0, "m": 60.0, "s": 1.0, "ms": 0.001}


@dataclass(frozen=True)
class Settings:
    slack_token: str = ""
    atom_feed: str | None = None
    poll_atom_feed: str | None = None
    poll_frequency: float = DEFAULT_POLL_FREQUENCY
    after: datetime | None = None
    dry_run: bool = False
    base_url: str = DEFAULT_BASE_URL
    username: str = DEFAULT_USERNAME
    icon_url: str = DEFAULT_ICON_URL
    footer: str = ""
    port: int = DEFAULT_PORT
    log_level: str = "INFO"
    http_timeout: float = DEFAULT_HTTP_TIMEOUT

    @property
    def brand(self) -> str:
        """Footer shown under every message, defaulting to the page host."""
        return self.footer or urlparse(self.base_url).netloc or self.base_url

    @property
    def slack_timeout(self) -> int:
        """Whole seconds for the Slack client, which treats 0 as no timeout."""
        return max(1, math.ceil(self.http_timeout))

    def incident_url(self, incident_id: str) -> str:
        return f"{self.base_url}/incidents/{incident_id}"


def parse_duration(raw: str) -> float:
    """Parse a duration such as ``5m``, ``1h30m`` or ``90s`` into seconds.

    A bare number is taken as seconds.
    """
    text = raw.strip()
    if not text:
        raise ConfigError("empty duration")
    try:
        seconds = float(text)
    except ValueError:
        pos = 0
        seconds = 0.0
        for match in _DURATION_RE.finditer(text):
            if match.start() != pos:
                break
            seconds += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
            pos = match.end()
        if pos != len(text):
            raise ConfigError(f"invalid duration {raw!r} (try 5m, 1h30m or 90s)")
    if seconds <= 0:
        raise ConfigError(f"duration must be positive, got {raw!r}")
    return seconds


def parse_after(raw: str) -> datetime:
    """Parse ``--after`` as midnight UTC on the given date."""
    try:
        day = datetime.strptime(raw, DATE_FORMAT)
    except ValueError as exc:
        raise ConfigError(
            f"Failed to parse --after (needs YYYY-MM-DD): {raw!r}"
        ) from exc
    return day.replace(tzinfo=timezone.utc)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="statusbot",
        description="Relay status page incident updates into Slack channels.",
    )
    parser.add_argument(
        "--atom-feed",
        metavar="URL",
        help="an atom feed to parse instead of webhooks; exits when done",
    )
    parser.add_argument(
        "--poll-atom-feed",
        metavar="URL",
        help="an atom feed to poll alongside webhooks",
    )
    parser.add_argument(
        "--poll-frequency",
        default="5m",
        help="how often to poll the atom feed (default: %(default)s)",
    )
    parser.add_argument(
        "--after",
        metavar="YYYY-MM-DD",
        help="only post updates after this date",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="do everything except posting to Slack",
    )
    parser.add_argument("--base-url", default=DEFAULT_BASE_URL)
    parser.add_argument("--username", default=DEFAULT_USERNAME)
    parser.add_argument("--icon-url", default=DEFAULT_ICON_URL)
    parser.add_argument(
        "--footer",
        default="",
        help="footer shown on messages (default: host of --base-url)",
    )
    return parser


def _env_number(environ: Mapping[str, str], key: str, default, cast):
    raw = environ.get(key, "").strip()
    if not raw:
        return default
    try:
        value = cast(raw)
    except ValueError as exc:
        raise ConfigError(f"{key} must be a number, got {raw!r}") from exc
    if value <= 0:
        raise ConfigError(f"{key} must be positive, got {raw!r}")
    return value


def load_settings(
    argv: Sequence[str] | None,
    environ: Mapping[str, str],
) -> Settings:
    """Build ``Settings`` from command line arguments and the environment.

    Raises ``ConfigError`` for values that parse but make no sense;
    argparse itself exits with status 2 on unknown flags.
    """
    args = _build_parser().parse_args(argv)

    if args.atom_feed and args.poll_atom_feed:
        raise ConfigError("--atom-feed and --poll-atom-feed are mutually exclusive")

    settings = Settings(
        slack_token=environ.get("SLACK_TOKEN", "").strip(),
        atom_feed=args.atom_feed or None,
        poll_atom_feed=args.poll_atom_feed or None,
        poll_frequency=parse_duration(args.poll_frequency),
        after=parse_after(args.after) if args.after else None,
        dry_run=args.dry_run,
        base_url=args.base_url.rstrip("/"),
        username=args.username,
        icon_url=args.icon_url,
        footer=args.footer,
        port=_env_number(environ, "PORT", DEFAULT_PORT, int),
        log_level=environ.get("LOG_LEVEL", "INFO").strip().upper() or "INFO",
        http_timeout=_env_number(environ, "HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT, float),
    )

    if settings.log_level not in LOG_LEVELS:
        raise ConfigError(f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}")

    # Dry runs still list channels and read history, so they need a token too.
    if not settings.slack_token:
        raise ConfigError("SLACK_TOKEN environment variable not set")

    return settings
