from core.channels import ChannelResolver
from core.config import Settings, load_settings
from core.dedup import DedupProbe
from core.dispatcher import DispatchStats, NotificationDispatcher
from core.scheduler import FeedPoller

__all__ = [
    "ChannelResolver",
    "DedupProbe",
    "DispatchStats",
    "FeedPoller",
    "NotificationDispatcher",
    "Settings",
    "load_settings",
]
