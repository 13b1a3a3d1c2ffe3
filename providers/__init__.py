from providers.atom_feed import AtomFeedProvider
from providers.base import StatusProvider
from providers.webhook import create_app

__all__ = ["AtomFeedProvider", "StatusProvider", "create_app"]
