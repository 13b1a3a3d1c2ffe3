from __future__ import annotations


class RelayError(Exception):
    """Base class for every error the relay raises on purpose."""


class ConfigError(RelayError):
    """Bad command line flag or environment value. Fatal at startup."""


class PayloadError(RelayError):
    """A webhook body or incident JSON document could not be understood."""


class FeedError(RelayError):
    """The Atom feed could not be fetched or parsed."""


class GatewayError(RelayError):
    """A chat API call failed."""


class InvalidAuthError(GatewayError):
    """The chat service rejected our credentials. Fatal at any time."""


class ProbeError(RelayError):
    """Channel history could not be read, so a duplicate cannot be ruled out."""
