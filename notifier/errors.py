# notifier/errors.py
# Error taxonomy shared by the loader, the connectors and the run coordinator.

from __future__ import annotations
from typing import Any


class NotifierError(Exception):
    """Base exception for feed-notifier."""


class ConfigError(NotifierError):
    """Raised when the config file or a connector's options are invalid. Fatal at startup."""


class InitError(NotifierError):
    """Raised by a connector's one-time setup; skips that connector for the run."""


class CheckError(NotifierError):
    """Raised when a connector's check fails.

    ``offset`` is the best-effort continuation state the connector wants
    persisted. ``None`` means "keep whatever offset was stored before the run".
    """

    def __init__(self, message: str, offset: Any = None):
        super().__init__(message)
        self.offset = offset

    def with_offset(self, offset: Any) -> "CheckError":
        self.offset = offset
        return self


class FetchError(CheckError):
    """Network/transport failure while reading a source."""


class ParseError(CheckError):
    """Source was reachable but did not have the expected structure."""


class SendError(CheckError):
    """Webhook delivery failed after the client's own retries."""
