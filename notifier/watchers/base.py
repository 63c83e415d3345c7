from __future__ import annotations
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping

from ..errors import ParseError


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class PluginContext:
    """Everything a connector needs for one check: where to post, how to fetch, what time it is."""

    webhook: Any  # DiscordClient or anything with send/send_with_custom_avatar
    http: Any  # requests.Session-like
    log: logging.Logger
    now: Callable[[], datetime] = utc_now
    sleep: Callable[[float], None] = field(default=time.sleep)


class Plugin:
    """A connector kind. One instance per configured connector.

    Lifecycle per run: validate() at config load, init() once, check() once.
    """

    name: str = "base"

    @classmethod
    def from_config(cls, options: Mapping[str, Any]) -> "Plugin":
        raise NotImplementedError

    def validate(self) -> None:
        """Raise ConfigError for missing mandatory options. Must not touch the network."""

    def init(self, ctx: PluginContext) -> None:
        """Optional one-time setup; raise InitError to skip this connector for the run."""

    def offset_prototype(self) -> Any:
        """Offset used when nothing was stored for this connector yet."""
        return None

    def load_offset(self, raw: Any) -> Any:
        if raw is None:
            return self.offset_prototype()
        return raw

    def dump_offset(self, offset: Any) -> Any:
        return offset

    def check(self, offset: Any, ctx: PluginContext) -> Any:
        """Run one poll and return the next offset.

        On failure raise a CheckError; set its ``offset`` when there is a better
        continuation than the previously stored one.
        """
        raise NotImplementedError


def handled_set(raw: Any) -> Dict[str, bool]:
    """Offset codec shared by the feed connectors: entry id -> handled."""
    if not raw:
        return {}
    if not isinstance(raw, Mapping):
        raise ParseError(f"unexpected feed offset of type {type(raw).__name__}")
    return {str(k): bool(v) for k, v in raw.items()}
