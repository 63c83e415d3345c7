from __future__ import annotations
from datetime import timedelta
from typing import Any, Mapping

from .base import Plugin, PluginContext
from ..config import parse_duration
from ..errors import CheckError, ConfigError
from ..net import http_get
from ..parsers.progress import read_progress
from ..tracking.debounce import advance
from ..tracking.models import ProgressOffset
from ..webhooks.templates import progress_embed

DISPLAY_NAME = "Progress Updates"
AVATAR = "dragonsteel"


# --------------------------------------------------------------------
# Progress Watcher
# --------------------------------------------------------------------
class ProgressWatcher(Plugin):
    name = "progress"

    def __init__(self, url: str, message: str, debounce_delay: timedelta = timedelta(0)):
        self.url = url
        self.message = message
        self.debounce_delay = debounce_delay

    @classmethod
    def from_config(cls, options: Mapping[str, Any]) -> "ProgressWatcher":
        return cls(
            url=str(options.get("url") or "").strip(),
            message=str(options.get("message") or "").strip(),
            debounce_delay=parse_duration(options.get("debounceDelay")),
        )

    def validate(self) -> None:
        if not self.url:
            raise ConfigError("URL for progress updates must not be empty")
        if not self.message:
            raise ConfigError("message for progress updates must not be empty")
        if self.debounce_delay < timedelta(0):
            raise ConfigError("debounce delay must not be negative")

    def offset_prototype(self) -> ProgressOffset:
        return ProgressOffset()

    def load_offset(self, raw: Any) -> ProgressOffset:
        return ProgressOffset.from_json(raw)

    def dump_offset(self, offset: ProgressOffset) -> Any:
        return offset.to_json()

    def check(self, offset: ProgressOffset, ctx: PluginContext) -> ProgressOffset:
        ctx.log.info("Checking for progress updates at %s...", self.url)
        if offset is None:
            offset = self.offset_prototype()

        try:
            r = http_get(ctx.http, self.url)
            current = read_progress(r.content)
        except CheckError as e:
            raise e.with_offset(offset)

        decision = advance(offset, current, delay=self.debounce_delay, now=ctx.now())

        if decision.publish is None:
            if decision.offset.is_debouncing():
                ctx.log.info(
                    "Progress changed, holding back (%s since %s).",
                    decision.reason, decision.offset.debounce_start.isoformat(),
                )
            else:
                ctx.log.info("No progress changes to report (%s).", decision.reason)
            return decision.offset

        ctx.log.info("Reporting changed progress bars (%s)...", decision.reason)
        try:
            ctx.webhook.send(self.message, DISPLAY_NAME, AVATAR, progress_embed(decision.publish, self.url))
        except CheckError as e:
            # Keep the pre-publish offset so the same diff is retried next run
            raise e.with_offset(offset)

        changed = sum(1 for d in decision.publish if d.changed)
        ctx.log.info("Reported %d changed progress bar(s).", changed)
        return decision.offset
