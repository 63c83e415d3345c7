# notifier/main.py
# Orchestrator: load config → run every connector concurrently → persist offsets → exit status

from __future__ import annotations
import argparse
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, List, Optional, Sequence

from . import config as settings
from .config import Config, ConfigLoader, Connector
from .errors import CheckError, ConfigError, InitError
from .net import make_session
from .utils.log import connector_logger, get_logger
from .utils.state import OffsetStore
from .watchers.base import PluginContext, utc_now
from .watchers.registry import AVAILABLE_PLUGINS
from .webhooks.discord import DiscordClient

logger = get_logger("notifier")
DIV = "-" * 72


@dataclass
class Outcome:
    name: str
    offset: Any  # JSON-ready payload to persist, None = nothing to store
    ok: bool


def run_connector(connector: Connector, raw_offset: Any, ctx: PluginContext) -> Outcome:
    """init → check for one connector. Never raises; failures are logged and folded into the outcome."""
    plugin = connector.plugin
    log = ctx.log

    try:
        plugin.init(ctx)
    except InitError as e:
        log.error("Init failed, skipping this run: %s", e)
        return Outcome(connector.name, raw_offset, False)
    except Exception:
        log.exception("Init raised, skipping this run")
        return Outcome(connector.name, raw_offset, False)

    try:
        offset = plugin.load_offset(raw_offset)
    except Exception:
        log.exception("Stored offset could not be read; leaving it untouched")
        return Outcome(connector.name, raw_offset, False)

    try:
        new_offset = plugin.check(offset, ctx)
    except CheckError as e:
        log.error("Check failed: %s", e)
        kept = raw_offset if e.offset is None else plugin.dump_offset(e.offset)
        return Outcome(connector.name, kept, False)
    except Exception:
        log.exception("Check raised unexpectedly")
        return Outcome(connector.name, raw_offset, False)

    return Outcome(connector.name, plugin.dump_offset(new_offset), True)


def run_all(
    connectors: Sequence[Connector],
    store: OffsetStore,
    webhook: Any,
    *,
    http_factory: Callable[[], Any] = make_session,
    now: Callable[[], datetime] = utc_now,
    sleep: Callable[[float], None] = time.sleep,
    max_workers: int = settings.MAX_WORKERS,
) -> bool:
    """Run one round of checks and persist the merged offsets. Returns True when every connector succeeded."""
    if not connectors:
        logger.warning("No connectors configured.")
        return True

    # Read once; every task gets its own entry and nobody sees another's offset
    offsets = store.snapshot()
    outcomes: List[Outcome] = []

    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(connectors)))) as pool:
        futures = {}
        for c in connectors:
            ctx = PluginContext(
                webhook=webhook,
                http=http_factory(),
                log=connector_logger(c.name),
                now=now,
                sleep=sleep,
            )
            futures[pool.submit(run_connector, c, offsets.get(c.name), ctx)] = c
        for fut in as_completed(futures):
            outcomes.append(fut.result())

    ok = True
    for outcome in outcomes:
        if not outcome.ok:
            ok = False
        if outcome.offset is not None:
            store.set(outcome.name, outcome.offset)

    try:
        store.save()
    except OSError:
        logger.exception("Failed to persist offsets to %s", store.path)
        ok = False

    failed = sorted(o.name for o in outcomes if not o.ok)
    logger.info(DIV)
    if failed:
        logger.error("Errors occurred while checking for updates: %s", ", ".join(failed))
    else:
        logger.info("Checked %d connector(s), all good.", len(outcomes))
    return ok


def load_config(path: str) -> Config:
    return ConfigLoader(AVAILABLE_PLUGINS).load(path)


def _parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="feed-notifier", description="Post new and changed content to a Discord webhook.")
    p.add_argument("--config", default=settings.CONFIG_FILE, help="path to the YAML config (default: %(default)s)")
    p.add_argument("--offsets", default=settings.OFFSETS_FILE, help="path to the JSON offset file (default: %(default)s)")
    p.add_argument("--dry-run", action="store_true", default=settings.DRY_RUN, help="log messages instead of posting them")
    return p.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _parse_args(argv)

    try:
        config = load_config(args.config)
    except ConfigError as e:
        logger.error("%s", e)
        return 1

    logger.info("Checking for updates (%d connector(s))...", len(config.connectors))
    store = OffsetStore(args.offsets)
    webhook = DiscordClient(
        config.discord_webhook,
        avatars=config.avatars,
        mentions=config.mentions,
        session=make_session(),
        dry_run=args.dry_run,
    )
    return 0 if run_all(config.connectors, store, webhook) else 1


def run() -> None:
    raise SystemExit(main())


if __name__ == "__main__":
    run()
