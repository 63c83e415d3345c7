# notifier/config.py
# Runtime flags from the environment plus the YAML connector config loader.

from __future__ import annotations
import os
import re
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional

import yaml

from .errors import ConfigError

# --------------------------------------------------------------------
# Utility
# --------------------------------------------------------------------
def _bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")

# --------------------------------------------------------------------
# Core Runtime Flags
# --------------------------------------------------------------------
DRY_RUN = _bool("DRY_RUN", "false")
CONFIG_FILE = os.getenv("CONFIG_FILE", "config.yml")
OFFSETS_FILE = os.getenv("OFFSETS_FILE", "offsets.json")
MAX_WORKERS = int(os.getenv("MAX_WORKERS", "8"))

# --------------------------------------------------------------------
# Discord
# --------------------------------------------------------------------
# Overrides discordWebhook from the config file when set
DISCORD_WEBHOOK = os.getenv("DISCORD_WEBHOOK", "").strip() or None

# --------------------------------------------------------------------
# Fetch
# --------------------------------------------------------------------
HTTP_TIMEOUT = float(os.getenv("HTTP_TIMEOUT", "30"))
USER_AGENT = os.getenv(
    "USER_AGENT",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36",
)


# --------------------------------------------------------------------
# Connector config file
# --------------------------------------------------------------------
@dataclass
class Connector:
    name: str
    plugin: Any  # a watchers.base.Plugin


@dataclass
class Config:
    discord_webhook: str
    connectors: List[Connector] = field(default_factory=list)
    mentions: Dict[str, Any] = field(default_factory=dict)
    avatars: Dict[str, str] = field(default_factory=dict)


def merge_keys(left: Optional[Dict[str, Any]], right: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Recursively merge ``right`` into ``left``, never replacing a key ``left`` already has."""
    if left is None:
        return dict(right or {})
    for key, right_val in (right or {}).items():
        if key in left:
            if isinstance(left[key], dict) and isinstance(right_val, Mapping):
                left[key] = merge_keys(left[key], right_val)
        else:
            left[key] = right_val
    return left


_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h)")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def parse_duration(raw: Any) -> timedelta:
    """Accept seconds (int/float) or strings like ``"90s"``, ``"10m"``, ``"1h30m"``, ``"250ms"``."""
    if raw is None or raw == "":
        return timedelta(0)
    if isinstance(raw, timedelta):
        return raw
    if isinstance(raw, bool):
        raise ConfigError(f"invalid duration {raw!r}")
    if isinstance(raw, (int, float)):
        return timedelta(seconds=raw)

    text = str(raw).strip().lower()
    sign = 1
    if text.startswith("-"):
        sign, text = -1, text[1:]
    try:
        return timedelta(seconds=sign * float(text))
    except ValueError:
        pass

    pos = 0
    seconds = 0.0
    for m in _DURATION_PART.finditer(text):
        if m.start() != pos:
            break
        seconds += float(m.group(1)) * _DURATION_UNITS[m.group(2)]
        pos = m.end()
    if pos == 0 or pos != len(text):
        raise ConfigError(f"invalid duration {raw!r}")
    return timedelta(seconds=sign * seconds)


class ConfigLoader:
    """Builds validated connectors from a YAML config file.

    Layout:

        discordWebhook: "<id>/<token>"
        mentions: {users: [...], roles: [...], everyone: false}
        avatars: {dragonsteel: "https://..."}
        shared:
          youtube: {token: "..."}
        connectors:
          progress:
            plugin: progress
            config: {url: "...", message: "...", debounceDelay: 10m}
    """

    def __init__(self, available_plugins: Mapping[str, Callable[[Dict[str, Any]], Any]]):
        self.available_plugins = available_plugins

    def load(self, path: str | Path) -> Config:
        path = Path(path)
        try:
            raw = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"could not read config file {path}: {e}") from e
        try:
            data = yaml.safe_load(raw) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"could not parse config file {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"config file {path} must contain a mapping")
        return self.build(data)

    def build(self, data: Mapping[str, Any]) -> Config:
        webhook = DISCORD_WEBHOOK or str(data.get("discordWebhook") or "").strip()
        if not webhook:
            raise ConfigError("config is missing Discord webhook ID")

        shared = data.get("shared") or {}
        config = Config(
            discord_webhook=webhook,
            mentions=dict(data.get("mentions") or {}),
            avatars={str(k): str(v) for k, v in (data.get("avatars") or {}).items()},
        )

        for name, raw_connector in (data.get("connectors") or {}).items():
            raw_connector = raw_connector or {}
            kind = raw_connector.get("plugin")
            builder = self.available_plugins.get(kind)
            if builder is None:
                raise ConfigError(f"failed to load connector '{name}': unknown plugin '{kind}'")

            options = merge_keys(dict(raw_connector.get("config") or {}), shared.get(kind) or {})
            try:
                plugin = builder(options)
                plugin.validate()
            except ConfigError as e:
                raise ConfigError(
                    f"invalid configuration for connector '{name}' with plugin '{kind}': {e}"
                ) from e
            except (TypeError, ValueError) as e:
                raise ConfigError(
                    f"could not parse config for connector '{name}' with plugin '{kind}': {e}"
                ) from e

            config.connectors.append(Connector(name=str(name), plugin=plugin))

        return config
