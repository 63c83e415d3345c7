from __future__ import annotations
from typing import Any, Callable, Dict, Mapping

from .atom_watcher import AtomWatcher
from .base import Plugin
from .progress import ProgressWatcher
from .twitter import TwitterWatcher
from .youtube import YouTubeWatcher

# plugin key in the config file -> constructor from the connector's options
AVAILABLE_PLUGINS: Dict[str, Callable[[Mapping[str, Any]], Plugin]] = {
    cls.name: cls.from_config
    for cls in (AtomWatcher, ProgressWatcher, TwitterWatcher, YouTubeWatcher)
}
