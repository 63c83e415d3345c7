# notifier/utils/state.py
# Per-connector offset store with atomic JSON persistence.

from __future__ import annotations
import copy
import json
import logging
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional

LOG = logging.getLogger("notifier")


class OffsetStore:
    """Atomic JSON-backed mapping of connector name -> opaque offset payload.

    File format: a single JSON object. Values belong to the connector that owns
    the key; entries for connectors no longer configured are kept as-is.
    If the file isn't valid UTF-8 JSON with an object at the top level, it is
    moved aside with a .bak suffix and we start fresh.
    """

    def __init__(self, path: str | Path):
        self._path = Path(path)
        self._offsets: Dict[str, Any] = {}
        self._load()

    @property
    def path(self) -> Path:
        return self._path

    def get(self, name: str) -> Optional[Any]:
        return self._offsets.get(name)

    def set(self, name: str, offset: Any) -> None:
        self._offsets[name] = offset

    def snapshot(self) -> Dict[str, Any]:
        """Deep copy handed out to connector tasks so none of them can touch the store."""
        return copy.deepcopy(self._offsets)

    def save(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        data = json.dumps(self._offsets, ensure_ascii=False, indent=2, sort_keys=True)
        with tempfile.NamedTemporaryFile("w", encoding="utf-8", dir=str(self._path.parent), delete=False) as tmp:
            tmp.write(data + "\n")
            tmp_path = Path(tmp.name)
        tmp_path.replace(self._path)

    # ----------------------- internal -----------------------

    def _load(self) -> None:
        if not self._path.exists():
            return
        raw_bytes = self._path.read_bytes()
        if not raw_bytes.strip():
            return
        try:
            data = json.loads(raw_bytes.decode("utf-8"))
        except (UnicodeDecodeError, ValueError):
            self._move_aside("is not valid UTF-8 JSON")
            return
        if not isinstance(data, dict):
            self._move_aside("does not contain a JSON object")
            return
        self._offsets = data

    def _move_aside(self, reason: str) -> None:
        bak = self._path.with_suffix(self._path.suffix + ".bak")
        try:
            self._path.replace(bak)
            LOG.error("Offset file %s %s; moved to %s and starting fresh.", self._path, reason, bak)
        except OSError:
            LOG.exception("Failed to back up offset file %s; starting fresh without backup.", self._path)
        self._offsets = {}
