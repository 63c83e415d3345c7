# notifier/tracking/models.py
# Snapshot items, diff records and the persisted progress offset (with its JSON codec).

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from dateutil import parser as dateparser

from ..errors import ParseError


@dataclass(frozen=True)
class Progress:
    """One progress bar: matched across snapshots by ``title``."""

    title: str
    link: str = ""
    value: int = 0


Snapshot = Tuple[Progress, ...]


@dataclass(frozen=True)
class ProgressDiff:
    title: str
    link: str
    old_value: int
    value: int
    new: bool

    @property
    def changed(self) -> bool:
        return self.new or self.old_value != self.value


@dataclass(frozen=True)
class ProgressOffset:
    """Continuation state of a progress connector.

    ``published`` is what was last announced, ``observed`` what was last read
    from the page. ``debounce_start`` is set while an unpublished difference
    between the two is being held back.
    """

    published: Snapshot = ()
    observed: Snapshot = ()
    debounce_start: Optional[datetime] = None

    def is_debouncing(self) -> bool:
        return self.debounce_start is not None

    # ----------------------- codec -----------------------

    def to_json(self) -> Dict[str, Any]:
        return {
            "published": [_item_to_json(p) for p in self.published],
            "observed": [_item_to_json(p) for p in self.observed],
            "debounce_start": self.debounce_start.isoformat() if self.debounce_start else None,
        }

    @classmethod
    def from_json(cls, raw: Any) -> "ProgressOffset":
        """Decode a stored offset.

        A bare list is the legacy format (only the last published snapshot) and
        is read as published == observed with no debounce running. Keys written
        by older releases (``PublishedState``/``Title``...) are accepted too.
        """
        if raw is None:
            return cls()
        if isinstance(raw, list):
            snapshot = _snapshot_from_json(raw)
            return cls(published=snapshot, observed=snapshot)
        if not isinstance(raw, Mapping):
            raise ParseError(f"unexpected progress offset of type {type(raw).__name__}")

        published = _snapshot_from_json(_pick(raw, "published", "PublishedState") or [])
        observed_raw = _pick(raw, "observed", "ObservedState")
        observed = published if observed_raw is None else _snapshot_from_json(observed_raw)
        return cls(
            published=published,
            observed=observed,
            debounce_start=_parse_ts(_pick(raw, "debounce_start", "DebounceStart")),
        )


def _pick(raw: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in raw:
            return raw[key]
    return None


def _item_to_json(p: Progress) -> Dict[str, Any]:
    return {"title": p.title, "link": p.link, "value": p.value}


def _snapshot_from_json(items: Sequence[Any]) -> Snapshot:
    out: List[Progress] = []
    for it in items:
        if not isinstance(it, Mapping):
            raise ParseError(f"unexpected progress entry {it!r}")
        out.append(Progress(
            title=str(_pick(it, "title", "Title") or ""),
            link=str(_pick(it, "link", "Link") or ""),
            value=int(_pick(it, "value", "Value") or 0),
        ))
    return tuple(out)


def _parse_ts(value: Any) -> Optional[datetime]:
    if not value:
        return None
    try:
        dt = dateparser.isoparse(str(value))
    except (ValueError, OverflowError) as e:
        raise ParseError(f"invalid debounce start {value!r}") from e
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt
