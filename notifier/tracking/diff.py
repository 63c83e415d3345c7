# notifier/tracking/diff.py
from __future__ import annotations
from typing import Dict, Iterable, List, Optional

from .models import Progress, ProgressDiff


def diff(old: Iterable[Progress], new: Iterable[Progress]) -> Optional[List[ProgressDiff]]:
    """Compare two snapshots by title.

    Returns one record per item of ``new``, in ``new``'s order, unchanged items
    included so the notification shows the full picture. Returns ``None`` when
    nothing was added or changed. Items missing from ``new`` are ignored, so a
    bar that disappears from the page never triggers a notification on its own.
    """
    old_keyed: Dict[str, Progress] = {}
    for p in old:
        old_keyed[p.title] = p  # last one wins on duplicate titles

    result: List[ProgressDiff] = []
    no_changes = True
    for p in new:
        existing = old_keyed.get(p.title)
        old_value = existing.value if existing is not None else 0
        record = ProgressDiff(
            title=p.title,
            link=p.link,
            old_value=old_value,
            value=p.value,
            new=existing is None,
        )
        if record.changed:
            no_changes = False
        result.append(record)

    if no_changes:
        return None
    return result
