# notifier/tracking/debounce.py
# One debounce transition per run; the persisted ProgressOffset is the state.

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional, Sequence

from .diff import diff
from .models import Progress, ProgressDiff, ProgressOffset


@dataclass(frozen=True)
class DebounceDecision:
    offset: ProgressOffset
    # Diff to announce now; None means stay silent this run
    publish: Optional[List[ProgressDiff]] = None
    reason: str = ""


def advance(
    offset: ProgressOffset,
    current: Sequence[Progress],
    *,
    delay: timedelta,
    now: datetime,
) -> DebounceDecision:
    """Decide what to do with a freshly read snapshot.

    Changes are always measured against the last *published* snapshot, so the
    intermediate states seen while debouncing collapse into one net diff.
    Every time the page changes again while waiting, the window restarts.
    """
    current = tuple(current)
    pending = diff(offset.published, current)

    if pending is None:
        reason = "reverted to published state" if offset.is_debouncing() else "no changes"
        return DebounceDecision(
            offset=ProgressOffset(published=offset.published, observed=current, debounce_start=None),
            reason=reason,
        )

    published_now = ProgressOffset(published=current, observed=current, debounce_start=None)

    if delay <= timedelta(0):
        return DebounceDecision(offset=published_now, publish=pending, reason="no debounce")

    start = offset.debounce_start
    if start is not None and now - start >= delay:
        return DebounceDecision(offset=published_now, publish=pending, reason="debounce elapsed")

    if start is None:
        start, reason = now, "debounce started"
    elif diff(offset.observed, current) is not None:
        start, reason = now, "changed again, debounce restarted"
    else:
        reason = "waiting for debounce"

    return DebounceDecision(
        offset=ProgressOffset(published=offset.published, observed=current, debounce_start=start),
        reason=reason,
    )
