"""
Message rendering helpers for feed-notifier.


Public API:
- render_progress(diffs) -> str
- progress_embed(diffs, source_url) -> dict
- render_post(message, link, sep) -> str


The progress output is compared against messages already posted to the
channel, so the bar width (40 blocks of 2.5%) and the right-aligned percentage
must stay stable.
"""
from __future__ import annotations
import math
from typing import Dict, Iterable, List

from ..tracking.models import ProgressDiff

BLOCK_SIZE = 2.5
BLOCK_COUNT = int(100 / BLOCK_SIZE)
FULL_BLOCK = "█"
EMPTY_BLOCK = "░"


def _title_line(p: ProgressDiff) -> str:
    title = p.title
    if p.link:
        title = f"[{p.title}]({p.link})"
    if p.new:
        title = f"[New] {title}"
    elif p.value != p.old_value:
        title = f"[Changed] {title} ({p.old_value}% → {p.value}%)"
    return f"**{title}**"


def _bar(value: int) -> str:
    full = int(math.floor(value / BLOCK_SIZE))
    full = max(0, min(BLOCK_COUNT, full))
    return f"`{FULL_BLOCK * full}{EMPTY_BLOCK * (BLOCK_COUNT - full)} {value:3d}%`"


def render_progress(diffs: Iterable[ProgressDiff]) -> str:
    """Render each bar as a bold title line plus a block bar, blank line between bars."""
    blocks: List[str] = [f"{_title_line(p)}\n{_bar(p.value)}" for p in diffs]
    return "\n\n".join(blocks)


def progress_embed(diffs: Iterable[ProgressDiff], source_url: str) -> Dict[str, object]:
    return {
        "description": render_progress(diffs),
        "footer": {"text": f"See {source_url} for more"},
    }


def render_post(message: str, link: str, sep: str = " ") -> str:
    message = (message or "").strip()
    return f"{message}{sep}{link}" if message else link
