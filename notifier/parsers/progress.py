# notifier/parsers/progress.py
# Progress-bar page scraper: HTML -> snapshot of Progress items.

from __future__ import annotations
import re
from typing import List

from bs4 import BeautifulSoup

from ..errors import ParseError
from ..tracking.models import Progress, Snapshot

# Class names carry a generated suffix, e.g. "progress-item-template-3k2j"
ITEM_SELECTOR = "[class^=progress-item-template]"
TITLE_SELECTOR = "[class^=progress-title-template]"
PERCENT_SELECTOR = "[class^=progress-percent-template]"

_INT = re.compile(r"^-?\d+$")


def _percent(text: str) -> int:
    value = text.strip()
    if value.endswith("%"):
        value = value[:-1].strip()
    return int(value) if _INT.match(value) else 0


def read_progress(html: str | bytes) -> Snapshot:
    soup = BeautifulSoup(html, "lxml")
    bars = soup.select(ITEM_SELECTOR)
    if not bars:
        snippet = soup.get_text(" ", strip=True)[:300]
        raise ParseError(f"unexpectedly received empty list of progress bars, content was: {snippet!r}")

    out: List[Progress] = []
    for bar in bars:
        title_el = bar.select_one(TITLE_SELECTOR)
        percent_el = bar.select_one(PERCENT_SELECTOR)
        link_el = bar.find("a", href=True)
        out.append(Progress(
            title=title_el.get_text().strip() if title_el else "",
            link=link_el["href"] if link_el else "",
            value=_percent(percent_el.get_text()) if percent_el else 0,
        ))
    return tuple(out)
