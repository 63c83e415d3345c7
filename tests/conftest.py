"""Shared fakes: queued HTTP responses, a recording webhook and a manual clock."""

from __future__ import annotations

import json
import logging
from collections import defaultdict, deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest
import requests

from notifier.errors import SendError
from notifier.watchers.base import PluginContext


class FakeResponse:
    def __init__(self, status_code: int = 200, text: str = "", json_data: Any = None, headers: Optional[Dict[str, str]] = None):
        self.status_code = status_code
        self._json = json_data
        self.text = text if json_data is None else json.dumps(json_data)
        self.content = self.text.encode("utf-8")
        self.headers = headers or {}

    def json(self) -> Any:
        if self._json is None:
            return json.loads(self.text)
        return self._json

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error", response=self)


class FakeSession:
    """Serves queued responses per URL in order; a queued exception is raised instead."""

    def __init__(self) -> None:
        self.queues: Dict[str, deque] = defaultdict(deque)
        self.calls: List[Dict[str, Any]] = []
        self.posts: List[Dict[str, Any]] = []
        self.post_queue: deque = deque()

    def add(self, url: str, *responses: Any) -> "FakeSession":
        self.queues[url].extend(responses)
        return self

    def get(self, url: str, **kw: Any) -> FakeResponse:
        self.calls.append({"url": url, **kw})
        if not self.queues[url]:
            raise AssertionError(f"unexpected GET {url}")
        item = self.queues[url].popleft()
        if isinstance(item, Exception):
            raise item
        return item

    def post(self, url: str, **kw: Any) -> FakeResponse:
        self.posts.append({"url": url, **kw})
        if not self.post_queue:
            return FakeResponse(204)
        item = self.post_queue.popleft()
        if isinstance(item, Exception):
            raise item
        return item


@dataclass
class SentMessage:
    text: str
    name: str
    avatar: Optional[str]
    embed: Any = None


@dataclass
class RecordingWebhook:
    messages: List[SentMessage] = field(default_factory=list)
    fail_after: Optional[int] = None  # number of successful sends before SendError

    def _record(self, msg: SentMessage) -> None:
        if self.fail_after is not None and len(self.messages) >= self.fail_after:
            raise SendError("couldn't send Discord message: 500 boom")
        self.messages.append(msg)

    def send(self, text: str, name: str, avatar: str, embed: Any = None) -> None:
        self._record(SentMessage(text, name, avatar, embed))

    def send_with_custom_avatar(self, text: str, name: str, avatar_url: Optional[str], embed: Any = None) -> None:
        self._record(SentMessage(text, name, avatar_url, embed))


class ManualClock:
    def __init__(self, start: datetime) -> None:
        if start.tzinfo is None:
            raise ValueError("clock start must be timezone-aware")
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, delta: timedelta) -> None:
        self.current = self.current + delta


@dataclass
class SleepRecorder:
    calls: List[float] = field(default_factory=list)

    def __call__(self, seconds: float) -> None:
        self.calls.append(float(seconds))


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def http() -> FakeSession:
    return FakeSession()


@pytest.fixture
def webhook() -> RecordingWebhook:
    return RecordingWebhook()


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def ctx(http: FakeSession, webhook: RecordingWebhook, clock: ManualClock, sleep_recorder: SleepRecorder) -> PluginContext:
    return PluginContext(
        webhook=webhook,
        http=http,
        log=logging.getLogger("notifier.test"),
        now=clock,
        sleep=sleep_recorder,
    )


def progress_page(*bars: tuple) -> str:
    """HTML in the shape of the progress widget: (title, value) or (title, value, link)."""
    parts = ["<html><body>"]
    for i, bar in enumerate(bars):
        title, value = bar[0], bar[1]
        link = bar[2] if len(bar) > 2 else ""
        title_html = f'<a href="{link}">{title}</a>' if link else title
        parts.append(
            f'<div class="progress-item-template-{i}x">'
            f'<div class="progress-title-template-{i}y">{title_html}</div>'
            f'<div class="progress-percent-template-{i}z">{value}%</div>'
            f"</div>"
        )
    parts.append("</body></html>")
    return "\n".join(parts)
