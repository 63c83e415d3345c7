from __future__ import annotations
import calendar
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

import feedparser

from .base import Plugin, PluginContext, handled_set
from ..errors import CheckError, ConfigError, ParseError
from ..net import http_get
from ..webhooks.templates import render_post

DEFAULT_MESSAGE = "A new blog post was published"


@dataclass
class FeedPost:
    id: str
    title: str
    link: str
    timestamp: Optional[int] = None
    video_id: str = ""


# --------------------------------------------------------------------
# Helpers
# --------------------------------------------------------------------
def parse_feed(body: bytes, url: str):
    feed = feedparser.parse(body)
    if feed.bozo and not feed.entries:
        raise ParseError(f"could not parse feed at '{url}': {feed.get('bozo_exception')}")
    return feed


def entry_link(entry) -> str:
    if entry.get("link"):
        return entry["link"]
    for link in entry.get("links") or []:
        if link.get("href"):
            return link["href"]
    return ""


def entry_timestamp(entry) -> Optional[int]:
    tm = entry.get("published_parsed") or entry.get("updated_parsed")
    if not tm:
        return None
    return calendar.timegm(tm)


def unhandled_posts(feed, handled: Dict[str, bool]) -> List[FeedPost]:
    """Feed entries not reported yet, oldest first (undated entries first)."""
    posts: List[FeedPost] = []
    for entry in feed.entries:
        entry_id = entry.get("id") or entry_link(entry)
        if handled.get(entry_id):
            continue
        posts.append(FeedPost(
            id=entry_id,
            title=(entry.get("title") or "").strip(),
            link=entry_link(entry),
            timestamp=entry_timestamp(entry),
        ))
    # Feeds list newest first; reverse so equal timestamps keep oldest-first order
    posts.reverse()
    posts.sort(key=lambda p: (p.timestamp is not None, p.timestamp or 0))
    return posts


# --------------------------------------------------------------------
# Atom Watcher
# --------------------------------------------------------------------
class AtomWatcher(Plugin):
    name = "atom"

    def __init__(self, feed_url: str, nickname: str = "", avatar_url: str = "", message: str = ""):
        self.feed_url = feed_url
        self.nickname = nickname
        self.avatar_url = avatar_url
        self.message = message

    @classmethod
    def from_config(cls, options: Mapping[str, Any]) -> "AtomWatcher":
        return cls(
            feed_url=str(options.get("feedUrl") or "").strip(),
            nickname=str(options.get("nickname") or "").strip(),
            avatar_url=str(options.get("avatarUrl") or "").strip(),
            message=str(options.get("message") or "").strip(),
        )

    def validate(self) -> None:
        if not self.feed_url:
            raise ConfigError("feed URL for Atom integration must not be empty")

    def offset_prototype(self) -> Dict[str, bool]:
        return {}

    def load_offset(self, raw: Any) -> Dict[str, bool]:
        return handled_set(raw)

    def check(self, offset: Optional[Dict[str, bool]], ctx: PluginContext) -> Dict[str, bool]:
        ctx.log.info("Checking Atom feed at %s for updates...", self.feed_url)
        first_run = not offset
        handled = dict(offset or {})

        try:
            r = http_get(ctx.http, self.feed_url, allow_404=True)
            if r.status_code == 404:
                log = ctx.log.error if first_run else ctx.log.info
                log("Could not find Atom feed at '%s'. Site might be down.", self.feed_url)
                return handled
            feed = parse_feed(r.content, self.feed_url)
        except CheckError as e:
            raise e.with_offset(handled)

        if not feed.entries:
            ctx.log.info("No entries in Atom feed at '%s'.", self.feed_url)
            return handled

        posts = unhandled_posts(feed, handled)
        if not posts:
            ctx.log.info("No posts to report from Atom feed at '%s'.", self.feed_url)
            return handled

        ctx.log.info("Reporting %d post(s) from Atom feed at '%s'...", len(posts), self.feed_url)

        nickname = self.nickname
        if not nickname:
            nickname = (feed.feed.get("title") or "").strip()
            ctx.log.info(
                "No nickname was provided for Atom feed at '%s', using feed title '%s' as fallback nickname",
                self.feed_url, nickname,
            )
        message = self.message
        if not message:
            message = DEFAULT_MESSAGE
            ctx.log.info("No message was provided for Atom feed at '%s', using default", self.feed_url)

        for post in posts:
            try:
                ctx.webhook.send_with_custom_avatar(render_post(message, post.link, "\n"), nickname, self.avatar_url or None)
            except CheckError as e:
                raise e.with_offset(handled)
            handled[post.id] = True
            ctx.log.info("Reported post '%s' from feed at '%s'", post.title, self.feed_url)

        return handled
