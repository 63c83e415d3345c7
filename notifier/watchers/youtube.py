from __future__ import annotations
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import quote

from dateutil import parser as dateparser

from .atom_watcher import FeedPost, entry_link, parse_feed
from .base import Plugin, PluginContext, handled_set
from ..errors import CheckError, ConfigError, ParseError
from ..net import http_get
from ..webhooks.templates import render_post

FEED_URL = "https://www.youtube.com/feeds/videos.xml?channel_id={channel}"
VIDEOS_API_URL = "https://www.googleapis.com/youtube/v3/videos"

DISPLAY_NAME = "YouTube"
AVATAR = "youtube"


class YouTubeWatcher(Plugin):
    """Posts new uploads of one channel; announces scheduled livestreams with their start time.

    The livestream lookup needs a YouTube Data API key (``token``); without it
    every video is announced with the regular message.
    """

    name = "youtube"

    def __init__(self, channel_id: str, nickname: str = "", message: str = "", livestream_message: str = "", token: str = ""):
        self.channel_id = channel_id
        self.nickname = nickname
        self.message = message
        self.livestream_message = livestream_message
        self.token = token

    @classmethod
    def from_config(cls, options: Mapping[str, Any]) -> "YouTubeWatcher":
        return cls(
            channel_id=str(options.get("channelId") or "").strip(),
            nickname=str(options.get("nickname") or "").strip(),
            message=str(options.get("message") or "").strip(),
            livestream_message=str(options.get("livestreamMessage") or "").strip(),
            token=str(options.get("token") or "").strip(),
        )

    @property
    def feed_url(self) -> str:
        return FEED_URL.format(channel=quote(self.channel_id, safe=""))

    def validate(self) -> None:
        if not self.channel_id:
            raise ConfigError("channel ID for YouTube must not be empty")
        if not self.nickname and not self.message:
            raise ConfigError("either a channel nickname or a YouTube post message must be given")

    def offset_prototype(self) -> Dict[str, bool]:
        return {}

    def load_offset(self, raw: Any) -> Dict[str, bool]:
        return handled_set(raw)

    def check(self, offset: Optional[Dict[str, bool]], ctx: PluginContext) -> Dict[str, bool]:
        ctx.log.info("Checking for YouTube updates on channel %s...", self.channel_id)
        first_run = not offset
        handled = dict(offset or {})

        try:
            r = http_get(ctx.http, self.feed_url, allow_404=True)
            if r.status_code == 404:
                log = ctx.log.error if first_run else ctx.log.info
                log("Could not find feed for channel ID '%s'. YouTube API might be down.", self.channel_id)
                return handled
            feed = parse_feed(r.content, self.feed_url)
        except CheckError as e:
            raise e.with_offset(handled)

        if not feed.entries:
            ctx.log.info("No entries in YouTube feed.")
            return handled

        posts: List[FeedPost] = []
        for entry in reversed(feed.entries):
            entry_id = entry.get("id") or entry_link(entry)
            if handled.get(entry_id):
                continue
            posts.append(FeedPost(
                id=entry_id,
                title=(entry.get("title") or "").strip(),
                link=entry_link(entry),
                video_id=entry.get("yt_videoid") or "",
            ))

        if not posts:
            ctx.log.info("No YouTube posts to report.")
            return handled

        ctx.log.info("Reporting %d YouTube post(s)...", len(posts))
        nickname = self.nickname or (feed.feed.get("title") or "").strip()

        for post in posts:
            message = self.message or f"{nickname} posted something on YouTube"
            try:
                start = self.scheduled_start(post.video_id, ctx)
            except CheckError as e:
                raise e.with_offset(handled)
            if start is not None:
                message = self.livestream_text(nickname, start)

            try:
                ctx.webhook.send(render_post(message, post.link), DISPLAY_NAME, AVATAR)
            except CheckError as e:
                raise e.with_offset(handled)
            handled[post.id] = True
            ctx.log.info("Reported YouTube post '%s'", post.title)

        return handled

    def livestream_text(self, nickname: str, start: datetime) -> str:
        template = self.livestream_message or f"{nickname} is going live on YouTube {{start}}!"
        return template.replace("{start}", f"<t:{int(start.timestamp())}:R>")

    def scheduled_start(self, video_id: str, ctx: PluginContext) -> Optional[datetime]:
        """Scheduled start of a livestream, or None for regular uploads."""
        if not video_id or not self.token:
            return None
        r = http_get(ctx.http, VIDEOS_API_URL, params={
            "part": "liveStreamingDetails",
            "id": video_id,
            "key": self.token,
        })
        try:
            items = (r.json() or {}).get("items") or []
        except ValueError as e:
            raise ParseError(f"unexpected response from YouTube API for video {video_id}: {e}") from e
        if not items:
            return None
        details = items[0].get("liveStreamingDetails")
        if not details or not details.get("scheduledStartTime"):
            return None
        try:
            return dateparser.isoparse(details["scheduledStartTime"])
        except ValueError:
            ctx.log.warning("Unparseable scheduled start %r for video %s", details["scheduledStartTime"], video_id)
            return None
