"""Atom and YouTube feed connectors."""

from __future__ import annotations

from typing import Optional

import pytest
import requests

from conftest import FakeResponse
from notifier.errors import ConfigError, FetchError, SendError
from notifier.watchers.atom_watcher import AtomWatcher
from notifier.watchers.youtube import VIDEOS_API_URL, YouTubeWatcher

FEED_URL = "https://example.com/feed.atom"


def atom_entry(entry_id: str, title: str, link: str, published: Optional[str] = None) -> str:
    stamp = f"<published>{published}</published><updated>{published}</updated>" if published else ""
    return (
        f"<entry><id>{entry_id}</id><title>{title}</title>"
        f'<link rel="alternate" href="{link}"/>{stamp}</entry>'
    )


def atom_feed(*entries: str, title: str = "Example Blog") -> str:
    return (
        '<?xml version="1.0" encoding="utf-8"?>'
        '<feed xmlns="http://www.w3.org/2005/Atom">'
        f"<title>{title}</title><id>urn:example:feed</id>"
        + "".join(entries)
        + "</feed>"
    )


def youtube_entry(video_id: str, title: str, published: str) -> str:
    return (
        f"<entry><id>yt:video:{video_id}</id><yt:videoId>{video_id}</yt:videoId>"
        f"<title>{title}</title>"
        f'<link rel="alternate" href="https://www.youtube.com/watch?v={video_id}"/>'
        f"<published>{published}</published></entry>"
    )


def youtube_feed(*entries: str, title: str = "Example Channel") -> str:
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<feed xmlns:yt="http://www.youtube.com/xml/schemas/2015" xmlns="http://www.w3.org/2005/Atom">'
        f"<title>{title}</title>"
        + "".join(entries)
        + "</feed>"
    )


# --------------------------------------------------------------------
# Atom
# --------------------------------------------------------------------
def test_atom_reports_unhandled_posts_oldest_first(ctx, http, webhook) -> None:
    http.add(FEED_URL, FakeResponse(text=atom_feed(
        atom_entry("post-3", "Third", "https://example.com/3", "2024-03-01T00:00:00Z"),
        atom_entry("post-2", "Second", "https://example.com/2", "2024-02-01T00:00:00Z"),
        atom_entry("post-1", "First", "https://example.com/1", "2024-01-01T00:00:00Z"),
    )))
    watcher = AtomWatcher(FEED_URL, nickname="Blog", avatar_url="https://example.com/a.png", message="New post!")

    offset = watcher.check({"post-1": True}, ctx)

    assert offset == {"post-1": True, "post-2": True, "post-3": True}
    assert [m.text for m in webhook.messages] == [
        "New post!\nhttps://example.com/2",
        "New post!\nhttps://example.com/3",
    ]
    assert {m.name for m in webhook.messages} == {"Blog"}
    assert {m.avatar for m in webhook.messages} == {"https://example.com/a.png"}


def test_atom_falls_back_to_feed_title_and_default_message(ctx, http, webhook) -> None:
    http.add(FEED_URL, FakeResponse(text=atom_feed(
        atom_entry("post-1", "First", "https://example.com/1", "2024-01-01T00:00:00Z"),
        title="The Example Blog",
    )))

    AtomWatcher(FEED_URL).check({}, ctx)

    assert len(webhook.messages) == 1
    assert webhook.messages[0].name == "The Example Blog"
    assert webhook.messages[0].text == "A new blog post was published\nhttps://example.com/1"
    assert webhook.messages[0].avatar is None


def test_atom_undated_entries_come_first(ctx, http, webhook) -> None:
    http.add(FEED_URL, FakeResponse(text=atom_feed(
        atom_entry("dated", "Dated", "https://example.com/dated", "2024-01-01T00:00:00Z"),
        atom_entry("undated", "Undated", "https://example.com/undated"),
    )))

    AtomWatcher(FEED_URL, nickname="Blog").check({}, ctx)

    assert [m.text.splitlines()[-1] for m in webhook.messages] == [
        "https://example.com/undated",
        "https://example.com/dated",
    ]


def test_atom_missing_feed_keeps_offset(ctx, http, webhook) -> None:
    http.add(FEED_URL, FakeResponse(status_code=404))

    assert AtomWatcher(FEED_URL).check({"post-1": True}, ctx) == {"post-1": True}
    assert webhook.messages == []


def test_atom_partial_send_failure_keeps_posts_already_sent(ctx, http, webhook) -> None:
    http.add(FEED_URL, FakeResponse(text=atom_feed(
        atom_entry("post-2", "Second", "https://example.com/2", "2024-02-01T00:00:00Z"),
        atom_entry("post-1", "First", "https://example.com/1", "2024-01-01T00:00:00Z"),
    )))
    webhook.fail_after = 1

    with pytest.raises(SendError) as excinfo:
        AtomWatcher(FEED_URL, nickname="Blog").check({}, ctx)

    assert excinfo.value.offset == {"post-1": True}


def test_atom_server_error_is_fetch_error(ctx, http) -> None:
    http.add(FEED_URL, FakeResponse(status_code=500, text="oops"))

    with pytest.raises(FetchError) as excinfo:
        AtomWatcher(FEED_URL).check({"post-1": True}, ctx)
    assert excinfo.value.offset == {"post-1": True}


def test_atom_requires_feed_url() -> None:
    with pytest.raises(ConfigError, match="feed URL"):
        AtomWatcher.from_config({"nickname": "Blog"}).validate()


# --------------------------------------------------------------------
# YouTube
# --------------------------------------------------------------------
CHANNEL = "UC123"


def youtube_url() -> str:
    return YouTubeWatcher(CHANNEL, nickname="x").feed_url


def test_youtube_feed_url_contains_channel() -> None:
    assert youtube_url() == "https://www.youtube.com/feeds/videos.xml?channel_id=UC123"


def test_youtube_reports_new_videos_without_token(ctx, http, webhook) -> None:
    http.add(youtube_url(), FakeResponse(text=youtube_feed(
        youtube_entry("vid2", "Second", "2024-02-01T00:00:00+00:00"),
        youtube_entry("vid1", "First", "2024-01-01T00:00:00+00:00"),
    )))

    offset = YouTubeWatcher(CHANNEL, nickname="Brandon").check({}, ctx)

    assert offset == {"yt:video:vid1": True, "yt:video:vid2": True}
    assert [m.text for m in webhook.messages] == [
        "Brandon posted something on YouTube https://www.youtube.com/watch?v=vid1",
        "Brandon posted something on YouTube https://www.youtube.com/watch?v=vid2",
    ]
    assert {(m.name, m.avatar) for m in webhook.messages} == {("YouTube", "youtube")}
    assert [c["url"] for c in http.calls] == [youtube_url()]


def test_youtube_announces_scheduled_livestream(ctx, http, webhook) -> None:
    http.add(youtube_url(), FakeResponse(text=youtube_feed(
        youtube_entry("live1", "Live", "2024-02-01T00:00:00+00:00"),
    )))
    http.add(VIDEOS_API_URL, FakeResponse(json_data={
        "items": [{"liveStreamingDetails": {"scheduledStartTime": "2024-02-02T18:00:00Z"}}],
    }))
    watcher = YouTubeWatcher(CHANNEL, nickname="Brandon", token="key")

    watcher.check({}, ctx)

    assert webhook.messages[0].text == (
        "Brandon is going live on YouTube <t:1706896800:R>! https://www.youtube.com/watch?v=live1"
    )
    api_call = http.calls[-1]
    assert api_call["params"] == {"part": "liveStreamingDetails", "id": "live1", "key": "key"}


def test_youtube_custom_livestream_message(ctx, http, webhook) -> None:
    http.add(youtube_url(), FakeResponse(text=youtube_feed(
        youtube_entry("live1", "Live", "2024-02-01T00:00:00+00:00"),
    )))
    http.add(VIDEOS_API_URL, FakeResponse(json_data={
        "items": [{"liveStreamingDetails": {"scheduledStartTime": "2024-02-02T18:00:00Z"}}],
    }))
    watcher = YouTubeWatcher(CHANNEL, message="New video", livestream_message="Stream starts {start}", token="key")

    watcher.check({}, ctx)

    assert webhook.messages[0].text.startswith("Stream starts <t:1706896800:R> ")


def test_youtube_regular_upload_with_token_uses_plain_message(ctx, http, webhook) -> None:
    http.add(youtube_url(), FakeResponse(text=youtube_feed(
        youtube_entry("vid1", "First", "2024-01-01T00:00:00+00:00"),
    )))
    http.add(VIDEOS_API_URL, FakeResponse(json_data={"items": [{}]}))

    YouTubeWatcher(CHANNEL, message="New video", token="key").check({}, ctx)

    assert webhook.messages[0].text == "New video https://www.youtube.com/watch?v=vid1"


def test_youtube_skips_handled_videos(ctx, http, webhook) -> None:
    http.add(youtube_url(), FakeResponse(text=youtube_feed(
        youtube_entry("vid1", "First", "2024-01-01T00:00:00+00:00"),
    )))

    offset = YouTubeWatcher(CHANNEL, nickname="Brandon").check({"yt:video:vid1": True}, ctx)

    assert offset == {"yt:video:vid1": True}
    assert webhook.messages == []


def test_youtube_api_failure_keeps_handled_so_far(ctx, http, webhook) -> None:
    http.add(youtube_url(), FakeResponse(text=youtube_feed(
        youtube_entry("vid1", "First", "2024-01-01T00:00:00+00:00"),
    )))
    http.add(VIDEOS_API_URL, requests.Timeout("slow"))

    with pytest.raises(FetchError) as excinfo:
        YouTubeWatcher(CHANNEL, nickname="Brandon", token="key").check({"old": True}, ctx)

    assert excinfo.value.offset == {"old": True}
    assert webhook.messages == []


@pytest.mark.parametrize(
    "options, error",
    [
        ({"nickname": "Brandon"}, "channel ID"),
        ({"channelId": CHANNEL}, "nickname or a YouTube post message"),
    ],
)
def test_youtube_validate(options, error) -> None:
    with pytest.raises(ConfigError, match=error):
        YouTubeWatcher.from_config(options).validate()
