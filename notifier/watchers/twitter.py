from __future__ import annotations
from typing import Any, Dict, List, Mapping, Optional

import requests

from .base import Plugin, PluginContext
from ..config import HTTP_TIMEOUT
from ..errors import CheckError, ConfigError, FetchError, ParseError
from ..net import make_session

TIMELINE_URL = "https://api.twitter.com/1.1/statuses/user_timeline.json"
STATUS_URL = "https://twitter.com/{account}/status/{id}"
MAX_TRIES = 3

DISPLAY_NAME = "Twitter"
AVATAR = "twitter"


class TwitterWatcher(Plugin):
    """Relays an account's tweets and retweets posted after the stored tweet ID.

    The offset is the ID of the last tweet handled. It has to be seeded by hand
    before the first run; there is no "everything so far" mode.
    """

    name = "twitter"

    def __init__(
        self,
        token: str,
        account: str = "",
        nickname: str = "",
        tweet_message: str = "",
        retweet_message: str = "",
        exclude_retweets_of: Optional[List[str]] = None,
    ):
        self.token = token
        self.account = account
        self.nickname = nickname
        self.tweet_message = tweet_message
        self.retweet_message = retweet_message
        self.exclude_retweets_of = {a.lower() for a in exclude_retweets_of or []}
        self.session: Optional[requests.Session] = None

    @classmethod
    def from_config(cls, options: Mapping[str, Any]) -> "TwitterWatcher":
        excluded = options.get("excludeRetweetsOf") or []
        if isinstance(excluded, str):
            excluded = [excluded]
        return cls(
            token=str(options.get("token") or "").strip(),
            account=str(options.get("account") or "").strip(),
            nickname=str(options.get("nickname") or "").strip(),
            tweet_message=str(options.get("tweetMessage") or "").strip(),
            retweet_message=str(options.get("retweetMessage") or "").strip(),
            exclude_retweets_of=[str(a) for a in excluded],
        )

    def validate(self) -> None:
        if not self.token:
            raise ConfigError("token for Twitter must not be empty")
        if not self.account:
            raise ConfigError("account for Twitter must not be empty")

    def init(self, ctx: PluginContext) -> None:
        s = make_session()
        s.headers.update({"Authorization": f"Bearer {self.token}", "Accept": "application/json"})
        self.session = s

    def load_offset(self, raw: Any) -> Optional[str]:
        if raw is None or raw == "":
            return None
        return str(raw)

    def check(self, offset: Optional[str], ctx: PluginContext) -> str:
        if not offset:
            raise CheckError("latest tweet ID must be specified as offset for start")

        ctx.log.info("Checking for new tweets by @%s...", self.account)
        last_tweet = offset

        try:
            tweets = self.tweets_since(last_tweet, ctx)
        except CheckError as e:
            raise e.with_offset(last_tweet)

        if not tweets:
            ctx.log.info("No tweets to report.")
            return last_tweet

        ctx.log.info("Reporting %d tweet(s)...", len(tweets))

        nickname = self.nickname
        if not nickname and (not self.tweet_message or not self.retweet_message):
            nickname = ((tweets[0].get("user") or {}).get("name") or self.account)
            ctx.log.info(
                "No nickname or specific messages were provided for account '%s', using name '%s' as fallback nickname",
                self.account, nickname,
            )

        # The API returns newest first
        for tweet in reversed(tweets):
            tweet_id = str(tweet["id"])
            author = (tweet.get("user") or {}).get("screen_name") or self.account
            retweeted = tweet.get("retweeted_status")

            if retweeted:
                original_author = ((retweeted.get("user") or {}).get("screen_name") or "")
                if original_author.lower() in self.exclude_retweets_of:
                    ctx.log.info(
                        "Ignoring retweet %s from '%s', as the original tweet is from '%s'",
                        tweet_id, author, original_author,
                    )
                    last_tweet = tweet_id
                    continue

            reply_to = tweet.get("in_reply_to_screen_name")
            if reply_to and reply_to.lower() != self.account.lower():
                ctx.log.info("Ignoring reply tweet %s from '%s', as it is not in response to themself", tweet_id, author)
                last_tweet = tweet_id
                continue

            if retweeted:
                message = self.retweet_message or f"{nickname} retweeted"
            else:
                message = self.tweet_message or f"{nickname} tweeted"

            link = STATUS_URL.format(account=self.account, id=tweet_id)
            try:
                ctx.webhook.send(f"{message} {link}", DISPLAY_NAME, AVATAR)
            except CheckError as e:
                raise e.with_offset(last_tweet)
            last_tweet = tweet_id

        return last_tweet

    # ----------------------- timeline -----------------------

    def tweets_since(self, since_id: str, ctx: PluginContext) -> List[Dict[str, Any]]:
        """All tweets newer than ``since_id``, newest first."""
        result: List[Dict[str, Any]] = []
        max_id: Optional[int] = None
        while True:
            page = self._read_page(since_id, max_id, ctx)
            # max_id is inclusive, so the last page only repeats the boundary tweet
            if not page or (len(page) == 1 and page[0].get("id") == max_id):
                break
            result.extend(t for t in page if t.get("id") != max_id)
            max_id = page[-1]["id"]
        return result

    def _read_page(self, since_id: str, max_id: Optional[int], ctx: PluginContext) -> List[Dict[str, Any]]:
        session = self.session or ctx.http
        params: Dict[str, Any] = {
            "screen_name": self.account,
            "since_id": since_id,
            "count": 100,
            "exclude_replies": "false",
            "include_rts": "true",
        }
        if max_id:
            params["max_id"] = max_id
        headers = {"Authorization": f"Bearer {self.token}"}

        for attempt in range(1, MAX_TRIES + 1):
            try:
                r = session.get(TIMELINE_URL, params=params, headers=headers, timeout=HTTP_TIMEOUT)
            except requests.RequestException as e:
                raise FetchError(f"couldn't request tweets: {e}") from e

            if r.status_code == 429:
                if attempt == MAX_TRIES:
                    raise FetchError(f"rate limiting still applied after {MAX_TRIES} tries")
                if r.headers.get("X-App-Rate-Limit-Remaining") == "0":
                    raise FetchError("app rate limit hit for current 24h period")
                reset = r.headers.get("X-Rate-Limit-Reset")
                if not reset:
                    raise FetchError("no rate limit reset time found")
                try:
                    delay = max(0.0, float(reset) - ctx.now().timestamp())
                except ValueError as e:
                    raise FetchError(f"rate limit reset {reset!r} could not be parsed into number") from e
                ctx.log.info("Being rate limited by Twitter, waiting for %.0fs", delay)
                ctx.sleep(delay)
                continue

            if r.status_code != 200:
                raise FetchError(f"received response '{r.status_code}', body was: {r.text}")

            try:
                data = r.json()
            except ValueError as e:
                raise ParseError(f"couldn't parse tweets: {e}") from e
            if not isinstance(data, list):
                raise ParseError(f"couldn't parse tweets: expected a list, got {type(data).__name__}")
            return data

        raise FetchError(f"rate limiting still applied after {MAX_TRIES} tries")
