# notifier/webhooks/discord.py
# Discord webhook client: JSON POST with rate-limit retry.

from __future__ import annotations
import json
import threading
import time
from typing import Any, Callable, Dict, List, Mapping, Optional

import requests

from ..config import HTTP_TIMEOUT
from ..errors import SendError
from ..utils.log import get_logger

logger = get_logger("notifier.discord")

WEBHOOK_BASE_URL = "https://discord.com/api/webhooks"
MAX_TRIES = 3


def webhook_url(webhook: str) -> str:
    webhook = webhook.strip()
    if webhook.startswith(("http://", "https://")):
        return webhook
    return f"{WEBHOOK_BASE_URL}/{webhook.strip('/')}"


def allowed_mentions(mentions: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
    """Translate the config's ``mentions`` block into Discord's ``allowed_mentions``."""
    if not mentions:
        return None
    parse: List[str] = []
    out: Dict[str, Any] = {}
    if mentions.get("everyone"):
        parse.append("everyone")
    users = [str(u) for u in mentions.get("users") or []]
    roles = [str(r) for r in mentions.get("roles") or []]
    if users:
        out["users"] = users
    if roles:
        out["roles"] = roles
    out["parse"] = parse
    return out


class DiscordClient:
    def __init__(
        self,
        webhook: str,
        *,
        avatars: Optional[Mapping[str, str]] = None,
        mentions: Optional[Mapping[str, Any]] = None,
        session: Optional[requests.Session] = None,
        dry_run: bool = False,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.url = webhook_url(webhook)
        self.avatars = dict(avatars or {})
        self.allowed_mentions = allowed_mentions(mentions or {})
        self.session = session or requests.Session()
        self.dry_run = dry_run
        self.sleep = sleep
        # one post at a time: connectors share this client across threads
        self._lock = threading.Lock()

    def resolve_avatar(self, reference: str) -> Optional[str]:
        if not reference:
            return None
        if reference in self.avatars:
            return self.avatars[reference]
        if reference.startswith(("http://", "https://")):
            return reference
        return None

    def send(self, text: str, name: str, avatar: str, embed: Optional[Dict[str, Any]] = None) -> None:
        self.send_with_custom_avatar(text, name, self.resolve_avatar(avatar), embed)

    def send_with_custom_avatar(self, text: str, name: str, avatar_url: Optional[str], embed: Optional[Dict[str, Any]] = None) -> None:
        body: Dict[str, Any] = {"username": name, "content": text}
        if avatar_url:
            body["avatar_url"] = avatar_url
        if embed is not None:
            body["embeds"] = [embed]
        if self.allowed_mentions is not None:
            body["allowed_mentions"] = self.allowed_mentions

        if self.dry_run:
            logger.info("[DRY RUN] Would post to Discord as %s:\n%s", name, json.dumps(body, ensure_ascii=False, indent=2))
            return

        with self._lock:
            self._post(body)

    def _post(self, body: Dict[str, Any]) -> None:
        for attempt in range(1, MAX_TRIES + 1):
            try:
                r = self.session.post(self.url, json=body, timeout=HTTP_TIMEOUT)
            except requests.RequestException as e:
                raise SendError(f"couldn't send Discord message: {e}") from e

            if r.status_code == 429:
                delay = _retry_after(r)
                if attempt == MAX_TRIES:
                    break
                logger.info("Being rate limited by Discord, waiting for %.2fs", delay)
                self.sleep(delay)
                continue

            if not 200 <= r.status_code < 300:
                raise SendError(f"couldn't send Discord message: {r.status_code} {r.text}")
            return

        raise SendError(f"couldn't send Discord message: rate limiting still applied after {MAX_TRIES} tries")


def _retry_after(r: requests.Response) -> float:
    try:
        data = r.json()
        if isinstance(data, dict) and data.get("retry_after") is not None:
            return float(data["retry_after"])
    except ValueError:
        pass
    header = r.headers.get("Retry-After")
    try:
        return float(header) if header else 1.0
    except ValueError:
        return 1.0
