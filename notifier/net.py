# notifier/net.py
import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .config import HTTP_TIMEOUT, USER_AGENT
from .errors import FetchError


def make_session(user_agent: str = USER_AGENT) -> requests.Session:
    s = requests.Session()
    s.headers.update({
        "User-Agent": user_agent,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.9",
        "Connection": "keep-alive",
    })
    # 429 is left to the callers: Discord and Twitter both have their own rate-limit handling
    retry = Retry(
        total=3,
        connect=3,
        read=3,
        backoff_factor=0.8,
        status_forcelist=(408, 500, 502, 503, 504),
        allowed_methods=frozenset({"GET", "HEAD"}),
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry, pool_connections=20, pool_maxsize=20)
    s.mount("http://", adapter)
    s.mount("https://", adapter)
    return s


def http_get(session, url: str, *, allow_404: bool = False, timeout: float = HTTP_TIMEOUT, **kw) -> requests.Response:
    """GET ``url`` and raise FetchError for transport errors and error statuses.

    With ``allow_404`` a 404 response is returned as-is so feed connectors can
    treat a missing feed as "site might be down" instead of a failure.
    """
    try:
        r = session.get(url, timeout=timeout, **kw)
    except requests.RequestException as e:
        raise FetchError(f"could not read '{url}': {e}") from e
    if allow_404 and r.status_code == 404:
        return r
    try:
        r.raise_for_status()
    except requests.HTTPError as e:
        raise FetchError(f"could not read '{url}': {e}") from e
    return r
