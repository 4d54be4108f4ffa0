"""HTTP session construction and request helpers."""

from __future__ import annotations

import logging

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .config import SyncConfig
from .errors import NetworkError

logger = logging.getLogger("freefall_sync")

RETRY_STATUSES = (429, 500, 502, 503, 504)


def create_session(config: SyncConfig) -> requests.Session:
    """Create a requests session with bounded retries for idempotent fetches."""
    session = requests.Session()
    retry_strategy = Retry(
        total=config.max_retries,
        backoff_factor=config.retry_backoff,
        status_forcelist=RETRY_STATUSES,
        allowed_methods=["HEAD", "GET"],
    )
    adapter = HTTPAdapter(max_retries=retry_strategy)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    session.headers.update({"User-Agent": config.user_agent})
    return session


def _get(session: requests.Session, url: str, timeout: float) -> requests.Response:
    logger.debug("GET %s", url)
    try:
        resp = session.get(url, timeout=timeout)
        resp.raise_for_status()
    except requests.RequestException as exc:
        raise NetworkError(f"Failed to fetch {url}: {exc}", url=url) from exc
    return resp


def get_text(session: requests.Session, url: str, timeout: float) -> str:
    return _get(session, url, timeout).text


def get_bytes(session: requests.Session, url: str, timeout: float) -> bytes:
    return _get(session, url, timeout).content
