"""Upstream feed retrieval and JSONP unwrapping."""

from __future__ import annotations

import json
import logging
from typing import List

import requests

from .config import FEED_PREFIX, FEED_SUFFIX, SyncConfig
from .errors import ParseError
from .models import UpstreamEntry
from .session import get_text

logger = logging.getLogger("freefall_sync")


def unwrap_jsonp(body: str, prefix: str = FEED_PREFIX, suffix: str = FEED_SUFFIX) -> str:
    """Strip the literal ``prefix(...)suffix`` call wrapper around a JSON payload."""
    text = body.strip()
    if not text.startswith(prefix):
        raise ParseError(f"Feed does not start with {prefix!r}", document=body)
    text = text[len(prefix):]
    if not text.endswith(suffix):
        raise ParseError(f"Feed does not end with {suffix!r}", document=body)
    return text[: len(text) - len(suffix)]


def parse_feed(body: str) -> List[UpstreamEntry]:
    payload = unwrap_jsonp(body)
    try:
        raw = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise ParseError(f"Failed to decode feed JSON: {exc}", document=body) from exc
    if not isinstance(raw, list):
        raise ParseError("Feed payload is not a JSON array", document=body)
    try:
        return [UpstreamEntry.from_dict(item) for item in raw]
    except (KeyError, TypeError, ValueError) as exc:
        raise ParseError(f"Malformed feed entry: {exc}", document=body) from exc


def fetch_latest_number(session: requests.Session, config: SyncConfig) -> int:
    """Return the sequence number of the newest strip listed upstream."""
    body = get_text(session, config.feed_url, config.request_timeout)
    try:
        entries = parse_feed(body)
    except ParseError as exc:
        exc.url = config.feed_url
        raise
    if not entries:
        raise ParseError("Feed contains no entries", url=config.feed_url, document=body)
    latest = entries[-1].i
    logger.debug("Upstream feed lists %d strips, latest #%d", len(entries), latest)
    return latest
