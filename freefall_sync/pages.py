"""Strip page retrieval and regex-based metadata extraction."""

from __future__ import annotations

import datetime as dt
import logging
import re
from typing import Iterable, List, Optional, Tuple

import requests

from .config import SyncConfig
from .errors import MissingImageError, ParseError
from .models import Page
from .session import get_text

logger = logging.getLogger("freefall_sync")

TITLE_PATTERN = re.compile(
    r"""
    <title>\s*
    Freefall\s+
    ([0-9]+)\s+
    ([a-z]+)\s+
    ([0-9]+),\s+
    ([0-9]+)\s*</title>
    """,
    re.IGNORECASE | re.VERBOSE,
)
IMAGE_PATTERN = re.compile(r'<img\s+src="([^.]+\.[^".]+)"', re.IGNORECASE)

MONTHS = {
    "Jan": 1,
    "Feb": 2,
    "Mar": 3,
    "Apr": 4,
    "May": 5,
    "Jun": 6,
    "Jul": 7,
    "Aug": 8,
    "Sep": 9,
    "Oct": 10,
    "Nov": 11,
    "Dec": 12,
}


def parse_month(token: str) -> int:
    """Map a three-letter English month abbreviation to its number."""
    number = MONTHS.get(token.capitalize())
    if number is None:
        raise ParseError(f"Invalid month {token!r}")
    return number


def parse_title(html: str) -> Tuple[int, dt.date]:
    """Extract the strip number and publication date from the page title."""
    match = TITLE_PATTERN.search(html)
    if match is None:
        raise ParseError("Failed to find strip title and date in page", document=html)
    number, month, day, year = match.groups()
    try:
        date = dt.date(int(year), parse_month(month), int(day))
    except ValueError as exc:
        raise ParseError(
            f"Invalid date {month} {day}, {year}: {exc}", document=html
        ) from exc
    return int(number), date


def is_navigation_image(path: str, fragments: Iterable[str]) -> bool:
    return any(fragment and fragment in path for fragment in fragments)


def extract_image_paths(
    html: str, nav_fragments: Iterable[str] = ()
) -> Tuple[str, Optional[str]]:
    """Return the primary image path and the first non-navigation extra path."""
    fragments = tuple(nav_fragments)
    paths: List[str] = IMAGE_PATTERN.findall(html)
    if not paths:
        raise MissingImageError("No <img src> found in page")
    for path in paths:
        logger.debug("Image %s", path)
    extra = next(
        (path for path in paths[1:] if not is_navigation_image(path, fragments)),
        None,
    )
    return paths[0], extra


def parse_page(html: str, url: str = "", nav_fragments: Iterable[str] = ()) -> Page:
    try:
        number, date = parse_title(html)
        img_url, extra_url = extract_image_paths(html, nav_fragments)
    except (ParseError, MissingImageError) as exc:
        exc.url = url or None
        raise
    return Page(
        number=number,
        date=date,
        img_url=img_url,
        extra_url=extra_url,
        source_url=url,
    )


def strip_page_url(config: SyncConfig, number: int, latest: int) -> str:
    """Return the page URL for a strip; the newest one lives on the landing page."""
    if number == latest:
        return config.latest_page_url
    return config.strip_page_template.format(
        origin=config.site_origin,
        directory=(number - 1) // 100 + 1,
        number=number,
    )


def fetch_page(session: requests.Session, url: str, config: SyncConfig) -> Page:
    html = get_text(session, url, config.request_timeout)
    return parse_page(html, url, config.nav_image_fragments)
