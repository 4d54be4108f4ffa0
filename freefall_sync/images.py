"""Strip image downloading, validation and persistence."""

from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import Optional, Tuple
from urllib.parse import urljoin

import requests
from filetype import guess
from PIL import Image, UnidentifiedImageError

from .config import SyncConfig
from .errors import MissingExtraImageError, StorageError, UnsupportedFormatError
from .models import Page
from .session import get_bytes

logger = logging.getLogger("freefall_sync")

SUPPORTED_SUFFIX = ".png"


def image_url(page: Page, extra: bool, origin: str) -> str:
    """Resolve the primary or extra image path of a page against the site origin."""
    if extra:
        if page.extra_url is None:
            raise MissingExtraImageError(
                f"Strip #{page.number} has no extra image", url=page.source_url or None
            )
        path = page.extra_url
    else:
        path = page.img_url
    return urljoin(origin.rstrip("/") + "/", path.lstrip("/"))


def download_image(
    session: requests.Session, page: Page, extra: bool, config: SyncConfig
) -> bytes:
    url = image_url(page, extra, config.site_origin)
    return get_bytes(session, url, config.request_timeout)


def image_dimensions(data: bytes) -> Optional[Tuple[int, int]]:
    """Return ``(width, height)`` of an encoded image, or None when unreadable."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            return img.size
    except (UnidentifiedImageError, OSError) as exc:
        logger.warning("Could not read image dimensions: %s", exc)
        return None


def save_strip_image(
    page: Page,
    data: bytes,
    target_dir: Path,
    extra: bool = False,
) -> Path:
    """Write a strip image as ``<number>.png`` (``<number>-extra.png`` for extras)."""
    source = page.extra_url if extra else page.img_url
    if source is None or not source.lower().endswith(SUPPORTED_SUFFIX):
        raise UnsupportedFormatError(
            f"Unsupported image type for image {source!r}", url=page.source_url or None
        )
    kind = guess(data)
    if kind is None or kind.extension != "png":
        detected = kind.mime if kind else "unknown data"
        raise UnsupportedFormatError(
            f"Image {source!r} of strip #{page.number} is not a PNG ({detected})",
            url=page.source_url or None,
        )

    filename = f"{page.number}-extra.png" if extra else f"{page.number}.png"
    destination = target_dir / filename
    try:
        target_dir.mkdir(parents=True, exist_ok=True)
        destination.write_bytes(data)
    except OSError as exc:
        raise StorageError(
            f"Failed to write image {destination}: {exc}", path=destination
        ) from exc
    return destination
