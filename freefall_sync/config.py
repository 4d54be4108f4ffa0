"""Configuration objects and constants for the archive synchronizer."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Tuple

SITE_ORIGIN = "http://freefall.purrsia.com"
FEED_URL = f"{SITE_ORIGIN}/fabsdata.js"
LATEST_PAGE_URL = f"{SITE_ORIGIN}/default.htm"
STRIP_PAGE_TEMPLATE = "{origin}/ff{directory:02d}00/fc{number:05d}.htm"

FEED_PREFIX = "FreefallData("
FEED_SUFFIX = ")"

BIN_CAPACITY = 100
BIN_FILENAME = "dates_{index}.json"
DEFAULT_NAV_IMAGE_FRAGMENTS: Tuple[str, ...] = ("/nav",)
DEFAULT_USER_AGENT = "freefall-sync/0.1 (+archive mirror)"


@dataclass
class SyncConfig:
    """Every URL, path and tunable used by a synchronization run."""

    root: Path = Path(".")
    reader_file: Path = Path("freefall/data.json")
    work_dir: Path = Path("freefall")
    output_dir: Path = Path("static/freefall")
    site_origin: str = SITE_ORIGIN
    feed_url: str = FEED_URL
    latest_page_url: str = LATEST_PAGE_URL
    strip_page_template: str = STRIP_PAGE_TEMPLATE
    nav_image_fragments: Tuple[str, ...] = field(
        default_factory=lambda: DEFAULT_NAV_IMAGE_FRAGMENTS
    )
    request_timeout: float = 30.0
    max_retries: int = 3
    retry_backoff: float = 1.0
    user_agent: str = DEFAULT_USER_AGENT
    fetch_extra: bool = False

    def resolve(self, path: Path) -> Path:
        """Anchor a configured relative path at the data root."""
        return path if path.is_absolute() else self.root / path

    @property
    def reader_path(self) -> Path:
        return self.resolve(self.reader_file)

    @property
    def work_path(self) -> Path:
        return self.resolve(self.work_dir)

    @property
    def output_path(self) -> Path:
        return self.resolve(self.output_dir)
