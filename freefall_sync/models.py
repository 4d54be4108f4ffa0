"""Data models used throughout the synchronization pipeline."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

# (attribute, JSON key) pairs of the optional reader fields, in output order.
READER_FIELDS: Tuple[Tuple[str, str], ...] = (
    ("single", "single"),
    ("height", "height"),
    ("width", "width"),
    ("prefix", "prefix"),
    ("suffix", "suffix"),
    ("extra", "extra"),
    ("extra_height", "extraHeight"),
    ("extra_original", "extraOriginal"),
)


@dataclass(frozen=True)
class UpstreamEntry:
    """One record of the remote feed; only ``i`` matters for syncing."""

    i: int
    h: Optional[int] = None
    prefix: Optional[str] = None
    ext: Optional[str] = None

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "UpstreamEntry":
        return cls(
            i=int(raw["i"]),
            h=raw.get("h"),
            prefix=raw.get("prefix"),
            ext=raw.get("ext"),
        )


@dataclass
class ReaderEntry:
    """A record of the local reader data file."""

    i: int
    single: Optional[bool] = None
    height: Optional[int] = None
    width: Optional[int] = None
    prefix: Optional[str] = None
    suffix: Optional[str] = None
    extra: Optional[str] = None
    extra_height: Optional[int] = None
    extra_original: Optional[str] = None
    checked: Optional[dt.datetime] = None
    unknown: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "ReaderEntry":
        known = {"i", "checked"} | {key for _, key in READER_FIELDS}
        kwargs = {attr: raw.get(key) for attr, key in READER_FIELDS}
        checked = raw.get("checked")
        return cls(
            i=int(raw["i"]),
            checked=(
                dt.datetime.fromtimestamp(int(checked), tz=dt.timezone.utc)
                if checked is not None
                else None
            ),
            unknown={k: v for k, v in raw.items() if k not in known},
            **kwargs,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize with camelCase keys, dropping every absent optional."""
        payload: Dict[str, Any] = {"i": self.i}
        for attr, key in READER_FIELDS:
            value = getattr(self, attr)
            if value is not None:
                payload[key] = value
        payload.update(self.unknown)
        if self.checked is not None:
            payload["checked"] = int(self.checked.timestamp())
        return payload


@dataclass(frozen=True)
class ReaderState:
    """Current sync position: last mirrored strip and when it was checked."""

    number: int
    checked: Optional[dt.datetime] = None
    width: Optional[int] = None
    height: Optional[int] = None


@dataclass
class Page:
    """A fetched strip page."""

    number: int
    date: dt.date
    img_url: str
    extra_url: Optional[str] = None
    source_url: str = ""

    def __str__(self) -> str:
        return f"#{self.number} {self.date.isoformat()} - {self.img_url} ({self.extra_url})"


@dataclass
class SyncedStrip:
    """Outcome of mirroring one strip."""

    number: int
    date: Optional[str]
    image_path: Path
    width: Optional[int] = None
    height: Optional[int] = None
    extra_path: Optional[Path] = None


@dataclass
class SyncResult:
    """Summary of one synchronization run."""

    last_known: int
    latest: int
    up_to_date: bool
    checked: dt.datetime
    strips: List[SyncedStrip] = field(default_factory=list)
    finalized_bins: List[int] = field(default_factory=list)
    partial_bin: Optional[int] = None
