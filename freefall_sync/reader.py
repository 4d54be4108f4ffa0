"""Reader metadata file: loading, saving and the current sync position."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List

from .errors import ParseError, StorageError
from .jsonfmt import dumps_reader
from .models import ReaderEntry, ReaderState

logger = logging.getLogger("freefall_sync")


def load_entries(path: Path) -> List[ReaderEntry]:
    """Read the reader data file as an ordered list of entries."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise StorageError(
            f"Failed to read local reader data from {path}: {exc}", path=path
        ) from exc
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ParseError(f"Malformed reader data in {path}: {exc}", path=path) from exc
    if not isinstance(raw, list):
        raise ParseError(f"Reader data in {path} is not a JSON array", path=path)
    try:
        return [ReaderEntry.from_dict(item) for item in raw]
    except (KeyError, TypeError, ValueError, OverflowError, OSError) as exc:
        raise ParseError(f"Malformed reader entry in {path}: {exc}", path=path) from exc


def save_entries(path: Path, entries: List[ReaderEntry]) -> None:
    payload = dumps_reader([entry.to_dict() for entry in entries])
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(payload, encoding="utf-8")
    except OSError as exc:
        raise StorageError(f"Failed to write reader data {path}: {exc}", path=path) from exc
    logger.info("Saved data: %s", path)


def current_state(entries: List[ReaderEntry]) -> ReaderState:
    """Project the authoritative (newest) entry onto an explicit state."""
    if not entries:
        raise ParseError("Reader data contains no entries")
    newest = entries[-1]
    return ReaderState(
        number=newest.i,
        checked=newest.checked,
        width=newest.width,
        height=newest.height,
    )


def apply_state(entries: List[ReaderEntry], state: ReaderState) -> None:
    """Write the sync position back onto the newest entry."""
    if not entries:
        entries.append(ReaderEntry(i=state.number, checked=state.checked))
        return
    entries[-1].i = state.number
    entries[-1].checked = state.checked
