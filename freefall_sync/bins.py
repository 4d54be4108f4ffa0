"""Fixed-size date bins with in-progress and finalized storage."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List, Optional

from .config import BIN_CAPACITY, BIN_FILENAME
from .errors import ConsistencyError, ParseError, StorageError
from .jsonfmt import dumps_compact

logger = logging.getLogger("freefall_sync")

DateBin = List[Optional[str]]


def bin_index(number: int, capacity: int = BIN_CAPACITY) -> int:
    return number // capacity


class DateBinStore:
    """Persist per-strip dates in bins of ``capacity`` entries.

    Partially filled bins live in ``work_dir`` and are rewritten at the end of
    every run. A bin that reaches ``capacity`` entries is written once to
    ``output_dir`` and its in-progress file is removed.
    """

    def __init__(
        self,
        work_dir: Path,
        output_dir: Path,
        capacity: int = BIN_CAPACITY,
        filename: str = BIN_FILENAME,
    ) -> None:
        self.work_dir = work_dir
        self.output_dir = output_dir
        self.capacity = capacity
        self.filename = filename

    def in_progress_path(self, index: int) -> Path:
        return self.work_dir / self.filename.format(index=index)

    def finalized_path(self, index: int) -> Path:
        return self.output_dir / self.filename.format(index=index)

    def load_bin(self, index: int) -> DateBin:
        path = self.in_progress_path(index)
        if not path.exists():
            logger.debug("No in-progress bin at %s", path)
            return []
        return self._read(path)

    def load_finalized(self, index: int) -> DateBin:
        return self._read(self.finalized_path(index))

    def _read(self, path: Path) -> DateBin:
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except OSError as exc:
            raise StorageError(f"Failed to read {path}: {exc}", path=path) from exc
        except json.JSONDecodeError as exc:
            raise ParseError(f"Malformed date bin {path}: {exc}", path=path) from exc
        if not isinstance(raw, list) or not all(
            item is None or isinstance(item, str) for item in raw
        ):
            raise ParseError(f"Date bin {path} is not an array of dates", path=path)
        return raw

    def append(self, dates: DateBin, date: Optional[str]) -> None:
        dates.append(date)

    def is_full(self, dates: DateBin) -> bool:
        return len(dates) >= self.capacity

    def align_bin(self, dates: DateBin, last_number: int) -> DateBin:
        """Make a resumed bin hold exactly one entry per strip up to ``last_number``."""
        expected = last_number % self.capacity + 1
        if len(dates) == expected:
            return dates
        logger.warning(
            "Bin %d holds %d dates but strip #%d needs %d; %s",
            bin_index(last_number, self.capacity),
            len(dates),
            last_number,
            expected,
            "padding with nulls" if len(dates) < expected else "dropping extras",
        )
        if len(dates) < expected:
            return dates + [None] * (expected - len(dates))
        return dates[:expected]

    def _write(self, path: Path, dates: DateBin) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(dumps_compact(dates), encoding="utf-8")
        except OSError as exc:
            raise StorageError(f"Failed to write {path}: {exc}", path=path) from exc
        logger.info("Saved data: %s", path)

    def finalize(self, dates: DateBin, index: int) -> Path:
        if len(dates) != self.capacity:
            raise ValueError(
                f"Bin {index} holds {len(dates)} dates, expected {self.capacity}"
            )
        target = self.finalized_path(index)
        self._write(target, dates)

        stale = self.in_progress_path(index)
        try:
            stale.unlink()
        except FileNotFoundError:
            return target
        except OSError as exc:
            raise ConsistencyError(
                f"Finalized {target} but failed to remove {stale}: {exc}", path=stale
            ) from exc
        logger.info("Removed old dates: %s", stale)
        return target

    def save_partial(self, dates: DateBin, index: int) -> Path:
        path = self.in_progress_path(index)
        self._write(path, dates)
        return path
