"""Exceptions raised while synchronizing the archive."""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union


class FreefallSyncError(Exception):
    """Base class for every failure that aborts a run."""

    def __init__(
        self,
        message: str,
        *,
        url: Optional[str] = None,
        path: Optional[Union[str, Path]] = None,
    ) -> None:
        super().__init__(message)
        self.url = url
        self.path = Path(path) if path is not None else None


class NetworkError(FreefallSyncError):
    """Transport failure, timeout or non-success HTTP status."""


class ParseError(FreefallSyncError):
    """Feed unwrapping, title/date extraction or stored JSON was unusable."""

    def __init__(self, message: str, *, document: Optional[str] = None, **context) -> None:
        super().__init__(message, **context)
        self.document = document


class MissingImageError(FreefallSyncError):
    """The strip page contains no image tag at all."""


class MissingExtraImageError(FreefallSyncError):
    """An extra image was requested but the page has none."""


class UnsupportedFormatError(FreefallSyncError):
    """The strip image is not a PNG."""


class StorageError(FreefallSyncError):
    """A file could not be opened, created or removed."""


class ConsistencyError(StorageError):
    """A finalized bin was written but its in-progress file survived."""


class SyncAborted(FreefallSyncError):
    """Wraps the failure that stopped a run together with the stage it hit."""

    def __init__(self, stage, cause: FreefallSyncError) -> None:
        super().__init__(f"{stage.value}: {cause}", url=cause.url, path=cause.path)
        self.stage = stage
        self.cause = cause
