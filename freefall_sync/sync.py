"""High-level orchestration of one incremental synchronization pass."""

from __future__ import annotations

import datetime as dt
import enum
import logging
from typing import Callable, List, Optional, Tuple

import requests

from .bins import DateBin, DateBinStore, bin_index
from .config import SyncConfig
from .errors import FreefallSyncError, ParseError, SyncAborted
from .feed import fetch_latest_number
from .images import download_image, image_dimensions, save_strip_image
from .models import ReaderEntry, ReaderState, SyncedStrip, SyncResult
from .pages import fetch_page, strip_page_url
from .reader import apply_state, current_state, load_entries, save_entries
from .session import create_session

logger = logging.getLogger("freefall_sync")

Clock = Callable[[], dt.datetime]


class SyncStage(enum.Enum):
    CHECK_UP_TO_DATE = "check-up-to-date"
    SYNCING = "syncing"
    FINALIZING = "finalizing"


def utc_now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc).replace(microsecond=0)


def build_bin_store(config: SyncConfig) -> DateBinStore:
    return DateBinStore(config.work_path, config.output_path)


def _starting_bin(store: DateBinStore, last_known: int) -> DateBin:
    """Resume the bin containing ``last_known`` unless it was just completed."""
    if last_known % store.capacity == store.capacity - 1:
        return []
    index = bin_index(last_known, store.capacity)
    loaded = store.load_bin(index)
    if not loaded and store.finalized_path(index).exists():
        # An aborted run already finalized this bin; resume from its head.
        logger.info("Resuming bin %d from %s", index, store.finalized_path(index))
        loaded = store.load_finalized(index)
    return store.align_bin(loaded, last_known)


def _check_dimensions(
    number: int,
    size: Optional[Tuple[int, int]],
    reference: Tuple[Optional[int], Optional[int]],
) -> Tuple[Optional[int], Optional[int]]:
    if size is None:
        return reference
    width, height = size
    ref_width, ref_height = reference
    if (ref_width is not None and ref_width != width) or (
        ref_height is not None and ref_height != height
    ):
        logger.warning(
            "Strip #%d is %dx%d, previous size was %sx%s",
            number,
            width,
            height,
            ref_width,
            ref_height,
        )
    return width, height


def sync_strip(
    session: requests.Session,
    config: SyncConfig,
    number: int,
    latest: int,
) -> SyncedStrip:
    """Fetch one strip page, mirror its image and return what was stored."""
    url = strip_page_url(config, number, latest)
    logger.info("Fetching #%d", number)
    page = fetch_page(session, url, config)
    logger.debug("Got page %s", page)
    if page.number != number:
        raise ParseError(
            f"Page {url} reports strip #{page.number}, expected #{number}", url=url
        )

    data = download_image(session, page, False, config)
    image_path = save_strip_image(page, data, config.output_path)
    logger.info("Saved image: %s", image_path)
    size = image_dimensions(data)

    extra_path = None
    if config.fetch_extra and page.extra_url is not None:
        extra_data = download_image(session, page, True, config)
        extra_path = save_strip_image(page, extra_data, config.output_path, extra=True)
        logger.info("Saved extra image: %s", extra_path)

    return SyncedStrip(
        number=number,
        date=page.date.isoformat(),
        image_path=image_path,
        width=size[0] if size else None,
        height=size[1] if size else None,
        extra_path=extra_path,
    )


def run_sync(
    config: SyncConfig,
    session: Optional[requests.Session] = None,
    clock: Optional[Clock] = None,
) -> SyncResult:
    """Bring the local archive up to the latest upstream strip.

    Any failure aborts the run with :class:`SyncAborted`; the reader data file
    is only rewritten once every strip has been stored, so a failed run is
    resumed from the same position next time.
    """
    clock = clock or utc_now
    owns_session = session is None
    if session is None:
        session = create_session(config)
    stage = SyncStage.CHECK_UP_TO_DATE
    try:
        latest = fetch_latest_number(session, config)
        entries: List[ReaderEntry] = load_entries(config.reader_path)
        state = current_state(entries)
        last_known = state.number

        if last_known == latest:
            now = clock()
            apply_state(entries, ReaderState(number=latest, checked=now))
            save_entries(config.reader_path, entries)
            logger.info("Local copy up to date!")
            return SyncResult(
                last_known=last_known, latest=latest, up_to_date=True, checked=now
            )
        if last_known > latest:
            raise ParseError(
                f"Local copy (#{last_known}) is ahead of upstream (#{latest})",
                url=config.feed_url,
            )

        logger.info(
            "Local copy out of sync. Last known: %d, latest: %d", last_known, latest
        )
        stage = SyncStage.SYNCING
        store = build_bin_store(config)
        dates = _starting_bin(store, last_known)
        strips: List[SyncedStrip] = []
        finalized: List[int] = []
        reference = (state.width, state.height)

        for number in range(last_known + 1, latest + 1):
            strip = sync_strip(session, config, number, latest)
            strips.append(strip)
            size = (strip.width, strip.height) if strip.width is not None else None
            reference = _check_dimensions(number, size, reference)

            store.append(dates, strip.date)
            if store.is_full(dates):
                index = bin_index(number, store.capacity)
                store.finalize(dates, index)
                finalized.append(index)
                dates = []

        stage = SyncStage.FINALIZING
        partial_bin = None
        if dates:
            partial_bin = bin_index(latest, store.capacity)
            store.save_partial(dates, partial_bin)

        now = clock()
        apply_state(entries, ReaderState(number=latest, checked=now))
        save_entries(config.reader_path, entries)
    except FreefallSyncError as exc:
        raise SyncAborted(stage, exc) from exc
    finally:
        if owns_session:
            session.close()

    logger.info("Synced %d strips, local copy now at #%d", len(strips), latest)
    return SyncResult(
        last_known=last_known,
        latest=latest,
        up_to_date=False,
        checked=now,
        strips=strips,
        finalized_bins=finalized,
        partial_bin=partial_bin,
    )
