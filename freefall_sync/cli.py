"""Command-line entry point for the archive synchronizer."""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import Sequence

from .config import SyncConfig
from .errors import SyncAborted
from .sync import run_sync

logger = logging.getLogger("freefall_sync.cli")


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Mirror new Freefall strips, their dates and reader metadata.",
    )
    parser.add_argument(
        "--root",
        default=".",
        type=Path,
        help="Directory holding freefall/ and static/freefall/",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=30.0,
        help="Per-request timeout in seconds",
    )
    parser.add_argument(
        "--retries",
        type=int,
        default=3,
        help="Transport retries per request before the run is aborted",
    )
    parser.add_argument(
        "--fetch-extra",
        action="store_true",
        help="Also download the secondary image of strips that have one",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )

    config = SyncConfig(
        root=Path(args.root).resolve(),
        request_timeout=args.timeout,
        max_retries=args.retries,
        fetch_extra=args.fetch_extra,
    )

    overall_start = time.perf_counter()
    try:
        result = run_sync(config)
    except SyncAborted as exc:
        logger.error("Sync failed during %s: %s", exc.stage.value, exc.cause)
        if exc.url:
            logger.error("URL: %s", exc.url)
        if exc.path:
            logger.error("Path: %s", exc.path)
        document = getattr(exc.cause, "document", None)
        if document:
            logger.debug("Offending document:\n%s", document)
        return 1
    total_elapsed = time.perf_counter() - overall_start

    if result.up_to_date:
        logger.info("Nothing to do, #%d is the latest strip", result.latest)
    else:
        logger.info(
            "Finished in %.2fs: %d strips (#%d to #%d), %d bins finalized",
            total_elapsed,
            len(result.strips),
            result.last_known + 1,
            result.latest,
            len(result.finalized_bins),
        )
    return 0


if __name__ == "__main__":
    sys.exit(main())
