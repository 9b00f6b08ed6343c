"""CLI helper that interrupts a batch job and resumes it from its checkpoint."""

from __future__ import annotations

import argparse
import logging

from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

from safemap import (
    BatchExecutionError,
    EngineSettings,
    RowBindOutput,
    SessionRegistry,
    safe_map,
)

DEFAULT_CACHE_DIR = Path("examples/resumable_batch/outputs/cache")
RUN_ID = "resumable_demo"

LOGGER = logging.getLogger(__name__)


class FlakyScorer:
    """Scores records, failing once on ``fail_at`` like a dropped API call."""

    def __init__(self, fail_at: Optional[int] = None) -> None:
        self.fail_at = fail_at
        self.calls = 0

    def __call__(self, record_id: int) -> Dict[str, Any]:
        self.calls += 1
        if record_id == self.fail_at:
            self.fail_at = None
            raise ConnectionError(f"upstream dropped record {record_id}")
        return {"id": record_id, "score": record_id * record_id % 97}


def run_demo(
    cache_dir: Path,
    *,
    items: int = 40,
    batch_size: int = 10,
    fail_at: Optional[int] = 23,
) -> List[Dict[str, Any]]:
    """Run once until the injected failure, then resume to completion."""

    settings = EngineSettings(
        batch_size=batch_size,
        retry_attempts=1,
        retry_delay=0,
        cache_dir=cache_dir,
    )
    scorer = FlakyScorer(fail_at)
    records = list(range(1, items + 1))
    try:
        return safe_map(
            records,
            scorer,
            run_id=RUN_ID,
            settings=settings,
            output=RowBindOutput(),
        )
    except BatchExecutionError as exc:
        LOGGER.warning("Interrupted: %s", exc)

    registry = SessionRegistry(settings)
    print(registry.debug_session(RUN_ID), end="")
    LOGGER.info("Resuming %s", RUN_ID)
    return safe_map(
        records,
        scorer,
        run_id=RUN_ID,
        settings=settings,
        output=RowBindOutput(),
    )


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Resumable batch scoring example"
    )
    parser.add_argument(
        "--cache-dir",
        type=Path,
        default=DEFAULT_CACHE_DIR,
        help="Directory for checkpoints and locks",
    )
    parser.add_argument(
        "--items",
        type=int,
        default=40,
        help="Number of records to score",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=10,
        help="Records per checkpoint",
    )
    parser.add_argument(
        "--fail-at",
        type=int,
        default=23,
        help="Record id that fails on the first pass (0 disables)",
    )
    args = parser.parse_args()

    load_dotenv()
    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=logging.INFO, format="%(levelname)s %(name)s: %(message)s"
        )

    rows = run_demo(
        args.cache_dir,
        items=args.items,
        batch_size=args.batch_size,
        fail_at=args.fail_at or None,
    )
    logging.info("Scored %d records", len(rows))


if __name__ == "__main__":
    main()
