"""Progress observers for batch runs."""

from __future__ import annotations

import logging

from typing import List, Optional

from safemap.types import BatchProgress


class LoggingProgressObserver:
    """Logs one line per batch: ``[pct%] Processing items a-b of n``."""

    def __init__(
        self,
        logger: Optional[logging.Logger] = None,
        level: int = logging.INFO,
    ) -> None:
        self.logger = logger or logging.getLogger("safemap.progress")
        self.level = level

    def __call__(self, progress: BatchProgress) -> None:
        self.logger.log(
            self.level,
            "[%d%%] Processing items %d-%d of %d",
            progress.percent,
            progress.batch.start,
            progress.batch.end,
            progress.total_items,
        )


class RecordingProgressObserver:
    """Keeps every progress event in memory."""

    def __init__(self) -> None:
        self.events: List[BatchProgress] = []

    def __call__(self, progress: BatchProgress) -> None:
        self.events.append(progress)
