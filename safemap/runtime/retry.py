"""Bounded retry of a single batch attempt."""

from __future__ import annotations

import logging
import time

from typing import Any, Callable, List, Optional

from safemap.adapters.base import ExecutionAdapter
from safemap.exceptions import BatchExecutionError
from safemap.types import BatchInputs

LOGGER = logging.getLogger(__name__)


class RetryExecutor:
    """Runs one batch through an adapter, retrying the whole batch on failure."""

    def __init__(
        self,
        *,
        delay: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._delay = delay
        self._sleep = sleep

    def run(
        self,
        batch: BatchInputs,
        adapter: ExecutionAdapter,
        func: Callable[..., Any],
        max_attempts: int,
    ) -> List[Any]:
        max_attempts = max(1, max_attempts)
        expected = len(batch)
        last_error: Optional[BaseException] = None
        for attempt in range(1, max_attempts + 1):
            try:
                outputs = list(adapter.run(func, batch))
                if len(outputs) != expected:
                    raise ValueError(
                        f"adapter returned {len(outputs)} outputs "
                        f"for {expected} items"
                    )
                return outputs
            except Exception as exc:
                last_error = exc
            if attempt < max_attempts:
                LOGGER.warning(
                    "  Retry %d/%d: %s", attempt, max_attempts, last_error
                )
                if self._delay > 0:
                    self._sleep(self._delay)
        raise BatchExecutionError(max_attempts, last_error) from last_error


__all__ = ["RetryExecutor"]
