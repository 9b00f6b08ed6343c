# Copyright (c) Meta Platforms, Inc. and affiliates.
# Modifications copyright (c) 2025 Logan Martel.
# Adapted from https://github.com/meta-pytorch/KernelAgent (Apache-2.0).

"""Serial and pooled backends used by the apply strategies."""

from __future__ import annotations

import logging
import multiprocessing as mp

from concurrent.futures import (
    Executor,
    Future,
    ProcessPoolExecutor,
    ThreadPoolExecutor,
)
from typing import Any, Callable, List, Optional, Sequence

from safemap.adapters.base import Call, ExecutionBackend

LOGGER = logging.getLogger(__name__)


class SerialBackend:
    """Runs every call in the current thread."""

    parallel = False

    def apply(self, func: Callable[..., Any], calls: Sequence[Call]) -> List[Any]:
        return [func(*args, **kwargs) for args, kwargs in calls]


class _PoolBackend:
    """Fans calls out to a pool and gathers results in submission order."""

    parallel = True

    def __init__(self, max_workers: Optional[int] = None) -> None:
        self.max_workers = max_workers

    def _executor(self) -> Executor:
        raise NotImplementedError

    def apply(self, func: Callable[..., Any], calls: Sequence[Call]) -> List[Any]:
        with self._executor() as executor:
            futures: List[Future] = [
                executor.submit(func, *args, **kwargs) for args, kwargs in calls
            ]
            try:
                return [future.result() for future in futures]
            except BaseException:
                for pending in futures:
                    pending.cancel()
                raise


class ThreadBackend(_PoolBackend):
    def _executor(self) -> Executor:
        return ThreadPoolExecutor(
            max_workers=self.max_workers, thread_name_prefix="safemap"
        )


class ProcessBackend(_PoolBackend):
    """Process pool; ``func`` and every item must be picklable."""

    def __init__(
        self,
        max_workers: Optional[int] = None,
        *,
        start_method: Optional[str] = "fork",
    ) -> None:
        super().__init__(max_workers)
        try:
            self._ctx = mp.get_context(start_method)
        except ValueError:  # pragma: no cover - windows fallback
            self._ctx = mp.get_context()
        LOGGER.debug(
            "Process backend using start method %s",
            self._ctx.get_start_method(),
        )

    def _executor(self) -> Executor:
        return ProcessPoolExecutor(
            max_workers=self.max_workers, mp_context=self._ctx
        )


def build_backend(
    kind: str, max_workers: Optional[int] = None
) -> ExecutionBackend:
    if kind == "serial":
        return SerialBackend()
    if kind == "thread":
        return ThreadBackend(max_workers)
    if kind == "process":
        return ProcessBackend(max_workers)
    raise ValueError(f"Unknown execution backend '{kind}'")


__all__ = [
    "ProcessBackend",
    "SerialBackend",
    "ThreadBackend",
    "build_backend",
]
