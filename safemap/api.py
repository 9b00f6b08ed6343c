"""Resumable map/walk functions built on the batch runner.

Every function accepts the same keyword arguments:

``run_id``
    Identifier used to resume an interrupted run. Generated from the mode and
    a timestamp when omitted (such runs cannot be resumed by name later).
``settings``
    An :class:`~safemap.configuration.EngineSettings`; defaults are used when
    omitted.
``output``
    An output adapter from :mod:`safemap.output` (``AS_LIST`` by default).
``parallel``
    ``None``/``False`` for in-process execution, ``True`` for the configured
    parallel backend, ``"thread"``/``"process"``, or a backend instance.
``observer``
    Callable receiving a :class:`~safemap.types.BatchProgress` per batch.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Callable, Iterable, Optional, Sequence, Union

from safemap.adapters.base import ExecutionAdapter
from safemap.adapters.factory import ParallelOption, resolve_backend
from safemap.adapters.strategies import (
    IMapAdapter,
    Map2Adapter,
    MapAdapter,
    PMapAdapter,
    Walk2Adapter,
    WalkAdapter,
)
from safemap.configuration import EngineSettings
from safemap.output import AS_LIST, DISCARD, OutputAdapter
from safemap.runtime.runner import BatchRunner
from safemap.types import BatchInputs, ProgressObserver


def execute(
    inputs: BatchInputs,
    func: Callable[..., Any],
    adapter: ExecutionAdapter,
    *,
    run_id: Optional[str] = None,
    settings: Optional[EngineSettings] = None,
    output: OutputAdapter = AS_LIST,
    observer: Optional[ProgressObserver] = None,
) -> Any:
    """Generic entry point: run ``adapter`` over ``inputs`` with checkpoints."""

    runner = BatchRunner(settings or EngineSettings())
    return runner.run(
        inputs,
        func,
        adapter,
        run_id=run_id,
        output=output,
        observer=observer,
    )


def _backend(parallel: ParallelOption, settings: Optional[EngineSettings]):
    return resolve_backend(parallel, settings or EngineSettings())


def safe_map(
    items: Iterable[Any],
    func: Callable[[Any], Any],
    *,
    run_id: Optional[str] = None,
    settings: Optional[EngineSettings] = None,
    output: OutputAdapter = AS_LIST,
    parallel: ParallelOption = None,
    observer: Optional[ProgressObserver] = None,
) -> Any:
    """Apply ``func`` to every item, checkpointing after each batch."""

    return execute(
        BatchInputs.from_sequences(items),
        func,
        MapAdapter(_backend(parallel, settings)),
        run_id=run_id,
        settings=settings,
        output=output,
        observer=observer,
    )


def safe_map2(
    xs: Iterable[Any],
    ys: Iterable[Any],
    func: Callable[[Any, Any], Any],
    *,
    run_id: Optional[str] = None,
    settings: Optional[EngineSettings] = None,
    output: OutputAdapter = AS_LIST,
    parallel: ParallelOption = None,
    observer: Optional[ProgressObserver] = None,
) -> Any:
    """Apply ``func(x, y)`` pairwise; both inputs must have the same length."""

    return execute(
        BatchInputs.from_sequences(xs, ys),
        func,
        Map2Adapter(_backend(parallel, settings)),
        run_id=run_id,
        settings=settings,
        output=output,
        observer=observer,
    )


def safe_imap(
    items: Iterable[Any],
    func: Callable[[Any, int], Any],
    *,
    start: int = 0,
    run_id: Optional[str] = None,
    settings: Optional[EngineSettings] = None,
    output: OutputAdapter = AS_LIST,
    parallel: ParallelOption = None,
    observer: Optional[ProgressObserver] = None,
) -> Any:
    """Apply ``func(item, index)``; ``index`` counts from ``start``."""

    return execute(
        BatchInputs.from_sequences(items),
        func,
        IMapAdapter(_backend(parallel, settings), start=start),
        run_id=run_id,
        settings=settings,
        output=output,
        observer=observer,
    )


def safe_pmap(
    columns: Union[Mapping[str, Iterable[Any]], Sequence[Iterable[Any]]],
    func: Callable[..., Any],
    *,
    run_id: Optional[str] = None,
    settings: Optional[EngineSettings] = None,
    output: OutputAdapter = AS_LIST,
    parallel: ParallelOption = None,
    observer: Optional[ProgressObserver] = None,
) -> Any:
    """Apply ``func`` row-wise over several aligned sequences.

    A mapping of named sequences calls ``func(**row)``; a plain sequence of
    sequences calls ``func(*row)``.
    """

    if isinstance(columns, Mapping):
        inputs = BatchInputs.from_mapping(columns)
    else:
        inputs = BatchInputs.from_sequences(*columns)
    return execute(
        inputs,
        func,
        PMapAdapter(_backend(parallel, settings)),
        run_id=run_id,
        settings=settings,
        output=output,
        observer=observer,
    )


def safe_walk(
    items: Iterable[Any],
    func: Callable[[Any], Any],
    *,
    run_id: Optional[str] = None,
    settings: Optional[EngineSettings] = None,
    parallel: ParallelOption = None,
    observer: Optional[ProgressObserver] = None,
) -> None:
    """Call ``func`` for its side effects on every item."""

    execute(
        BatchInputs.from_sequences(items),
        func,
        WalkAdapter(_backend(parallel, settings)),
        run_id=run_id,
        settings=settings,
        output=DISCARD,
        observer=observer,
    )


def safe_walk2(
    xs: Iterable[Any],
    ys: Iterable[Any],
    func: Callable[[Any, Any], Any],
    *,
    run_id: Optional[str] = None,
    settings: Optional[EngineSettings] = None,
    parallel: ParallelOption = None,
    observer: Optional[ProgressObserver] = None,
) -> None:
    """Call ``func(x, y)`` pairwise for its side effects."""

    execute(
        BatchInputs.from_sequences(xs, ys),
        func,
        Walk2Adapter(_backend(parallel, settings)),
        run_id=run_id,
        settings=settings,
        output=DISCARD,
        observer=observer,
    )


__all__ = [
    "execute",
    "safe_imap",
    "safe_map",
    "safe_map2",
    "safe_pmap",
    "safe_walk",
    "safe_walk2",
]
