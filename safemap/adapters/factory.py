"""Factory helpers for execution adapters."""

from __future__ import annotations

from typing import Dict, Optional, Type, Union

from safemap.adapters.backends import SerialBackend, build_backend
from safemap.adapters.base import ExecutionBackend
from safemap.adapters.strategies import (
    ApplyAdapter,
    IMapAdapter,
    Map2Adapter,
    MapAdapter,
    PMapAdapter,
    Walk2Adapter,
    WalkAdapter,
)
from safemap.configuration import EngineSettings

ADAPTERS: Dict[str, Type[ApplyAdapter]] = {
    "map": MapAdapter,
    "map2": Map2Adapter,
    "imap": IMapAdapter,
    "pmap": PMapAdapter,
    "walk": WalkAdapter,
    "walk2": Walk2Adapter,
}

ParallelOption = Union[None, bool, str, ExecutionBackend]


def resolve_backend(
    parallel: ParallelOption, settings: EngineSettings
) -> ExecutionBackend:
    """Turn the ``parallel`` argument of the public API into a backend."""

    if parallel is None or parallel is False:
        return SerialBackend()
    if parallel is True:
        return build_backend(settings.parallel_backend, settings.max_workers)
    if isinstance(parallel, str):
        return build_backend(parallel, settings.max_workers)
    if isinstance(parallel, ExecutionBackend):
        return parallel
    raise TypeError(f"Unsupported parallel option: {parallel!r}")


def build_adapter(
    mode: str,
    *,
    backend: Optional[ExecutionBackend] = None,
    settings: Optional[EngineSettings] = None,
) -> ApplyAdapter:
    """Build the adapter registered for ``mode``.

    A ``future_`` prefix selects the configured parallel backend unless an
    explicit ``backend`` is given.
    """

    base_mode = mode
    if mode.startswith("future_"):
        base_mode = mode[len("future_"):]
        if backend is None:
            backend = resolve_backend(True, settings or EngineSettings())
    try:
        adapter_cls = ADAPTERS[base_mode]
    except KeyError as exc:
        raise ValueError(f"Unknown mode: {mode}") from exc
    return adapter_cls(backend)


__all__ = ["ADAPTERS", "build_adapter", "resolve_backend"]
