"""Execution adapters (apply strategies and backends)."""

from .backends import ProcessBackend, SerialBackend, ThreadBackend, build_backend
from .base import ExecutionAdapter, ExecutionBackend
from .factory import ADAPTERS, build_adapter, resolve_backend
from .strategies import (
    ApplyAdapter,
    IMapAdapter,
    Map2Adapter,
    MapAdapter,
    PMapAdapter,
    Walk2Adapter,
    WalkAdapter,
)

__all__ = [
    "ADAPTERS",
    "ApplyAdapter",
    "ExecutionAdapter",
    "ExecutionBackend",
    "IMapAdapter",
    "Map2Adapter",
    "MapAdapter",
    "PMapAdapter",
    "ProcessBackend",
    "SerialBackend",
    "ThreadBackend",
    "Walk2Adapter",
    "WalkAdapter",
    "build_adapter",
    "build_backend",
    "resolve_backend",
]
