"""Runtime helpers (checkpoints, locks, retries, the batch runner)."""

from . import paths
from .checkpoint import CheckpointStore
from .lock import LockHandle, LockManager, read_lock
from .paths import CacheDirectories, make_cache_dirs, new_run_id
from .retry import RetryExecutor
from .runner import BatchRunner

__all__ = [
    "BatchRunner",
    "CacheDirectories",
    "CheckpointStore",
    "LockHandle",
    "LockManager",
    "RetryExecutor",
    "make_cache_dirs",
    "new_run_id",
    "paths",
    "read_lock",
]
