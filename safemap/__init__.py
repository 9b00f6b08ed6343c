"""safemap package entry point."""

from .api import (
    execute,
    safe_imap,
    safe_map,
    safe_map2,
    safe_pmap,
    safe_walk,
    safe_walk2,
)
from .configuration import EngineSettings, load_settings
from .exceptions import (
    BatchExecutionError,
    ConfigurationError,
    CorruptedCheckpoint,
    LockTimeout,
    SafeMapError,
    ValidationError,
)
from .output import (
    AS_BOOL,
    AS_FLOAT,
    AS_INT,
    AS_LIST,
    AS_STR,
    DISCARD,
    CastOutput,
    ColumnBindOutput,
    RowBindOutput,
)
from .runtime.runner import BatchRunner
from .sessions import SessionRegistry
from .types import BatchInputs, BatchProgress
from .wrappers import possibly, quietly, safely

__all__ = [
    "AS_BOOL",
    "AS_FLOAT",
    "AS_INT",
    "AS_LIST",
    "AS_STR",
    "BatchExecutionError",
    "BatchInputs",
    "BatchProgress",
    "BatchRunner",
    "CastOutput",
    "ColumnBindOutput",
    "ConfigurationError",
    "CorruptedCheckpoint",
    "DISCARD",
    "EngineSettings",
    "LockTimeout",
    "RowBindOutput",
    "SafeMapError",
    "SessionRegistry",
    "ValidationError",
    "execute",
    "load_settings",
    "possibly",
    "quietly",
    "safe_imap",
    "safe_map",
    "safe_map2",
    "safe_pmap",
    "safe_walk",
    "safe_walk2",
    "safely",
]
