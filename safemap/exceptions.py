"""Custom exceptions for the batch execution engine."""

from __future__ import annotations

from pathlib import Path
from typing import Optional


class SafeMapError(RuntimeError):
    """Base exception for engine failures."""


class ConfigurationError(SafeMapError, ValueError):
    """Raised when engine settings are invalid."""


class ValidationError(SafeMapError, ValueError):
    """Raised when the input collection cannot be processed."""


class CorruptedCheckpoint(SafeMapError):
    """Raised when a persisted checkpoint cannot be deserialized."""

    def __init__(self, run_id: str, path: Path, reason: str) -> None:
        self.run_id = run_id
        self.path = path
        self.reason = reason
        super().__init__(
            f"Checkpoint for run '{run_id}' at {path} is corrupted: {reason}"
        )


class LockTimeout(SafeMapError):
    """Raised when the run lock cannot be acquired in time."""

    def __init__(self, run_id: str, timeout: float, lock_path: Path) -> None:
        self.run_id = run_id
        self.timeout = timeout
        self.lock_path = lock_path
        super().__init__(
            f"Could not acquire lock for run '{run_id}' after "
            f"{timeout:g} seconds.\n"
            "Another process may be using this run.\n"
            "Solutions:\n"
            "1. Use a different run_id\n"
            "2. Wait for the other process to complete\n"
            f"3. Manually delete: {lock_path}"
        )


class BatchExecutionError(SafeMapError):
    """Raised when a batch keeps failing after every retry attempt."""

    def __init__(
        self,
        attempts: int,
        last_error: Optional[BaseException],
        *,
        run_id: Optional[str] = None,
        batch_start: Optional[int] = None,
        batch_end: Optional[int] = None,
    ) -> None:
        self.attempts = attempts
        self.last_error = last_error
        self.run_id = run_id
        self.batch_start = batch_start
        self.batch_end = batch_end
        super().__init__(self._format())

    @property
    def last_error_message(self) -> str:
        if self.last_error is None:
            return "unknown error"
        return str(self.last_error) or type(self.last_error).__name__

    def with_context(
        self, run_id: str, batch_start: int, batch_end: int
    ) -> "BatchExecutionError":
        """Return a copy annotated with the run id and item range."""

        return BatchExecutionError(
            self.attempts,
            self.last_error,
            run_id=run_id,
            batch_start=batch_start,
            batch_end=batch_end,
        )

    def _format(self) -> str:
        message = (
            f"Batch failed after {self.attempts} attempts: "
            f"{self.last_error_message}"
        )
        if self.run_id is not None and self.batch_start is not None:
            message = (
                f"Run '{self.run_id}', items "
                f"{self.batch_start}-{self.batch_end}: {message}"
            )
        return message


__all__ = [
    "BatchExecutionError",
    "ConfigurationError",
    "CorruptedCheckpoint",
    "LockTimeout",
    "SafeMapError",
    "ValidationError",
]
