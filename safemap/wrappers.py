"""Function wrappers that turn per-item errors into values.

Useful inside a run when a single bad item should not abort the whole batch:
``safe_map(items, possibly(parse, otherwise=None))``.
"""

from __future__ import annotations

import contextlib
import functools
import io
import logging
import warnings

from dataclasses import dataclass, field
from typing import Any, Callable, Generic, List, Optional, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Outcome(Generic[T]):
    result: Optional[T] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class QuietResult(Generic[T]):
    result: T
    output: str = ""
    warnings: List[str] = field(default_factory=list)
    messages: List[str] = field(default_factory=list)


def safely(
    func: Callable[..., T], otherwise: Optional[T] = None
) -> Callable[..., Outcome[T]]:
    """Wrap ``func`` so it returns an :class:`Outcome` instead of raising."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Outcome[T]:
        try:
            return Outcome(result=func(*args, **kwargs))
        except Exception as exc:
            return Outcome(result=otherwise, error=exc)

    return wrapper


def possibly(func: Callable[..., T], otherwise: Any) -> Callable[..., Any]:
    """Wrap ``func`` so it returns ``otherwise`` when it raises."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except Exception:
            return otherwise

    return wrapper


class _ListHandler(logging.Handler):
    def __init__(self) -> None:
        super().__init__(level=logging.DEBUG)
        self.records: List[str] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record.getMessage())


def quietly(func: Callable[..., T]) -> Callable[..., QuietResult[T]]:
    """Wrap ``func`` to capture its stdout, warnings and log messages."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> QuietResult[T]:
        buffer = io.StringIO()
        handler = _ListHandler()
        root = logging.getLogger()
        root.addHandler(handler)
        try:
            with warnings.catch_warnings(record=True) as caught:
                warnings.simplefilter("always")
                with contextlib.redirect_stdout(buffer):
                    result = func(*args, **kwargs)
        finally:
            root.removeHandler(handler)
        return QuietResult(
            result=result,
            output=buffer.getvalue(),
            warnings=[str(item.message) for item in caught],
            messages=list(handler.records),
        )

    return wrapper


__all__ = ["Outcome", "QuietResult", "possibly", "quietly", "safely"]
