"""Execution adapter interfaces."""

from __future__ import annotations

from typing import (
    Any,
    Callable,
    Dict,
    List,
    Protocol,
    Sequence,
    Tuple,
    runtime_checkable,
)

from safemap.types import BatchInputs

Call = Tuple[Tuple[Any, ...], Dict[str, Any]]


@runtime_checkable
class ExecutionBackend(Protocol):
    """Applies a function to a list of prepared calls, preserving order."""

    parallel: bool

    def apply(self, func: Callable[..., Any], calls: Sequence[Call]) -> List[Any]:
        """Return ``[func(*args, **kwargs) for args, kwargs in calls]``."""
        ...


@runtime_checkable
class ExecutionAdapter(Protocol):
    """Runs a user function over one batch of aligned inputs."""

    mode: str
    collects_output: bool

    def run(self, func: Callable[..., Any], batch: BatchInputs) -> List[Any]:
        """Return one output per batch item, in input order."""
        ...

    def check(self, inputs: BatchInputs) -> None:
        """Raise ``ValidationError`` if ``inputs`` cannot be consumed."""
        ...
