"""Apply strategies: how batch rows become calls of the user function."""

from __future__ import annotations

from typing import Any, Callable, Iterator, List, Optional

from safemap.adapters.backends import SerialBackend
from safemap.adapters.base import Call, ExecutionBackend
from safemap.exceptions import ValidationError
from safemap.types import BatchInputs


class ApplyAdapter:
    """Base strategy; subclasses decide the call shape for each row."""

    base_mode = "map"
    collects_output = True
    required_width: Optional[int] = None

    def __init__(self, backend: Optional[ExecutionBackend] = None) -> None:
        self.backend: ExecutionBackend = backend or SerialBackend()

    @property
    def mode(self) -> str:
        if self.backend.parallel:
            return f"future_{self.base_mode}"
        return self.base_mode

    def check(self, inputs: BatchInputs) -> None:
        """Reject inputs this strategy cannot consume."""

        if self.required_width is not None and inputs.width != self.required_width:
            raise ValidationError(
                f"'{self.base_mode}' expects {self.required_width} input "
                f"sequence(s), got {inputs.width}"
            )

    def calls(self, batch: BatchInputs) -> Iterator[Call]:
        raise NotImplementedError

    def run(self, func: Callable[..., Any], batch: BatchInputs) -> List[Any]:
        outputs = self.backend.apply(func, list(self.calls(batch)))
        if not self.collects_output:
            return [None] * len(batch)
        return outputs

    def __repr__(self) -> str:
        return f"{type(self).__name__}(mode={self.mode!r})"


class MapAdapter(ApplyAdapter):
    """``func(x)`` for every item of a single sequence."""

    base_mode = "map"
    required_width = 1

    def calls(self, batch: BatchInputs) -> Iterator[Call]:
        for (value,) in batch.rows():
            yield (value,), {}


class Map2Adapter(ApplyAdapter):
    """``func(x, y)`` over two sequences pairwise."""

    base_mode = "map2"
    required_width = 2

    def calls(self, batch: BatchInputs) -> Iterator[Call]:
        for left, right in batch.rows():
            yield (left, right), {}


class IMapAdapter(ApplyAdapter):
    """``func(x, index)`` where index is the item's position in the full input."""

    base_mode = "imap"
    required_width = 1

    def __init__(
        self, backend: Optional[ExecutionBackend] = None, *, start: int = 0
    ) -> None:
        super().__init__(backend)
        self.start = start

    def calls(self, batch: BatchInputs) -> Iterator[Call]:
        for (value,), position in zip(batch.rows(), batch.positions()):
            yield (value, position + self.start), {}


class PMapAdapter(ApplyAdapter):
    """Any number of sequences; named inputs are passed as keywords."""

    base_mode = "pmap"

    def calls(self, batch: BatchInputs) -> Iterator[Call]:
        names = batch.names
        for row in batch.rows():
            if names:
                yield (), dict(zip(names, row))
            else:
                yield tuple(row), {}


class WalkAdapter(MapAdapter):
    """Side-effect variant of :class:`MapAdapter`; outputs are discarded."""

    base_mode = "walk"
    collects_output = False


class Walk2Adapter(Map2Adapter):
    """Side-effect variant of :class:`Map2Adapter`."""

    base_mode = "walk2"
    collects_output = False


__all__ = [
    "ApplyAdapter",
    "IMapAdapter",
    "Map2Adapter",
    "MapAdapter",
    "PMapAdapter",
    "Walk2Adapter",
    "WalkAdapter",
]
