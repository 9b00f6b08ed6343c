"""Output adapters that shape a completed run's results."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Callable, Dict, List, Optional, Protocol


class OutputAdapter(Protocol):
    def shape(self, results: List[Any]) -> Any:
        """Convert the ordered per-item results into the returned value."""
        ...


class IdentityOutput:
    """Return the results list unchanged."""

    def shape(self, results: List[Any]) -> List[Any]:
        return list(results)


class DiscardOutput:
    """Side-effect runs return ``None``."""

    def shape(self, results: List[Any]) -> None:
        return None


class CastOutput:
    """Cast every result with ``caster`` (e.g. ``str``, ``float``)."""

    def __init__(self, caster: Callable[[Any], Any]) -> None:
        self.caster = caster

    def shape(self, results: List[Any]) -> List[Any]:
        shaped = []
        for position, value in enumerate(results):
            if value is None:
                raise TypeError(
                    f"Result {position} is None and cannot be cast with "
                    f"{getattr(self.caster, '__name__', self.caster)}"
                )
            shaped.append(self.caster(value))
        return shaped


class RowBindOutput:
    """Concatenate row mappings into one list of rows.

    Each result is either a single mapping (one row) or a sequence of
    mappings. With ``id_field`` every row is tagged with the position of the
    item that produced it.
    """

    def __init__(self, id_field: Optional[str] = None) -> None:
        self.id_field = id_field

    def shape(self, results: List[Any]) -> List[Dict[str, Any]]:
        rows: List[Dict[str, Any]] = []
        for position, value in enumerate(results):
            if value is None:
                continue
            if isinstance(value, Mapping):
                chunk = [value]
            elif isinstance(value, Sequence) and not isinstance(value, str):
                chunk = list(value)
            else:
                raise TypeError(
                    f"Result {position} is not a row mapping: {value!r}"
                )
            for row in chunk:
                if not isinstance(row, Mapping):
                    raise TypeError(
                        f"Result {position} contains a non-mapping row: {row!r}"
                    )
                record = dict(row)
                if self.id_field:
                    record = {self.id_field: position, **record}
                rows.append(record)
        return rows


class ColumnBindOutput:
    """Merge column mappings side by side into a single mapping.

    Repeated column names are disambiguated with the producing item's
    position (``name_<position>``).
    """

    def shape(self, results: List[Any]) -> Dict[str, Any]:
        columns: Dict[str, Any] = {}
        for position, value in enumerate(results):
            if value is None:
                continue
            if not isinstance(value, Mapping):
                raise TypeError(
                    f"Result {position} is not a column mapping: {value!r}"
                )
            for name, column in value.items():
                key = str(name)
                if key in columns:
                    key = f"{key}_{position}"
                columns[key] = column
        return columns


AS_LIST = IdentityOutput()
AS_STR = CastOutput(str)
AS_FLOAT = CastOutput(float)
AS_INT = CastOutput(int)
AS_BOOL = CastOutput(bool)
DISCARD = DiscardOutput()


__all__ = [
    "AS_BOOL",
    "AS_FLOAT",
    "AS_INT",
    "AS_LIST",
    "AS_STR",
    "CastOutput",
    "ColumnBindOutput",
    "DISCARD",
    "DiscardOutput",
    "IdentityOutput",
    "OutputAdapter",
    "RowBindOutput",
]
