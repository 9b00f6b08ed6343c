"""Core dataclasses shared by the engine, adapters and session registry."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from safemap.exceptions import ValidationError


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def _as_sequence(values: Any) -> Sequence[Any]:
    if isinstance(values, Sequence):
        return values
    return list(values)


@dataclass(frozen=True)
class BatchInputs:
    """One or more index-aligned input sequences (optionally named).

    ``offset`` is the 0-based position of the first element within the full
    input, so slices keep track of where they came from.
    """

    columns: Tuple[Sequence[Any], ...]
    names: Optional[Tuple[str, ...]] = None
    offset: int = 0

    @classmethod
    def from_sequences(cls, *sequences: Any) -> "BatchInputs":
        return cls(columns=tuple(_as_sequence(seq) for seq in sequences))

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "BatchInputs":
        names = tuple(str(name) for name in data.keys())
        columns = tuple(_as_sequence(values) for values in data.values())
        return cls(columns=columns, names=names)

    def __len__(self) -> int:
        if not self.columns:
            return 0
        return len(self.columns[0])

    @property
    def width(self) -> int:
        return len(self.columns)

    def validate(self) -> None:
        """Raise ``ValidationError`` for empty or misaligned inputs."""

        if not self.columns or len(self.columns[0]) == 0:
            raise ValidationError("Input data cannot be empty")
        lengths = {len(column) for column in self.columns}
        if len(lengths) > 1:
            raise ValidationError(
                "All input sequences must have the same length "
                f"(got lengths {[len(column) for column in self.columns]})"
            )

    def slice(self, start: int, stop: int) -> "BatchInputs":
        """Return the aligned 0-based ``[start, stop)`` window."""

        return BatchInputs(
            columns=tuple(column[start:stop] for column in self.columns),
            names=self.names,
            offset=self.offset + start,
        )

    def rows(self) -> Iterator[Tuple[Any, ...]]:
        return zip(*self.columns)

    def positions(self) -> range:
        """0-based positions of this window within the full input."""

        return range(self.offset, self.offset + len(self))


@dataclass(frozen=True)
class BatchRange:
    """1-based inclusive item range of a single batch."""

    number: int
    start: int
    end: int

    @property
    def size(self) -> int:
        return self.end - self.start + 1

    def label(self) -> str:
        return f"{self.start}-{self.end}"


def plan_batches(
    start_index: int, total_items: int, batch_size: int
) -> Iterator[BatchRange]:
    """Yield the batches covering ``start_index..total_items`` (1-based).

    Batch numbers count from the start of the run at the current batch size,
    so a run resumed at item 6 with ``batch_size=5`` starts at batch 2.
    """

    number = (start_index - 1) // batch_size + 1
    batch_start = start_index
    while batch_start <= total_items:
        batch_end = min(batch_start + batch_size - 1, total_items)
        yield BatchRange(number=number, start=batch_start, end=batch_end)
        batch_start = batch_end + 1
        number += 1


@dataclass(frozen=True)
class BatchProgress:
    """Progress notification emitted before each batch runs."""

    run_id: str
    batch: BatchRange
    total_items: int

    @property
    def percent(self) -> int:
        return round(100 * self.batch.start / self.total_items)


ProgressObserver = Callable[[BatchProgress], None]


@dataclass
class RunMetadata:
    """Metadata persisted alongside a run's results."""

    run_id: str
    mode: str
    total_items: int
    created: datetime = field(default_factory=utc_now)
    last_updated: Optional[datetime] = None
    error_message: Optional[str] = None
    failed_at_batch: Optional[int] = None

    @property
    def failed(self) -> bool:
        return self.error_message is not None

    def touch(self) -> "RunMetadata":
        self.last_updated = utc_now()
        return self

    def mark_failed(self, batch_number: int, message: str) -> "RunMetadata":
        self.failed_at_batch = batch_number
        self.error_message = message
        return self

    def clear_failure(self) -> "RunMetadata":
        self.failed_at_batch = None
        self.error_message = None
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "mode": self.mode,
            "total_items": self.total_items,
            "created": self.created.isoformat(),
            "last_updated": (
                self.last_updated.isoformat() if self.last_updated else None
            ),
            "error_message": self.error_message,
            "failed_at_batch": self.failed_at_batch,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RunMetadata":
        created = _parse_timestamp(data.get("created")) or utc_now()
        return cls(
            run_id=str(data["run_id"]),
            mode=str(data.get("mode", "map")),
            total_items=int(data["total_items"]),
            created=created,
            last_updated=_parse_timestamp(data.get("last_updated")),
            error_message=data.get("error_message"),
            failed_at_batch=data.get("failed_at_batch"),
        )


@dataclass
class Checkpoint:
    """Completed results (a prefix of the full output) plus metadata."""

    results: List[Any]
    metadata: RunMetadata
    resumed: bool = False

    @property
    def start_index(self) -> int:
        """1-based index of the first item that still has to run."""

        return len(self.results) + 1

    @property
    def completed(self) -> bool:
        return len(self.results) >= self.metadata.total_items

    def extend(self, outputs: Sequence[Any]) -> None:
        self.results.extend(outputs)


__all__ = [
    "BatchInputs",
    "BatchProgress",
    "BatchRange",
    "Checkpoint",
    "ProgressObserver",
    "RunMetadata",
    "plan_batches",
    "utc_now",
]
