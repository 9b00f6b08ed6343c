"""Read-only inspection and pruning of persisted runs."""

from __future__ import annotations

import logging
import re

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Iterable, List, Optional

from safemap.configuration import EngineSettings
from safemap.exceptions import CorruptedCheckpoint
from safemap.reports import ReportManager
from safemap.runtime.checkpoint import CheckpointStore
from safemap.runtime.lock import LockManager

LOGGER = logging.getLogger(__name__)

STATUS_IN_PROGRESS = "in_progress"
STATUS_FAILED = "failed"
STATUS_CORRUPTED = "corrupted"
STATUSES = (STATUS_IN_PROGRESS, STATUS_FAILED, STATUS_CORRUPTED)

_FIX_HINTS = (
    (
        re.compile(r"pickl|Can't get attribute", re.IGNORECASE),
        [
            "Process workers need picklable functions and items",
            "Define the mapped function at module level (no lambdas or closures)",
            "Switch to parallel='thread' if the function cannot be pickled",
        ],
    ),
    (
        re.compile(r"name '.+' is not defined"),
        [
            "Make sure every helper the function uses is defined or imported",
            "Import dependencies inside the mapped function when using processes",
            "Test the function on a few items before starting a long run",
        ],
    ),
    (
        re.compile(r"No module named"),
        [
            "Install the missing package in the environment running the workers",
            "Check that worker processes use the same interpreter",
        ],
    ),
)


def suggest_fixes(error_message: Optional[str]) -> List[str]:
    """Return remediation hints for a recorded error message."""

    if not error_message:
        return []
    for pattern, hints in _FIX_HINTS:
        if pattern.search(error_message):
            return list(hints)
    return []


@dataclass(frozen=True)
class SessionInfo:
    run_id: str
    path: Path
    status: str
    created: datetime
    modified: datetime
    mode: Optional[str] = None
    items_completed: Optional[int] = None
    total_items: Optional[int] = None
    last_updated: Optional[datetime] = None
    error_message: Optional[str] = None
    failed_at_batch: Optional[int] = None

    @property
    def completion_rate(self) -> Optional[float]:
        if not self.total_items or self.items_completed is None:
            return None
        return self.items_completed / self.total_items

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "status": self.status,
            "mode": self.mode,
            "created": self.created.isoformat(),
            "modified": self.modified.isoformat(),
            "last_updated": (
                self.last_updated.isoformat() if self.last_updated else None
            ),
            "items_completed": self.items_completed,
            "total_items": self.total_items,
            "completion_rate": self.completion_rate,
            "error_message": self.error_message,
            "failed_at_batch": self.failed_at_batch,
        }


@dataclass(frozen=True)
class SessionStats:
    total_sessions: int
    active_sessions: int
    failed_sessions: int
    corrupted_sessions: int
    items_completed: int
    total_items: int
    oldest: Optional[datetime]
    newest: Optional[datetime]

    @property
    def completion_rate(self) -> Optional[float]:
        if self.total_items <= 0:
            return None
        return self.items_completed / self.total_items


class SessionRegistry:
    """Enumerates, inspects and prunes checkpoints under ``cache_dir``."""

    def __init__(
        self,
        settings: Optional[EngineSettings] = None,
        *,
        reports: Optional[ReportManager] = None,
    ) -> None:
        self.settings = settings or EngineSettings()
        self.store = CheckpointStore(self.settings)
        self.locks = LockManager(self.settings)
        self.reports = reports or ReportManager()

    def get(self, run_id: str) -> Optional[SessionInfo]:
        path = self.store.path_for(run_id)
        if not path.exists():
            return None
        return self._inspect(run_id, path)

    def list_sessions(self) -> List[SessionInfo]:
        sessions = []
        for run_id in self.store.list_run_ids():
            info = self.get(run_id)
            if info is not None:
                sessions.append(info)
        return sorted(sessions, key=lambda info: info.created, reverse=True)

    def recover_session(self, run_id: str) -> Optional[List[Any]]:
        """Return the completed results of ``run_id`` (``None`` if unknown)."""

        if not self.store.exists(run_id):
            LOGGER.info("Session '%s' not found", run_id)
            return None
        checkpoint = self.store.load(run_id)
        error = checkpoint.metadata.error_message
        if error:
            LOGGER.warning("Session '%s' failed with error: %s", run_id, error)
            LOGGER.warning("Tip: Fix the error before resuming computation")
        LOGGER.info(
            "Recovered session '%s' with %d completed items",
            run_id,
            len(checkpoint.results),
        )
        return checkpoint.results

    def clean_sessions(
        self,
        older_than_days: float = 7,
        run_ids: Optional[Iterable[str]] = None,
        status_filter: Optional[Iterable[str]] = None,
    ) -> int:
        """Delete checkpoints and return how many were removed.

        Explicit ``run_ids`` take precedence; otherwise sessions last modified
        more than ``older_than_days`` ago are selected and then narrowed by
        ``status_filter``.
        """

        if run_ids is not None:
            selected = [
                run_id for run_id in run_ids if self.store.exists(run_id)
            ]
        else:
            cutoff = datetime.now(timezone.utc) - timedelta(days=older_than_days)
            candidates = [
                info for info in self.list_sessions() if info.modified < cutoff
            ]
            if status_filter is not None:
                wanted = set(status_filter)
                candidates = [
                    info for info in candidates if info.status in wanted
                ]
            selected = [info.run_id for info in candidates]
        for run_id in selected:
            self.store.delete(run_id)
        if selected:
            LOGGER.info("Removed %d session files", len(selected))
        else:
            LOGGER.info("No files to remove")
        return len(selected)

    def session_stats(self) -> SessionStats:
        sessions = self.list_sessions()
        created = [info.created for info in sessions]
        return SessionStats(
            total_sessions=len(sessions),
            active_sessions=sum(
                1 for info in sessions if info.status == STATUS_IN_PROGRESS
            ),
            failed_sessions=sum(
                1 for info in sessions if info.status == STATUS_FAILED
            ),
            corrupted_sessions=sum(
                1 for info in sessions if info.status == STATUS_CORRUPTED
            ),
            items_completed=sum(info.items_completed or 0 for info in sessions),
            total_items=sum(info.total_items or 0 for info in sessions),
            oldest=min(created) if created else None,
            newest=max(created) if created else None,
        )

    def debug_session(self, run_id: str) -> str:
        info = self.get(run_id)
        suggestions = suggest_fixes(info.error_message) if info else []
        return self.reports.render(
            "session_debug.j2",
            run_id=run_id,
            session=info,
            suggestions=suggestions,
        )

    def render_stats(self) -> str:
        return self.reports.render(
            "session_stats.j2", stats=self.session_stats()
        )

    def render_list(self) -> str:
        return self.reports.render(
            "session_list.j2", sessions=self.list_sessions()
        )

    def clear_lock(self, run_id: str) -> bool:
        return self.locks.clear(run_id)

    def _inspect(self, run_id: str, path: Path) -> SessionInfo:
        modified = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
        try:
            checkpoint = self.store.load(run_id)
        except CorruptedCheckpoint as exc:
            return SessionInfo(
                run_id=run_id,
                path=path,
                status=STATUS_CORRUPTED,
                created=modified,
                modified=modified,
                error_message=exc.reason,
            )
        metadata = checkpoint.metadata
        return SessionInfo(
            run_id=run_id,
            path=path,
            status=STATUS_FAILED if metadata.failed else STATUS_IN_PROGRESS,
            created=metadata.created,
            modified=modified,
            mode=metadata.mode,
            items_completed=len(checkpoint.results),
            total_items=metadata.total_items,
            last_updated=metadata.last_updated,
            error_message=metadata.error_message,
            failed_at_batch=metadata.failed_at_batch,
        )


__all__ = [
    "STATUSES",
    "SessionInfo",
    "SessionRegistry",
    "SessionStats",
    "suggest_fixes",
]
