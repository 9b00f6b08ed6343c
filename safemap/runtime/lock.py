# Copyright (c) Meta Platforms, Inc. and affiliates.
# Modifications copyright (c) 2025 Logan Martel.
# Adapted from https://github.com/meta-pytorch/KernelAgent (Apache-2.0).

"""Cross-process run locks built on exclusive file creation.

A lock file records the holder's pid and the time it was last stamped. A
holder stamps it again after every checkpoint write (``LockHandle.refresh``),
so only a lock that has gone unrefreshed for longer than ``lock_timeout`` is
treated as abandoned.
"""

from __future__ import annotations

import logging
import os
import tempfile
import time

from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional, Tuple

from safemap.configuration import EngineSettings
from safemap.exceptions import LockTimeout
from safemap.runtime.paths import CacheDirectories, make_cache_dirs

LOGGER = logging.getLogger(__name__)

RECLAIM_SUFFIX = ".reclaim"

Snapshot = Tuple[str, float]


def _format_lock(pid: int, stamped_at: datetime) -> str:
    return f"{pid}\n{stamped_at.isoformat()}\n"


def _parse_lock(text: str) -> Optional[Tuple[int, datetime]]:
    lines = text.splitlines()
    if len(lines) < 2:
        return None
    try:
        return int(lines[0]), datetime.fromisoformat(lines[1].strip())
    except ValueError:
        return None


def read_lock(path: Path) -> Optional[Tuple[int, datetime]]:
    """Return ``(pid, stamped_at)`` recorded in a lock file, if readable."""

    try:
        text = path.read_text(encoding="utf-8")
    except OSError:
        return None
    return _parse_lock(text)


@dataclass
class LockHandle:
    """Token for a held run lock; releasing it is idempotent.

    ``acquired_at`` is the timestamp currently written in the lock file; it
    moves forward every time the handle is refreshed.
    """

    run_id: str
    path: Path
    pid: int
    acquired_at: datetime
    released: bool = field(default=False, compare=False)

    def owns_artifact(self) -> bool:
        recorded = read_lock(self.path)
        return recorded == (self.pid, self.acquired_at)

    def refresh(self) -> bool:
        """Re-stamp the lock file; returns False if the lock is no longer ours."""

        if self.released or not self.owns_artifact():
            LOGGER.warning(
                "Lock for run %s is no longer held by this process", self.run_id
            )
            return False
        stamped_at = datetime.now(timezone.utc)
        fd, tmp_name = tempfile.mkstemp(
            dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(_format_lock(self.pid, stamped_at))
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        self.acquired_at = stamped_at
        return True

    def release(self) -> None:
        if self.released:
            return
        self.released = True
        if not self.owns_artifact():
            LOGGER.debug(
                "Lock for run %s was reclaimed by another holder", self.run_id
            )
            return
        self.path.unlink(missing_ok=True)

    def __enter__(self) -> "LockHandle":
        return self

    def __exit__(self, *exc_info) -> None:
        self.release()


class LockManager:
    """Grants at most one live lock per run id across processes."""

    def __init__(self, settings: EngineSettings) -> None:
        self.settings = settings
        self.dirs: CacheDirectories = make_cache_dirs(settings.cache_dir)

    def path_for(self, run_id: str) -> Path:
        return self.dirs.lock_path(run_id)

    def acquire(
        self, run_id: str, timeout: Optional[float] = None
    ) -> LockHandle:
        """Wait up to ``timeout`` seconds for the lock on ``run_id``.

        A lock that was already older than ``timeout`` when waiting began is
        reclaimed. Any other holder is waited out until the deadline passes,
        then ``LockTimeout`` is raised.
        """

        timeout = self.settings.lock_timeout if timeout is None else timeout
        poll_interval = self.settings.lock_poll_interval
        path = self.path_for(run_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        started = time.monotonic()
        while True:
            handle = self._try_create(run_id, path)
            if handle is not None:
                LOGGER.debug("Acquired lock %s (pid=%d)", path, handle.pid)
                return handle
            waited = time.monotonic() - started
            if waited > timeout:
                raise LockTimeout(run_id, timeout, path)
            snapshot = self._snapshot(path)
            age = self._lock_age(snapshot)
            if age is not None and age - waited > timeout:
                if self._reclaim(path, snapshot):
                    LOGGER.warning(
                        "Stale lock detected for run %s (age %.1fs), removed",
                        run_id,
                        age,
                    )
                    continue
            time.sleep(poll_interval)

    def release(self, handle: LockHandle) -> None:
        handle.release()

    @contextmanager
    def hold(
        self, run_id: str, timeout: Optional[float] = None
    ) -> Iterator[LockHandle]:
        handle = self.acquire(run_id, timeout)
        try:
            yield handle
        finally:
            handle.release()

    def is_locked(self, run_id: str) -> bool:
        return self.path_for(run_id).exists()

    def clear(self, run_id: str) -> bool:
        """Remove a lock regardless of its owner (manual remediation)."""

        path = self.path_for(run_id)
        if not path.exists():
            return False
        path.unlink(missing_ok=True)
        LOGGER.info("Cleared lock for run %s", run_id)
        return True

    def _try_create(self, run_id: str, path: Path) -> Optional[LockHandle]:
        pid = os.getpid()
        acquired_at = datetime.now(timezone.utc)
        try:
            with path.open("x", encoding="utf-8") as handle:
                handle.write(_format_lock(pid, acquired_at))
        except FileExistsError:
            return None
        return LockHandle(
            run_id=run_id, path=path, pid=pid, acquired_at=acquired_at
        )

    @staticmethod
    def _snapshot(path: Path) -> Optional[Snapshot]:
        try:
            text = path.read_text(encoding="utf-8")
            mtime = path.stat().st_mtime
        except OSError:
            return None
        return text, mtime

    @staticmethod
    def _lock_age(snapshot: Optional[Snapshot]) -> Optional[float]:
        if snapshot is None:
            return None
        text, mtime = snapshot
        recorded = _parse_lock(text)
        if recorded is None:
            # Holder may still be writing its pid; fall back to the file mtime.
            return time.time() - mtime
        _, stamped_at = recorded
        if stamped_at.tzinfo is None:
            stamped_at = stamped_at.replace(tzinfo=timezone.utc)
        return (datetime.now(timezone.utc) - stamped_at).total_seconds()

    def _reclaim(self, path: Path, observed: Optional[Snapshot]) -> bool:
        """Delete ``path`` only if it still matches the stale ``observed`` state.

        Reclaimers serialize on a sibling ``.reclaim`` file so the re-check and
        the delete cannot interleave with another waiter's reclaim.
        """

        if observed is None:
            return False
        guard = path.with_name(path.name + RECLAIM_SUFFIX)
        try:
            guard.open("x").close()
        except FileExistsError:
            self._expire_guard(guard)
            return False
        try:
            if self._snapshot(path) != observed:
                return False
            path.unlink(missing_ok=True)
            return True
        finally:
            guard.unlink(missing_ok=True)

    def _expire_guard(self, guard: Path) -> None:
        try:
            age = time.time() - guard.stat().st_mtime
        except FileNotFoundError:
            return
        if age > self.settings.lock_timeout:
            LOGGER.warning("Removing abandoned reclaim marker %s", guard)
            guard.unlink(missing_ok=True)


__all__ = ["LockHandle", "LockManager", "read_lock"]
