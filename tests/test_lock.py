from __future__ import annotations

import os
import threading
import time

from datetime import datetime, timedelta, timezone

import pytest

from safemap.exceptions import LockTimeout
from safemap.runtime.lock import LockManager, read_lock


def test_acquire_writes_pid_and_timestamp(settings) -> None:
    locks = LockManager(settings)
    handle = locks.acquire("job")
    try:
        assert handle.path == settings.cache_dir / "locks" / "job.lock"
        pid, acquired_at = read_lock(handle.path)
        assert pid == os.getpid()
        assert acquired_at == handle.acquired_at
        assert locks.is_locked("job")
    finally:
        handle.release()
    assert not handle.path.exists()
    assert not locks.is_locked("job")


def test_release_is_idempotent(settings) -> None:
    locks = LockManager(settings)
    handle = locks.acquire("twice")
    locks.release(handle)
    locks.release(handle)
    assert handle.released


def test_hold_releases_on_error(settings) -> None:
    locks = LockManager(settings)
    with pytest.raises(RuntimeError):
        with locks.hold("boom"):
            raise RuntimeError("inside")
    assert not locks.is_locked("boom")


def test_fresh_lock_times_out(settings) -> None:
    locks = LockManager(settings)
    path = locks.path_for("busy")
    # A holder whose clock runs ahead never looks stale to this waiter.
    ahead = datetime.now(timezone.utc) + timedelta(hours=1)
    path.write_text(f"4242\n{ahead.isoformat()}\n", encoding="utf-8")

    started = time.monotonic()
    with pytest.raises(LockTimeout) as excinfo:
        locks.acquire("busy", timeout=0.2)
    assert time.monotonic() - started >= 0.2
    assert excinfo.value.run_id == "busy"
    assert str(path) in str(excinfo.value)
    assert "different run_id" in str(excinfo.value)
    assert read_lock(path)[0] == 4242


def test_waiter_acquires_after_holder_releases(settings) -> None:
    locks = LockManager(settings)
    holder = locks.acquire("handoff")
    timer = threading.Timer(0.1, holder.release)
    timer.start()
    try:
        handle = locks.acquire("handoff", timeout=1.5)
    finally:
        timer.join()
    assert handle.owns_artifact()
    handle.release()


def test_stale_lock_is_reclaimed(settings, caplog) -> None:
    locks = LockManager(settings)
    path = locks.path_for("stale")
    old = datetime.now(timezone.utc) - timedelta(seconds=30)
    path.write_text(f"99999\n{old.isoformat()}\n", encoding="utf-8")

    with caplog.at_level("WARNING", logger="safemap.runtime.lock"):
        handle = locks.acquire("stale", timeout=1.0)
    try:
        assert read_lock(path) == (os.getpid(), handle.acquired_at)
        assert "Stale lock" in caplog.text
    finally:
        handle.release()


def test_unreadable_lock_uses_mtime(settings) -> None:
    locks = LockManager(settings)
    path = locks.path_for("garbled")
    path.write_text("garbage", encoding="utf-8")
    past = time.time() - 120
    os.utime(path, (past, past))

    handle = locks.acquire("garbled", timeout=1.0)
    handle.release()
    assert not path.exists()


def test_release_does_not_remove_foreign_lock(settings) -> None:
    locks = LockManager(settings)
    handle = locks.acquire("shared")
    # Simulate another holder reclaiming the lock after ours went stale.
    foreign = f"12345\n{datetime.now(timezone.utc).isoformat()}\n"
    handle.path.write_text(foreign, encoding="utf-8")

    handle.release()
    assert handle.path.exists()
    assert read_lock(handle.path)[0] == 12345


def test_clear_removes_any_lock(settings) -> None:
    locks = LockManager(settings)
    assert locks.clear("nobody") is False
    locks.path_for("orphan").write_text("1\nnot-a-date\n", encoding="utf-8")
    assert locks.clear("orphan") is True
    assert not locks.is_locked("orphan")


def test_threads_never_hold_the_same_lock(settings) -> None:
    locks = LockManager(settings)
    active = []
    overlaps = []
    guard = threading.Lock()

    def _worker() -> None:
        with locks.hold("contended"):
            with guard:
                active.append(1)
                if len(active) > 1:
                    overlaps.append(len(active))
            time.sleep(0.02)
            with guard:
                active.pop()

    threads = [threading.Thread(target=_worker) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert overlaps == []
    assert not locks.is_locked("contended")


def test_refresh_restamps_and_keeps_ownership(settings) -> None:
    locks = LockManager(settings)
    handle = locks.acquire("beat")
    first = handle.acquired_at
    time.sleep(0.01)
    assert handle.refresh() is True
    assert handle.acquired_at > first
    assert read_lock(handle.path) == (os.getpid(), handle.acquired_at)
    assert handle.owns_artifact()
    assert not list(handle.path.parent.glob("*.tmp"))
    handle.release()
    assert not handle.path.exists()


def test_refresh_leaves_foreign_lock_alone(settings) -> None:
    locks = LockManager(settings)
    handle = locks.acquire("taken")
    foreign = f"12345\n{datetime.now(timezone.utc).isoformat()}\n"
    handle.path.write_text(foreign, encoding="utf-8")
    assert handle.refresh() is False
    assert handle.path.read_text(encoding="utf-8") == foreign


def test_live_holder_is_not_reclaimed_while_waiting(settings) -> None:
    locks = LockManager(settings)
    holder = locks.acquire("live")
    with pytest.raises(LockTimeout):
        locks.acquire("live", timeout=0.3)
    assert holder.owns_artifact()
    holder.release()


def test_refreshed_holder_outlives_waiter_deadline(settings) -> None:
    locks = LockManager(settings)
    holder = locks.acquire("steady")
    stop = threading.Event()

    def _heartbeat() -> None:
        while not stop.wait(0.05):
            holder.refresh()

    beat = threading.Thread(target=_heartbeat)
    beat.start()
    try:
        with pytest.raises(LockTimeout):
            locks.acquire("steady", timeout=0.4)
        time.sleep(0.2)
        with pytest.raises(LockTimeout):
            locks.acquire("steady", timeout=0.4)
    finally:
        stop.set()
        beat.join()
    assert holder.owns_artifact()
    holder.release()


def test_reclaim_skips_lock_replaced_after_inspection(settings) -> None:
    locks = LockManager(settings)
    path = locks.path_for("swap")
    old = datetime.now(timezone.utc) - timedelta(seconds=30)
    path.write_text(f"99999\n{old.isoformat()}\n", encoding="utf-8")
    observed = locks._snapshot(path)
    assert locks._lock_age(observed) > 29

    # Another waiter reclaims it and writes its own lock before we delete.
    fresh = f"4242\n{datetime.now(timezone.utc).isoformat()}\n"
    path.write_text(fresh, encoding="utf-8")

    assert locks._reclaim(path, observed) is False
    assert path.read_text(encoding="utf-8") == fresh
    assert locks._reclaim(path, locks._snapshot(path)) is True
    assert not path.exists()


def test_concurrent_reclaimers_leave_one_holder(settings, monkeypatch) -> None:
    locks = LockManager(settings)
    path = locks.path_for("race")
    old = datetime.now(timezone.utc) - timedelta(seconds=30)
    path.write_text(f"99999\n{old.isoformat()}\n", encoding="utf-8")
    stale = locks._snapshot(path)
    original = LockManager._snapshot
    barrier = threading.Barrier(2)
    seen = []

    def _snapshot(target):
        snapshot = original(target)
        if snapshot == stale and len(seen) < 2:
            seen.append(snapshot)
            # Both waiters observe the same stale lock before either deletes.
            barrier.wait(timeout=2)
        return snapshot

    monkeypatch.setattr(LockManager, "_snapshot", staticmethod(_snapshot))
    handles = []
    errors = []

    def _waiter() -> None:
        try:
            handles.append(locks.acquire("race", timeout=0.5))
        except LockTimeout as exc:
            errors.append(exc)

    threads = [threading.Thread(target=_waiter) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(handles) == 1
    assert len(errors) == 1
    assert handles[0].owns_artifact()
    handles[0].release()


def test_abandoned_reclaim_marker_is_expired(settings) -> None:
    locks = LockManager(settings)
    path = locks.path_for("crashed")
    old = datetime.now(timezone.utc) - timedelta(seconds=30)
    path.write_text(f"99999\n{old.isoformat()}\n", encoding="utf-8")
    marker = path.with_name(path.name + ".reclaim")
    marker.touch()
    past = time.time() - 120
    os.utime(marker, (past, past))

    handle = locks.acquire("crashed", timeout=1.0)
    assert not marker.exists()
    assert handle.owns_artifact()
    handle.release()
