from __future__ import annotations

import logging
import os
import time

import pytest

from safemap.api import safe_map
from safemap.exceptions import BatchExecutionError
from safemap.runtime.checkpoint import CheckpointStore
from safemap.runtime.lock import LockManager
from safemap.sessions import SessionRegistry, suggest_fixes
from safemap.types import RunMetadata


def _age(path, days: float) -> None:
    past = time.time() - days * 86400
    os.utime(path, (past, past))


@pytest.fixture()
def populated(settings):
    """Three sessions: one in progress, one failed, one corrupted."""

    store = CheckpointStore(settings)
    store.persist("running", [1, 2], RunMetadata("running", "map", 8))

    def bad(x):
        if x == 7:
            raise NameError("name 'helper' is not defined")
        return x

    with pytest.raises(BatchExecutionError):
        safe_map(range(1, 11), bad, run_id="broken", settings=settings)

    store.path_for("garbled").write_bytes(b"junk")
    return store


def test_list_sessions_reports_status(settings, populated) -> None:
    registry = SessionRegistry(settings)
    sessions = {info.run_id: info for info in registry.list_sessions()}
    assert set(sessions) == {"running", "broken", "garbled"}

    running = sessions["running"]
    assert running.status == "in_progress"
    assert running.items_completed == 2
    assert running.total_items == 8
    assert running.completion_rate == pytest.approx(0.25)
    assert running.mode == "map"

    broken = sessions["broken"]
    assert broken.status == "failed"
    assert broken.failed_at_batch == 2
    assert broken.items_completed == 5
    assert "helper" in broken.error_message

    garbled = sessions["garbled"]
    assert garbled.status == "corrupted"
    assert garbled.items_completed is None
    assert garbled.completion_rate is None


def test_list_sessions_newest_first(settings) -> None:
    store = CheckpointStore(settings)
    older = RunMetadata("older", "map", 1)
    store.persist("older", [], older)
    time.sleep(0.01)
    store.persist("newer", [], RunMetadata("newer", "map", 1))
    ids = [info.run_id for info in SessionRegistry(settings).list_sessions()]
    assert ids == ["newer", "older"]


def test_recover_session(settings, populated, caplog) -> None:
    registry = SessionRegistry(settings)
    with caplog.at_level(logging.INFO, logger="safemap.sessions"):
        assert registry.recover_session("broken") == [1, 2, 3, 4, 5]
    assert "failed with error" in caplog.text
    assert "Tip:" in caplog.text
    assert registry.recover_session("missing") is None


def test_clean_by_age_and_status(settings, populated) -> None:
    registry = SessionRegistry(settings)
    for run_id in ("running", "broken", "garbled"):
        _age(populated.path_for(run_id), 10)

    assert registry.clean_sessions(older_than_days=30) == 0
    assert (
        registry.clean_sessions(older_than_days=7, status_filter=["failed"])
        == 1
    )
    assert not populated.exists("broken")
    assert registry.clean_sessions(older_than_days=7) == 2
    assert registry.list_sessions() == []


def test_clean_explicit_ids_ignore_age(settings, populated) -> None:
    registry = SessionRegistry(settings)
    removed = registry.clean_sessions(run_ids=["running", "unknown"])
    assert removed == 1
    assert not populated.exists("running")
    assert populated.exists("broken")


def test_session_stats(settings, populated) -> None:
    stats = SessionRegistry(settings).session_stats()
    assert stats.total_sessions == 3
    assert stats.active_sessions == 1
    assert stats.failed_sessions == 1
    assert stats.corrupted_sessions == 1
    assert stats.items_completed == 7
    assert stats.total_items == 18
    assert stats.completion_rate == pytest.approx(7 / 18)
    assert stats.oldest <= stats.newest


def test_empty_stats_render(settings) -> None:
    registry = SessionRegistry(settings)
    stats = registry.session_stats()
    assert stats.total_sessions == 0
    assert stats.completion_rate is None
    assert registry.render_stats().strip() == "No sessions found"
    assert registry.render_list().strip() == "No sessions found"


def test_debug_session_reports(settings, populated) -> None:
    registry = SessionRegistry(settings)

    failed = registry.debug_session("broken")
    assert "=== Session Debug Info ===" in failed
    assert "Failed at batch: 2" in failed
    assert "Progress: 50.0%" in failed
    assert "=== Suggested Fix ===" in failed
    assert "1. Make sure every helper" in failed

    running = registry.debug_session("running")
    assert "Status: In progress" in running
    assert "Suggested Fix" not in running

    assert "Status: corrupted" in registry.debug_session("garbled")
    assert registry.debug_session("ghost").strip() == "Session not found: ghost"


def test_render_list_and_stats(settings, populated) -> None:
    registry = SessionRegistry(settings)
    listing = registry.render_list()
    assert "running  in_progress  2/8 (25.0%)" in listing
    assert "garbled  corrupted  ?/? (n/a)" in listing
    stats = registry.render_stats()
    assert "Total sessions: 3" in stats
    assert "Total items processed: 7 of 18" in stats


def test_clear_lock(settings) -> None:
    registry = SessionRegistry(settings)
    handle = LockManager(settings).acquire("stuck")
    assert registry.clear_lock("stuck") is True
    assert not handle.path.exists()
    assert registry.clear_lock("stuck") is False


def test_suggest_fixes_patterns() -> None:
    assert suggest_fixes(None) == []
    assert suggest_fixes("division by zero") == []
    assert "parallel='thread'" in suggest_fixes(
        "Can't pickle local object '<lambda>'"
    )[-1]
    assert suggest_fixes("No module named 'numpy'")[0].startswith("Install")
