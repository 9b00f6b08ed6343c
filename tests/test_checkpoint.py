from __future__ import annotations

import pickle

from pathlib import Path

import pytest

from safemap.exceptions import CorruptedCheckpoint
from safemap.runtime.checkpoint import CheckpointStore
from safemap.types import Checkpoint, RunMetadata


def test_fresh_run_starts_at_first_item(settings) -> None:
    store = CheckpointStore(settings)
    checkpoint = store.initialize_or_resume("fresh", 12, "map")
    assert checkpoint.results == []
    assert checkpoint.start_index == 1
    assert checkpoint.resumed is False
    assert checkpoint.metadata.total_items == 12
    assert checkpoint.metadata.mode == "map"
    assert not store.exists("fresh")


def test_persist_then_resume(settings) -> None:
    store = CheckpointStore(settings)
    metadata = RunMetadata(run_id="job", mode="map", total_items=10)
    store.persist("job", [1, None, 3], metadata)

    checkpoint = store.initialize_or_resume("job", 10, "map")
    assert checkpoint.resumed is True
    assert checkpoint.results == [1, None, 3]
    assert checkpoint.start_index == 4
    assert checkpoint.metadata.last_updated is not None
    assert checkpoint.metadata.created == metadata.created


def test_auto_recover_disabled_ignores_checkpoint(settings) -> None:
    store = CheckpointStore(settings)
    store.persist("job", [1, 2], RunMetadata("job", "map", 5))

    fresh = CheckpointStore(settings.replace(auto_recover=False))
    checkpoint = fresh.initialize_or_resume("job", 5, "map")
    assert checkpoint.results == []
    assert checkpoint.resumed is False


def test_checkpoint_file_layout(settings) -> None:
    store = CheckpointStore(settings)
    path = store.persist("layout", ["a"], RunMetadata("layout", "imap", 3))
    assert path == settings.cache_dir / "checkpoints" / "layout.pkl"
    payload = pickle.loads(path.read_bytes())
    assert payload["results"] == ["a"]
    assert payload["metadata"]["run_id"] == "layout"
    assert payload["metadata"]["mode"] == "imap"
    assert payload["metadata"]["total_items"] == 3
    assert isinstance(payload["metadata"]["created"], str)


def test_atomic_write_leaves_no_temp_files(settings) -> None:
    store = CheckpointStore(settings)
    metadata = RunMetadata("atomic", "map", 4)
    for count in range(1, 5):
        store.persist("atomic", list(range(count)), metadata)
    names = sorted(p.name for p in store.dirs.checkpoints.iterdir())
    assert names == ["atomic.pkl"]


def test_failed_write_keeps_previous_checkpoint(settings, monkeypatch) -> None:
    store = CheckpointStore(settings)
    metadata = RunMetadata("keep", "map", 4)
    store.persist("keep", [1, 2], metadata)

    def _boom(*args, **kwargs):
        raise OSError("disk full")

    monkeypatch.setattr("safemap.runtime.checkpoint.os.replace", _boom)
    with pytest.raises(OSError):
        store.persist("keep", [1, 2, 3, 4], metadata)
    monkeypatch.undo()

    assert store.load("keep").results == [1, 2]
    assert [p.name for p in store.dirs.checkpoints.iterdir()] == ["keep.pkl"]


def test_corrupted_checkpoint_raises(settings) -> None:
    store = CheckpointStore(settings)
    store.path_for("broken").write_bytes(b"not a pickle")
    with pytest.raises(CorruptedCheckpoint) as excinfo:
        store.initialize_or_resume("broken", 3, "map")
    assert excinfo.value.run_id == "broken"
    assert excinfo.value.path == store.path_for("broken")
    # The file is left for inspection.
    assert store.exists("broken")


def test_checkpoint_missing_keys_is_corrupted(settings) -> None:
    store = CheckpointStore(settings)
    store.path_for("partial").write_bytes(pickle.dumps({"results": []}))
    with pytest.raises(CorruptedCheckpoint):
        store.load("partial")


def test_load_missing_checkpoint_raises_file_not_found(settings) -> None:
    store = CheckpointStore(settings)
    with pytest.raises(FileNotFoundError):
        store.load("absent")


def test_record_failure_keeps_results(settings) -> None:
    store = CheckpointStore(settings)
    checkpoint = Checkpoint(
        results=[1, 2, 3, 4, 5], metadata=RunMetadata("fail", "map", 15)
    )
    store.record_failure("fail", checkpoint, 2, "bad item")

    loaded = store.load("fail")
    assert loaded.results == [1, 2, 3, 4, 5]
    assert loaded.metadata.failed_at_batch == 2
    assert loaded.metadata.error_message == "bad item"
    assert loaded.metadata.failed


def test_delete_and_list(settings) -> None:
    store = CheckpointStore(settings)
    store.persist("b", [], RunMetadata("b", "map", 1))
    store.persist("a", [], RunMetadata("a", "map", 1))
    assert store.list_run_ids() == ["a", "b"]
    store.delete("a")
    store.delete("a")
    assert store.list_run_ids() == ["b"]


def test_cache_dirs_created(tmp_path: Path, settings) -> None:
    CheckpointStore(settings)
    assert (settings.cache_dir / "checkpoints").is_dir()
    assert (settings.cache_dir / "locks").is_dir()
