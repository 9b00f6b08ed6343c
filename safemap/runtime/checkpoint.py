"""Durable, atomically replaced checkpoint files (one per run)."""

from __future__ import annotations

import logging
import os
import pickle
import tempfile

from pathlib import Path
from typing import Any, Dict, List, Sequence

from safemap.configuration import EngineSettings
from safemap.exceptions import CorruptedCheckpoint
from safemap.runtime.paths import (
    CHECKPOINT_SUFFIX,
    CacheDirectories,
    make_cache_dirs,
)
from safemap.types import Checkpoint, RunMetadata

LOGGER = logging.getLogger(__name__)


class CheckpointStore:
    """Loads, persists and removes run checkpoints under ``cache_dir``."""

    def __init__(self, settings: EngineSettings) -> None:
        self.settings = settings
        self.dirs: CacheDirectories = make_cache_dirs(settings.cache_dir)

    def path_for(self, run_id: str) -> Path:
        return self.dirs.checkpoint_path(run_id)

    def exists(self, run_id: str) -> bool:
        return self.path_for(run_id).exists()

    def list_run_ids(self) -> List[str]:
        return sorted(
            path.name[: -len(CHECKPOINT_SUFFIX)]
            for path in self.dirs.checkpoints.glob(f"*{CHECKPOINT_SUFFIX}")
        )

    def initialize_or_resume(
        self, run_id: str, input_length: int, mode: str
    ) -> Checkpoint:
        """Resume ``run_id`` from disk or start a fresh checkpoint."""

        if self.settings.auto_recover and self.exists(run_id):
            checkpoint = self.load(run_id)
            checkpoint.resumed = True
            LOGGER.info(
                "Resuming run %s from item %d/%d",
                run_id,
                checkpoint.start_index,
                checkpoint.metadata.total_items,
            )
            return checkpoint
        metadata = RunMetadata(
            run_id=run_id, mode=mode, total_items=input_length
        )
        return Checkpoint(results=[], metadata=metadata)

    def load(self, run_id: str) -> Checkpoint:
        path = self.path_for(run_id)
        try:
            with path.open("rb") as handle:
                payload = pickle.load(handle)
            results = list(payload["results"])
            metadata = RunMetadata.from_dict(payload["metadata"])
        except FileNotFoundError:
            raise
        except Exception as exc:
            raise CorruptedCheckpoint(run_id, path, str(exc) or repr(exc)) from exc
        return Checkpoint(results=results, metadata=metadata)

    def persist(
        self,
        run_id: str,
        results: Sequence[Any],
        metadata: RunMetadata,
    ) -> Path:
        """Atomically replace the checkpoint file for ``run_id``."""

        metadata.touch()
        payload: Dict[str, Any] = {
            "results": list(results),
            "metadata": metadata.to_dict(),
        }
        path = self.path_for(run_id)
        self._atomic_write(path, payload)
        LOGGER.debug(
            "Checkpointed run %s with %d/%d items",
            run_id,
            len(results),
            metadata.total_items,
        )
        return path

    def save(self, checkpoint: Checkpoint) -> Path:
        return self.persist(
            checkpoint.metadata.run_id, checkpoint.results, checkpoint.metadata
        )

    def record_failure(
        self,
        run_id: str,
        checkpoint: Checkpoint,
        batch_number: int,
        error_message: str,
    ) -> Path:
        """Persist the failure context next to the last good results."""

        checkpoint.metadata.mark_failed(batch_number, error_message)
        return self.persist(run_id, checkpoint.results, checkpoint.metadata)

    def delete(self, run_id: str) -> None:
        self.path_for(run_id).unlink(missing_ok=True)

    def _atomic_write(self, path: Path, payload: Dict[str, Any]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        handle = tempfile.NamedTemporaryFile(
            mode="wb",
            dir=path.parent,
            prefix=f".{path.stem}.",
            suffix=".tmp",
            delete=False,
        )
        temp_path = Path(handle.name)
        try:
            with handle:
                pickle.dump(payload, handle, protocol=pickle.HIGHEST_PROTOCOL)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(temp_path, path)
        except BaseException:
            temp_path.unlink(missing_ok=True)
            raise


__all__ = ["CheckpointStore"]
