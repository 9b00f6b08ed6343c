"""Sequential batch driver with checkpointing, retries and run locking."""

from __future__ import annotations

import logging

from typing import Any, Callable, Optional

from safemap.adapters.base import ExecutionAdapter
from safemap.configuration import EngineSettings
from safemap.exceptions import BatchExecutionError, CorruptedCheckpoint
from safemap.logging import LoggingProgressObserver, setup_file_logger
from safemap.output import AS_LIST, OutputAdapter
from safemap.runtime.checkpoint import CheckpointStore
from safemap.runtime.lock import LockHandle, LockManager
from safemap.runtime.paths import new_run_id, validate_run_id
from safemap.runtime.retry import RetryExecutor
from safemap.types import (
    BatchInputs,
    BatchProgress,
    Checkpoint,
    ProgressObserver,
    plan_batches,
)

LOGGER = logging.getLogger(__name__)


class BatchRunner:
    """Drives one run: lock, resume, execute batches, checkpoint, clean up.

    Batches run strictly one after another; a batch only starts once the
    previous checkpoint write has completed, which keeps the persisted results
    a contiguous prefix of the output.
    """

    def __init__(
        self,
        settings: Optional[EngineSettings] = None,
        *,
        store: Optional[CheckpointStore] = None,
        locks: Optional[LockManager] = None,
        retry: Optional[RetryExecutor] = None,
        discard_corrupted: bool = False,
    ) -> None:
        self.settings = settings or EngineSettings()
        self.store = store or CheckpointStore(self.settings)
        self.locks = locks or LockManager(self.settings)
        self.retry = retry or RetryExecutor(delay=self.settings.retry_delay)
        self.discard_corrupted = discard_corrupted
        if self.settings.log_file is not None:
            setup_file_logger(self.settings.log_file)

    def run(
        self,
        inputs: BatchInputs,
        func: Callable[..., Any],
        adapter: ExecutionAdapter,
        *,
        run_id: Optional[str] = None,
        output: OutputAdapter = AS_LIST,
        observer: Optional[ProgressObserver] = None,
    ) -> Any:
        inputs.validate()
        adapter.check(inputs)
        mode = adapter.mode
        run_id = validate_run_id(run_id) if run_id else new_run_id(mode)
        total_items = len(inputs)
        report = observer or LoggingProgressObserver()

        with self.locks.hold(run_id) as lock:
            checkpoint = self._open_checkpoint(run_id, total_items, mode)
            if not checkpoint.completed:
                self._process_batches(
                    inputs, func, adapter, checkpoint, report, lock
                )
            results = output.shape(checkpoint.results[:total_items])
            self.store.delete(run_id)
        LOGGER.info("Completed %d items", total_items)
        return results

    def _open_checkpoint(
        self, run_id: str, total_items: int, mode: str
    ) -> Checkpoint:
        try:
            checkpoint = self.store.initialize_or_resume(
                run_id, total_items, mode
            )
        except CorruptedCheckpoint as exc:
            if not self.discard_corrupted:
                raise
            LOGGER.warning("%s; starting run %s from scratch", exc, run_id)
            self.store.delete(run_id)
            checkpoint = self.store.initialize_or_resume(
                run_id, total_items, mode
            )
        metadata = checkpoint.metadata
        if metadata.total_items != total_items:
            LOGGER.warning(
                "Run %s was recorded with %d items but received %d; "
                "continuing with the current input",
                run_id,
                metadata.total_items,
                total_items,
            )
            metadata.total_items = total_items
        return checkpoint

    def _process_batches(
        self,
        inputs: BatchInputs,
        func: Callable[..., Any],
        adapter: ExecutionAdapter,
        checkpoint: Checkpoint,
        observer: ProgressObserver,
        lock: LockHandle,
    ) -> None:
        run_id = checkpoint.metadata.run_id
        total_items = len(inputs)
        for batch in plan_batches(
            checkpoint.start_index, total_items, self.settings.batch_size
        ):
            observer(
                BatchProgress(run_id=run_id, batch=batch, total_items=total_items)
            )
            window = inputs.slice(batch.start - 1, batch.end)
            try:
                outputs = self.retry.run(
                    window, adapter, func, self.settings.retry_attempts
                )
            except BatchExecutionError as exc:
                failure = exc.with_context(run_id, batch.start, batch.end)
                self.store.record_failure(
                    run_id, checkpoint, batch.number, failure.last_error_message
                )
                LOGGER.error("%s", failure)
                raise failure from exc.last_error
            checkpoint.extend(outputs)
            checkpoint.metadata.clear_failure()
            self.store.save(checkpoint)
            lock.refresh()


__all__ = ["BatchRunner"]
