# Copyright (c) Meta Platforms, Inc. and affiliates.
# Modifications copyright (c) 2025 Logan Martel.
# Adapted from https://github.com/meta-pytorch/KernelAgent (Apache-2.0).

"""Cache directory layout and run identifier helpers."""

from __future__ import annotations

import re
import time
import uuid

from dataclasses import dataclass
from pathlib import Path

from safemap.exceptions import ValidationError

CHECKPOINT_SUFFIX = ".pkl"
LOCK_SUFFIX = ".lock"

_RUN_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


def validate_run_id(run_id: str) -> str:
    """Return ``run_id`` if it can be used verbatim as a file name."""

    if not isinstance(run_id, str) or not _RUN_ID_PATTERN.match(run_id):
        raise ValidationError(
            f"Invalid run id {run_id!r}: use letters, digits, '.', '_' or '-' "
            "and start with a letter or digit"
        )
    return run_id


def new_run_id(mode: str) -> str:
    ts = time.strftime("%Y%m%d_%H%M%S")
    short = uuid.uuid4().hex[:8]
    return f"{mode}_{ts}_{short}"


@dataclass(frozen=True)
class CacheDirectories:
    """Standardized directory layout under the configured cache dir."""

    root: Path
    checkpoints: Path
    locks: Path

    def checkpoint_path(self, run_id: str) -> Path:
        return self.checkpoints / f"{validate_run_id(run_id)}{CHECKPOINT_SUFFIX}"

    def lock_path(self, run_id: str) -> Path:
        return self.locks / f"{validate_run_id(run_id)}{LOCK_SUFFIX}"


def cache_dirs(root: Path) -> CacheDirectories:
    root = Path(root)
    return CacheDirectories(
        root=root,
        checkpoints=root / "checkpoints",
        locks=root / "locks",
    )


def make_cache_dirs(root: Path) -> CacheDirectories:
    dirs = cache_dirs(root)
    for directory in (dirs.root, dirs.checkpoints, dirs.locks):
        directory.mkdir(parents=True, exist_ok=True)
    return dirs
