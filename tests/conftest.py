"""Expose the project root on sys.path for pytest runs."""

from __future__ import annotations

import sys

from pathlib import Path

import pytest

from safemap.configuration import EngineSettings

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture()
def settings(tmp_path: Path) -> EngineSettings:
    """Return fast engine settings rooted in a per-test cache directory."""

    return EngineSettings(
        batch_size=5,
        retry_attempts=1,
        retry_delay=0,
        cache_dir=tmp_path / "cache",
        lock_timeout=2.0,
        lock_poll_interval=0.01,
    )
