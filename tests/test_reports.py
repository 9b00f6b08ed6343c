from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest

from safemap.reports import ReportManager
from safemap.sessions import SessionRegistry


def test_bundled_stats_report_without_sessions() -> None:
    stats = type("S", (), {"total_sessions": 0})()
    assert "No sessions found" in ReportManager().render(
        "session_stats.j2", stats=stats
    )


def test_custom_templates_restyle_registry_output(settings, tmp_path: Path) -> None:
    custom = tmp_path / "reports"
    custom.mkdir()
    (custom / "session_list.j2").write_text(
        "{{ sessions | length }} session(s)\n"
    )
    registry = SessionRegistry(settings, reports=ReportManager(custom))
    assert registry.render_list() == "0 session(s)\n"


def test_filters(tmp_path: Path) -> None:
    (tmp_path / "f.j2").write_text(
        "{{ a | percent }} {{ b | percent }} {{ t | timestamp }}"
    )
    manager = ReportManager(tmp_path)
    moment = datetime(2024, 5, 1, 12, 30, 0, tzinfo=timezone.utc)
    assert manager.render("f.j2", a=0.5, b=None, t=moment) == (
        "50.0% n/a 2024-05-01 12:30:00 UTC"
    )


def test_missing_directory_and_template(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError, match="directory not found"):
        ReportManager(tmp_path / "absent")
    with pytest.raises(FileNotFoundError, match="nope.j2"):
        ReportManager().render("nope.j2")
