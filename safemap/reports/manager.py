# Copyright (c) Meta Platforms, Inc. and affiliates.
# Modifications copyright (c) 2025 Logan Martel.
# Adapted from https://github.com/meta-pytorch/KernelAgent (Apache-2.0).

"""Plain-text session reports rendered from Jinja2 templates."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Optional

from jinja2 import Environment, FileSystemLoader, TemplateNotFound

BUNDLED_TEMPLATES = Path(__file__).parent / "templates"


def _percent(value: Optional[float]) -> str:
    if value is None:
        return "n/a"
    return f"{100 * value:.1f}%"


def _timestamp(value: Optional[datetime]) -> str:
    if value is None:
        return "-"
    return value.strftime("%Y-%m-%d %H:%M:%S %Z").strip()


class ReportManager:
    """Renders session reports; pass ``templates_dir`` to restyle them."""

    def __init__(self, templates_dir: Optional[Path] = None) -> None:
        self.templates_dir = Path(templates_dir or BUNDLED_TEMPLATES)
        if not self.templates_dir.is_dir():
            raise FileNotFoundError(
                f"Report templates directory not found: {self.templates_dir}"
            )
        self._env = Environment(
            loader=FileSystemLoader(str(self.templates_dir)),
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
        )
        self._env.filters.update(percent=_percent, timestamp=_timestamp)

    def render(self, template_name: str, **context) -> str:
        try:
            template = self._env.get_template(template_name)
        except TemplateNotFound as exc:
            raise FileNotFoundError(
                f"Report template '{template_name}' not found in "
                f"{self.templates_dir}"
            ) from exc
        return template.render(**context)
