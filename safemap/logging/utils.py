# Copyright (c) Meta Platforms, Inc. and affiliates.
# Modifications copyright (c) 2025 Logan Martel.
# Adapted from https://github.com/meta-pytorch/KernelAgent (Apache-2.0).

"""Logging helpers (rotating run logs)."""

from __future__ import annotations

import logging

from logging.handlers import RotatingFileHandler
from pathlib import Path


def setup_file_logger(
    log_file: Path, name: str = "safemap"
) -> logging.Logger:
    """Configure a rotating file logger (idempotent per file)."""

    log_file = Path(log_file)
    log_file.parent.mkdir(parents=True, exist_ok=True)
    logger = logging.getLogger(name)
    logger.setLevel(logging.INFO)
    marker = str(log_file.resolve())
    if not any(
        isinstance(handler, RotatingFileHandler)
        and getattr(handler, "_safemap_tag", None) == marker
        for handler in logger.handlers
    ):
        handler = RotatingFileHandler(
            log_file, maxBytes=2_000_000, backupCount=3
        )
        handler.setLevel(logging.INFO)
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(message)s")
        )
        handler._safemap_tag = marker  # type: ignore[attr-defined]
        logger.addHandler(handler)
    return logger
