"""Logging utilities."""

from .progress import LoggingProgressObserver, RecordingProgressObserver
from .utils import setup_file_logger

__all__ = [
    "LoggingProgressObserver",
    "RecordingProgressObserver",
    "setup_file_logger",
]
