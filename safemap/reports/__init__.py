"""Text reports for persisted sessions."""

from .manager import ReportManager

__all__ = ["ReportManager"]
