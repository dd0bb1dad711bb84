"""Persistence for metric snapshots."""

from .history import MetricsHistoryStore

__all__ = ["MetricsHistoryStore"]
