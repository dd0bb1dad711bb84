"""Incremental change scheduling: coalescing, batching and backpressure."""

from .batching import BatchScheduler, SchedulerState
from .pending import PendingChangeSet, compute_priority, estimate_cost_ms
from .processor import PriorityBatchProcessor
from .resources import ResourceGuard

__all__ = [
    "BatchScheduler",
    "PendingChangeSet",
    "PriorityBatchProcessor",
    "ResourceGuard",
    "SchedulerState",
    "compute_priority",
    "estimate_cost_ms",
]
