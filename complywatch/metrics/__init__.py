"""Live violation statistics, effectiveness scoring and threshold alerts."""

from .aggregator import ViolationAggregator
from .alerts import AlertFeed
from .effectiveness import EffectivenessModel

__all__ = ["AlertFeed", "EffectivenessModel", "ViolationAggregator"]
