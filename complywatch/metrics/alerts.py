"""Bounded feed of threshold alerts for the live metrics view."""

from __future__ import annotations

import threading
from collections import deque
from typing import Deque, List

from ..clock import Clock, SystemClock
from ..logging import get_logger
from ..models import Alert

ALERT_LEVEL_WARNING = "warning"
ALERT_LEVEL_ALERT = "alert"


class AlertFeed:
    """Keeps the most recent ``capacity`` alerts; older ones fall off."""

    def __init__(self, *, capacity: int = 50, clock: Clock | None = None) -> None:
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self._clock = clock or SystemClock()
        self._alerts: Deque[Alert] = deque(maxlen=capacity)
        self._lock = threading.Lock()
        self.logger = get_logger("alerts")

    def __len__(self) -> int:
        with self._lock:
            return len(self._alerts)

    def raise_alert(self, kind: str, message: str, *, level: str = ALERT_LEVEL_WARNING) -> Alert:
        alert = Alert(kind=kind, message=message, raised_at=self._clock.now(), level=level)
        with self._lock:
            self._alerts.append(alert)
        self.logger.debug("Alert raised (kind=%s level=%s): %s", kind, level, message)
        return alert

    def recent(self, limit: int | None = None) -> List[Alert]:
        """Return up to ``limit`` alerts, newest first."""
        with self._lock:
            items = list(self._alerts)
        items.reverse()
        if limit is None:
            return items
        return items[: max(0, limit)]

    def clear(self) -> None:
        with self._lock:
            self._alerts.clear()


__all__ = ["ALERT_LEVEL_ALERT", "ALERT_LEVEL_WARNING", "AlertFeed"]
