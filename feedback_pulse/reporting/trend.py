"""Chronological rating history and trend classification."""
from __future__ import annotations

import bisect
import datetime
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Union

from feedback_pulse.reporting.config import TrendSettings

logger = logging.getLogger(__name__)

NOT_AVAILABLE = "N/A"

Average = Union[float, str]

# Points without a timestamp sort before everything else.
_EPOCH = datetime.datetime.min.replace(tzinfo=datetime.timezone.utc)


class Trend(str, Enum):
    IMPROVING = "improving"
    DECLINING = "declining"
    STABLE = "stable"


@dataclass(frozen=True)
class TrendPoint:
    timestamp: Optional[datetime.datetime]
    rating: float  # 0..5

    @property
    def sort_key(self) -> datetime.datetime:
        if self.timestamp is None:
            return _EPOCH
        if self.timestamp.tzinfo is None:
            return self.timestamp.replace(tzinfo=datetime.timezone.utc)
        return self.timestamp


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values)


class TrendTracker:
    """Per-form rating history kept in timestamp order.

    Ties keep insertion order.  The history is the only state the scoring
    side keeps between calls; everything else is recomputed from it.
    """

    def __init__(self, settings: Optional[TrendSettings] = None) -> None:
        self.settings = settings or TrendSettings()
        self._history: Dict[str, List[TrendPoint]] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------
    def record(self, form_id: str, timestamp: Optional[datetime.datetime], rating: float) -> None:
        """Insert one rating for *form_id* at its chronological position."""
        point = TrendPoint(timestamp, rating)
        with self._lock:
            points = self._history.setdefault(form_id, [])
            keys = [p.sort_key for p in points]
            points.insert(bisect.bisect_right(keys, point.sort_key), point)

    def replace(self, form_id: str, points: Iterable[TrendPoint]) -> List[TrendPoint]:
        """Replace the history of *form_id* wholesale and return it sorted."""
        ordered = sorted(points, key=lambda p: p.sort_key)
        with self._lock:
            self._history[form_id] = ordered
        logger.debug("Trend history for form %s replaced (%d points)", form_id, len(ordered))
        return list(ordered)

    def history(self, form_id: str) -> List[TrendPoint]:
        """Return a copy of the history for *form_id* (empty if unknown)."""
        with self._lock:
            return list(self._history.get(form_id, ()))

    def reset(self, form_id: str) -> None:
        with self._lock:
            self._history.pop(form_id, None)

    def forms(self) -> List[str]:
        with self._lock:
            return list(self._history)

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------
    def classify(self, points: Sequence[TrendPoint]) -> Trend:
        """Compare the latest window of ratings with the one before it.

        Fewer than ``settings.min_points`` points is always ``stable``.
        """
        window = self.settings.window
        if len(points) < max(self.settings.min_points, 2 * window):
            return Trend.STABLE
        ratings = [p.rating for p in points]
        recent = _mean(ratings[-window:])
        previous = _mean(ratings[-2 * window : -window])
        if recent > previous + self.settings.threshold:
            return Trend.IMPROVING
        if recent < previous - self.settings.threshold:
            return Trend.DECLINING
        return Trend.STABLE

    def trend(self, form_id: str) -> Trend:
        return self.classify(self.history(form_id))

    def recent_average(self, points: Sequence[TrendPoint]) -> Average:
        window = self.settings.window
        if len(points) < window:
            return NOT_AVAILABLE
        return round(_mean([p.rating for p in points[-window:]]), 1)

    @staticmethod
    def overall_average(points: Sequence[TrendPoint]) -> Average:
        if not points:
            return NOT_AVAILABLE
        return round(_mean([p.rating for p in points]), 1)
