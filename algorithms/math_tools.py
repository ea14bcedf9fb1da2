import math
import datetime
from typing import Iterable
import numpy as np


class MathTools:
    """Provides essential mathematical utilities for workout analytics."""

    MS_PER_DAY: int = 1000 * 60 * 60 * 24

    @staticmethod
    def clamp(value: float, min_value: float, max_value: float) -> float:
        """Clamp ``value`` to the inclusive range [min_value, max_value]."""
        if min_value > max_value:
            raise ValueError("min_value must not exceed max_value")
        return max(min_value, min(value, max_value))

    @staticmethod
    def to_datetime(value: datetime.datetime | datetime.date | str) -> datetime.datetime:
        """Return ``value`` as a naive datetime (aware values become UTC)."""
        if isinstance(value, datetime.datetime):
            dt = value
        elif isinstance(value, datetime.date):
            dt = datetime.datetime(value.year, value.month, value.day)
        elif isinstance(value, str):
            text = value.strip()
            if text.endswith("Z"):
                text = text[:-1] + "+00:00"
            dt = datetime.datetime.fromisoformat(text)
        else:
            raise TypeError(f"unsupported date value: {value!r}")
        if dt.tzinfo is not None:
            dt = dt.astimezone(datetime.timezone.utc).replace(tzinfo=None)
        return dt

    @staticmethod
    def volume(weight: float, reps: int, sets: int) -> float:
        """Compute training volume as weight times reps times sets."""
        return weight * reps * sets

    @staticmethod
    def percent_change(new: float, old: float) -> float:
        """Return the relative change from ``old`` to ``new`` in percent."""
        try:
            return (new - old) / old * 100
        except ZeroDivisionError:
            if new == old:
                return math.nan
            return math.copysign(math.inf, new - old)

    @staticmethod
    def format_pct(value: float) -> str:
        """Format ``value`` with one decimal place."""
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        return f"{value:.1f}"

    @staticmethod
    def round_half_up(value: float) -> int:
        """Round to the nearest integer with halves going up (2.5 -> 3)."""
        return math.floor(value + 0.5)

    @classmethod
    def whole_days(
        cls, start: datetime.datetime, end: datetime.datetime
    ) -> int:
        """Return elapsed whole days between ``start`` and ``end``."""
        ms = (end - start) / datetime.timedelta(milliseconds=1)
        return math.floor(ms / cls.MS_PER_DAY)

    @staticmethod
    def fractional_days(
        start: datetime.datetime, end: datetime.datetime
    ) -> float:
        return (end - start) / datetime.timedelta(days=1)

    @staticmethod
    def calendar_days(
        start: datetime.datetime | datetime.date, end: datetime.datetime | datetime.date
    ) -> int:
        """Return the calendar-day difference ignoring time of day."""
        if isinstance(start, datetime.datetime):
            start = start.date()
        if isinstance(end, datetime.datetime):
            end = end.date()
        return (end - start).days

    @staticmethod
    def variation_percent(values: Iterable[float]) -> tuple[float, float]:
        """Return ``(mean, (max - min) / mean * 100)`` for ``values``."""
        arr = np.array(list(values), dtype=float)
        if arr.size == 0:
            return 0.0, math.nan
        mean = float(np.mean(arr))
        spread = float(np.ptp(arr))
        with np.errstate(divide="ignore", invalid="ignore"):
            variation = float(np.float64(spread) / np.float64(mean) * 100)
        return mean, variation

    @staticmethod
    def fmt(value: float) -> str:
        """Render a number without a trailing ``.0`` for whole values."""
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        return str(value)
