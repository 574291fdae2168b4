import math
from typing import Iterable, Optional


class MathTools:
    """Provides essential mathematical utilities for workout calculations."""

    @staticmethod
    def set_volume(reps: int, weight: Optional[float]) -> float:
        """Return reps times weight, treating a missing weight as zero."""
        return reps * (weight if weight is not None else 0.0)

    @staticmethod
    def mean(values: Iterable[float]) -> float:
        """Return the arithmetic mean or ``0.0`` for no values."""
        items = list(values)
        if not items:
            return 0.0
        return sum(items) / len(items)

    @classmethod
    def ceil_mean(cls, values: Iterable[float]) -> int:
        """Return the mean rounded up to the nearest integer."""
        return int(math.ceil(cls.mean(values)))
