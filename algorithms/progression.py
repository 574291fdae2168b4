from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence

from .math_tools import MathTools


@dataclass(frozen=True)
class HistoryEntry:
    """A single logged set used as progression input."""

    reps: int
    weight: Optional[float]
    performed_at: datetime.datetime


@dataclass(frozen=True)
class SuggestedSet:
    reps: int
    weight: float

    def to_dict(self) -> dict:
        return {"reps": self.reps, "weight": self.weight}


@dataclass(frozen=True)
class SuggestionResult:
    """Three suggested sets for the next session."""

    sets: tuple[SuggestedSet, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        return {"sets": [s.to_dict() for s in self.sets]}


class ProgressionEngine:
    """Rule based progressive overload suggestions.

    The most recent entries are averaged and the next session is laid out as
    three sets: one extra rep at the average weight, the average rep count at
    one increment heavier and one rep fewer at two increments heavier.
    """

    WEIGHT_INCREMENT: float = 1.25
    RECENT_ENTRIES: int = 3
    MIN_REPS: int = 6
    SET_COUNT: int = 3

    DEFAULT_REPS: int = 10
    DEFAULT_WEIGHT: float = 20.0
    DEFAULT_WEIGHT_STEP: float = 2.5

    @classmethod
    def default_ramp(cls) -> SuggestionResult:
        """Return the starting ramp used when no history exists."""
        sets: list[SuggestedSet] = []
        reps = cls.DEFAULT_REPS
        weight = cls.DEFAULT_WEIGHT
        for _ in range(cls.SET_COUNT):
            sets.append(SuggestedSet(reps, weight))
            reps = max(reps - 1, cls.MIN_REPS)
            weight += cls.DEFAULT_WEIGHT_STEP
        return SuggestionResult(tuple(sets))

    @classmethod
    def most_recent(
        cls, history: Iterable[HistoryEntry], limit: int | None = None
    ) -> list[HistoryEntry]:
        """Return up to ``limit`` entries ordered newest first.

        ``sorted`` is stable, so entries sharing a timestamp keep their input
        order.
        """
        limit = cls.RECENT_ENTRIES if limit is None else limit
        ordered = sorted(history, key=lambda e: e.performed_at, reverse=True)
        return ordered[:limit]

    @classmethod
    def suggest_next_sets(cls, history: Sequence[HistoryEntry]) -> SuggestionResult:
        """Return three suggested sets derived from ``history``."""
        if not history:
            return cls.default_ramp()
        latest = cls.most_recent(history)
        avg_weight = MathTools.mean(
            e.weight if e.weight is not None else 0.0 for e in latest
        )
        starting_reps = MathTools.ceil_mean(e.reps for e in latest)
        return SuggestionResult(
            (
                SuggestedSet(starting_reps + 1, avg_weight),
                SuggestedSet(starting_reps, avg_weight + cls.WEIGHT_INCREMENT),
                SuggestedSet(
                    max(starting_reps - 1, cls.MIN_REPS),
                    avg_weight + cls.WEIGHT_INCREMENT * 2,
                ),
            )
        )
