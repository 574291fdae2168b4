from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional, Protocol

from .math_tools import MathTools


class AggregatableSet(Protocol):
    exercise_id: Optional[str]
    exercise_name: Optional[str]
    reps: int
    weight: Optional[float]


@dataclass
class ExerciseAggregate:
    """Per-exercise rollup of a workout's sets."""

    exercise_id: str
    exercise_name: Optional[str]
    sets: list[tuple[int, Optional[float]]] = field(default_factory=list)
    total_volume: float = 0.0

    def to_dict(self) -> dict:
        return {
            "id": self.exercise_id,
            "exercise_template": {
                "id": self.exercise_id,
                "name": self.exercise_name,
            },
            "sets": [{"reps": r, "weight": w} for r, w in self.sets],
            "total_volume": self.total_volume,
        }


class WorkoutAggregator:
    """Fold a flat list of sets into per-exercise aggregates."""

    @staticmethod
    def aggregate(sets: Iterable[AggregatableSet]) -> list[ExerciseAggregate]:
        buckets: dict[str, ExerciseAggregate] = {}
        for s in sets:
            if s.exercise_id is None:
                continue
            entry = buckets.get(s.exercise_id)
            if entry is None:
                entry = ExerciseAggregate(s.exercise_id, s.exercise_name)
                buckets[s.exercise_id] = entry
            entry.sets.append((s.reps, s.weight))
            entry.total_volume += MathTools.set_volume(s.reps, s.weight)
        return list(buckets.values())
