from .math_tools import MathTools
from .progression import HistoryEntry, ProgressionEngine, SuggestedSet, SuggestionResult
from .aggregation import ExerciseAggregate, WorkoutAggregator

__all__ = [
    "MathTools",
    "HistoryEntry",
    "ProgressionEngine",
    "SuggestedSet",
    "SuggestionResult",
    "ExerciseAggregate",
    "WorkoutAggregator",
]
