from __future__ import annotations

import datetime
import logging
from typing import Callable, Iterator, Optional, Sequence

from advice_client import AdviceClient
from algorithms import HistoryEntry, ProgressionEngine, SuggestionResult
from db import WorkoutRepository, WorkoutSetRepository
from models import Workout, format_timestamp, parse_timestamp
from suggestion_cache import SuggestionCache

logger = logging.getLogger(__name__)

PROGRESSIVE_HISTORY_LIMIT = 5


def window_start(now: datetime.datetime, days: int) -> datetime.datetime:
    """Return ``now`` minus ``days``, clamped to the earliest representable time."""
    if days >= (now - datetime.datetime.min).days:
        return datetime.datetime.min
    return now - datetime.timedelta(days=days)


def iter_suggestion_lines(text: Optional[str]) -> Iterator[str]:
    """Yield the trimmed, non-blank lines of ``text``."""
    if not text:
        return
    for line in text.split("\n"):
        line = line.strip()
        if line:
            yield line


def weekly_prompt(workouts: Sequence[Workout]) -> str:
    lines = ["Last week's workout schedule:\n"]
    for w in workouts:
        names = dict.fromkeys(
            s.exercise_name for s in w.sets if s.exercise_name is not None
        )
        lines.append(
            "Date: %s, Workout: %s, Exercises: %s\n"
            % (format_timestamp(w.scheduled_date), w.name, ", ".join(names))
        )
    lines.append(
        "\nSuggest a workout schedule for next week following progressive "
        "overload principles."
    )
    return "".join(lines)


class AIWorkoutService:
    """Workout suggestions with a short lived cache in front of them.

    Set suggestions come from :class:`ProgressionEngine`. Weekly suggestions
    come from the advice client and degrade to an empty list.
    """

    def __init__(
        self,
        workouts: WorkoutRepository,
        sets: WorkoutSetRepository,
        advice_client: AdviceClient,
        cache: SuggestionCache,
        default_history_days: int = 30,
        weekly_window_days: int = 7,
        clock: Callable[[], datetime.datetime] = datetime.datetime.now,
    ) -> None:
        self.workouts = workouts
        self.sets = sets
        self.advice = advice_client
        self.cache = cache
        self.default_history_days = default_history_days
        self.weekly_window_days = weekly_window_days
        self.clock = clock

    @staticmethod
    def _entries(rows) -> list[HistoryEntry]:
        return [
            HistoryEntry(reps, weight, parse_timestamp(performed))
            for reps, weight, performed in rows
        ]

    def suggested_parameters(
        self, user_id: str, exercise_id: str, history_days: int | None = None
    ) -> SuggestionResult:
        days = self.default_history_days if history_days is None else history_days
        if days <= 0:
            raise ValueError("history_days must be positive")
        key = f"suggestions:params:{user_id}:{exercise_id}:{days}"
        cached = self.cache.get(key)
        if cached is not None:
            return cached
        now = self.clock()
        rows = self.sets.fetch_history(
            user_id,
            exercise_id,
            start=format_timestamp(window_start(now, days)),
            end=format_timestamp(now),
        )
        result = ProgressionEngine.suggest_next_sets(self._entries(rows))
        self.cache.put(key, result)
        return result

    def progressive_overload(self, user_id: str, exercise_id: str) -> SuggestionResult:
        key = f"suggestions:progressive:{user_id}:{exercise_id}"
        cached = self.cache.get(key)
        if cached is not None:
            return cached
        rows = self.sets.fetch_history(
            user_id, exercise_id, limit=PROGRESSIVE_HISTORY_LIMIT
        )
        result = ProgressionEngine.suggest_next_sets(self._entries(rows))
        self.cache.put(key, result)
        return result

    def weekly_suggestions(self, user_id: str) -> list[str]:
        key = f"suggestions:weekly:{user_id}"
        cached = self.cache.get(key)
        if cached is not None:
            return list(cached)
        now = self.clock()
        start = now - datetime.timedelta(days=self.weekly_window_days)
        recent = sorted(
            self.workouts.fetch_for_member(user_id, start, now),
            key=lambda w: w.scheduled_date,
        )
        text = self.advice.complete(weekly_prompt(recent))
        if text is None:
            logger.info("no weekly suggestions for user %s", user_id)
        suggestions = list(iter_suggestion_lines(text))
        self.cache.put(key, tuple(suggestions))
        return suggestions
