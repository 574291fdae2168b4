from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Sequence

from algorithms import WorkoutAggregator
from db import (
    ExerciseTemplateRepository,
    MuscleGroupRepository,
    UserRepository,
    WorkoutRepository,
    WorkoutSetRepository,
)
from errors import NotFoundError
from models import Workout, WorkoutSet, format_timestamp, parse_schedule

logger = logging.getLogger(__name__)


@dataclass
class SetSpec:
    """Requested set before it is stored."""

    exercise_id: str
    reps: int
    weight: Optional[float] = None
    notes: Optional[str] = None
    completed: bool = False

    @classmethod
    def from_set(cls, s: WorkoutSet, keep_completed: bool = True) -> "SetSpec":
        return cls(
            s.exercise_id,
            s.reps,
            s.weight,
            s.notes,
            s.completed if keep_completed else False,
        )


class WorkoutService:
    """Workout CRUD, exercise editing and the completion state machine."""

    def __init__(
        self,
        workouts: WorkoutRepository,
        sets: WorkoutSetRepository,
        templates: ExerciseTemplateRepository,
        muscle_groups: MuscleGroupRepository,
        users: UserRepository,
        clock: Callable[[], datetime.datetime] = datetime.datetime.now,
    ) -> None:
        self.workouts = workouts
        self.sets = sets
        self.templates = templates
        self.muscle_groups = muscle_groups
        self.users = users
        self.clock = clock

    def _now(self) -> datetime.datetime:
        return self.clock().replace(microsecond=0)

    # validation -----------------------------------------------------------

    def _validate_sets(self, specs: Sequence[SetSpec]) -> None:
        for spec in specs:
            self.templates.fetch(spec.exercise_id)
            if spec.reps <= 0:
                raise ValueError("reps must be positive")
            if spec.weight is not None and spec.weight < 0:
                raise ValueError("weight must be non-negative")

    def _validate_groups(self, group_ids: Iterable[str]) -> list[str]:
        ids = list(dict.fromkeys(group_ids))
        for gid in ids:
            self.muscle_groups.fetch(gid)
        return ids

    def _store_sets(self, workout_id: str, specs: Iterable[SetSpec]) -> None:
        for spec in specs:
            self.sets.add(
                workout_id,
                spec.exercise_id,
                spec.reps,
                spec.weight,
                spec.notes,
                spec.completed,
            )

    def _replace_sets(self, workout_id: str, specs: Sequence[SetSpec]) -> None:
        self.sets.delete_for_workout(workout_id)
        self._store_sets(workout_id, specs)

    def _sync_completion(self, workout: Workout) -> Workout:
        """Keep ``completed`` equal to "every set is completed"."""
        done = bool(workout.sets) and workout.all_sets_completed()
        if done and not workout.completed:
            self.workouts.set_completed(workout.id, True, self._now())
            logger.info("workout %s completed", workout.id)
        elif not done and workout.completed:
            self.workouts.set_completed(workout.id, False, None)
            logger.info("workout %s reopened", workout.id)
        return self.workouts.fetch(workout.id)

    # CRUD -----------------------------------------------------------------

    def create_workout(
        self,
        member_id: str,
        name: str,
        scheduled_date: datetime.datetime | datetime.date | str | None = None,
        trainer_id: str | None = None,
        description: str | None = None,
        notes: str | None = None,
        muscle_group_ids: Iterable[str] = (),
        sets: Sequence[SetSpec] = (),
    ) -> Workout:
        if not name:
            raise ValueError("workout name is required")
        self.users.fetch(member_id)
        if trainer_id is not None:
            self.users.fetch(trainer_id)
        when = parse_schedule(scheduled_date) or self._now()
        groups = self._validate_groups(muscle_group_ids)
        self._validate_sets(sets)
        wid = self.workouts.create(
            member_id, name, when, trainer_id, description, notes
        )
        self.workouts.set_muscle_groups(wid, groups)
        self._store_sets(wid, sets)
        logger.info("created workout %s for member %s", wid, member_id)
        return self._sync_completion(self.workouts.fetch(wid))

    def update_workout(
        self,
        workout_id: str,
        name: str | None = None,
        scheduled_date: datetime.datetime | datetime.date | str | None = None,
        trainer_id: str | None = None,
        description: str | None = None,
        notes: str | None = None,
        muscle_group_ids: Iterable[str] | None = None,
        sets: Sequence[SetSpec] | None = None,
    ) -> Workout:
        """Update fields that are given. A given ``sets`` replaces the set list."""
        current = self.workouts.fetch(workout_id)
        if trainer_id is not None:
            self.users.fetch(trainer_id)
        groups = (
            self._validate_groups(muscle_group_ids)
            if muscle_group_ids is not None
            else None
        )
        if sets is not None:
            self._validate_sets(sets)
        self.workouts.update(
            workout_id,
            name if name else current.name,
            description if description is not None else current.description,
            parse_schedule(scheduled_date) or current.scheduled_date,
            notes if notes is not None else current.notes,
            trainer_id if trainer_id is not None else current.trainer_id,
        )
        if groups is not None:
            self.workouts.set_muscle_groups(workout_id, groups)
        if sets is not None:
            self._replace_sets(workout_id, sets)
        return self._sync_completion(self.workouts.fetch(workout_id))

    def find_by_id(self, workout_id: str) -> Workout:
        return self.workouts.fetch(workout_id)

    def find_by_member(self, member_id: str) -> list[Workout]:
        return self.workouts.fetch_for_member(member_id)

    def find_by_member_and_date_range(
        self,
        member_id: str,
        start: datetime.datetime | datetime.date | str,
        end: datetime.datetime | datetime.date | str,
    ) -> list[Workout]:
        start_dt = parse_schedule(start)
        end_dt = parse_schedule(end, end_of_day=True)
        if start_dt is None or end_dt is None:
            raise ValueError("start and end are required")
        if start_dt > end_dt:
            raise ValueError("start must not be after end")
        return self.workouts.fetch_for_member(member_id, start_dt, end_dt)

    def find_by_member_and_muscle_group(
        self, member_id: str, muscle_group_id: str
    ) -> list[Workout]:
        self.muscle_groups.fetch(muscle_group_id)
        return [
            w
            for w in self.workouts.fetch_for_member(member_id)
            if muscle_group_id in w.target_muscle_group_ids
        ]

    def find_completed(self, member_id: str) -> list[Workout]:
        return self.workouts.fetch_for_member(member_id, completed=True)

    def find_incomplete(self, member_id: str) -> list[Workout]:
        return self.workouts.fetch_for_member(member_id, completed=False)

    def delete_workout(self, workout_id: str) -> None:
        self.workouts.delete(workout_id)
        logger.info("deleted workout %s", workout_id)

    def copy_workout(
        self,
        workout_id: str,
        new_date: datetime.datetime | datetime.date | str | None = None,
    ) -> Workout:
        source = self.workouts.fetch(workout_id)
        return self.create_workout(
            source.member_id,
            source.name,
            parse_schedule(new_date) or self._now(),
            source.trainer_id,
            source.description,
            source.notes,
            source.target_muscle_group_ids,
            [SetSpec.from_set(s, keep_completed=False) for s in source.sets],
        )

    # completion state machine ----------------------------------------------

    def _find_set(self, workout: Workout, set_id: str) -> WorkoutSet:
        for s in workout.sets:
            if s.id == set_id:
                return s
        raise NotFoundError("set", set_id)

    def complete_set(self, workout_id: str, set_id: str) -> Workout:
        workout = self.workouts.fetch(workout_id)
        self._find_set(workout, set_id)
        self.sets.set_completed(set_id, True)
        return self._sync_completion(self.workouts.fetch(workout_id))

    def uncomplete_set(self, workout_id: str, set_id: str) -> Workout:
        workout = self.workouts.fetch(workout_id)
        self._find_set(workout, set_id)
        self.sets.set_completed(set_id, False)
        return self._sync_completion(self.workouts.fetch(workout_id))

    def complete_workout(self, workout_id: str) -> Workout:
        workout = self.workouts.fetch(workout_id)
        self.sets.complete_all(workout_id)
        if not workout.completed:
            self.workouts.set_completed(workout_id, True, self._now())
            logger.info("workout %s completed", workout_id)
        return self.workouts.fetch(workout_id)

    # exercise editing ------------------------------------------------------

    def add_exercise(
        self, workout_id: str, exercise_id: str, sets: Sequence[SetSpec]
    ) -> Workout:
        workout = self.workouts.fetch(workout_id)
        specs = [
            SetSpec(exercise_id, s.reps, s.weight, s.notes, s.completed) for s in sets
        ]
        if not specs:
            raise ValueError("at least one set is required")
        self._validate_sets(specs)
        self._store_sets(workout.id, specs)
        return self._sync_completion(self.workouts.fetch(workout_id))

    def update_exercise(
        self, workout_id: str, exercise_id: str, sets: Sequence[SetSpec]
    ) -> Workout:
        """Replace every set of ``exercise_id`` keeping its place in the workout."""
        workout = self.workouts.fetch(workout_id)
        if not any(s.exercise_id == exercise_id for s in workout.sets):
            raise NotFoundError("exercise in workout", exercise_id)
        replacement = [
            SetSpec(exercise_id, s.reps, s.weight, s.notes, s.completed) for s in sets
        ]
        self._validate_sets(replacement)
        specs: list[SetSpec] = []
        inserted = False
        for s in workout.sets:
            if s.exercise_id != exercise_id:
                specs.append(SetSpec.from_set(s))
            elif not inserted:
                specs.extend(replacement)
                inserted = True
        self._replace_sets(workout_id, specs)
        return self._sync_completion(self.workouts.fetch(workout_id))

    def delete_exercise(self, workout_id: str, exercise_id: str) -> Workout:
        workout = self.workouts.fetch(workout_id)
        if not any(s.exercise_id == exercise_id for s in workout.sets):
            raise NotFoundError("exercise in workout", exercise_id)
        self._replace_sets(
            workout_id,
            [SetSpec.from_set(s) for s in workout.sets if s.exercise_id != exercise_id],
        )
        return self._sync_completion(self.workouts.fetch(workout_id))

    # response shape --------------------------------------------------------

    def _user_summary(self, user_id: str | None) -> dict | None:
        if user_id is None:
            return None
        try:
            return self.users.fetch(user_id).summary()
        except NotFoundError:
            return None

    def _muscle_groups(self, group_ids: Iterable[str]) -> list[dict]:
        groups = []
        for gid in group_ids:
            try:
                groups.append(self.muscle_groups.fetch(gid).to_dict())
            except NotFoundError:
                logger.warning("workout references missing muscle group %s", gid)
        return groups

    def workout_response(self, workout: Workout) -> dict:
        when = workout.scheduled_date
        return {
            "id": workout.id,
            "name": workout.name,
            "description": workout.description,
            "notes": workout.notes,
            "date": format_timestamp(when),
            "day_of_week": when.strftime("%A").upper() if when else None,
            "completed": workout.completed,
            "completed_date": format_timestamp(workout.completed_date),
            "member": self._user_summary(workout.member_id),
            "trainer": self._user_summary(workout.trainer_id),
            "target_muscle_groups": self._muscle_groups(
                workout.target_muscle_group_ids
            ),
            "sets": [s.to_dict() for s in workout.sets],
            "exercises": [
                a.to_dict() for a in WorkoutAggregator.aggregate(workout.sets)
            ],
        }
