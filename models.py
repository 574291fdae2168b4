from __future__ import annotations

import datetime
import enum
from dataclasses import dataclass, field
from typing import Optional

from algorithms.math_tools import MathTools


class Role(str, enum.Enum):
    ADMIN = "ADMIN"
    TRAINER = "TRAINER"
    MEMBER = "MEMBER"


def _naive_local(value: datetime.datetime) -> datetime.datetime:
    """Drop the offset of ``value``, converting it to local time first."""
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


def _fromisoformat(text: str) -> datetime.datetime:
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    return _naive_local(datetime.datetime.fromisoformat(text))


def parse_timestamp(value: Optional[str]) -> Optional[datetime.datetime]:
    if value is None:
        return None
    return _fromisoformat(value)


def format_timestamp(value: Optional[datetime.datetime]) -> Optional[str]:
    if value is None:
        return None
    return _naive_local(value).isoformat(timespec="seconds")


def parse_schedule(
    value: datetime.datetime | datetime.date | str | None,
    end_of_day: bool = False,
) -> Optional[datetime.datetime]:
    """Return ``value`` as a naive local datetime. Plain dates map to midnight.

    Values carrying a UTC offset (``Z`` included) are converted to local
    time. With ``end_of_day`` a plain date maps to the last second of that
    day, which makes it usable as an inclusive range bound.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime.datetime):
        return _naive_local(value).replace(microsecond=0)
    if isinstance(value, datetime.date):
        day = value
    else:
        text = str(value).strip()
        if "T" in text or " " in text:
            try:
                return _fromisoformat(text).replace(microsecond=0)
            except ValueError:
                raise ValueError(f"invalid date: {value}")
        try:
            day = datetime.date.fromisoformat(text)
        except ValueError:
            raise ValueError(f"invalid date: {value}")
    if end_of_day:
        return datetime.datetime.combine(day, datetime.time(23, 59, 59))
    return datetime.datetime.combine(day, datetime.time())


@dataclass
class User:
    id: str
    username: str
    email: str
    password_hash: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone_number: Optional[str] = None
    roles: set[Role] = field(default_factory=set)
    active: bool = True
    assigned_trainer_id: Optional[str] = None

    def has_role(self, role: Role) -> bool:
        return role in self.roles

    def summary(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
        }

    def to_dict(self) -> dict:
        data = self.summary()
        data.update(
            {
                "phone_number": self.phone_number,
                "roles": sorted(r.value for r in self.roles),
                "active": self.active,
                "assigned_trainer_id": self.assigned_trainer_id,
            }
        )
        return data


@dataclass
class MuscleGroup:
    id: str
    name: str
    description: Optional[str] = None

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "description": self.description}


@dataclass
class ExerciseTemplate:
    id: str
    name: str
    primary_muscle_group_id: Optional[str]
    secondary_muscle_group_id: Optional[str] = None
    description: Optional[str] = None
    requires_weight: bool = True

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "primary_muscle_group_id": self.primary_muscle_group_id,
            "secondary_muscle_group_id": self.secondary_muscle_group_id,
            "requires_weight": self.requires_weight,
        }


@dataclass
class WorkoutSet:
    id: str
    workout_id: str
    exercise_id: Optional[str]
    exercise_name: Optional[str]
    reps: int
    weight: Optional[float] = None
    notes: Optional[str] = None
    completed: bool = False
    position: int = 0

    @property
    def volume(self) -> float:
        return MathTools.set_volume(self.reps, self.weight)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "exercise": {"id": self.exercise_id, "name": self.exercise_name},
            "reps": self.reps,
            "weight": self.weight,
            "notes": self.notes,
            "completed": self.completed,
            "volume": self.volume,
        }


@dataclass
class Workout:
    id: str
    member_id: str
    name: str
    scheduled_date: Optional[datetime.datetime]
    trainer_id: Optional[str] = None
    description: Optional[str] = None
    completed_date: Optional[datetime.datetime] = None
    completed: bool = False
    notes: Optional[str] = None
    target_muscle_group_ids: list[str] = field(default_factory=list)
    sets: list[WorkoutSet] = field(default_factory=list)

    def all_sets_completed(self) -> bool:
        return all(s.completed for s in self.sets)
