from typing import Any, Optional

from pydantic import BaseModel, Field


class SignupRequest(BaseModel):
    username: str = Field(min_length=1)
    email: str = Field(min_length=3)
    password: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone_number: Optional[str] = None
    roles: list[str] = Field(default_factory=lambda: ["MEMBER"])


class SigninRequest(BaseModel):
    username: str
    password: str


class ProfileUpdate(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone_number: Optional[str] = None


class PasswordChange(BaseModel):
    current_password: str
    new_password: str


class MuscleGroupRequest(BaseModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None


class TemplateRequest(BaseModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    primary_muscle_group_id: Optional[str] = None
    secondary_muscle_group_id: Optional[str] = None
    requires_weight: bool = True


class TemplateUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    primary_muscle_group_id: Optional[str] = None
    secondary_muscle_group_id: Optional[str] = None
    requires_weight: Optional[bool] = None


class SetRequest(BaseModel):
    exercise_id: Optional[str] = None
    reps: int
    weight: Optional[float] = None
    notes: Optional[str] = None
    completed: bool = False


class ExerciseSetsRequest(BaseModel):
    exercise_id: Optional[str] = None
    sets: list[SetRequest]


class WorkoutRequest(BaseModel):
    name: str = Field(min_length=1)
    member_id: Optional[str] = None
    trainer_id: Optional[str] = None
    description: Optional[str] = None
    notes: Optional[str] = None
    scheduled_date: Optional[str] = None
    target_muscle_group_ids: list[str] = Field(default_factory=list)
    sets: list[SetRequest] = Field(default_factory=list)


class WorkoutUpdate(BaseModel):
    name: Optional[str] = None
    trainer_id: Optional[str] = None
    description: Optional[str] = None
    notes: Optional[str] = None
    scheduled_date: Optional[str] = None
    target_muscle_group_ids: Optional[list[str]] = None
    sets: Optional[list[SetRequest]] = None


class CopyRequest(BaseModel):
    new_date: Optional[str] = None


class CheckinRequest(BaseModel):
    user_id: Optional[str] = None


class SuggestionNotificationRequest(BaseModel):
    member_id: str
    message: str = Field(min_length=1)
    data: dict[str, Any] = Field(default_factory=dict)


class PaymentRequest(BaseModel):
    user_id: str
    months: int
    amount: float
    paid_at: Optional[str] = None


class FeedbackRequest(BaseModel):
    title: str = Field(min_length=1)
    content: str = Field(min_length=1)


class FeedbackResponseRequest(BaseModel):
    content: str = Field(min_length=1)


class DietChatRequest(BaseModel):
    title: str = Field(min_length=1)
    initial_query: str = Field(min_length=1)


class DietMessageRequest(BaseModel):
    content: str = Field(min_length=1)
