import datetime
import logging
import os
from typing import Callable, Optional

from fastapi import APIRouter, Depends, FastAPI, Header, Request
from fastapi.responses import JSONResponse

from access_policy import AccessPolicy
from advice_client import AdviceClient
from ai_workout_service import AIWorkoutService
from api_schemas import (
    CheckinRequest,
    CopyRequest,
    DietChatRequest,
    DietMessageRequest,
    ExerciseSetsRequest,
    FeedbackRequest,
    FeedbackResponseRequest,
    MuscleGroupRequest,
    PasswordChange,
    PaymentRequest,
    ProfileUpdate,
    SetRequest,
    SigninRequest,
    SignupRequest,
    SuggestionNotificationRequest,
    TemplateRequest,
    TemplateUpdate,
    WorkoutRequest,
    WorkoutUpdate,
)
from auth_service import AuthService
from config import APP_VERSION, YamlConfig
from db import (
    CheckinRepository,
    DietChatRepository,
    ExerciseTemplateRepository,
    FeedbackRepository,
    MuscleGroupRepository,
    NotificationRepository,
    PaymentRepository,
    SessionRepository,
    UserRepository,
    WorkoutRepository,
    WorkoutSetRepository,
)
from errors import AuthenticationError, ForbiddenError, NotFoundError
from models import Role, User, format_timestamp, parse_schedule
from suggestion_cache import SuggestionCache
from workout_service import SetSpec, WorkoutService

logger = logging.getLogger(__name__)


def _set_specs(sets: list[SetRequest], exercise_id: str | None = None) -> list[SetSpec]:
    specs = []
    for s in sets:
        ex = exercise_id or s.exercise_id
        if not ex:
            raise ValueError("exercise_id is required for every set")
        specs.append(SetSpec(ex, s.reps, s.weight, s.notes, s.completed))
    return specs


def _primary_role(user: User) -> Role:
    for role in (Role.ADMIN, Role.TRAINER, Role.MEMBER):
        if user.has_role(role):
            return role
    return Role.MEMBER


class GymAPI:
    """Provides REST endpoints for the gym backend."""

    def __init__(
        self,
        db_path: str = "gym.db",
        yaml_path: str = "settings.yaml",
        advice_client: AdviceClient | None = None,
        clock: Callable[[], datetime.datetime] | None = None,
        cache: SuggestionCache | None = None,
    ) -> None:
        self.db_path = db_path
        self.config = YamlConfig(yaml_path)
        self.settings = self.config.settings()
        clock = clock or datetime.datetime.now
        self.users = UserRepository(db_path)
        self.sessions = SessionRepository(db_path)
        self.muscle_groups = MuscleGroupRepository(db_path)
        self.templates = ExerciseTemplateRepository(db_path)
        self.sets = WorkoutSetRepository(db_path)
        self.workouts = WorkoutRepository(db_path, self.sets)
        self.checkins = CheckinRepository(db_path)
        self.notifications = NotificationRepository(db_path)
        self.payments = PaymentRepository(db_path)
        self.feedback = FeedbackRepository(db_path)
        self.diet_chats = DietChatRepository(db_path)
        self.policy = AccessPolicy(self.users)
        self.auth = AuthService(self.users, self.sessions)
        self.workout_service = WorkoutService(
            self.workouts,
            self.sets,
            self.templates,
            self.muscle_groups,
            self.users,
            clock=clock,
        )
        self.advice = advice_client or AdviceClient(
            self.settings.advice_api_url,
            self.settings.advice_api_key,
            self.settings.advice_model,
            self.settings.advice_timeout,
        )
        self.cache = cache or SuggestionCache(
            capacity=self.settings.cache_capacity,
            ttl=self.settings.cache_ttl_seconds,
        )
        self.ai_workouts = AIWorkoutService(
            self.workouts,
            self.sets,
            self.advice,
            self.cache,
            default_history_days=self.settings.default_history_days,
            weekly_window_days=self.settings.weekly_window_days,
            clock=clock,
        )
        self.app = FastAPI(
            title="Gym API",
            description="REST API for gym members, trainers and workouts",
            version=APP_VERSION,
        )
        self._setup_exception_handlers()
        self._setup_routes()

    def _setup_exception_handlers(self) -> None:
        @self.app.exception_handler(NotFoundError)
        async def not_found(request: Request, exc: NotFoundError):
            return JSONResponse(status_code=404, content={"detail": str(exc)})

        @self.app.exception_handler(ValueError)
        async def bad_request(request: Request, exc: ValueError):
            return JSONResponse(status_code=400, content={"detail": str(exc)})

        @self.app.exception_handler(ForbiddenError)
        async def forbidden(request: Request, exc: ForbiddenError):
            return JSONResponse(status_code=403, content={"detail": str(exc)})

        @self.app.exception_handler(AuthenticationError)
        async def unauthorized(request: Request, exc: AuthenticationError):
            return JSONResponse(
                status_code=401,
                content={"detail": str(exc)},
                headers={"WWW-Authenticate": "Bearer"},
            )

        @self.app.exception_handler(Exception)
        async def unexpected(request: Request, exc: Exception):
            logger.error(
                "unhandled error on %s %s", request.method, request.url.path,
                exc_info=exc,
            )
            return JSONResponse(
                status_code=500, content={"detail": "Internal server error"}
            )

    def _bearer_token(self, authorization: Optional[str]) -> str:
        if not authorization:
            raise AuthenticationError("missing token")
        scheme, _, token = authorization.partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            raise AuthenticationError("invalid authorization header")
        return token.strip()

    def _workouts_response(self, workouts) -> list[dict]:
        return [self.workout_service.workout_response(w) for w in workouts]

    def _setup_routes(self) -> None:
        def current_user(authorization: Optional[str] = Header(None)) -> User:
            return self.auth.resolve(self._bearer_token(authorization))

        auth_router = APIRouter(prefix="/api/auth", tags=["Auth"])
        users_router = APIRouter(prefix="/api/users", tags=["Users"])
        groups_router = APIRouter(prefix="/api/muscle-groups", tags=["Muscle Groups"])
        templates_router = APIRouter(
            prefix="/api/exercise-templates", tags=["Exercise Templates"]
        )
        workouts_router = APIRouter(prefix="/api/workouts", tags=["Workouts"])
        ai_router = APIRouter(prefix="/api/ai-workout", tags=["Suggestions"])
        checkins_router = APIRouter(prefix="/api/checkins", tags=["Check-ins"])
        notifications_router = APIRouter(
            prefix="/api/notifications", tags=["Notifications"]
        )
        payments_router = APIRouter(prefix="/api/payments", tags=["Payments"])
        feedback_router = APIRouter(prefix="/api/feedback", tags=["Feedback"])
        diet_router = APIRouter(prefix="/api/diet-chats", tags=["Diet Chat"])

        @self.app.get(
            "/health",
            summary="Health check",
            description="Verify API and database connectivity.",
        )
        def health():
            self.muscle_groups.fetch_all_groups()
            return {"status": "ok", "version": APP_VERSION}

        # auth ---------------------------------------------------------------

        @auth_router.post("/signup")
        def signup(body: SignupRequest):
            roles = {Role(r.upper()) for r in body.roles} or {Role.MEMBER}
            if Role.ADMIN in roles:
                raise ValueError("admin accounts cannot be created by signup")
            user = self.auth.register(
                body.username,
                body.email,
                body.password,
                roles,
                body.first_name,
                body.last_name,
                body.phone_number,
            )
            return user.to_dict()

        @auth_router.post("/signin")
        def signin(body: SigninRequest):
            token = self.auth.login(body.username, body.password)
            user = self.auth.resolve(token)
            return {"token": token, "token_type": "bearer", "user": user.to_dict()}

        @auth_router.post("/signout")
        def signout(authorization: Optional[str] = Header(None)):
            self.auth.logout(self._bearer_token(authorization))
            return {"status": "signed out"}

        # users --------------------------------------------------------------

        @users_router.get("/me")
        def me(user: User = Depends(current_user)):
            return user.to_dict()

        @users_router.get("/trainers")
        def list_trainers(user: User = Depends(current_user)):
            self.policy.require(user, "list_trainers")
            return [t.to_dict() for t in self.users.fetch_by_role(Role.TRAINER)]

        @users_router.get("/members")
        def list_members(user: User = Depends(current_user)):
            self.policy.require(user, "list_members")
            if user.has_role(Role.ADMIN):
                members = self.users.fetch_by_role(Role.MEMBER)
            else:
                members = self.users.fetch_members_of_trainer(user.id)
            return [m.to_dict() for m in members]

        @users_router.put("/profile")
        def update_profile(body: ProfileUpdate, user: User = Depends(current_user)):
            self.users.update_profile(
                user.id, body.first_name, body.last_name, body.email, body.phone_number
            )
            return self.users.fetch(user.id).to_dict()

        @users_router.put("/password")
        def change_password(body: PasswordChange, user: User = Depends(current_user)):
            self.auth.change_password(user, body.current_password, body.new_password)
            return {"status": "updated"}

        @users_router.put("/member/{member_id}/assign-trainer")
        def assign_trainer(
            member_id: str, trainer_id: str, user: User = Depends(current_user)
        ):
            self.policy.require(user, "manage_users")
            return self.auth.assign_trainer(member_id, trainer_id).to_dict()

        @users_router.put("/{user_id}/activate")
        def activate_user(user_id: str, user: User = Depends(current_user)):
            self.policy.require(user, "manage_users")
            return self.auth.activate(user_id).to_dict()

        @users_router.put("/{user_id}/deactivate")
        def deactivate_user(user_id: str, user: User = Depends(current_user)):
            self.policy.require(user, "manage_users")
            if user_id == user.id:
                raise ValueError("cannot deactivate yourself")
            return self.auth.deactivate(user_id).to_dict()

        @users_router.get("/{user_id}")
        def get_user(user_id: str, user: User = Depends(current_user)):
            self.policy.require(user, "read", user_id)
            return self.users.fetch(user_id).to_dict()

        # muscle groups ------------------------------------------------------

        @groups_router.get("")
        def list_muscle_groups(user: User = Depends(current_user)):
            return [g.to_dict() for g in self.muscle_groups.fetch_all_groups()]

        @groups_router.post("")
        def add_muscle_group(body: MuscleGroupRequest, user: User = Depends(current_user)):
            self.policy.require(user, "manage_templates")
            gid = self.muscle_groups.add(body.name, body.description)
            return self.muscle_groups.fetch(gid).to_dict()

        # exercise templates -------------------------------------------------

        @templates_router.get("")
        def list_templates(user: User = Depends(current_user)):
            return [t.to_dict() for t in self.templates.fetch_all_templates()]

        @templates_router.post("")
        def add_template(body: TemplateRequest, user: User = Depends(current_user)):
            self.policy.require(user, "manage_templates")
            return self._add_template(body)

        @templates_router.post("/bulk")
        def add_templates_bulk(
            body: list[TemplateRequest], user: User = Depends(current_user)
        ):
            self.policy.require(user, "manage_templates")
            names = [t.name for t in body]
            if len(set(names)) != len(names):
                raise ValueError("duplicate template names in request")
            return [self._add_template(t) for t in body]

        @templates_router.get("/by-muscle-group/{group_id}")
        def templates_by_group(group_id: str, user: User = Depends(current_user)):
            self.muscle_groups.fetch(group_id)
            return [t.to_dict() for t in self.templates.fetch_all_templates(group_id)]

        @templates_router.get("/{template_id}")
        def get_template(template_id: str, user: User = Depends(current_user)):
            return self.templates.fetch(template_id).to_dict()

        @templates_router.put("/{template_id}")
        def update_template(
            template_id: str, body: TemplateUpdate, user: User = Depends(current_user)
        ):
            self.policy.require(user, "manage_templates")
            for gid in (body.primary_muscle_group_id, body.secondary_muscle_group_id):
                if gid is not None:
                    self.muscle_groups.fetch(gid)
            self.templates.update(
                template_id,
                body.name,
                body.primary_muscle_group_id,
                body.secondary_muscle_group_id,
                body.description,
                body.requires_weight,
            )
            return self.templates.fetch(template_id).to_dict()

        @templates_router.delete("/{template_id}")
        def delete_template(template_id: str, user: User = Depends(current_user)):
            self.policy.require(user, "manage_templates")
            self.templates.delete(template_id)
            return {"status": "deleted"}

        # workouts -----------------------------------------------------------

        @workouts_router.get("")
        def list_workouts(
            member_id: Optional[str] = None,
            completed: Optional[bool] = None,
            user: User = Depends(current_user),
        ):
            owner = member_id or user.id
            self.policy.require(user, "read", owner)
            if completed is None:
                workouts = self.workout_service.find_by_member(owner)
            elif completed:
                workouts = self.workout_service.find_completed(owner)
            else:
                workouts = self.workout_service.find_incomplete(owner)
            return self._workouts_response(workouts)

        @workouts_router.post("")
        def create_workout(body: WorkoutRequest, user: User = Depends(current_user)):
            owner = body.member_id or user.id
            self.policy.require(user, "write", owner)
            trainer_id = body.trainer_id
            if trainer_id is None and owner != user.id and user.has_role(Role.TRAINER):
                trainer_id = user.id
            workout = self.workout_service.create_workout(
                owner,
                body.name,
                body.scheduled_date,
                trainer_id,
                body.description,
                body.notes,
                body.target_muscle_group_ids,
                _set_specs(body.sets),
            )
            return self.workout_service.workout_response(workout)

        @workouts_router.get("/by-date-range")
        def workouts_by_date_range(
            start: str,
            end: str,
            member_id: Optional[str] = None,
            user: User = Depends(current_user),
        ):
            owner = member_id or user.id
            self.policy.require(user, "read", owner)
            return self._workouts_response(
                self.workout_service.find_by_member_and_date_range(owner, start, end)
            )

        @workouts_router.get("/by-muscle-group/{group_id}")
        def workouts_by_muscle_group(
            group_id: str,
            member_id: Optional[str] = None,
            user: User = Depends(current_user),
        ):
            owner = member_id or user.id
            self.policy.require(user, "read", owner)
            return self._workouts_response(
                self.workout_service.find_by_member_and_muscle_group(owner, group_id)
            )

        def owned_workout(workout_id: str, user: User, action: str):
            workout = self.workout_service.find_by_id(workout_id)
            self.policy.require(user, action, workout.member_id)
            return workout

        @workouts_router.get("/{workout_id}")
        def get_workout(workout_id: str, user: User = Depends(current_user)):
            workout = owned_workout(workout_id, user, "read")
            return self.workout_service.workout_response(workout)

        @workouts_router.put("/{workout_id}")
        def update_workout(
            workout_id: str, body: WorkoutUpdate, user: User = Depends(current_user)
        ):
            owned_workout(workout_id, user, "write")
            workout = self.workout_service.update_workout(
                workout_id,
                body.name,
                body.scheduled_date,
                body.trainer_id,
                body.description,
                body.notes,
                body.target_muscle_group_ids,
                _set_specs(body.sets) if body.sets is not None else None,
            )
            return self.workout_service.workout_response(workout)

        @workouts_router.delete("/{workout_id}")
        def delete_workout(workout_id: str, user: User = Depends(current_user)):
            owned_workout(workout_id, user, "write")
            self.workout_service.delete_workout(workout_id)
            return {"status": "deleted"}

        @workouts_router.post("/{workout_id}/copy")
        def copy_workout(
            workout_id: str, body: CopyRequest, user: User = Depends(current_user)
        ):
            owned_workout(workout_id, user, "write")
            workout = self.workout_service.copy_workout(workout_id, body.new_date)
            return self.workout_service.workout_response(workout)

        @workouts_router.post("/{workout_id}/exercises")
        def add_exercise(
            workout_id: str,
            body: ExerciseSetsRequest,
            user: User = Depends(current_user),
        ):
            owned_workout(workout_id, user, "write")
            if not body.exercise_id:
                raise ValueError("exercise_id is required")
            workout = self.workout_service.add_exercise(
                workout_id, body.exercise_id, _set_specs(body.sets, body.exercise_id)
            )
            return self.workout_service.workout_response(workout)

        @workouts_router.put("/{workout_id}/exercises/{exercise_id}")
        def update_exercise(
            workout_id: str,
            exercise_id: str,
            body: ExerciseSetsRequest,
            user: User = Depends(current_user),
        ):
            owned_workout(workout_id, user, "write")
            workout = self.workout_service.update_exercise(
                workout_id, exercise_id, _set_specs(body.sets, exercise_id)
            )
            return self.workout_service.workout_response(workout)

        @workouts_router.delete("/{workout_id}/exercises/{exercise_id}")
        def delete_exercise(
            workout_id: str, exercise_id: str, user: User = Depends(current_user)
        ):
            owned_workout(workout_id, user, "write")
            workout = self.workout_service.delete_exercise(workout_id, exercise_id)
            return self.workout_service.workout_response(workout)

        @workouts_router.post("/{workout_id}/sets/{set_id}/complete")
        def complete_set(
            workout_id: str, set_id: str, user: User = Depends(current_user)
        ):
            owned_workout(workout_id, user, "write")
            workout = self.workout_service.complete_set(workout_id, set_id)
            return self.workout_service.workout_response(workout)

        @workouts_router.post("/{workout_id}/sets/{set_id}/uncomplete")
        def uncomplete_set(
            workout_id: str, set_id: str, user: User = Depends(current_user)
        ):
            owned_workout(workout_id, user, "write")
            workout = self.workout_service.uncomplete_set(workout_id, set_id)
            return self.workout_service.workout_response(workout)

        @workouts_router.post("/{workout_id}/complete")
        def complete_workout(workout_id: str, user: User = Depends(current_user)):
            owned_workout(workout_id, user, "write")
            workout = self.workout_service.complete_workout(workout_id)
            return self.workout_service.workout_response(workout)

        # suggestions --------------------------------------------------------

        @ai_router.get("/suggest/{exercise_id}")
        def suggest_parameters(
            exercise_id: str,
            history_days: Optional[int] = None,
            user: User = Depends(current_user),
        ):
            result = self.ai_workouts.suggested_parameters(
                user.id, exercise_id, history_days
            )
            return result.to_dict()

        @ai_router.get("/progressive-overload/{exercise_id}")
        def progressive_overload(exercise_id: str, user: User = Depends(current_user)):
            return self.ai_workouts.progressive_overload(user.id, exercise_id).to_dict()

        @ai_router.get("/weekly-suggestions")
        def weekly_suggestions(user: User = Depends(current_user)):
            return self.ai_workouts.weekly_suggestions(user.id)

        # check-ins ----------------------------------------------------------

        @checkins_router.post("")
        def checkin(body: CheckinRequest, user: User = Depends(current_user)):
            target = body.user_id or user.id
            if target != user.id:
                self.policy.require(user, "manage_users")
                self.users.fetch(target)
            return self.checkins.add(target)

        @checkins_router.get("/recent")
        def recent_checkins(
            limit: int = 50,
            user_id: Optional[str] = None,
            user: User = Depends(current_user),
        ):
            if user_id is not None:
                self.policy.require(user, "read", user_id)
                scope = [user_id]
            else:
                scope = self.policy.visible_member_ids(user)
            return self.checkins.fetch_recent(limit, scope)

        @checkins_router.get("/between")
        def checkins_between(
            start: str,
            end: str,
            user_id: Optional[str] = None,
            user: User = Depends(current_user),
        ):
            if user_id is not None:
                self.policy.require(user, "read", user_id)
                scope = [user_id]
            else:
                scope = self.policy.visible_member_ids(user)
            start_dt = parse_schedule(start)
            end_dt = parse_schedule(end, end_of_day=True)
            if start_dt is None or end_dt is None or start_dt > end_dt:
                raise ValueError("invalid date range")
            return self.checkins.fetch_between(
                format_timestamp(start_dt), format_timestamp(end_dt), scope
            )

        # notifications ------------------------------------------------------

        @notifications_router.get("/workout-suggestions")
        def pending_suggestions(user: User = Depends(current_user)):
            return self.notifications.fetch_pending(user.id)

        @notifications_router.post("/workout-suggestions")
        def push_suggestion(
            body: SuggestionNotificationRequest, user: User = Depends(current_user)
        ):
            self.policy.require(user, "push_suggestion")
            self.policy.require(user, "write", body.member_id)
            self.users.fetch(body.member_id)
            data = dict(body.data)
            data.setdefault("trainer_id", user.id)
            nid = self.notifications.add(body.member_id, body.message, data)
            logger.info("suggestion %s sent to %s", nid, body.member_id)
            return {"id": nid}

        @notifications_router.post("/suggestions/{nid}/seen")
        def mark_suggestion_seen(nid: str, user: User = Depends(current_user)):
            owner = self.notifications.fetch_owner(nid)
            if owner is None:
                raise NotFoundError("notification", nid)
            if owner != user.id:
                raise ForbiddenError("not allowed to update this notification")
            self.notifications.mark_seen(nid)
            return {"status": "seen"}

        # payments -----------------------------------------------------------

        @payments_router.get("")
        def list_payments(
            user_id: Optional[str] = None, user: User = Depends(current_user)
        ):
            if user.has_role(Role.ADMIN):
                return self.payments.fetch_all_payments(user_id)
            if user_id is not None and user_id != user.id:
                raise ForbiddenError("not allowed to read payments")
            return self.payments.fetch_all_payments(user.id)

        @payments_router.post("")
        def add_payment(body: PaymentRequest, user: User = Depends(current_user)):
            self.policy.require(user, "manage_payments")
            self.users.fetch(body.user_id)
            return self.payments.add(body.user_id, body.months, body.amount, body.paid_at)

        # feedback -----------------------------------------------------------

        @feedback_router.get("")
        def list_feedback(user: User = Depends(current_user)):
            return self.feedback.fetch_for_members(self.policy.visible_member_ids(user))

        @feedback_router.post("")
        def add_feedback(body: FeedbackRequest, user: User = Depends(current_user)):
            fid = self.feedback.add(user.id, body.title, body.content)
            return self.feedback.fetch(fid)

        @feedback_router.post("/{feedback_id}/responses")
        def respond_feedback(
            feedback_id: str,
            body: FeedbackResponseRequest,
            user: User = Depends(current_user),
        ):
            entry = self.feedback.fetch(feedback_id)
            self.policy.require(user, "respond_feedback")
            self.policy.require(user, "read", entry["member_id"])
            self.feedback.add_response(feedback_id, user.id, body.content)
            return self.feedback.fetch(feedback_id)

        # diet chats ---------------------------------------------------------

        @diet_router.get("")
        def list_diet_chats(user: User = Depends(current_user)):
            return self.diet_chats.fetch_for_members(
                self.policy.visible_member_ids(user)
            )

        @diet_router.post("")
        def open_diet_chat(body: DietChatRequest, user: User = Depends(current_user)):
            cid = self.diet_chats.create(user.id, body.title, body.initial_query)
            return self.diet_chats.fetch(cid)

        @diet_router.post("/{chat_id}/messages")
        def post_diet_message(
            chat_id: str, body: DietMessageRequest, user: User = Depends(current_user)
        ):
            chat = self.diet_chats.fetch(chat_id)
            self.policy.require(user, "read", chat["member_id"])
            self.diet_chats.add_message(
                chat_id, user.id, _primary_role(user), body.content
            )
            return self.diet_chats.fetch(chat_id)

        for router in (
            auth_router,
            users_router,
            groups_router,
            templates_router,
            workouts_router,
            ai_router,
            checkins_router,
            notifications_router,
            payments_router,
            feedback_router,
            diet_router,
        ):
            self.app.include_router(router)

    def _add_template(self, body: TemplateRequest) -> dict:
        for gid in (body.primary_muscle_group_id, body.secondary_muscle_group_id):
            if gid is not None:
                self.muscle_groups.fetch(gid)
        tid = self.templates.add(
            body.name,
            body.primary_muscle_group_id,
            body.secondary_muscle_group_id,
            body.description,
            body.requires_weight,
        )
        return self.templates.fetch(tid).to_dict()


api = GymAPI(db_path=os.environ.get("GYM_DB", "gym.db"))
app = api.app

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app)
