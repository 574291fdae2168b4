import sqlite3
import datetime
import json
import uuid
from contextlib import contextmanager
from typing import List, Tuple, Optional, Iterable

from algorithms.math_tools import MathTools
from errors import NotFoundError
from models import (
    ExerciseTemplate,
    MuscleGroup,
    Role,
    User,
    Workout,
    WorkoutSet,
    format_timestamp,
    parse_schedule,
    parse_timestamp,
)


def new_id() -> str:
    return uuid.uuid4().hex


def now_timestamp() -> str:
    return datetime.datetime.now().isoformat(timespec="seconds")


class Database:
    """Provides SQLite connection management and schema initialization."""

    _TABLE_DEFINITIONS = {
        "users": (
            """CREATE TABLE users (
                    id TEXT PRIMARY KEY,
                    username TEXT NOT NULL UNIQUE,
                    email TEXT NOT NULL UNIQUE,
                    password_hash TEXT NOT NULL,
                    first_name TEXT,
                    last_name TEXT,
                    phone_number TEXT,
                    roles TEXT NOT NULL DEFAULT 'MEMBER',
                    active INTEGER NOT NULL DEFAULT 1,
                    assigned_trainer_id TEXT,
                    created_at TEXT NOT NULL
                );""",
            [
                "id",
                "username",
                "email",
                "password_hash",
                "first_name",
                "last_name",
                "phone_number",
                "roles",
                "active",
                "assigned_trainer_id",
                "created_at",
            ],
        ),
        "sessions": (
            """CREATE TABLE sessions (
                    token TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
                );""",
            ["token", "user_id", "created_at"],
        ),
        "muscle_groups": (
            """CREATE TABLE muscle_groups (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL UNIQUE,
                    description TEXT
                );""",
            ["id", "name", "description"],
        ),
        "exercise_templates": (
            """CREATE TABLE exercise_templates (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL UNIQUE,
                    description TEXT,
                    primary_muscle_group_id TEXT,
                    secondary_muscle_group_id TEXT,
                    requires_weight INTEGER NOT NULL DEFAULT 1
                );""",
            [
                "id",
                "name",
                "description",
                "primary_muscle_group_id",
                "secondary_muscle_group_id",
                "requires_weight",
            ],
        ),
        "workouts": (
            """CREATE TABLE workouts (
                    id TEXT PRIMARY KEY,
                    member_id TEXT NOT NULL,
                    trainer_id TEXT,
                    name TEXT NOT NULL,
                    description TEXT,
                    scheduled_date TEXT,
                    completed_date TEXT,
                    completed INTEGER NOT NULL DEFAULT 0,
                    notes TEXT
                );""",
            [
                "id",
                "member_id",
                "trainer_id",
                "name",
                "description",
                "scheduled_date",
                "completed_date",
                "completed",
                "notes",
            ],
        ),
        "workout_muscle_groups": (
            """CREATE TABLE workout_muscle_groups (
                    workout_id TEXT NOT NULL,
                    muscle_group_id TEXT NOT NULL,
                    PRIMARY KEY (workout_id, muscle_group_id),
                    FOREIGN KEY(workout_id) REFERENCES workouts(id) ON DELETE CASCADE
                );""",
            ["workout_id", "muscle_group_id"],
        ),
        "workout_sets": (
            """CREATE TABLE workout_sets (
                    id TEXT PRIMARY KEY,
                    workout_id TEXT NOT NULL,
                    exercise_id TEXT,
                    reps INTEGER NOT NULL,
                    weight REAL,
                    notes TEXT,
                    completed INTEGER NOT NULL DEFAULT 0,
                    volume REAL NOT NULL DEFAULT 0,
                    position INTEGER NOT NULL,
                    FOREIGN KEY(workout_id) REFERENCES workouts(id) ON DELETE CASCADE
                );""",
            [
                "id",
                "workout_id",
                "exercise_id",
                "reps",
                "weight",
                "notes",
                "completed",
                "volume",
                "position",
            ],
        ),
        "checkins": (
            """CREATE TABLE checkins (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    occurred_at TEXT NOT NULL
                );""",
            ["id", "user_id", "occurred_at"],
        ),
        "notifications": (
            """CREATE TABLE notifications (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    message TEXT NOT NULL,
                    data TEXT NOT NULL DEFAULT '{}',
                    created_at TEXT NOT NULL,
                    seen INTEGER NOT NULL DEFAULT 0,
                    type TEXT NOT NULL
                );""",
            ["id", "user_id", "message", "data", "created_at", "seen", "type"],
        ),
        "payments": (
            """CREATE TABLE payments (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    months INTEGER NOT NULL,
                    amount REAL NOT NULL,
                    paid_at TEXT NOT NULL
                );""",
            ["id", "user_id", "months", "amount", "paid_at"],
        ),
        "feedback": (
            """CREATE TABLE feedback (
                    id TEXT PRIMARY KEY,
                    member_id TEXT NOT NULL,
                    title TEXT NOT NULL,
                    content TEXT NOT NULL,
                    created_at TEXT NOT NULL
                );""",
            ["id", "member_id", "title", "content", "created_at"],
        ),
        "feedback_responses": (
            """CREATE TABLE feedback_responses (
                    id TEXT PRIMARY KEY,
                    feedback_id TEXT NOT NULL,
                    responder_id TEXT NOT NULL,
                    content TEXT NOT NULL,
                    response_time TEXT NOT NULL,
                    FOREIGN KEY(feedback_id) REFERENCES feedback(id) ON DELETE CASCADE
                );""",
            ["id", "feedback_id", "responder_id", "content", "response_time"],
        ),
        "diet_chats": (
            """CREATE TABLE diet_chats (
                    id TEXT PRIMARY KEY,
                    member_id TEXT NOT NULL,
                    title TEXT NOT NULL,
                    initial_query TEXT NOT NULL,
                    created_at TEXT NOT NULL
                );""",
            ["id", "member_id", "title", "initial_query", "created_at"],
        ),
        "diet_chat_messages": (
            """CREATE TABLE diet_chat_messages (
                    id TEXT PRIMARY KEY,
                    chat_id TEXT NOT NULL,
                    sender_id TEXT NOT NULL,
                    sender_role TEXT NOT NULL,
                    content TEXT NOT NULL,
                    timestamp TEXT NOT NULL,
                    edited INTEGER NOT NULL DEFAULT 0,
                    FOREIGN KEY(chat_id) REFERENCES diet_chats(id) ON DELETE CASCADE
                );""",
            ["id", "chat_id", "sender_id", "sender_role", "content", "timestamp", "edited"],
        ),
    }

    def __init__(self, db_path: str = "gym.db") -> None:
        self._db_path = db_path
        self._ensure_schema()

    @contextmanager
    def _connection(self):
        connection = sqlite3.connect(self._db_path)
        connection.execute("PRAGMA foreign_keys=on;")
        try:
            yield connection
            connection.commit()
        finally:
            connection.close()

    def _ensure_schema(self) -> None:
        with self._connection() as conn:
            conn.execute("PRAGMA foreign_keys=off;")
            # rebuilt tables must keep child foreign keys pointing at the new table
            conn.execute("PRAGMA legacy_alter_table=on;")
            for table, (sql, columns) in self._TABLE_DEFINITIONS.items():
                self._ensure_table(conn, table, sql, columns)
            conn.execute("PRAGMA foreign_keys=on;")

    def _ensure_table(
        self, conn: sqlite3.Connection, table: str, sql: str, columns: List[str]
    ) -> None:
        cur = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?;", (table,)
        )
        if cur.fetchone() is None:
            conn.execute(sql)
            return

        cur = conn.execute(f"PRAGMA table_info({table});")
        existing_cols = [row[1] for row in cur.fetchall()]
        if existing_cols == columns:
            return

        conn.execute(f"DROP TABLE IF EXISTS {table}_old;")
        conn.execute(f"ALTER TABLE {table} RENAME TO {table}_old;")
        conn.execute(sql)
        common = [c for c in existing_cols if c in columns]
        if common:
            cols = ", ".join(common)
            conn.execute(f"INSERT INTO {table} ({cols}) SELECT {cols} FROM {table}_old;")
        conn.execute(f"DROP TABLE {table}_old;")


class BaseRepository(Database):
    """Base repository providing helper methods."""

    def execute(self, query: str, params: Tuple = ()) -> int:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.rowcount

    def execute_many(self, query: str, rows: Iterable[Tuple]) -> None:
        with self._connection() as conn:
            conn.executemany(query, list(rows))

    def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.fetchall()

    def _exists(self, table: str, row_id: str) -> bool:
        rows = self.fetch_all(f"SELECT 1 FROM {table} WHERE id = ?;", (row_id,))
        return bool(rows)


class UserRepository(BaseRepository):
    """Repository for user accounts and role assignments."""

    _COLUMNS = (
        "id, username, email, password_hash, first_name, last_name, "
        "phone_number, roles, active, assigned_trainer_id"
    )

    @staticmethod
    def _row_to_user(row: Tuple) -> User:
        (
            uid,
            username,
            email,
            password_hash,
            first_name,
            last_name,
            phone,
            roles,
            active,
            trainer_id,
        ) = row
        return User(
            id=uid,
            username=username,
            email=email,
            password_hash=password_hash,
            first_name=first_name,
            last_name=last_name,
            phone_number=phone,
            roles={Role(r) for r in roles.split("|") if r},
            active=bool(active),
            assigned_trainer_id=trainer_id,
        )

    def create(
        self,
        username: str,
        email: str,
        password_hash: str,
        roles: Iterable[Role],
        active: bool = True,
        first_name: str | None = None,
        last_name: str | None = None,
        phone_number: str | None = None,
    ) -> str:
        if self.exists_username(username):
            raise ValueError("Username is already taken")
        if self.exists_email(email):
            raise ValueError("Email is already in use")
        uid = new_id()
        self.execute(
            "INSERT INTO users (id, username, email, password_hash, first_name, last_name, phone_number, roles, active, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?);",
            (
                uid,
                username,
                email,
                password_hash,
                first_name,
                last_name,
                phone_number,
                "|".join(sorted(Role(r).value for r in roles)),
                int(active),
                now_timestamp(),
            ),
        )
        return uid

    def exists_username(self, username: str) -> bool:
        return bool(
            self.fetch_all("SELECT 1 FROM users WHERE username = ?;", (username,))
        )

    def exists_email(self, email: str) -> bool:
        return bool(self.fetch_all("SELECT 1 FROM users WHERE email = ?;", (email,)))

    def fetch(self, user_id: str) -> User:
        rows = self.fetch_all(
            f"SELECT {self._COLUMNS} FROM users WHERE id = ?;", (user_id,)
        )
        if not rows:
            raise NotFoundError("user", user_id)
        return self._row_to_user(rows[0])

    def fetch_by_username(self, username: str) -> Optional[User]:
        rows = self.fetch_all(
            f"SELECT {self._COLUMNS} FROM users WHERE username = ?;", (username,)
        )
        return self._row_to_user(rows[0]) if rows else None

    def fetch_by_role(self, role: Role) -> list[User]:
        rows = self.fetch_all(
            f"SELECT {self._COLUMNS} FROM users WHERE '|' || roles || '|' LIKE ? ORDER BY username;",
            (f"%|{role.value}|%",),
        )
        return [self._row_to_user(r) for r in rows]

    def fetch_members_of_trainer(self, trainer_id: str) -> list[User]:
        rows = self.fetch_all(
            f"SELECT {self._COLUMNS} FROM users WHERE assigned_trainer_id = ? ORDER BY username;",
            (trainer_id,),
        )
        return [self._row_to_user(r) for r in rows]

    def set_active(self, user_id: str, active: bool) -> None:
        if not self._exists("users", user_id):
            raise NotFoundError("user", user_id)
        self.execute(
            "UPDATE users SET active = ? WHERE id = ?;", (int(active), user_id)
        )

    def set_trainer(self, member_id: str, trainer_id: str | None) -> None:
        self.execute(
            "UPDATE users SET assigned_trainer_id = ? WHERE id = ?;",
            (trainer_id, member_id),
        )

    def update_profile(
        self,
        user_id: str,
        first_name: str | None = None,
        last_name: str | None = None,
        email: str | None = None,
        phone_number: str | None = None,
    ) -> None:
        if email is not None:
            rows = self.fetch_all(
                "SELECT id FROM users WHERE email = ? AND id != ?;", (email, user_id)
            )
            if rows:
                raise ValueError("Email is already in use")
        for column, value in (
            ("first_name", first_name),
            ("last_name", last_name),
            ("email", email),
            ("phone_number", phone_number),
        ):
            if value is not None:
                self.execute(
                    f"UPDATE users SET {column} = ? WHERE id = ?;", (value, user_id)
                )

    def set_password_hash(self, user_id: str, password_hash: str) -> None:
        self.execute(
            "UPDATE users SET password_hash = ? WHERE id = ?;",
            (password_hash, user_id),
        )


class SessionRepository(BaseRepository):
    """Repository for opaque bearer tokens."""

    def add(self, token: str, user_id: str) -> None:
        self.execute(
            "INSERT INTO sessions (token, user_id, created_at) VALUES (?, ?, ?);",
            (token, user_id, now_timestamp()),
        )

    def fetch_user_id(self, token: str) -> Optional[str]:
        rows = self.fetch_all("SELECT user_id FROM sessions WHERE token = ?;", (token,))
        return rows[0][0] if rows else None

    def delete(self, token: str) -> None:
        self.execute("DELETE FROM sessions WHERE token = ?;", (token,))

    def delete_for_user(self, user_id: str) -> None:
        self.execute("DELETE FROM sessions WHERE user_id = ?;", (user_id,))


class MuscleGroupRepository(BaseRepository):
    """Repository for muscle groups."""

    def add(self, name: str, description: str | None = None) -> str:
        if self.fetch_by_name(name) is not None:
            raise ValueError("muscle group exists")
        mid = new_id()
        self.execute(
            "INSERT INTO muscle_groups (id, name, description) VALUES (?, ?, ?);",
            (mid, name, description),
        )
        return mid

    def ensure(self, name: str, description: str | None = None) -> str:
        existing = self.fetch_by_name(name)
        if existing is not None:
            return existing.id
        return self.add(name, description)

    def fetch(self, group_id: str) -> MuscleGroup:
        rows = super().fetch_all(
            "SELECT id, name, description FROM muscle_groups WHERE id = ?;",
            (group_id,),
        )
        if not rows:
            raise NotFoundError("muscle group", group_id)
        return MuscleGroup(*rows[0])

    def fetch_by_name(self, name: str) -> Optional[MuscleGroup]:
        rows = super().fetch_all(
            "SELECT id, name, description FROM muscle_groups WHERE name = ?;",
            (name,),
        )
        return MuscleGroup(*rows[0]) if rows else None

    def fetch_all_groups(self) -> list[MuscleGroup]:
        rows = super().fetch_all(
            "SELECT id, name, description FROM muscle_groups ORDER BY name;"
        )
        return [MuscleGroup(*r) for r in rows]


class ExerciseTemplateRepository(BaseRepository):
    """Repository for exercise templates."""

    _COLUMNS = (
        "id, name, primary_muscle_group_id, secondary_muscle_group_id, "
        "description, requires_weight"
    )

    @staticmethod
    def _row_to_template(row: Tuple) -> ExerciseTemplate:
        tid, name, primary, secondary, description, requires_weight = row
        return ExerciseTemplate(
            tid, name, primary, secondary, description, bool(requires_weight)
        )

    def add(
        self,
        name: str,
        primary_muscle_group_id: str | None,
        secondary_muscle_group_id: str | None = None,
        description: str | None = None,
        requires_weight: bool = True,
    ) -> str:
        if self.fetch_by_name(name) is not None:
            raise ValueError("exercise template exists")
        tid = new_id()
        self.execute(
            "INSERT INTO exercise_templates (id, name, description, primary_muscle_group_id, secondary_muscle_group_id, requires_weight) "
            "VALUES (?, ?, ?, ?, ?, ?);",
            (
                tid,
                name,
                description,
                primary_muscle_group_id,
                secondary_muscle_group_id,
                int(requires_weight),
            ),
        )
        return tid

    def update(
        self,
        template_id: str,
        name: str | None = None,
        primary_muscle_group_id: str | None = None,
        secondary_muscle_group_id: str | None = None,
        description: str | None = None,
        requires_weight: bool | None = None,
    ) -> None:
        current = self.fetch(template_id)
        if name is not None and name != current.name:
            if self.fetch_by_name(name) is not None:
                raise ValueError("exercise template exists")
        self.execute(
            "UPDATE exercise_templates SET name = ?, description = ?, primary_muscle_group_id = ?, "
            "secondary_muscle_group_id = ?, requires_weight = ? WHERE id = ?;",
            (
                name if name is not None else current.name,
                description if description is not None else current.description,
                primary_muscle_group_id
                if primary_muscle_group_id is not None
                else current.primary_muscle_group_id,
                secondary_muscle_group_id
                if secondary_muscle_group_id is not None
                else current.secondary_muscle_group_id,
                int(requires_weight if requires_weight is not None else current.requires_weight),
                template_id,
            ),
        )

    def delete(self, template_id: str) -> None:
        if not self._exists("exercise_templates", template_id):
            raise NotFoundError("exercise template", template_id)
        self.execute("DELETE FROM exercise_templates WHERE id = ?;", (template_id,))

    def fetch(self, template_id: str) -> ExerciseTemplate:
        rows = super().fetch_all(
            f"SELECT {self._COLUMNS} FROM exercise_templates WHERE id = ?;",
            (template_id,),
        )
        if not rows:
            raise NotFoundError("exercise template", template_id)
        return self._row_to_template(rows[0])

    def fetch_by_name(self, name: str) -> Optional[ExerciseTemplate]:
        rows = super().fetch_all(
            f"SELECT {self._COLUMNS} FROM exercise_templates WHERE name = ?;",
            (name,),
        )
        return self._row_to_template(rows[0]) if rows else None

    def fetch_all_templates(self, muscle_group_id: str | None = None) -> list[ExerciseTemplate]:
        query = f"SELECT {self._COLUMNS} FROM exercise_templates"
        params: tuple = ()
        if muscle_group_id is not None:
            query += " WHERE primary_muscle_group_id = ? OR secondary_muscle_group_id = ?"
            params = (muscle_group_id, muscle_group_id)
        query += " ORDER BY name;"
        return [self._row_to_template(r) for r in super().fetch_all(query, params)]

    def count(self) -> int:
        rows = super().fetch_all("SELECT COUNT(*) FROM exercise_templates;")
        return int(rows[0][0]) if rows else 0


class WorkoutSetRepository(BaseRepository):
    """Repository for sets owned by a workout."""

    _SELECT = (
        "SELECT s.id, s.workout_id, s.exercise_id, t.name, s.reps, s.weight, s.notes, s.completed, s.position "
        "FROM workout_sets s LEFT JOIN exercise_templates t ON t.id = s.exercise_id"
    )

    @staticmethod
    def _row_to_set(row: Tuple) -> WorkoutSet:
        sid, wid, ex_id, ex_name, reps, weight, notes, completed, position = row
        return WorkoutSet(
            id=sid,
            workout_id=wid,
            exercise_id=ex_id,
            exercise_name=ex_name,
            reps=int(reps),
            weight=float(weight) if weight is not None else None,
            notes=notes,
            completed=bool(completed),
            position=int(position),
        )

    def add(
        self,
        workout_id: str,
        exercise_id: str,
        reps: int,
        weight: Optional[float] = None,
        notes: Optional[str] = None,
        completed: bool = False,
    ) -> str:
        if reps <= 0:
            raise ValueError("reps must be positive")
        if weight is not None and weight < 0:
            raise ValueError("weight must be non-negative")
        rows = self.fetch_all(
            "SELECT COALESCE(MAX(position), 0) + 1 FROM workout_sets WHERE workout_id = ?;",
            (workout_id,),
        )
        position = int(rows[0][0]) if rows else 1
        sid = new_id()
        volume = MathTools.set_volume(reps, weight)
        self.execute(
            "INSERT INTO workout_sets (id, workout_id, exercise_id, reps, weight, notes, completed, volume, position) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?);",
            (sid, workout_id, exercise_id, reps, weight, notes, int(completed), volume, position),
        )
        return sid

    def fetch_for_workout(self, workout_id: str) -> list[WorkoutSet]:
        rows = self.fetch_all(
            self._SELECT + " WHERE s.workout_id = ? ORDER BY s.position;",
            (workout_id,),
        )
        return [self._row_to_set(r) for r in rows]

    def set_completed(self, set_id: str, completed: bool) -> None:
        self.execute(
            "UPDATE workout_sets SET completed = ? WHERE id = ?;",
            (int(completed), set_id),
        )

    def complete_all(self, workout_id: str) -> None:
        self.execute(
            "UPDATE workout_sets SET completed = 1 WHERE workout_id = ?;",
            (workout_id,),
        )

    def delete_for_workout(self, workout_id: str) -> None:
        self.execute("DELETE FROM workout_sets WHERE workout_id = ?;", (workout_id,))

    def fetch_history(
        self,
        member_id: str,
        exercise_id: str,
        start: str | None = None,
        end: str | None = None,
        limit: int | None = None,
    ) -> list[Tuple[int, Optional[float], str]]:
        """Return ``(reps, weight, scheduled_date)`` rows newest first.

        Only sets belonging to workouts with a scheduled date are returned.
        """
        query = (
            "SELECT s.reps, s.weight, w.scheduled_date FROM workout_sets s "
            "JOIN workouts w ON w.id = s.workout_id "
            "WHERE w.member_id = ? AND s.exercise_id = ? AND w.scheduled_date IS NOT NULL"
        )
        params: list = [member_id, exercise_id]
        if start is not None:
            query += " AND w.scheduled_date >= ?"
            params.append(start)
        if end is not None:
            query += " AND w.scheduled_date <= ?"
            params.append(end)
        query += " ORDER BY w.scheduled_date DESC, s.position"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)
        query += ";"
        rows = self.fetch_all(query, tuple(params))
        return [
            (int(r), float(w) if w is not None else None, d) for r, w, d in rows
        ]


class WorkoutRepository(BaseRepository):
    """Repository for workout table operations."""

    _COLUMNS = (
        "id, member_id, trainer_id, name, description, scheduled_date, "
        "completed_date, completed, notes"
    )

    def __init__(
        self, db_path: str = "gym.db", sets: Optional[WorkoutSetRepository] = None
    ) -> None:
        super().__init__(db_path)
        self.sets = sets or WorkoutSetRepository(db_path)

    def _row_to_workout(self, row: Tuple) -> Workout:
        (
            wid,
            member_id,
            trainer_id,
            name,
            description,
            scheduled,
            completed_date,
            completed,
            notes,
        ) = row
        groups = super().fetch_all(
            "SELECT muscle_group_id FROM workout_muscle_groups WHERE workout_id = ? ORDER BY rowid;",
            (wid,),
        )
        return Workout(
            id=wid,
            member_id=member_id,
            trainer_id=trainer_id,
            name=name,
            description=description,
            scheduled_date=parse_timestamp(scheduled),
            completed_date=parse_timestamp(completed_date),
            completed=bool(completed),
            notes=notes,
            target_muscle_group_ids=[g[0] for g in groups],
            sets=self.sets.fetch_for_workout(wid),
        )

    def create(
        self,
        member_id: str,
        name: str,
        scheduled_date: Optional[datetime.datetime] = None,
        trainer_id: str | None = None,
        description: str | None = None,
        notes: str | None = None,
    ) -> str:
        wid = new_id()
        self.execute(
            "INSERT INTO workouts (id, member_id, trainer_id, name, description, scheduled_date, notes) "
            "VALUES (?, ?, ?, ?, ?, ?, ?);",
            (
                wid,
                member_id,
                trainer_id,
                name,
                description,
                format_timestamp(scheduled_date),
                notes,
            ),
        )
        return wid

    def update(
        self,
        workout_id: str,
        name: str,
        description: str | None,
        scheduled_date: Optional[datetime.datetime],
        notes: str | None,
        trainer_id: str | None,
    ) -> None:
        self.execute(
            "UPDATE workouts SET name = ?, description = ?, scheduled_date = ?, notes = ?, trainer_id = ? WHERE id = ?;",
            (
                name,
                description,
                format_timestamp(scheduled_date),
                notes,
                trainer_id,
                workout_id,
            ),
        )

    def set_completed(
        self,
        workout_id: str,
        completed: bool,
        completed_date: Optional[datetime.datetime],
    ) -> None:
        self.execute(
            "UPDATE workouts SET completed = ?, completed_date = ? WHERE id = ?;",
            (int(completed), format_timestamp(completed_date), workout_id),
        )

    def set_muscle_groups(self, workout_id: str, group_ids: Iterable[str]) -> None:
        self.execute(
            "DELETE FROM workout_muscle_groups WHERE workout_id = ?;", (workout_id,)
        )
        unique = list(dict.fromkeys(group_ids))
        self.execute_many(
            "INSERT INTO workout_muscle_groups (workout_id, muscle_group_id) VALUES (?, ?);",
            [(workout_id, gid) for gid in unique],
        )

    def fetch(self, workout_id: str) -> Workout:
        rows = super().fetch_all(
            f"SELECT {self._COLUMNS} FROM workouts WHERE id = ?;", (workout_id,)
        )
        if not rows:
            raise NotFoundError("workout", workout_id)
        return self._row_to_workout(rows[0])

    def fetch_for_member(
        self,
        member_id: str,
        start: Optional[datetime.datetime] = None,
        end: Optional[datetime.datetime] = None,
        completed: Optional[bool] = None,
    ) -> list[Workout]:
        query = f"SELECT {self._COLUMNS} FROM workouts WHERE member_id = ?"
        params: list = [member_id]
        if start is not None:
            query += " AND scheduled_date >= ?"
            params.append(format_timestamp(start))
        if end is not None:
            query += " AND scheduled_date <= ?"
            params.append(format_timestamp(end))
        if completed is not None:
            query += " AND completed = ?"
            params.append(int(completed))
        query += " ORDER BY scheduled_date DESC, rowid DESC;"
        rows = super().fetch_all(query, tuple(params))
        return [self._row_to_workout(r) for r in rows]

    def delete(self, workout_id: str) -> None:
        if not self._exists("workouts", workout_id):
            raise NotFoundError("workout", workout_id)
        self.sets.delete_for_workout(workout_id)
        self.execute(
            "DELETE FROM workout_muscle_groups WHERE workout_id = ?;", (workout_id,)
        )
        self.execute("DELETE FROM workouts WHERE id = ?;", (workout_id,))


class CheckinRepository(BaseRepository):
    """Repository for gym check-ins."""

    @staticmethod
    def _row_to_dict(row: Tuple) -> dict:
        return {"id": row[0], "user_id": row[1], "occurred_at": row[2]}

    def add(self, user_id: str, occurred_at: str | None = None) -> dict:
        cid = new_id()
        ts = format_timestamp(parse_schedule(occurred_at)) or now_timestamp()
        self.execute(
            "INSERT INTO checkins (id, user_id, occurred_at) VALUES (?, ?, ?);",
            (cid, user_id, ts),
        )
        return {"id": cid, "user_id": user_id, "occurred_at": ts}

    @staticmethod
    def _user_filter(user_ids: Iterable[str] | None) -> tuple[str, list]:
        if user_ids is None:
            return "", []
        ids = list(user_ids)
        if not ids:
            return " AND 0", []
        return f" AND user_id IN ({', '.join('?' for _ in ids)})", ids

    def fetch_recent(
        self, limit: int = 50, user_ids: Iterable[str] | None = None
    ) -> list[dict]:
        if limit <= 0:
            raise ValueError("limit must be positive")
        clause, params = self._user_filter(user_ids)
        query = (
            "SELECT id, user_id, occurred_at FROM checkins WHERE 1"
            + clause
            + " ORDER BY occurred_at DESC, rowid DESC LIMIT ?;"
        )
        rows = self.fetch_all(query, tuple(params + [limit]))
        return [self._row_to_dict(r) for r in rows]

    def fetch_between(
        self, start: str, end: str, user_ids: Iterable[str] | None = None
    ) -> list[dict]:
        clause, params = self._user_filter(user_ids)
        query = (
            "SELECT id, user_id, occurred_at FROM checkins "
            "WHERE occurred_at >= ? AND occurred_at <= ?"
            + clause
            + " ORDER BY occurred_at DESC, rowid DESC;"
        )
        rows = self.fetch_all(query, tuple([start, end] + params))
        return [self._row_to_dict(r) for r in rows]


class NotificationRepository(BaseRepository):
    """Repository for workout suggestion notifications."""

    def add(
        self,
        user_id: str,
        message: str,
        data: dict | None = None,
        type_: str = "WORKOUT_SUGGESTION",
    ) -> str:
        nid = new_id()
        self.execute(
            "INSERT INTO notifications (id, user_id, message, data, created_at, seen, type) VALUES (?, ?, ?, ?, ?, 0, ?);",
            (nid, user_id, message, json.dumps(data or {}), now_timestamp(), type_),
        )
        return nid

    def fetch_pending(self, user_id: str) -> list[dict[str, object]]:
        rows = super().fetch_all(
            "SELECT id, message, data, created_at, type FROM notifications "
            "WHERE user_id = ? AND seen = 0 ORDER BY created_at DESC, rowid DESC;",
            (user_id,),
        )
        result: list[dict[str, object]] = []
        for nid, message, data, created_at, type_ in rows:
            entry = dict(json.loads(data))
            entry.update(
                {"id": nid, "message": message, "created_at": created_at, "type": type_}
            )
            result.append(entry)
        return result

    def fetch_owner(self, nid: str) -> Optional[str]:
        rows = super().fetch_all("SELECT user_id FROM notifications WHERE id = ?;", (nid,))
        return rows[0][0] if rows else None

    def mark_seen(self, nid: str) -> None:
        self.execute("UPDATE notifications SET seen = 1 WHERE id = ?;", (nid,))


class PaymentRepository(BaseRepository):
    """Repository for membership payments."""

    def add(self, user_id: str, months: int, amount: float, paid_at: str | None = None) -> dict:
        if months <= 0:
            raise ValueError("months must be positive")
        if amount < 0:
            raise ValueError("amount must be non-negative")
        pid = new_id()
        ts = format_timestamp(parse_schedule(paid_at)) or now_timestamp()
        self.execute(
            "INSERT INTO payments (id, user_id, months, amount, paid_at) VALUES (?, ?, ?, ?, ?);",
            (pid, user_id, months, amount, ts),
        )
        return {"id": pid, "user_id": user_id, "months": months, "amount": amount, "paid_at": ts}

    def fetch_all_payments(self, user_id: str | None = None) -> list[dict]:
        query = "SELECT id, user_id, months, amount, paid_at FROM payments"
        params: tuple = ()
        if user_id is not None:
            query += " WHERE user_id = ?"
            params = (user_id,)
        query += " ORDER BY paid_at DESC, rowid DESC;"
        return [
            {"id": r[0], "user_id": r[1], "months": int(r[2]), "amount": float(r[3]), "paid_at": r[4]}
            for r in self.fetch_all(query, params)
        ]


class FeedbackRepository(BaseRepository):
    """Repository for member feedback and staff responses."""

    def add(self, member_id: str, title: str, content: str) -> str:
        fid = new_id()
        self.execute(
            "INSERT INTO feedback (id, member_id, title, content, created_at) VALUES (?, ?, ?, ?, ?);",
            (fid, member_id, title, content, now_timestamp()),
        )
        return fid

    def add_response(self, feedback_id: str, responder_id: str, content: str) -> None:
        if not self._exists("feedback", feedback_id):
            raise NotFoundError("feedback", feedback_id)
        self.execute(
            "INSERT INTO feedback_responses (id, feedback_id, responder_id, content, response_time) VALUES (?, ?, ?, ?, ?);",
            (new_id(), feedback_id, responder_id, content, now_timestamp()),
        )

    def fetch(self, feedback_id: str) -> dict:
        rows = self.fetch_all(
            "SELECT id, member_id, title, content, created_at FROM feedback WHERE id = ?;",
            (feedback_id,),
        )
        if not rows:
            raise NotFoundError("feedback", feedback_id)
        return self._with_responses(rows[0])

    def fetch_for_members(self, member_ids: Iterable[str] | None = None) -> list[dict]:
        query = "SELECT id, member_id, title, content, created_at FROM feedback"
        params: tuple = ()
        if member_ids is not None:
            ids = list(member_ids)
            if not ids:
                return []
            query += f" WHERE member_id IN ({', '.join('?' for _ in ids)})"
            params = tuple(ids)
        query += " ORDER BY created_at DESC, rowid DESC;"
        return [self._with_responses(r) for r in self.fetch_all(query, params)]

    def _with_responses(self, row: Tuple) -> dict:
        fid, member_id, title, content, created_at = row
        responses = self.fetch_all(
            "SELECT responder_id, content, response_time FROM feedback_responses "
            "WHERE feedback_id = ? ORDER BY response_time, rowid;",
            (fid,),
        )
        return {
            "id": fid,
            "member_id": member_id,
            "title": title,
            "content": content,
            "created_at": created_at,
            "responses": [
                {"responder_id": r[0], "content": r[1], "response_time": r[2]}
                for r in responses
            ],
        }


class DietChatRepository(BaseRepository):
    """Repository for diet chats between members and staff."""

    def create(self, member_id: str, title: str, initial_query: str) -> str:
        cid = new_id()
        self.execute(
            "INSERT INTO diet_chats (id, member_id, title, initial_query, created_at) VALUES (?, ?, ?, ?, ?);",
            (cid, member_id, title, initial_query, now_timestamp()),
        )
        return cid

    def add_message(self, chat_id: str, sender_id: str, sender_role: Role, content: str) -> str:
        if not self._exists("diet_chats", chat_id):
            raise NotFoundError("diet chat", chat_id)
        mid = new_id()
        self.execute(
            "INSERT INTO diet_chat_messages (id, chat_id, sender_id, sender_role, content, timestamp, edited) "
            "VALUES (?, ?, ?, ?, ?, ?, 0);",
            (mid, chat_id, sender_id, Role(sender_role).value, content, now_timestamp()),
        )
        return mid

    def fetch(self, chat_id: str) -> dict:
        rows = self.fetch_all(
            "SELECT id, member_id, title, initial_query, created_at FROM diet_chats WHERE id = ?;",
            (chat_id,),
        )
        if not rows:
            raise NotFoundError("diet chat", chat_id)
        return self._with_messages(rows[0])

    def fetch_for_members(self, member_ids: Iterable[str] | None = None) -> list[dict]:
        query = "SELECT id, member_id, title, initial_query, created_at FROM diet_chats"
        params: tuple = ()
        if member_ids is not None:
            ids = list(member_ids)
            if not ids:
                return []
            query += f" WHERE member_id IN ({', '.join('?' for _ in ids)})"
            params = tuple(ids)
        query += " ORDER BY created_at DESC, rowid DESC;"
        return [self._with_messages(r) for r in self.fetch_all(query, params)]

    def _with_messages(self, row: Tuple) -> dict:
        cid, member_id, title, initial_query, created_at = row
        messages = self.fetch_all(
            "SELECT sender_id, sender_role, content, timestamp, edited FROM diet_chat_messages "
            "WHERE chat_id = ? ORDER BY timestamp, rowid;",
            (cid,),
        )
        return {
            "id": cid,
            "member_id": member_id,
            "title": title,
            "initial_query": initial_query,
            "created_at": created_at,
            "messages": [
                {
                    "sender_id": m[0],
                    "sender_role": m[1],
                    "content": m[2],
                    "timestamp": m[3],
                    "edited": bool(m[4]),
                }
                for m in messages
            ],
        }
