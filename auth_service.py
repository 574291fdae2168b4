from __future__ import annotations

import logging
import secrets
from typing import Iterable

import bcrypt

from db import SessionRepository, UserRepository
from errors import AuthenticationError
from models import Role, User

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
# bcrypt only looks at the first 72 bytes
MAX_PASSWORD_LENGTH = 72


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))


class AuthService:
    """Registration, login tokens and account state changes."""

    def __init__(self, users: UserRepository, sessions: SessionRepository) -> None:
        self.users = users
        self.sessions = sessions

    @staticmethod
    def _check_password(password: str) -> None:
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValueError(
                f"password must be at least {MIN_PASSWORD_LENGTH} characters"
            )
        if len(password.encode("utf-8")) > MAX_PASSWORD_LENGTH:
            raise ValueError(
                f"password must not exceed {MAX_PASSWORD_LENGTH} bytes"
            )

    def register(
        self,
        username: str,
        email: str,
        password: str,
        roles: Iterable[Role | str] | None = None,
        first_name: str | None = None,
        last_name: str | None = None,
        phone_number: str | None = None,
    ) -> User:
        """Create an account. Trainers start inactive until an admin activates them."""
        if not username or not email:
            raise ValueError("username and email are required")
        self._check_password(password)
        role_set = {Role(r) for r in (roles or [Role.MEMBER])}
        active = Role.TRAINER not in role_set
        uid = self.users.create(
            username,
            email,
            hash_password(password),
            role_set,
            active=active,
            first_name=first_name,
            last_name=last_name,
            phone_number=phone_number,
        )
        logger.info("registered user %s roles=%s", username, sorted(r.value for r in role_set))
        return self.users.fetch(uid)

    def login(self, username: str, password: str) -> str:
        user = self.users.fetch_by_username(username)
        if user is None or not verify_password(password, user.password_hash):
            raise AuthenticationError("invalid username or password")
        if not user.active:
            raise AuthenticationError("account is not active")
        token = secrets.token_urlsafe(32)
        self.sessions.add(token, user.id)
        return token

    def resolve(self, token: str | None) -> User:
        if not token:
            raise AuthenticationError("missing token")
        user_id = self.sessions.fetch_user_id(token)
        if user_id is None:
            raise AuthenticationError("invalid token")
        try:
            user = self.users.fetch(user_id)
        except ValueError:
            raise AuthenticationError("invalid token")
        if not user.active:
            raise AuthenticationError("account is not active")
        return user

    def logout(self, token: str) -> None:
        self.sessions.delete(token)

    def activate(self, user_id: str) -> User:
        self.users.set_active(user_id, True)
        return self.users.fetch(user_id)

    def deactivate(self, user_id: str) -> User:
        self.users.set_active(user_id, False)
        self.sessions.delete_for_user(user_id)
        return self.users.fetch(user_id)

    def assign_trainer(self, member_id: str, trainer_id: str) -> User:
        member = self.users.fetch(member_id)
        trainer = self.users.fetch(trainer_id)
        if not member.has_role(Role.MEMBER):
            raise ValueError("user is not a member")
        if not trainer.has_role(Role.TRAINER):
            raise ValueError("user is not a trainer")
        self.users.set_trainer(member_id, trainer_id)
        return self.users.fetch(member_id)

    def change_password(
        self, user: User, current_password: str, new_password: str
    ) -> None:
        if not verify_password(current_password, user.password_hash):
            raise AuthenticationError("current password is incorrect")
        self._check_password(new_password)
        self.users.set_password_hash(user.id, hash_password(new_password))
