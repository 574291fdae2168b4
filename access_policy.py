from __future__ import annotations

from typing import Optional

from errors import ForbiddenError
from models import Role, User


class AccessPolicy:
    """Central role and ownership checks.

    Actions come in two flavours. Owned actions (``read``, ``write``) are
    evaluated against the id of the member owning the resource; global
    actions are evaluated against the actor's roles only.
    """

    ADMIN_ONLY = frozenset({"manage_users", "manage_payments", "list_trainers"})
    STAFF = frozenset(
        {"manage_templates", "list_members", "push_suggestion", "respond_feedback"}
    )
    OWNED = frozenset({"read", "write"})

    def __init__(self, users) -> None:
        self.users = users

    def evaluate(
        self, actor: User, action: str, owner_id: Optional[str] = None
    ) -> bool:
        if not actor.active:
            return False
        if actor.has_role(Role.ADMIN):
            return True
        if action in self.ADMIN_ONLY:
            return False
        if action in self.STAFF:
            return actor.has_role(Role.TRAINER)
        if action in self.OWNED:
            if owner_id is None or owner_id == actor.id:
                return True
            if actor.has_role(Role.TRAINER):
                return self._is_assigned(actor.id, owner_id)
            return False
        raise ValueError(f"unknown action: {action}")

    def require(
        self, actor: User, action: str, owner_id: Optional[str] = None
    ) -> None:
        if not self.evaluate(actor, action, owner_id):
            raise ForbiddenError(f"not allowed to {action}")

    def visible_member_ids(self, actor: User) -> Optional[list[str]]:
        """Return member ids ``actor`` may list, or ``None`` for everyone."""
        if actor.has_role(Role.ADMIN):
            return None
        ids = [actor.id]
        if actor.has_role(Role.TRAINER):
            ids.extend(m.id for m in self.users.fetch_members_of_trainer(actor.id))
        return ids

    def _is_assigned(self, trainer_id: str, member_id: str) -> bool:
        try:
            member = self.users.fetch(member_id)
        except ValueError:
            return False
        return member.assigned_trainer_id == trainer_id
