"""Explicit caller context passed into every service operation.

Services never look up the current user or organization themselves; the
HTTP layer builds an Actor from the authenticated user and hands it in.
"""

from __future__ import annotations

from dataclasses import dataclass

from app.auth.permissions import can_review_edit_requests
from app.models.public.user import User, UserRole


@dataclass(frozen=True)
class Actor:
    user_id: str
    name: str
    email: str
    role: UserRole
    organization_id: str

    @property
    def is_reviewer(self) -> bool:
        return can_review_edit_requests(self.role.value)

    @classmethod
    def from_user(cls, user: User) -> "Actor":
        return cls(
            user_id=user.id,
            name=user.full_name,
            email=user.email,
            role=user.role,
            organization_id=user.organization_id,
        )
