# Overview: Role lookups and the authorization capability injected into checkout.

"""
Role checks

Identity comes from outside; this module only answers "does user X hold
role R". Checkout never calls has_role directly: it receives a
RoleAuthorizer (or any callable with the same signature) and a required
role set from configuration.
"""

from __future__ import annotations

from typing import Callable, Iterable

from ..errors import ValidationError
from ..extensions import db
from ..models import UserRole
from ..models.auth import VALID_ROLES


def has_role(user_id: str, role: str) -> bool:
    if not user_id:
        return False
    return (
        db.session.query(UserRole.id)
        .filter_by(user_id=str(user_id), role=role)
        .first()
        is not None
    )


def get_user_roles(user_id: str) -> set[str]:
    rows = db.session.query(UserRole.role).filter_by(user_id=str(user_id)).all()
    return {r for (r,) in rows}


def assign_role(user_id: str, role: str) -> UserRole:
    if role not in VALID_ROLES:
        raise ValidationError(f"Unknown role: {role}", {"valid_roles": list(VALID_ROLES)})
    existing = db.session.query(UserRole).filter_by(user_id=str(user_id), role=role).first()
    if existing:
        return existing
    grant = UserRole(user_id=str(user_id), role=role)
    db.session.add(grant)
    db.session.commit()
    return grant


def revoke_role(user_id: str, role: str) -> bool:
    deleted = db.session.query(UserRole).filter_by(user_id=str(user_id), role=role).delete()
    db.session.commit()
    return bool(deleted)


class RoleAuthorizer:
    """Grants access when the user holds any of the required roles."""

    def __init__(self, role_check: Callable[[str, str], bool] = has_role):
        self._role_check = role_check

    def __call__(self, user_id: str | None, required_roles: Iterable[str]) -> bool:
        if not user_id:
            return False
        return any(self._role_check(user_id, role) for role in required_roles)
