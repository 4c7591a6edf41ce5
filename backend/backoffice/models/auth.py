from __future__ import annotations

from ..extensions import db
from backoffice.time_utils import to_utc_z


ROLE_ADMIN = "admin"
ROLE_MANAGER = "manager"
ROLE_CASHIER = "cashier"
ROLE_VIEWER = "viewer"

VALID_ROLES = (ROLE_ADMIN, ROLE_MANAGER, ROLE_CASHIER, ROLE_VIEWER)


class UserRole(db.Model):
    """
    Role grant for an externally authenticated user.

    User accounts live with the identity provider; only the opaque user id
    is stored here. A user may hold several roles.
    """
    __tablename__ = "user_roles"
    __table_args__ = (
        db.UniqueConstraint("user_id", "role", name="uq_user_roles_user_role"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), nullable=False, index=True)
    role = db.Column(db.String(16), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "role": self.role,
            "created_at": to_utc_z(self.created_at),
        }
