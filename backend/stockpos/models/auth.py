from __future__ import annotations

from ..extensions import db
from .base import SyncTrackedMixin


ROLE_ADMIN = "admin"
ROLE_MANAGER = "manager"
ROLE_STAFF = "staff"

VALID_ROLES = (ROLE_ADMIN, ROLE_MANAGER, ROLE_STAFF)


class User(SyncTrackedMixin, db.Model):
    """
    Local device user.

    Usernames are stored lower-case. password_hash is a bcrypt hash (salted,
    iterated); it is never serialized.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.UniqueConstraint("username", name="uq_users_username"),
        {"sqlite_autoincrement": True},
    )

    username = db.Column(db.String(64), nullable=False)
    full_name = db.Column(db.String(255), nullable=True)
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(16), nullable=False, default=ROLE_STAFF)

    def __repr__(self) -> str:
        return f"<User id={self.id} username={self.username!r} role={self.role!r}>"

    def to_dict(self) -> dict:
        data = self._base_dict()
        data.update({
            "username": self.username,
            "full_name": self.full_name,
            "role": self.role,
        })
        return data
