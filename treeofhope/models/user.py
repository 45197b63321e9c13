from __future__ import annotations

"""
User model: magic-link identities and the admin role.
"""
from typing import Any, Dict, Optional

from flask_login import UserMixin

from treeofhope.extensions import db

from .mixins import TimestampMixin, UUIDMixin, iso


class User(UUIDMixin, db.Model, UserMixin, TimestampMixin):
    """
    A person who signed in through a magic link.
      • created on first successful verification
      • admin flag gates the /api/admin surface
      • is_active doubles as a soft ban
    """

    __tablename__ = "users"

    email = db.Column(
        db.String(255),
        unique=True,
        nullable=False,
        index=True,
        doc="Lower-cased e-mail address",
    )
    full_name = db.Column(db.String(160), nullable=True)
    is_admin = db.Column(db.Boolean, default=False, nullable=False, doc="Admin user flag")
    is_active = db.Column(
        db.Boolean,
        default=True,
        nullable=False,
        doc="Account enabled/disabled (soft ban)",
    )

    @staticmethod
    def normalize_email(email: Optional[str]) -> str:
        return (email or "").strip().lower()

    @classmethod
    def by_email(cls, email: str) -> Optional["User"]:
        return cls.query.filter_by(email=cls.normalize_email(email)).first()

    def get_id(self) -> str:  # type: ignore[override]
        return str(self.id)

    def as_profile(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "user_metadata": {"full_name": self.full_name} if self.full_name else {},
            "created_at": iso(self.created_at),
        }

    def __repr__(self) -> str:  # pragma: no cover
        role = "Admin" if self.is_admin else "Member"
        return f"<User {self.email} ({role})>"
