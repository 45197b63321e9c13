from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Mapped, mapped_column

from treeofhope.extensions import db
from treeofhope.models.mixins import CreatedAtMixin, UUIDMixin


class MagicLink(UUIDMixin, db.Model, CreatedAtMixin):
    """A single-use sign-in token. Only the sha256 of the token is stored."""

    __tablename__ = "magic_links"

    email: Mapped[str] = mapped_column(db.String(255), nullable=False, index=True)

    token_hash: Mapped[str] = mapped_column(
        db.String(64),
        unique=True,
        nullable=False,
        doc="sha256 hex digest of the token e-mailed to the user",
    )

    type: Mapped[str] = mapped_column(db.String(20), nullable=False, default="magiclink")

    redirect_to: Mapped[Optional[str]] = mapped_column(db.String(500), nullable=True)

    expires_at: Mapped[datetime] = mapped_column(db.DateTime, nullable=False)

    consumed_at: Mapped[Optional[datetime]] = mapped_column(db.DateTime, nullable=True)

    def is_usable(self, now: datetime) -> bool:
        return self.consumed_at is None and self.expires_at > now
