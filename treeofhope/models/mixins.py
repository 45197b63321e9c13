# treeofhope/models/mixins.py
"""Shared SQLAlchemy mixins for identifiers and timestamps."""

import uuid
from datetime import date, datetime, timezone
from typing import Any, Optional

from sqlalchemy import event

from treeofhope.extensions import db


def utcnow() -> datetime:
    """Naive UTC now (columns are stored without tzinfo)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return str(uuid.uuid4())


def iso(v: Optional[Any]) -> Optional[str]:
    if isinstance(v, (datetime, date)):
        return v.isoformat()
    return v


class UUIDMixin:
    """String UUID primary key, the canonical identifier shape of the API."""

    id = db.Column(db.String(36), primary_key=True, default=new_id)


class CreatedAtMixin:
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)


class TimestampMixin(CreatedAtMixin):
    """Adds created_at and updated_at columns with auto-refresh behavior."""

    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    @staticmethod
    def _set_updated_at(mapper, connection, target):
        target.updated_at = utcnow()

    @classmethod
    def __declare_last__(cls):
        event.listen(cls, "before_update", cls._set_updated_at)
