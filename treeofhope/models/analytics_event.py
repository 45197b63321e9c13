from __future__ import annotations

from typing import Any, Dict, Optional

from sqlalchemy import Index
from sqlalchemy.orm import Mapped, mapped_column

from treeofhope.extensions import db
from treeofhope.models.mixins import CreatedAtMixin, UUIDMixin, iso


class AnalyticsEvent(UUIDMixin, db.Model, CreatedAtMixin):
    __tablename__ = "analytics_events"
    __table_args__ = (Index("ix_analytics_events_name_created", "event_name", "created_at"),)

    event_name: Mapped[str] = mapped_column(db.String(80), nullable=False, index=True)
    campaign_id: Mapped[Optional[str]] = mapped_column(db.String(36), nullable=True, index=True)
    user_id: Mapped[Optional[str]] = mapped_column(db.String(36), nullable=True, index=True)
    session_id: Mapped[Optional[str]] = mapped_column(db.String(64), nullable=True)
    properties: Mapped[Dict[str, Any]] = mapped_column(db.JSON, nullable=False, default=dict)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "event_name": self.event_name,
            "campaign_id": self.campaign_id,
            "user_id": self.user_id,
            "session_id": self.session_id,
            "properties": dict(self.properties or {}),
            "created_at": iso(self.created_at),
        }
