"""
Sanctuary models: the 30 guided days plus the patient's private tools
(journal, tasks, medications, appointments, symptom logs).
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, Optional

from sqlalchemy import CheckConstraint, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, declared_attr, mapped_column

from treeofhope.extensions import db

from .mixins import TimestampMixin, UUIDMixin, iso

SANCTUARY_DAYS = 30


class SanctuaryDay(UUIDMixin, db.Model):
    __tablename__ = "sanctuary_days"
    __table_args__ = (
        UniqueConstraint("campaign_id", "day_number", name="uq_sanctuary_days_campaign_day"),
        CheckConstraint("day_number BETWEEN 1 AND 30", name="ck_sanctuary_days_range"),
    )

    campaign_id: Mapped[str] = mapped_column(
        db.ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False, index=True
    )
    day_number: Mapped[int] = mapped_column(db.Integer, nullable=False)
    title: Mapped[str] = mapped_column(db.String(120), nullable=False)
    content_markdown: Mapped[str] = mapped_column(db.Text, nullable=False)
    reflection_prompt: Mapped[Optional[str]] = mapped_column(db.Text, nullable=True)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "campaign_id": self.campaign_id,
            "day_number": self.day_number,
            "title": self.title,
            "content_markdown": self.content_markdown,
            "reflection_prompt": self.reflection_prompt,
        }


class SanctuaryRecordMixin(UUIDMixin, TimestampMixin):
    """campaign + author scoping shared by every sanctuary tool."""

    @declared_attr
    def campaign_id(cls) -> Mapped[str]:
        return mapped_column(db.ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False, index=True)

    @declared_attr
    def user_id(cls) -> Mapped[str]:
        return mapped_column(db.String(36), nullable=False, index=True)

    def as_dict(self) -> Dict[str, Any]:
        return {col.name: iso(getattr(self, col.key)) for col in self.__table__.columns}


class JournalEntry(SanctuaryRecordMixin, db.Model):
    __tablename__ = "journal_entries"

    title: Mapped[str] = mapped_column(db.String(200), nullable=False)
    content: Mapped[str] = mapped_column(db.Text, nullable=False)
    mood_score: Mapped[Optional[int]] = mapped_column(db.Integer, nullable=True)
    is_private: Mapped[bool] = mapped_column(db.Boolean, nullable=False, default=True)

    def as_summary(self) -> Dict[str, Any]:
        return {"id": self.id, "campaign_id": self.campaign_id, "title": self.title, "created_at": iso(self.created_at)}


class Task(SanctuaryRecordMixin, db.Model):
    __tablename__ = "tasks"
    __table_args__ = (Index("ix_tasks_campaign_due", "campaign_id", "due_date"),)

    title: Mapped[str] = mapped_column(db.String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(db.Text, nullable=True)
    due_date: Mapped[Optional[date]] = mapped_column(db.Date, nullable=True)
    priority: Mapped[Optional[str]] = mapped_column(db.String(10), nullable=True, doc="low / medium / high")
    completed: Mapped[bool] = mapped_column(db.Boolean, nullable=False, default=False)
    completed_at: Mapped[Optional[datetime]] = mapped_column(db.DateTime, nullable=True)


class Medication(SanctuaryRecordMixin, db.Model):
    __tablename__ = "medications"

    name: Mapped[str] = mapped_column(db.String(160), nullable=False)
    dosage: Mapped[Optional[str]] = mapped_column(db.String(80), nullable=True)
    frequency: Mapped[Optional[str]] = mapped_column(db.String(80), nullable=True)
    reason: Mapped[Optional[str]] = mapped_column(db.String(255), nullable=True)
    start_date: Mapped[Optional[date]] = mapped_column(db.Date, nullable=True)
    end_date: Mapped[Optional[date]] = mapped_column(db.Date, nullable=True)
    prescriber: Mapped[Optional[str]] = mapped_column(db.String(160), nullable=True)
    time_of_day: Mapped[Optional[str]] = mapped_column(db.String(40), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(db.Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(db.Boolean, nullable=False, default=True)


class Appointment(SanctuaryRecordMixin, db.Model):
    __tablename__ = "appointments"
    __table_args__ = (Index("ix_appointments_campaign_date", "campaign_id", "appointment_date"),)

    title: Mapped[str] = mapped_column(db.String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(db.Text, nullable=True)
    appointment_date: Mapped[date] = mapped_column(db.Date, nullable=False)
    appointment_time: Mapped[Optional[str]] = mapped_column(db.String(16), nullable=True)
    location: Mapped[Optional[str]] = mapped_column(db.String(255), nullable=True)
    doctor_name: Mapped[Optional[str]] = mapped_column(db.String(160), nullable=True)


class SymptomLog(SanctuaryRecordMixin, db.Model):
    __tablename__ = "symptom_logs"

    name: Mapped[str] = mapped_column(db.String(160), nullable=False)
    severity: Mapped[Optional[int]] = mapped_column(db.Integer, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(db.Text, nullable=True)
    frequency: Mapped[Optional[str]] = mapped_column(db.String(80), nullable=True)
    triggered_by: Mapped[Optional[str]] = mapped_column(db.String(255), nullable=True)
