from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, Optional

from sqlalchemy import Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from treeofhope.extensions import db

from .mixins import TimestampMixin, UUIDMixin, iso, utcnow

COMMITMENT_STATUSES = ("active", "paused", "past_due", "cancelled")
MEMBERSHIP_ROLES = ("supporter", "caregiver", "patient")


class Commitment(UUIDMixin, db.Model, TimestampMixin):
    """A recurring monthly pledge backed by a Stripe subscription."""

    __tablename__ = "commitments"
    __table_args__ = (Index("ix_commitments_user_started", "user_id", "started_at"),)

    campaign_id: Mapped[str] = mapped_column(
        db.ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False, index=True
    )
    campaign = relationship("Campaign", lazy="joined")

    user_id: Mapped[Optional[str]] = mapped_column(
        db.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
        doc="Null for anonymous bridge checkouts",
    )
    status: Mapped[str] = mapped_column(db.String(20), nullable=False, default="active", index=True)
    monthly_tier: Mapped[str] = mapped_column(db.String(20), nullable=False)

    stripe_subscription_id: Mapped[Optional[str]] = mapped_column(
        db.String(120), nullable=True, unique=True, index=True
    )
    stripe_customer_id: Mapped[Optional[str]] = mapped_column(db.String(120), nullable=True, index=True)

    started_at: Mapped[datetime] = mapped_column(db.DateTime, nullable=False, default=utcnow)
    paused_at: Mapped[Optional[datetime]] = mapped_column(db.DateTime, nullable=True)
    paused_until: Mapped[Optional[date]] = mapped_column(db.Date, nullable=True)
    resume_date: Mapped[Optional[date]] = mapped_column(db.Date, nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(db.DateTime, nullable=True)

    def as_dict(self, include_campaign: bool = False) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "campaign_id": self.campaign_id,
            "user_id": self.user_id,
            "status": self.status,
            "monthly_tier": self.monthly_tier,
            "stripe_subscription_id": self.stripe_subscription_id,
            "stripe_customer_id": self.stripe_customer_id,
            "started_at": iso(self.started_at),
            "paused_at": iso(self.paused_at),
            "paused_until": iso(self.paused_until),
            "resume_date": iso(self.resume_date),
            "cancelled_at": iso(self.cancelled_at),
            "created_at": iso(self.created_at),
        }
        if include_campaign:
            c = self.campaign
            data["campaign"] = (
                {"id": c.id, "slug": c.slug, "title": c.title, "patient_name": c.patient_name, "image_url": c.image_url}
                if c
                else None
            )
        return data


class Membership(UUIDMixin, db.Model):
    """Who belongs to a campaign and in which role."""

    __tablename__ = "memberships"
    __table_args__ = (
        UniqueConstraint("campaign_id", "user_id", "role", name="uq_memberships_campaign_user_role"),
    )

    campaign_id: Mapped[str] = mapped_column(
        db.ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    role: Mapped[str] = mapped_column(db.String(20), nullable=False, doc="supporter / caregiver / patient")
    joined_at: Mapped[datetime] = mapped_column(db.DateTime, nullable=False, default=utcnow)

    @classmethod
    def ensure(cls, campaign_id: str, user_id: str, role: str) -> "Membership":
        """Return the membership, adding it to the session when missing."""
        row = cls.query.filter_by(campaign_id=campaign_id, user_id=user_id, role=role).first()
        if row is None:
            row = cls(campaign_id=campaign_id, user_id=user_id, role=role)
            db.session.add(row)
        return row

    @classmethod
    def has_role(cls, campaign_id: str, user_id: str, roles) -> bool:
        q = cls.query.filter(cls.campaign_id == campaign_id, cls.user_id == user_id, cls.role.in_(tuple(roles)))
        return db.session.query(q.exists()).scalar()

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "campaign_id": self.campaign_id,
            "user_id": self.user_id,
            "role": self.role,
            "joined_at": iso(self.joined_at),
        }
