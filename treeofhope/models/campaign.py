from __future__ import annotations

# -----------------------------------------------------------------------------
# Campaign + Leaf
# A campaign is a patient's page; leaves are the messages of support drawn on
# its tree. leaf_count is advanced atomically and is the placement index.
# -----------------------------------------------------------------------------
from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy import CheckConstraint, Index, select, update as sa_update
from sqlalchemy.orm import Mapped, mapped_column, relationship

from treeofhope.extensions import db

from .mixins import CreatedAtMixin, TimestampMixin, UUIDMixin, iso

CAMPAIGN_STATUSES = ("draft", "active", "paused", "completed", "archived")


class Campaign(UUIDMixin, db.Model, TimestampMixin):
    __tablename__ = "campaigns"
    __table_args__ = (
        CheckConstraint("leaf_count >= 0", name="ck_campaigns_leaf_count_nonneg"),
        CheckConstraint("supporter_count >= 0", name="ck_campaigns_supporter_count_nonneg"),
        Index("ix_campaigns_status_created", "status", "created_at"),
    )

    slug: Mapped[str] = mapped_column(db.String(80), unique=True, index=True, nullable=False)
    title: Mapped[str] = mapped_column(db.String(200), nullable=False)
    description: Mapped[str] = mapped_column(db.Text, nullable=False, default="")
    patient_name: Mapped[str] = mapped_column(db.String(160), nullable=False)
    status: Mapped[str] = mapped_column(
        db.String(20),
        nullable=False,
        default="draft",
        index=True,
        doc="draft / active / paused / completed / archived",
    )
    image_url: Mapped[Optional[str]] = mapped_column(db.String(500), nullable=True)
    story: Mapped[Optional[str]] = mapped_column(db.Text, nullable=True)

    # ---- Counters (atomic UPDATE only) ----
    leaf_count: Mapped[int] = mapped_column(db.Integer, nullable=False, default=0)
    supporter_count: Mapped[int] = mapped_column(db.Integer, nullable=False, default=0)
    monthly_total_cents: Mapped[int] = mapped_column(
        db.Integer,
        nullable=False,
        default=0,
        doc="Sum of active monthly commitments in cents",
    )

    # ---- Sanctuary ----
    sanctuary_claimed: Mapped[bool] = mapped_column(db.Boolean, nullable=False, default=False)
    sanctuary_claimed_by: Mapped[Optional[str]] = mapped_column(
        db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    sanctuary_start_date: Mapped[Optional[date]] = mapped_column(db.Date, nullable=True)

    leaves: Mapped[List["Leaf"]] = relationship(
        "Leaf", back_populates="campaign", lazy="select", cascade="all, delete-orphan"
    )

    @classmethod
    def by_slug(cls, slug: str) -> Optional["Campaign"]:
        return cls.query.filter_by(slug=slug).first()

    @classmethod
    def advance_leaf_count(cls, campaign_id: str) -> Optional[int]:
        """
        Atomically add one to leaf_count and return the index the new leaf
        takes (the count before the increment). None when no such campaign.
        Must run inside the transaction that inserts the leaf.
        """
        res = db.session.execute(
            sa_update(cls)
            .where(cls.id == campaign_id)
            .values(leaf_count=cls.leaf_count + 1)
            .execution_options(synchronize_session=False)
        )
        if not res.rowcount:
            return None
        new_count = db.session.execute(select(cls.leaf_count).where(cls.id == campaign_id)).scalar_one()
        return int(new_count) - 1

    @classmethod
    def add_supporter(cls, campaign_id: str, monthly_cents: int) -> bool:
        res = db.session.execute(
            sa_update(cls)
            .where(cls.id == campaign_id)
            .values(
                supporter_count=cls.supporter_count + 1,
                monthly_total_cents=cls.monthly_total_cents + int(monthly_cents or 0),
            )
            .execution_options(synchronize_session=False)
        )
        return bool(res.rowcount)

    def sanctuary_day_number(self, today: date) -> int:
        """1..30 once the sanctuary has started, 0 before."""
        if not self.sanctuary_start_date:
            return 0
        elapsed = (today - self.sanctuary_start_date).days
        if elapsed < 0:
            return 0
        return min(elapsed + 1, 30)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "slug": self.slug,
            "title": self.title,
            "description": self.description,
            "patient_name": self.patient_name,
            "status": self.status,
            "image_url": self.image_url,
            "story": self.story,
            "leaf_count": int(self.leaf_count or 0),
            "supporter_count": int(self.supporter_count or 0),
            "monthly_total_cents": int(self.monthly_total_cents or 0),
            "sanctuary_claimed": bool(self.sanctuary_claimed),
            "sanctuary_claimed_by": self.sanctuary_claimed_by,
            "sanctuary_start_date": iso(self.sanctuary_start_date),
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Campaign {self.slug} status={self.status} leaves={self.leaf_count}>"


class Leaf(UUIDMixin, db.Model, CreatedAtMixin):
    __tablename__ = "leaves"
    __table_args__ = (Index("ix_leaves_campaign_created", "campaign_id", "created_at"),)

    campaign_id: Mapped[str] = mapped_column(
        db.ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False, index=True
    )
    campaign: Mapped["Campaign"] = relationship("Campaign", back_populates="leaves")

    author_name: Mapped[str] = mapped_column(db.String(160), nullable=False)
    message: Mapped[str] = mapped_column(db.Text, nullable=False)

    # Assigned once at creation, never recomputed.
    position_x: Mapped[int] = mapped_column(db.Integer, nullable=False)
    position_y: Mapped[int] = mapped_column(db.Integer, nullable=False)

    is_public: Mapped[bool] = mapped_column(db.Boolean, nullable=False, default=True)
    is_hidden: Mapped[bool] = mapped_column(db.Boolean, nullable=False, default=False)

    @classmethod
    def visible_for(cls, campaign_id: str) -> List["Leaf"]:
        return (
            cls.query.filter_by(campaign_id=campaign_id, is_public=True, is_hidden=False)
            .order_by(cls.created_at.desc())
            .all()
        )

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "campaign_id": self.campaign_id,
            "author_name": self.author_name,
            "message": self.message,
            "position_x": self.position_x,
            "position_y": self.position_y,
            "is_public": bool(self.is_public),
            "is_hidden": bool(self.is_hidden),
            "created_at": iso(self.created_at),
        }
