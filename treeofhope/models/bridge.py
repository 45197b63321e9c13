from __future__ import annotations

# -----------------------------------------------------------------------------
# Bridge: an external GoFundMe campaign we scout, reach out to, pre-build a
# tree for, and hand over to its organiser.
# -----------------------------------------------------------------------------
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import CheckConstraint, update as sa_update
from sqlalchemy.orm import Mapped, mapped_column, relationship

from treeofhope.extensions import db

from .mixins import CreatedAtMixin, TimestampMixin, UUIDMixin, iso, utcnow

BRIDGE_STATUSES = ("scouted", "contacted", "pre_built", "claimed", "activated", "declined")


class BridgeCampaign(UUIDMixin, db.Model, TimestampMixin):
    __tablename__ = "bridge_campaigns"
    __table_args__ = (
        CheckConstraint("outreach_attempts >= 0", name="ck_bridge_outreach_nonneg"),
    )

    campaign_id: Mapped[Optional[str]] = mapped_column(
        db.ForeignKey("campaigns.id", ondelete="SET NULL"), nullable=True, index=True
    )
    status: Mapped[str] = mapped_column(db.String(20), nullable=False, default="scouted", index=True)

    gofundme_url: Mapped[str] = mapped_column(db.String(500), nullable=False)
    gofundme_title: Mapped[str] = mapped_column(db.String(255), nullable=False)
    gofundme_organiser_name: Mapped[str] = mapped_column(db.String(160), nullable=False)
    gofundme_raised_cents: Mapped[int] = mapped_column(db.Integer, nullable=False, default=0)
    gofundme_goal_cents: Mapped[int] = mapped_column(db.Integer, nullable=False, default=0)
    gofundme_donor_count: Mapped[int] = mapped_column(db.Integer, nullable=False, default=0)
    gofundme_category: Mapped[Optional[str]] = mapped_column(db.String(80), nullable=True)

    claimed_by: Mapped[Optional[str]] = mapped_column(
        db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    outreach_attempts: Mapped[int] = mapped_column(db.Integer, nullable=False, default=0)

    outreach = relationship(
        "BridgeOutreach",
        back_populates="bridge",
        lazy="select",
        cascade="all, delete-orphan",
        order_by="BridgeOutreach.outreach_date.desc()",
    )

    @classmethod
    def record_outreach_attempt(cls, bridge_id: str) -> bool:
        res = db.session.execute(
            sa_update(cls)
            .where(cls.id == bridge_id)
            .values(outreach_attempts=cls.outreach_attempts + 1, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return bool(res.rowcount)

    def as_dict(self, include_outreach: bool = False) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "campaign_id": self.campaign_id,
            "status": self.status,
            "gofundme_url": self.gofundme_url,
            "gofundme_title": self.gofundme_title,
            "gofundme_organiser_name": self.gofundme_organiser_name,
            "gofundme_raised_cents": int(self.gofundme_raised_cents or 0),
            "gofundme_goal_cents": int(self.gofundme_goal_cents or 0),
            "gofundme_donor_count": int(self.gofundme_donor_count or 0),
            "gofundme_category": self.gofundme_category,
            "claimed_by": self.claimed_by,
            "outreach_attempts": int(self.outreach_attempts or 0),
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }
        if include_outreach:
            data["outreach"] = [o.as_dict() for o in self.outreach]
        return data


class BridgeOutreach(UUIDMixin, db.Model, CreatedAtMixin):
    __tablename__ = "bridge_outreach"

    bridge_id: Mapped[str] = mapped_column(
        db.ForeignKey("bridge_campaigns.id", ondelete="CASCADE"), nullable=False, index=True
    )
    bridge = relationship("BridgeCampaign", back_populates="outreach")

    channel: Mapped[str] = mapped_column(db.String(40), nullable=False, doc="email / instagram / facebook / ...")
    message_summary: Mapped[str] = mapped_column(db.Text, nullable=False)
    outreach_date: Mapped[datetime] = mapped_column(db.DateTime, nullable=False, default=utcnow)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "bridge_id": self.bridge_id,
            "channel": self.channel,
            "message_summary": self.message_summary,
            "outreach_date": iso(self.outreach_date),
            "created_at": iso(self.created_at),
        }
