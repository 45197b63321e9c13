from __future__ import annotations

from typing import Any, Dict

from treeofhope.extensions import db
from treeofhope.models.analytics_event import AnalyticsEvent
from treeofhope.models.bridge import BRIDGE_STATUSES, BridgeCampaign, BridgeOutreach
from treeofhope.models.campaign import CAMPAIGN_STATUSES, Campaign, Leaf
from treeofhope.models.commitment import COMMITMENT_STATUSES, Commitment, Membership
from treeofhope.models.magic_link import MagicLink
from treeofhope.models.sanctuary import (
    Appointment,
    JournalEntry,
    Medication,
    SanctuaryDay,
    SymptomLog,
    Task,
)
from treeofhope.models.stripe_event import StripeEvent
from treeofhope.models.user import User

# --- Register models here -------------------------------------------------------
_MODELS = (
    User,
    MagicLink,
    Campaign,
    Leaf,
    BridgeCampaign,
    BridgeOutreach,
    Commitment,
    Membership,
    SanctuaryDay,
    JournalEntry,
    Task,
    Medication,
    Appointment,
    SymptomLog,
    AnalyticsEvent,
    StripeEvent,
)

__all__ = [
    "db",
    "BRIDGE_STATUSES",
    "CAMPAIGN_STATUSES",
    "COMMITMENT_STATUSES",
    *[m.__name__ for m in _MODELS],
]


def available_models() -> Dict[str, Any]:
    """Return {name: model_class} for every registered model."""
    return {m.__name__: m for m in _MODELS}
