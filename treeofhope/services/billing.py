"""
Stripe billing: product catalog, checkout sessions, subscription pause and
webhook event application.

Handlers in ``treeofhope.blueprints.billing`` and ``.bridge`` own the HTTP
contract; this module owns every call into the Stripe SDK and every database
mutation driven by a Stripe event.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import stripe
from flask import current_app
from sqlalchemy import update as sa_update

from treeofhope.extensions import db
from treeofhope.models.campaign import Campaign
from treeofhope.models.commitment import Commitment, Membership
from treeofhope.models.mixins import utcnow
from treeofhope.models.user import User

log = logging.getLogger(__name__)

STRIPE_DEMO_MESSAGE = (
    "Payments are being configured. In the meantime, your leaf and your presence matter most. "
    "Contact hello@treeofhope.com to support directly."
)

_PLACEHOLDER = "placeholder"


# ----------------------------
# Product catalog
# ----------------------------
@dataclass(frozen=True)
class Product:
    key: str
    name: str
    amount: int  # cents
    price_config_key: str

    @property
    def price_id(self) -> str:
        return str(current_app.config.get(self.price_config_key) or "").strip()


MONTHLY_TIERS: Dict[str, Product] = {
    "nurture": Product("nurture", "Monthly Commitment: Nurture", 900, "STRIPE_PRICE_NURTURE"),
    "sustain": Product("sustain", "Monthly Commitment: Sustain", 1900, "STRIPE_PRICE_SUSTAIN"),
    "flourish": Product("flourish", "Monthly Commitment: Flourish", 3500, "STRIPE_PRICE_FLOURISH"),
}

JOINING_GIFTS: Dict[str, Product] = {
    "seedling": Product("seedling", "Joining Gift: Seedling", 999, "STRIPE_PRICE_SEEDLING"),
    "sapling": Product("sapling", "Joining Gift: Sapling", 2499, "STRIPE_PRICE_SAPLING"),
    "mightyOak": Product("mightyOak", "Joining Gift: Mighty Oak", 9900, "STRIPE_PRICE_MIGHTY_OAK"),
}


def monthly_tier(key: Any) -> Optional[Product]:
    return MONTHLY_TIERS.get(str(key)) if key else None


def joining_gift(key: Any) -> Optional[Product]:
    return JOINING_GIFTS.get(str(key)) if key else None


def _is_placeholder(value: Optional[str]) -> bool:
    return not value or _PLACEHOLDER in value


def is_stripe_configured() -> bool:
    """Real (non-placeholder) secret key and all three monthly prices present."""
    cfg = current_app.config
    return not any(
        _is_placeholder(str(cfg.get(k) or "").strip())
        for k in ("STRIPE_SECRET_KEY", "STRIPE_PRICE_NURTURE", "STRIPE_PRICE_SUSTAIN", "STRIPE_PRICE_FLOURISH")
    )


def public_base_url(fallback: str = "") -> str:
    return (current_app.config.get("PUBLIC_BASE_URL") or fallback or "").rstrip("/")


class PriceNotConfigured(RuntimeError):
    pass


# ----------------------------
# Checkout + subscriptions
# ----------------------------
def line_items(tier: Product, gift: Optional[Product]) -> List[Dict[str, Any]]:
    if not tier.price_id:
        raise PriceNotConfigured(tier.price_config_key)
    items = [{"price": tier.price_id, "quantity": 1}]
    if gift and gift.price_id:
        items.append({"price": gift.price_id, "quantity": 1})
    return items


def create_subscription_checkout(
    *,
    tier: Product,
    gift: Optional[Product],
    success_url: str,
    cancel_url: str,
    metadata: Dict[str, str],
    customer_email: Optional[str] = None,
) -> Any:
    """Create a subscription-mode Checkout Session. Raises stripe.StripeError."""
    params: Dict[str, Any] = {
        "mode": "subscription",
        "payment_method_types": ["card"],
        "line_items": line_items(tier, gift),
        "success_url": success_url,
        "cancel_url": cancel_url,
        "metadata": metadata,
        "subscription_data": {"metadata": metadata},
        "api_key": current_app.config.get("STRIPE_SECRET_KEY"),
    }
    if customer_email:
        params["customer_email"] = customer_email
    return stripe.checkout.Session.create(**params)


def pause_subscription(subscription_id: str) -> bool:
    """Stop collecting on a subscription. Stripe failures are logged, not raised."""
    try:
        stripe.Subscription.modify(
            subscription_id,
            pause_collection={"behavior": "mark_uncollectible"},
            api_key=current_app.config.get("STRIPE_SECRET_KEY"),
        )
        return True
    except stripe.StripeError:
        log.exception("Failed to pause Stripe subscription %s", subscription_id)
        return False


def construct_event(payload: bytes, sig_header: str) -> Any:
    """Verify the Stripe-Signature header. Raises ValueError / stripe.SignatureVerificationError."""
    secret = (current_app.config.get("STRIPE_WEBHOOK_SECRET") or "").strip()
    if not secret:
        raise ValueError("STRIPE_WEBHOOK_SECRET is not configured")
    return stripe.Webhook.construct_event(payload, sig_header, secret)


# ----------------------------
# Webhook event application
# ----------------------------
def _subscription_from_invoice(invoice: Dict[str, Any]) -> str:
    sub = invoice.get("subscription")
    if not sub:
        details = ((invoice.get("parent") or {}).get("subscription_details")) or {}
        sub = details.get("subscription")
    if isinstance(sub, dict):
        sub = sub.get("id")
    return str(sub or "")


def _set_commitment_status(subscription_id: str, status: str, **extra: Any) -> int:
    if not subscription_id:
        return 0
    vals: Dict[str, Any] = {"status": status, "updated_at": utcnow(), **extra}
    res = db.session.execute(
        sa_update(Commitment)
        .where(Commitment.stripe_subscription_id == subscription_id)
        .values(**vals)
        .execution_options(synchronize_session=False)
    )
    return int(res.rowcount or 0)


def subscription_status(sub: Dict[str, Any]) -> str:
    raw = str(sub.get("status") or "").lower()
    if raw == "past_due":
        return "past_due"
    if raw == "canceled":
        return "cancelled"
    if sub.get("pause_collection"):
        return "paused"
    return "active"


def _checkout_completed(session: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    md = session.get("metadata") or {}
    campaign_id = str(md.get("campaign_id") or "")
    tier_key = str(md.get("monthly_tier") or "")
    user_id = str(md.get("user_id") or "") or None
    subscription_id = session.get("subscription")
    if isinstance(subscription_id, dict):
        subscription_id = subscription_id.get("id")
    customer_id = session.get("customer")
    if isinstance(customer_id, dict):
        customer_id = customer_id.get("id")

    campaign = db.session.get(Campaign, campaign_id) if campaign_id else None
    if campaign is None:
        log.warning("checkout.session.completed for unknown campaign %r (session %s)", campaign_id, session.get("id"))
        return None

    if subscription_id and Commitment.query.filter_by(stripe_subscription_id=str(subscription_id)).first():
        log.info("Commitment for subscription %s already recorded", subscription_id)
        return None

    if user_id and db.session.get(User, user_id) is None:
        user_id = None

    tier = monthly_tier(tier_key)
    commitment = Commitment(
        campaign_id=campaign.id,
        user_id=user_id,
        status="active",
        monthly_tier=tier_key or "unknown",
        stripe_subscription_id=str(subscription_id) if subscription_id else None,
        stripe_customer_id=str(customer_id) if customer_id else None,
        started_at=utcnow(),
    )
    db.session.add(commitment)

    if user_id:
        Membership.ensure(campaign.id, user_id, "supporter")

    Campaign.add_supporter(campaign.id, tier.amount if tier else 0)
    db.session.flush()

    return {
        "event": "checkout_succeeded",
        "properties": {"campaign_id": campaign.id, "user_id": user_id, "monthly_tier": tier_key, "source": md.get("source")},
    }


def apply_event(etype: str, obj: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Apply one Stripe event inside the caller's transaction. Returns the
    analytics event to emit after commit, if any.
    """
    if etype == "checkout.session.completed":
        return _checkout_completed(obj)

    if etype == "invoice.payment_failed":
        _set_commitment_status(_subscription_from_invoice(obj), "past_due")
        return None

    if etype == "customer.subscription.deleted":
        _set_commitment_status(str(obj.get("id") or ""), "cancelled", cancelled_at=utcnow())
        return None

    if etype == "customer.subscription.updated":
        status = subscription_status(obj)
        extra: Dict[str, Any] = {}
        if status == "cancelled":
            extra["cancelled_at"] = utcnow()
        _set_commitment_status(str(obj.get("id") or ""), status, **extra)
        return None

    log.debug("Ignoring Stripe event type %s", etype)
    return None
