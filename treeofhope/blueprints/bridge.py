"""
Public side of the bridge: the pre-built tree page, supporter activation
(leaf + Stripe checkout) and the organiser's claim.

Mount: /api/bridge
"""

from __future__ import annotations

import stripe
from flask import Blueprint, current_app, request
from flask_login import current_user
from sqlalchemy.exc import SQLAlchemyError

from treeofhope.extensions import db
from treeofhope.models.bridge import BridgeCampaign
from treeofhope.models.campaign import Campaign, Leaf
from treeofhope.models.commitment import Membership
from treeofhope.services import billing
from treeofhope.services.analytics import track_server_event
from treeofhope.services.campaigns import add_leaf, resolve_campaign

from .api_utils import _clean_str, _json_error, _json_ok, _missing, _request_payload, auth_required

bp = Blueprint("bridge", __name__)


@bp.get("/<slug>")
def bridge_page(slug: str):
    campaign = Campaign.by_slug(slug)
    if campaign is None:
        return _json_error("Campaign not found", 404)
    bridge = BridgeCampaign.query.filter_by(campaign_id=campaign.id).order_by(BridgeCampaign.created_at.desc()).first()
    return _json_ok(
        {
            "campaign": campaign.as_dict(),
            "bridge": bridge.as_dict() if bridge else None,
            "leaves": [leaf.as_dict() for leaf in Leaf.visible_for(campaign.id)],
        }
    )


@bp.post("/activate")
def activate():
    data = _request_payload()
    if _missing(data, ("campaign_id", "author_name", "message", "email")):
        return _json_error("Missing required fields", 400)

    tier = billing.monthly_tier(data.get("monthly_tier"))
    if tier is None:
        return _json_error("Invalid monthly tier", 400)
    gift = billing.joining_gift(data.get("joining_gift_tier"))

    campaign = resolve_campaign(str(data["campaign_id"]))
    if campaign is None:
        return _json_error("Campaign not found", 404)

    try:
        leaf = add_leaf(
            campaign.id,
            author_name=str(data["author_name"]).strip(),
            message=str(data["message"]).strip(),
            is_public=True,
        )
        if leaf is None:
            db.session.rollback()
            return _json_error("Campaign not found", 404)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Failed to create bridge leaf for campaign %s", campaign.id)
        return _json_error("Failed to create leaf", 500)

    leaf_id, campaign_id, slug = leaf.id, campaign.id, campaign.slug
    activated = {"campaign_id": campaign_id, "monthly_tier": tier.key}

    if not billing.is_stripe_configured():
        track_server_event("bridge_activated", activated)
        return _json_ok(
            {"checkout_url": None, "leaf_id": leaf_id, "demo": True, "message": billing.STRIPE_DEMO_MESSAGE}
        )

    base = billing.public_base_url(request.host_url)
    success_url = _clean_str(data.get("success_url")) or f"{base}/c/{campaign_id}/thank-you?session_id={{CHECKOUT_SESSION_ID}}"
    cancel_url = _clean_str(data.get("cancel_url")) or f"{base}/b/{slug}"
    metadata = {
        "campaign_id": campaign_id,
        "monthly_tier": tier.key,
        "joining_gift_tier": gift.key if gift else "none",
        "source": "bridge",
    }
    try:
        session = billing.create_subscription_checkout(
            tier=tier,
            gift=gift,
            success_url=success_url,
            cancel_url=cancel_url,
            metadata=metadata,
            customer_email=str(data["email"]).strip(),
        )
    except billing.PriceNotConfigured:
        current_app.logger.error("Price not configured for tier %s", tier.key)
        return _json_error("Price not configured", 500, {"leaf_id": leaf_id})
    except stripe.StripeError:
        current_app.logger.exception("Stripe checkout failed for bridge campaign %s", campaign_id)
        return _json_error("Failed to create checkout session", 500, {"leaf_id": leaf_id})

    track_server_event("bridge_activated", activated)
    return _json_ok({"checkout_url": session.url, "leaf_id": leaf_id})


@bp.post("/claim")
@auth_required
def claim():
    data = _request_payload()
    if _missing(data, ("bridge_id", "user_id")):
        return _json_error("Bridge ID and user ID are required", 400)
    if str(data["user_id"]) != current_user.id:
        return _json_error("Unauthorized: user can only claim for themselves", 401)

    bridge = db.session.get(BridgeCampaign, str(data["bridge_id"]))
    if bridge is None:
        return _json_error("Bridge not found", 404)

    try:
        bridge.claimed_by = current_user.id
        bridge.status = "claimed"
        if bridge.campaign_id:
            Membership.ensure(bridge.campaign_id, current_user.id, "caregiver")
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Failed to claim bridge %s", bridge.id)
        return _json_error("Failed to claim bridge", 500)

    track_server_event(
        "bridge_organiser_claimed",
        {"bridge_id": bridge.id, "campaign_id": bridge.campaign_id, "user_id": current_user.id},
    )
    return _json_ok({"bridge": bridge.as_dict()})
