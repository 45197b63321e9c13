#!/usr/bin/env python3
"""
Billing blueprint (Stripe subscriptions).

Mount: /api/billing

  POST /api/billing/checkout-session
  POST /api/billing/webhook

Contracts:
- Tier validation happens before any Stripe call.
- Without real Stripe credentials checkout answers 503 with the demo message.
- Webhook deliveries are recorded in stripe_events in the same transaction
  that applies them; a replayed event id is acknowledged without effect.
"""

from __future__ import annotations

import json

import stripe
from flask import Blueprint, current_app, request
from flask_login import current_user
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from treeofhope.extensions import db
from treeofhope.models.stripe_event import StripeEvent
from treeofhope.services import billing
from treeofhope.services.analytics import track_server_event
from treeofhope.services.campaigns import resolve_campaign

from .api_utils import _clean_str, _json_error, _json_ok, _json_response, _missing, _request_payload

bp = Blueprint("billing", __name__)


@bp.post("/checkout-session")
def checkout_session():
    data = _request_payload()
    if _missing(data, ("campaign_id", "monthly_tier")):
        return _json_error("Missing required fields", 400)

    tier = billing.monthly_tier(data.get("monthly_tier"))
    if tier is None:
        return _json_error("Invalid monthly tier", 400)
    gift = billing.joining_gift(data.get("joining_gift_tier"))

    campaign = resolve_campaign(str(data["campaign_id"]))
    if campaign is None:
        return _json_error("Campaign not found", 404)

    if not billing.is_stripe_configured():
        return _json_error(billing.STRIPE_DEMO_MESSAGE, 503, {"demo": True})

    user = current_user if current_user.is_authenticated else None
    base = billing.public_base_url(request.host_url)
    success_url = (
        _clean_str(data.get("success_url"))
        or f"{base}/c/{campaign.id}/thank-you?session_id={{CHECKOUT_SESSION_ID}}"
    )
    cancel_url = _clean_str(data.get("cancel_url")) or f"{base}/c/{campaign.id}/commitment"
    metadata = {
        "campaign_id": campaign.id,
        "user_id": user.id if user else "",
        "monthly_tier": tier.key,
        "joining_gift_tier": gift.key if gift else "none",
    }

    try:
        session = billing.create_subscription_checkout(
            tier=tier,
            gift=gift,
            success_url=success_url,
            cancel_url=cancel_url,
            metadata=metadata,
            customer_email=user.email if user else _clean_str(data.get("email")),
        )
    except billing.PriceNotConfigured:
        current_app.logger.error("Price not configured for tier %s", tier.key)
        return _json_error("Price not configured", 500)
    except stripe.StripeError:
        current_app.logger.exception("Stripe checkout failed for campaign %s", campaign.id)
        return _json_error("Failed to create checkout session", 500)

    track_server_event(
        "checkout_started",
        {
            "campaign_id": campaign.id,
            "user_id": user.id if user else None,
            "monthly_tier": tier.key,
            "joining_gift_tier": gift.key if gift else None,
        },
    )
    return _json_ok({"sessionId": session.id, "url": session.url})


@bp.post("/webhook")
def webhook():
    payload = request.get_data(cache=False, as_text=False)
    sig = (request.headers.get("Stripe-Signature") or "").strip()

    try:
        billing.construct_event(payload, sig)
        ev = json.loads(payload.decode("utf-8"))
    except (ValueError, stripe.SignatureVerificationError) as e:
        current_app.logger.warning("Rejected Stripe webhook: %s", e)
        return _json_error("Invalid signature", 400)

    event_id = str(ev.get("id") or "")
    etype = str(ev.get("type") or "")
    obj = ((ev.get("data") or {}).get("object")) or {}
    if not event_id or not isinstance(obj, dict):
        return _json_error("Invalid signature", 400)

    try:
        db.session.add(
            StripeEvent(
                event_id=event_id,
                type=etype,
                livemode=bool(ev.get("livemode") or False),
                object_id=str(obj.get("id") or "")[:120] or None,
            )
        )
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        current_app.logger.info("Stripe event %s already processed", event_id)
        return _json_response({"received": True, "duplicate": True})

    try:
        follow_up = billing.apply_event(etype, obj)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Stripe webhook %s (%s) failed; Stripe will retry", event_id, etype)
        return _json_error("Webhook processing failed", 500)

    if follow_up:
        track_server_event(follow_up["event"], follow_up["properties"])
    return _json_response({"received": True})
