"""
Admin API: campaign management and the bridge pipeline.

Mount: /api/admin  (every route requires an admin identity)
"""

from __future__ import annotations

from typing import Any, Dict

from flask import Blueprint, current_app, request
from flask_login import current_user
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from treeofhope.extensions import db
from treeofhope.models.bridge import BRIDGE_STATUSES, BridgeCampaign, BridgeOutreach
from treeofhope.models.campaign import CAMPAIGN_STATUSES, Campaign
from treeofhope.services.analytics import track_server_event
from treeofhope.services.campaigns import (
    PRE_BUILD_SEED_AUTHOR,
    PRE_BUILD_SEED_MESSAGES,
    add_leaf,
    unique_slug,
)

from .api_utils import (
    _as_int,
    _clean_str,
    _json_error,
    _json_ok,
    _missing,
    _request_payload,
    admin_required,
)

bp = Blueprint("admin", __name__)

_CAMPAIGN_PATCHABLE = ("title", "description", "patient_name", "status", "image_url", "story")
_BRIDGE_PATCHABLE_STR = ("status", "campaign_id", "claimed_by", "gofundme_title", "gofundme_organiser_name", "gofundme_category")
_BRIDGE_PATCHABLE_INT = ("gofundme_raised_cents", "gofundme_goal_cents", "gofundme_donor_count")


# ----------------------------
# Campaigns
# ----------------------------
@bp.get("/campaigns")
@admin_required
def list_campaigns():
    rows = Campaign.query.order_by(Campaign.created_at.desc()).all()
    return _json_ok({"campaigns": [c.as_dict() for c in rows]})


@bp.post("/campaigns")
@admin_required
def create_campaign():
    data = _request_payload()
    if _missing(data, ("title", "slug", "description", "patient_name")):
        return _json_error("Missing required fields", 400)

    status = _clean_str(data.get("status")) or "draft"
    if status not in CAMPAIGN_STATUSES:
        return _json_error("Invalid status", 400)

    campaign = Campaign(
        title=str(data["title"]).strip(),
        slug=str(data["slug"]).strip(),
        description=str(data["description"]),
        patient_name=str(data["patient_name"]).strip(),
        status=status,
        image_url=_clean_str(data.get("image_url")),
        story=data.get("story"),
        leaf_count=0,
        supporter_count=0,
        monthly_total_cents=0,
    )
    try:
        db.session.add(campaign)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return _json_error("Campaign slug already exists", 409)
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Failed to create campaign %r", data.get("slug"))
        return _json_error("Failed to create campaign", 500)

    track_server_event(
        "campaign_created",
        {"campaign_id": campaign.id, "status": campaign.status},
        user_id=current_user.id,
    )
    return _json_ok({"campaign": campaign.as_dict()}, 201)


@bp.patch("/campaigns/<campaign_id>")
@admin_required
def update_campaign(campaign_id: str):
    campaign = db.session.get(Campaign, campaign_id)
    if campaign is None:
        return _json_error("Campaign not found", 404)

    data = _request_payload()
    updates = {k: data[k] for k in _CAMPAIGN_PATCHABLE if k in data}
    if "status" in updates and updates["status"] not in CAMPAIGN_STATUSES:
        return _json_error("Invalid status", 400)

    for key, value in updates.items():
        setattr(campaign, key, value)
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Failed to update campaign %s", campaign_id)
        return _json_error("Failed to update campaign", 500)

    if "status" in updates:
        track_server_event("campaign_status_changed", {"campaign_id": campaign.id, "status": campaign.status})
    return _json_ok({"campaign": campaign.as_dict()})


# ----------------------------
# Bridge pipeline
# ----------------------------
@bp.get("/bridge")
@admin_required
def list_bridges():
    q = BridgeCampaign.query
    status = _clean_str(request.args.get("status"))
    if status:
        q = q.filter_by(status=status)
    rows = q.order_by(BridgeCampaign.created_at.desc()).all()
    return _json_ok({"bridges": [b.as_dict() for b in rows]})


@bp.get("/bridge/<bridge_id>")
@admin_required
def get_bridge(bridge_id: str):
    bridge = db.session.get(BridgeCampaign, bridge_id)
    if bridge is None:
        return _json_error("Bridge not found", 404)
    return _json_ok({"bridge": bridge.as_dict(include_outreach=True)})


@bp.patch("/bridge/<bridge_id>")
@admin_required
def update_bridge(bridge_id: str):
    bridge = db.session.get(BridgeCampaign, bridge_id)
    if bridge is None:
        return _json_error("Bridge not found", 404)

    data = _request_payload()
    updates: Dict[str, Any] = {k: data[k] for k in _BRIDGE_PATCHABLE_STR if k in data}
    for k in _BRIDGE_PATCHABLE_INT:
        if k in data:
            updates[k] = _as_int(data[k], k) or 0
    if "status" in updates and updates["status"] not in BRIDGE_STATUSES:
        return _json_error("Invalid status", 400)

    for key, value in updates.items():
        setattr(bridge, key, value)
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Failed to update bridge %s", bridge_id)
        return _json_error("Failed to update bridge", 500)

    return _json_ok({"bridge": bridge.as_dict()})


@bp.post("/bridge/scout")
@admin_required
def scout_bridge():
    data = _request_payload()
    if _missing(data, ("gofundme_url", "gofundme_title", "gofundme_organiser_name")):
        return _json_error("Missing required fields", 400)

    bridge = BridgeCampaign(
        gofundme_url=str(data["gofundme_url"]).strip(),
        gofundme_title=str(data["gofundme_title"]).strip(),
        gofundme_organiser_name=str(data["gofundme_organiser_name"]).strip(),
        gofundme_raised_cents=_as_int(data.get("gofundme_raised_cents"), "gofundme_raised_cents") or 0,
        gofundme_goal_cents=_as_int(data.get("gofundme_goal_cents"), "gofundme_goal_cents") or 0,
        gofundme_donor_count=_as_int(data.get("gofundme_donor_count"), "gofundme_donor_count") or 0,
        gofundme_category=_clean_str(data.get("gofundme_category")),
        status="scouted",
        outreach_attempts=0,
    )
    try:
        db.session.add(bridge)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Failed to scout bridge %r", data.get("gofundme_url"))
        return _json_error("Failed to scout bridge", 500)

    track_server_event("bridge_scouted", {"bridge_id": bridge.id, "gofundme_category": bridge.gofundme_category})
    return _json_ok({"bridge": bridge.as_dict()}, 201)


@bp.post("/bridge/<bridge_id>/outreach")
@admin_required
def log_outreach(bridge_id: str):
    data = _request_payload()
    if _missing(data, ("channel", "message_summary")):
        return _json_error("Channel and message_summary are required", 400)

    bridge = db.session.get(BridgeCampaign, bridge_id)
    if bridge is None:
        return _json_error("Bridge not found", 404)

    channel = str(data["channel"]).strip()
    outreach = BridgeOutreach(bridge_id=bridge.id, channel=channel, message_summary=str(data["message_summary"]))
    try:
        db.session.add(outreach)
        BridgeCampaign.record_outreach_attempt(bridge.id)
        if bridge.status == "scouted":
            bridge.status = "contacted"
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Failed to record outreach for bridge %s", bridge_id)
        return _json_error("Failed to log outreach", 500)

    track_server_event("bridge_outreach_sent", {"bridge_id": bridge.id, "channel": channel})
    return _json_ok({"outreach": outreach.as_dict()}, 201)


@bp.post("/bridge/pre-build")
@admin_required
def pre_build():
    data = _request_payload()
    if _missing(data, ("bridge_id", "patient_name", "title", "story")):
        return _json_error("Missing required fields", 400)

    bridge = db.session.get(BridgeCampaign, str(data["bridge_id"]))
    if bridge is None:
        return _json_error("Bridge not found", 404)

    story = str(data["story"])
    try:
        campaign = Campaign(
            slug=unique_slug(str(data["title"])),
            title=str(data["title"]).strip(),
            description=story,
            story=story,
            patient_name=str(data["patient_name"]).strip(),
            status="draft",
            image_url=_clean_str(data.get("image_url")),
            leaf_count=0,
            supporter_count=0,
            monthly_total_cents=0,
        )
        db.session.add(campaign)
        db.session.flush()

        bridge.campaign_id = campaign.id
        bridge.status = "pre_built"

        for message in PRE_BUILD_SEED_MESSAGES:
            add_leaf(campaign.id, author_name=PRE_BUILD_SEED_AUTHOR, message=message, is_public=True)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Failed to pre-build campaign for bridge %s", bridge.id)
        return _json_error("Failed to create campaign", 500)

    db.session.refresh(campaign)
    track_server_event("bridge_pre_built", {"bridge_id": bridge.id, "campaign_id": campaign.id})
    return _json_ok({"campaign": campaign.as_dict()}, 201)
