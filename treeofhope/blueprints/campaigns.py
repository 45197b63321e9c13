"""
Public campaign pages and the leaf wall.

Mount: /api

  GET  /api/public/campaigns/<slug>
  GET  /api/campaigns/<ref>
  GET  /api/campaigns/<ref>/leaves
  POST /api/campaigns/<ref>/leaves

``<ref>`` is a campaign id or slug.
"""

from __future__ import annotations

from flask import Blueprint, current_app
from sqlalchemy.exc import SQLAlchemyError

from treeofhope.extensions import db
from treeofhope.models.campaign import Campaign, Leaf
from treeofhope.services.analytics import track_server_event
from treeofhope.services.campaigns import add_leaf, resolve_campaign

from .api_utils import _as_bool, _clean_str, _json_error, _json_ok, _missing, _request_payload

bp = Blueprint("campaigns", __name__)


@bp.get("/public/campaigns/<slug>")
def public_campaign(slug: str):
    campaign = Campaign.query.filter_by(slug=slug, status="active").first()
    if campaign is None:
        return _json_error("Campaign not found", 404, {"campaign": None, "leaves": []})
    leaves = Leaf.visible_for(campaign.id)
    return _json_ok({"campaign": campaign.as_dict(), "leaves": [leaf.as_dict() for leaf in leaves]})


@bp.get("/campaigns/<ref>")
def get_campaign(ref: str):
    campaign = resolve_campaign(ref)
    if campaign is None:
        return _json_error("Campaign not found", 404)
    return _json_ok({"campaign": campaign.as_dict()})


@bp.get("/campaigns/<ref>/leaves")
def list_leaves(ref: str):
    campaign = resolve_campaign(ref)
    if campaign is None:
        return _json_error("Campaign not found", 404)
    return _json_ok({"leaves": [leaf.as_dict() for leaf in Leaf.visible_for(campaign.id)]})


@bp.post("/campaigns/<ref>/leaves")
def create_leaf(ref: str):
    data = _request_payload()
    if _missing(data, ("author_name", "message")):
        return _json_error("Author name and message are required", 400)

    campaign = resolve_campaign(ref)
    if campaign is None:
        return _json_error("Campaign not found", 404)

    is_public = _as_bool(data.get("is_public"), default=True)
    try:
        leaf = add_leaf(
            campaign.id,
            author_name=_clean_str(data["author_name"]) or "",
            message=str(data["message"]).strip(),
            is_public=is_public,
        )
        if leaf is None:
            db.session.rollback()
            return _json_error("Campaign not found", 404)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Failed to create leaf for campaign %s", campaign.id)
        return _json_error("Failed to create leaf", 500)

    track_server_event("leaf_submitted", {"campaign_id": campaign.id, "is_public": is_public})
    return _json_ok({"leaf": leaf.as_dict()}, 201)
