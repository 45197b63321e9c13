"""
The signed-in supporter's own profile and commitments.

Mount: /api/me  (bearer token only; the auth cookie is not accepted here)
"""

from __future__ import annotations

from functools import wraps

from flask import Blueprint, current_app, g
from sqlalchemy.exc import SQLAlchemyError

from treeofhope.extensions import db
from treeofhope.models.commitment import Commitment
from treeofhope.models.mixins import utcnow
from treeofhope.services import billing
from treeofhope.services.analytics import track_server_event
from treeofhope.services.auth import bearer_token, user_from_token

from .api_utils import _as_date, _clean_str, _json_error, _json_ok, _request_payload

bp = Blueprint("me", __name__)

PAUSE_REASONS = ("hardship", "medical", "financial", "other")


def bearer_required(fn):
    @wraps(fn)
    def wrapped(*args, **kwargs):
        tok = bearer_token()
        if not tok:
            return _json_error("Missing or invalid authorization header", 401)
        user = user_from_token(tok)
        if user is None:
            return _json_error("Unauthorized", 401)
        g.me = user
        return fn(*args, **kwargs)

    return wrapped


@bp.get("")
@bearer_required
def profile():
    return _json_ok({"user": g.me.as_profile()})


@bp.get("/commitment")
@bearer_required
def commitments():
    rows = (
        Commitment.query.filter_by(user_id=g.me.id)
        .order_by(Commitment.started_at.desc())
        .all()
    )
    return _json_ok({"commitments": [c.as_dict(include_campaign=True) for c in rows]})


@bp.post("/commitment/pause")
@bearer_required
def pause_commitment():
    data = _request_payload()
    commitment_id = _clean_str(data.get("commitment_id"))
    if not commitment_id:
        return _json_error("Commitment ID is required", 400)

    commitment = Commitment.query.filter_by(id=commitment_id, user_id=g.me.id).first()
    if commitment is None:
        return _json_error("Commitment not found", 404)

    resume_date = _as_date(data.get("resume_date"), "resume_date")
    reason = _clean_str(data.get("reason"))
    if reason not in PAUSE_REASONS:
        reason = None
    try:
        commitment.status = "paused"
        commitment.paused_at = utcnow()
        commitment.paused_until = resume_date
        commitment.resume_date = resume_date
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Failed to pause commitment %s", commitment_id)
        return _json_error("Failed to pause commitment", 500)

    if commitment.stripe_subscription_id and billing.is_stripe_configured():
        billing.pause_subscription(commitment.stripe_subscription_id)

    track_server_event(
        "commitment_paused",
        {
            "commitment_id": commitment_id,
            "user_id": g.me.id,
            "reason": reason,
            "resume_date": resume_date.isoformat() if resume_date else None,
        },
    )
    return _json_ok({"message": "Commitment paused successfully"})
