"""
Sanctuary: the patient's private 30-day space and its tools.

Mount: /api/sanctuary

  GET    /<ref>                      overview (campaign, today's day, recent journal)
  POST   /<ref>/claim                patient claims the sanctuary
  GET    /<ref>/<tool>               list  (journal, tasks, medications, appointments, symptoms)
  POST   /<ref>/<tool>               create
  PATCH  /<ref>/<tool>/<item_id>     update (not journal)
  DELETE /<ref>/<tool>/<item_id>     delete (not journal)

Every route needs a signed-in member of the campaign (patient or caregiver,
or the claimant) or an admin. Claiming only needs a signed-in user.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Tuple

from flask import Blueprint, current_app, request
from flask_login import current_user
from sqlalchemy.exc import SQLAlchemyError

from treeofhope.extensions import db
from treeofhope.models.campaign import Campaign
from treeofhope.models.commitment import Membership
from treeofhope.models.mixins import utcnow
from treeofhope.models.sanctuary import (
    Appointment,
    JournalEntry,
    Medication,
    SanctuaryDay,
    SymptomLog,
    Task,
)
from treeofhope.services.analytics import track_server_event
from treeofhope.services.campaigns import resolve_campaign

from .api_utils import (
    _as_bool,
    _as_date,
    _as_datetime,
    _as_int,
    _clean_str,
    _json_error,
    _json_ok,
    _missing,
    _request_payload,
    auth_required,
)

bp = Blueprint("sanctuary", __name__)

RECENT_ENTRIES = 5

Coercer = Callable[[Any, str], Any]


def _text(v: Any, _field: str) -> Optional[str]:
    return None if v is None else str(v)


def _flag(v: Any, _field: str) -> bool:
    return _as_bool(v)


@dataclass(frozen=True)
class ToolSpec:
    name: str
    model: Any
    plural: str
    singular: str
    label: str
    create_error: str
    required: Tuple[str, ...]
    fields: Dict[str, Coercer]
    defaults: Dict[str, Any] = field(default_factory=dict)
    patchable: Dict[str, Coercer] = field(default_factory=dict)
    order_by: Callable[[], Any] = None  # type: ignore[assignment]

    def ordered(self, q):
        return q.order_by(self.order_by()) if self.order_by else q


TOOLS: Dict[str, ToolSpec] = {
    "journal": ToolSpec(
        name="journal",
        model=JournalEntry,
        plural="entries",
        singular="entry",
        label="Journal entry",
        create_error="Failed to create entry",
        required=("user_id", "title", "content"),
        fields={"title": _text, "content": _text, "mood_score": _as_int, "is_private": _flag},
        defaults={"is_private": True},
        order_by=lambda: JournalEntry.created_at.desc(),
    ),
    "tasks": ToolSpec(
        name="tasks",
        model=Task,
        plural="tasks",
        singular="task",
        label="Task",
        create_error="Failed to create task",
        required=("user_id", "title"),
        fields={"title": _text, "description": _text, "due_date": _as_date, "priority": _text, "completed": _flag},
        defaults={"completed": False},
        patchable={
            "is_completed": _flag,
            "completed_at": _as_datetime,
            "title": _text,
            "description": _text,
            "due_date": _as_date,
        },
        order_by=lambda: Task.due_date.asc(),
    ),
    "medications": ToolSpec(
        name="medications",
        model=Medication,
        plural="medications",
        singular="medication",
        label="Medication",
        create_error="Failed to create medication",
        required=("user_id", "name"),
        fields={
            "name": _text,
            "dosage": _text,
            "frequency": _text,
            "reason": _text,
            "start_date": _as_date,
            "end_date": _as_date,
            "prescriber": _text,
        },
        patchable={
            "is_active": _flag,
            "name": _text,
            "dosage": _text,
            "frequency": _text,
            "time_of_day": _text,
            "notes": _text,
        },
        order_by=lambda: Medication.created_at.desc(),
    ),
    "appointments": ToolSpec(
        name="appointments",
        model=Appointment,
        plural="appointments",
        singular="appointment",
        label="Appointment",
        create_error="Failed to create appointment",
        required=("user_id", "title", "appointment_date"),
        fields={
            "title": _text,
            "description": _text,
            "appointment_date": _as_date,
            "appointment_time": _text,
            "location": _text,
            "doctor_name": _text,
        },
        patchable={
            "title": _text,
            "description": _text,
            "appointment_date": _as_date,
            "appointment_time": _text,
            "location": _text,
            "doctor_name": _text,
        },
        order_by=lambda: Appointment.appointment_date.asc(),
    ),
    "symptoms": ToolSpec(
        name="symptoms",
        model=SymptomLog,
        plural="symptoms",
        singular="symptom",
        label="Symptom log",
        create_error="Failed to create symptom",
        required=("user_id", "name"),
        fields={
            "name": _text,
            "severity": _as_int,
            "description": _text,
            "frequency": _text,
            "triggered_by": _text,
        },
        patchable={
            "name": _text,
            "severity": _as_int,
            "description": _text,
            "frequency": _text,
            "triggered_by": _text,
        },
        order_by=lambda: SymptomLog.created_at.desc(),
    ),
}


# ----------------------------
# Access
# ----------------------------
def _is_member(campaign: Campaign) -> bool:
    if current_user.is_admin:
        return True
    if campaign.sanctuary_claimed_by and campaign.sanctuary_claimed_by == current_user.id:
        return True
    return Membership.has_role(campaign.id, current_user.id, ("patient", "caregiver"))


def _load(ref: str, not_found: str = "Not found"):
    """(campaign, None) for an allowed caller, else (None, error response)."""
    campaign = resolve_campaign(ref)
    if campaign is None:
        return None, _json_error(not_found, 404)
    if not _is_member(campaign):
        return None, _json_error("Forbidden", 403)
    return campaign, None


# ----------------------------
# Overview + claim
# ----------------------------
@bp.get("/<ref>")
@auth_required
def overview(ref: str):
    campaign, err = _load(ref, "Campaign not found")
    if err:
        return err

    day_number = campaign.sanctuary_day_number(utcnow().date())
    content = None
    if day_number:
        day = SanctuaryDay.query.filter_by(campaign_id=campaign.id, day_number=day_number).first()
        content = day.as_dict() if day else None

    recent = (
        JournalEntry.query.filter_by(campaign_id=campaign.id)
        .order_by(JournalEntry.created_at.desc())
        .limit(RECENT_ENTRIES)
        .all()
    )
    return _json_ok(
        {
            "campaign": campaign.as_dict(),
            "today": {"dayNumber": day_number, "content": content},
            "recentEntries": [e.as_summary() for e in recent],
        }
    )


@bp.post("/<ref>/claim")
@auth_required
def claim(ref: str):
    data = _request_payload()
    user_id = _clean_str(data.get("user_id"))
    if not user_id:
        return _json_error("User ID is required", 400)
    if user_id != current_user.id:
        return _json_error("Unauthorized: user can only claim for themselves", 401)

    campaign = resolve_campaign(ref)
    if campaign is None:
        return _json_error("Campaign not found", 404)
    if campaign.sanctuary_claimed and campaign.sanctuary_claimed_by not in (None, user_id):
        return _json_error("Sanctuary already claimed", 409)

    try:
        campaign.sanctuary_claimed = True
        campaign.sanctuary_claimed_by = user_id
        if campaign.sanctuary_start_date is None:
            campaign.sanctuary_start_date = utcnow().date()
        Membership.ensure(campaign.id, user_id, "patient")
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Failed to claim sanctuary for campaign %s", campaign.id)
        return _json_error("Failed to claim sanctuary", 500)

    track_server_event("sanctuary_claimed", {"campaign_id": campaign.id, "user_id": user_id})
    return _json_ok({"campaign": campaign.as_dict()})


# ----------------------------
# Tools
# ----------------------------
@bp.get("/<ref>/<tool>")
@auth_required
def list_items(ref: str, tool: str):
    spec = TOOLS.get(tool)
    if spec is None:
        return _json_error("Not found", 404)
    campaign, err = _load(ref)
    if err:
        return err

    q = spec.model.query.filter_by(campaign_id=campaign.id)
    user_id = _clean_str(request.args.get("user_id"))
    if user_id:
        q = q.filter_by(user_id=user_id)
    return _json_ok({spec.plural: [row.as_dict() for row in spec.ordered(q).all()]})


@bp.post("/<ref>/<tool>")
@auth_required
def create_item(ref: str, tool: str):
    spec = TOOLS.get(tool)
    if spec is None:
        return _json_error("Not found", 404)
    campaign, err = _load(ref)
    if err:
        return err

    data = _request_payload()
    if _missing(data, spec.required):
        return _json_error("Missing required fields", 400)

    values: Dict[str, Any] = dict(spec.defaults)
    for key, coerce in spec.fields.items():
        if key in data and data[key] is not None:
            values[key] = coerce(data[key], key)
    row = spec.model(campaign_id=campaign.id, user_id=str(data["user_id"]), **values)

    try:
        db.session.add(row)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Failed to create %s for campaign %s", spec.name, campaign.id)
        return _json_error(spec.create_error, 500)

    if spec.name == "journal":
        track_server_event(
            "journal_entry_created",
            {"campaign_id": campaign.id, "user_id": row.user_id, "mood_score": row.mood_score},
        )
    else:
        track_server_event("tool_used", {"tool": spec.name, "campaign_id": campaign.id, "user_id": row.user_id})
    return _json_ok({spec.singular: row.as_dict()}, 201)


def _load_item(ref: str, tool: str, item_id: str):
    spec = TOOLS.get(tool)
    if spec is None or not spec.patchable:
        return None, None, _json_error("Not found", 404)
    campaign, err = _load(ref)
    if err:
        return None, None, err
    row = spec.model.query.filter_by(id=item_id, campaign_id=campaign.id).first()
    if row is None:
        return spec, None, _json_error(f"{spec.label} not found", 404)
    return spec, row, None


@bp.patch("/<ref>/<tool>/<item_id>")
@auth_required
def update_item(ref: str, tool: str, item_id: str):
    spec, row, err = _load_item(ref, tool, item_id)
    if err:
        return err

    data = _request_payload()
    updates = {k: coerce(data[k], k) for k, coerce in spec.patchable.items() if k in data}
    if "is_completed" in updates:
        completed = updates.pop("is_completed")
        updates["completed"] = completed
        if completed and not updates.get("completed_at"):
            updates["completed_at"] = row.completed_at or utcnow()
        elif not completed and "completed_at" not in updates:
            updates["completed_at"] = None

    try:
        for key, value in updates.items():
            setattr(row, key, value)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Failed to update %s %s", spec.name, item_id)
        return _json_error(f"Failed to update {spec.label.lower()}", 500)

    return _json_ok({spec.singular: row.as_dict()})


@bp.delete("/<ref>/<tool>/<item_id>")
@auth_required
def delete_item(ref: str, tool: str, item_id: str):
    spec, row, err = _load_item(ref, tool, item_id)
    if err:
        return err

    try:
        db.session.delete(row)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Failed to delete %s %s", spec.name, item_id)
        return _json_error(f"Failed to delete {spec.label.lower()}", 500)

    return _json_ok()
