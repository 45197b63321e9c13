from datetime import timedelta

import pytest
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from treeofhope.extensions import db
from treeofhope.models import Campaign, Membership
from treeofhope.models.mixins import utcnow


@pytest.fixture
def sanctuary(client, make_campaign, member):
    """Sarah's campaign with the sanctuary claimed by ``member``."""
    campaign = make_campaign()
    res = client.post(f"/api/sanctuary/{campaign.id}/claim", json={"user_id": member.id}, headers=member.headers)
    assert res.status_code == 200
    return campaign


def _url(campaign, *parts):
    return "/".join([f"/api/sanctuary/{campaign.id}", *parts]).rstrip("/")


# ----------------------------
# Access + claim
# ----------------------------
def test_requires_sign_in(client, make_campaign):
    campaign = make_campaign()
    assert client.get(_url(campaign)).status_code == 401
    assert client.get(_url(campaign, "journal")).status_code == 401


def test_non_member_is_forbidden(client, sanctuary, make_user):
    stranger = make_user("stranger@example.com")
    res = client.get(_url(sanctuary), headers=stranger.headers)
    assert res.status_code == 403
    assert client.get(_url(sanctuary, "tasks"), headers=stranger.headers).status_code == 403


def test_admin_and_caregiver_have_access(client, sanctuary, admin, make_user, add_membership):
    carer = make_user("carer@example.com")
    add_membership(sanctuary.id, carer.id, "caregiver")
    assert client.get(_url(sanctuary), headers=admin.headers).status_code == 200
    assert client.get(_url(sanctuary), headers=carer.headers).status_code == 200


def test_unknown_campaign(client, member):
    res = client.get("/api/sanctuary/nobody", headers=member.headers)
    assert res.status_code == 404
    assert res.get_json()["error"] == "Campaign not found"


def test_claim_sets_patient_and_start_date(app, sanctuary, member, events):
    with app.app_context():
        row = db.session.get(Campaign, sanctuary.id)
        assert row.sanctuary_claimed is True
        assert row.sanctuary_claimed_by == member.id
        assert row.sanctuary_start_date == utcnow().date()
        assert Membership.has_role(sanctuary.id, member.id, ("patient",))
    assert events("sanctuary_claimed")[0]["user_id"] == member.id


def test_claim_validation(client, make_campaign, member, make_user):
    campaign = make_campaign()
    res = client.post(_url(campaign, "claim"), json={}, headers=member.headers)
    assert res.status_code == 400
    assert res.get_json()["error"] == "User ID is required"

    other = make_user("other@example.com")
    res = client.post(_url(campaign, "claim"), json={"user_id": other.id}, headers=member.headers)
    assert res.status_code == 401
    assert res.get_json()["error"] == "Unauthorized: user can only claim for themselves"


def test_claim_by_second_user_conflicts(client, sanctuary, member, make_user):
    other = make_user("other@example.com")
    res = client.post(_url(sanctuary, "claim"), json={"user_id": other.id}, headers=other.headers)
    assert res.status_code == 409
    assert res.get_json()["error"] == "Sanctuary already claimed"

    again = client.post(_url(sanctuary, "claim"), json={"user_id": member.id}, headers=member.headers)
    assert again.status_code == 200


# ----------------------------
# Overview
# ----------------------------
def test_overview_before_claim(client, make_campaign, admin):
    campaign = make_campaign()
    body = client.get(_url(campaign), headers=admin.headers).get_json()
    assert body["today"] == {"dayNumber": 0, "content": None}
    assert body["recentEntries"] == []


def test_overview_day_number_and_content(app, client, sanctuary, member):
    result = app.test_cli_runner().invoke(args=["tree", "seed-sanctuary", sanctuary.slug])
    assert result.exit_code == 0, result.output
    with app.app_context():
        row = db.session.get(Campaign, sanctuary.id)
        row.sanctuary_start_date = utcnow().date() - timedelta(days=2)
        db.session.commit()

    body = client.get(_url(sanctuary), headers=member.headers).get_json()
    assert body["today"]["dayNumber"] == 3
    assert body["today"]["content"]["day_number"] == 3
    assert body["today"]["content"]["title"] == "Gratitude"


def test_overview_day_number_caps_at_thirty(app, client, sanctuary, member):
    with app.app_context():
        row = db.session.get(Campaign, sanctuary.id)
        row.sanctuary_start_date = utcnow().date() - timedelta(days=90)
        db.session.commit()
    body = client.get(_url(sanctuary), headers=member.headers).get_json()
    assert body["today"] == {"dayNumber": 30, "content": None}


def test_overview_lists_five_recent_entries(client, sanctuary, member):
    for i in range(7):
        client.post(
            _url(sanctuary, "journal"),
            json={"user_id": member.id, "title": f"Day {i}", "content": "private words"},
            headers=member.headers,
        )
    entries = client.get(_url(sanctuary), headers=member.headers).get_json()["recentEntries"]
    assert len(entries) == 5
    assert set(entries[0]) == {"id", "campaign_id", "title", "created_at"}


# ----------------------------
# Tools
# ----------------------------
def test_journal_entry(client, sanctuary, member, events):
    res = client.post(
        _url(sanctuary, "journal"),
        json={"user_id": member.id, "title": "Today", "content": "Felt brave", "mood_score": "7"},
        headers=member.headers,
    )
    assert res.status_code == 201
    entry = res.get_json()["entry"]
    assert entry["mood_score"] == 7
    assert entry["is_private"] is True

    entries = client.get(_url(sanctuary, "journal"), headers=member.headers).get_json()["entries"]
    assert [e["id"] for e in entries] == [entry["id"]]

    (event,) = events("journal_entry_created")
    assert event["properties"] == {"campaign_id": sanctuary.id, "user_id": member.id, "mood_score": 7}
    assert "Felt brave" not in str(event)


def test_journal_has_no_item_routes(client, sanctuary, member):
    entry = client.post(
        _url(sanctuary, "journal"),
        json={"user_id": member.id, "title": "t", "content": "c"},
        headers=member.headers,
    ).get_json()["entry"]
    assert client.patch(_url(sanctuary, "journal", entry["id"]), json={"title": "x"}, headers=member.headers).status_code == 404
    assert client.delete(_url(sanctuary, "journal", entry["id"]), headers=member.headers).status_code == 404


@pytest.mark.parametrize(
    "tool, body",
    [
        ("journal", {"title": "t"}),
        ("tasks", {}),
        ("medications", {"dosage": "5mg"}),
        ("appointments", {"title": "Oncology"}),
        ("symptoms", {"severity": 3}),
    ],
)
def test_missing_required_fields(client, sanctuary, member, tool, body):
    res = client.post(_url(sanctuary, tool), json={"user_id": member.id, **body}, headers=member.headers)
    assert res.status_code == 400
    assert res.get_json()["error"] == "Missing required fields"


def test_unknown_tool(client, sanctuary, member):
    res = client.get(_url(sanctuary, "diary"), headers=member.headers)
    assert res.status_code == 404
    assert res.get_json()["error"] == "Not found"


def test_tasks_ordered_by_due_date(client, sanctuary, member, events):
    for title, due in (("later", "2026-12-10"), ("sooner", "2026-11-01"), ("middle", "2026-11-20")):
        res = client.post(
            _url(sanctuary, "tasks"),
            json={"user_id": member.id, "title": title, "due_date": due, "priority": "high"},
            headers=member.headers,
        )
        assert res.status_code == 201
        assert res.get_json()["task"]["completed"] is False

    tasks = client.get(_url(sanctuary, "tasks"), headers=member.headers).get_json()["tasks"]
    assert [t["title"] for t in tasks] == ["sooner", "middle", "later"]
    assert events("tool_used")[0]["properties"] == {"tool": "tasks", "campaign_id": sanctuary.id, "user_id": member.id}


def test_invalid_date_is_rejected(client, sanctuary, member):
    res = client.post(
        _url(sanctuary, "tasks"),
        json={"user_id": member.id, "title": "Call nurse", "due_date": "soon"},
        headers=member.headers,
    )
    assert res.status_code == 400
    assert res.get_json()["error"] == "Invalid value for due_date"


def test_completing_a_task_stamps_completed_at(client, sanctuary, member):
    task = client.post(
        _url(sanctuary, "tasks"), json={"user_id": member.id, "title": "Refill"}, headers=member.headers
    ).get_json()["task"]

    done = client.patch(_url(sanctuary, "tasks", task["id"]), json={"is_completed": True}, headers=member.headers)
    assert done.status_code == 200
    assert done.get_json()["task"]["completed"] is True
    assert done.get_json()["task"]["completed_at"] is not None

    undone = client.patch(_url(sanctuary, "tasks", task["id"]), json={"is_completed": False}, headers=member.headers)
    assert undone.get_json()["task"]["completed"] is False
    assert undone.get_json()["task"]["completed_at"] is None


def test_explicit_completed_at_is_kept(client, sanctuary, member):
    task = client.post(
        _url(sanctuary, "tasks"), json={"user_id": member.id, "title": "Refill"}, headers=member.headers
    ).get_json()["task"]
    res = client.patch(
        _url(sanctuary, "tasks", task["id"]),
        json={"is_completed": True, "completed_at": "2026-10-01T09:30:00Z"},
        headers=member.headers,
    )
    assert res.get_json()["task"]["completed_at"] == "2026-10-01T09:30:00"


def test_medication_update_and_delete(client, sanctuary, member):
    med = client.post(
        _url(sanctuary, "medications"),
        json={"user_id": member.id, "name": "Ondansetron", "dosage": "4mg", "start_date": "2026-10-01"},
        headers=member.headers,
    ).get_json()["medication"]
    assert med["is_active"] is True
    assert med["start_date"] == "2026-10-01"

    res = client.patch(
        _url(sanctuary, "medications", med["id"]),
        json={"is_active": False, "time_of_day": "evening", "reason": "ignored"},
        headers=member.headers,
    )
    updated = res.get_json()["medication"]
    assert updated["is_active"] is False
    assert updated["time_of_day"] == "evening"
    assert updated["reason"] is None

    assert client.delete(_url(sanctuary, "medications", med["id"]), headers=member.headers).status_code == 200
    assert client.get(_url(sanctuary, "medications"), headers=member.headers).get_json()["medications"] == []

    gone = client.delete(_url(sanctuary, "medications", med["id"]), headers=member.headers)
    assert gone.status_code == 404
    assert gone.get_json()["error"] == "Medication not found"


def test_appointments_ordered_by_date(client, sanctuary, member):
    for title, when in (("Scan", "2026-11-15"), ("Oncology", "2026-11-02")):
        client.post(
            _url(sanctuary, "appointments"),
            json={"user_id": member.id, "title": title, "appointment_date": when, "appointment_time": "10:00"},
            headers=member.headers,
        )
    rows = client.get(_url(sanctuary, "appointments"), headers=member.headers).get_json()["appointments"]
    assert [a["title"] for a in rows] == ["Oncology", "Scan"]


def test_symptoms_filter_by_user(client, sanctuary, member, make_user, add_membership):
    carer = make_user("carer@example.com")
    add_membership(sanctuary.id, carer.id, "caregiver")
    client.post(_url(sanctuary, "symptoms"), json={"user_id": member.id, "name": "Nausea", "severity": 4}, headers=member.headers)
    client.post(_url(sanctuary, "symptoms"), json={"user_id": carer.id, "name": "Fatigue"}, headers=carer.headers)

    mine = client.get(_url(sanctuary, "symptoms") + f"?user_id={member.id}", headers=member.headers).get_json()
    assert [s["name"] for s in mine["symptoms"]] == ["Nausea"]
    assert len(client.get(_url(sanctuary, "symptoms"), headers=member.headers).get_json()["symptoms"]) == 2

    res = client.patch(_url(sanctuary, "symptoms", "missing"), json={"severity": 2}, headers=member.headers)
    assert res.status_code == 404
    assert res.get_json()["error"] == "Symptom log not found"


@pytest.mark.parametrize(
    "tool, body, error",
    [
        ("journal", {"title": "t", "content": "c"}, "Failed to create entry"),
        ("tasks", {"title": "Refill"}, "Failed to create task"),
        ("medications", {"name": "Ondansetron"}, "Failed to create medication"),
        ("appointments", {"title": "Scan", "appointment_date": "2026-11-02"}, "Failed to create appointment"),
        ("symptoms", {"name": "Nausea"}, "Failed to create symptom"),
    ],
)
def test_create_failure_messages(client, sanctuary, member, monkeypatch, tool, body, error):
    def _failing_commit(self):
        raise SQLAlchemyError("database unavailable")

    monkeypatch.setattr(Session, "commit", _failing_commit)
    res = client.post(_url(sanctuary, tool), json={"user_id": member.id, **body}, headers=member.headers)
    assert res.status_code == 500
    assert res.get_json()["error"] == error
