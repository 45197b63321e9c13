import pytest
import stripe
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from treeofhope.extensions import db
from treeofhope.models import BridgeCampaign, Campaign, Leaf, Membership
from treeofhope.placement import leaf_position
from treeofhope.services.billing import STRIPE_DEMO_MESSAGE

SCOUT = {
    "gofundme_url": "https://www.gofundme.com/f/help-mike",
    "gofundme_title": "Help Mike Recover",
    "gofundme_organiser_name": "Jamie",
    "gofundme_raised_cents": 120000,
    "gofundme_goal_cents": 500000,
    "gofundme_donor_count": 42,
    "gofundme_category": "medical",
}


@pytest.fixture
def bridge(client, admin):
    res = client.post("/api/admin/bridge/scout", json=SCOUT, headers=admin.headers)
    assert res.status_code == 201
    return res.get_json()["bridge"]


# ----------------------------
# Admin pipeline
# ----------------------------
def test_scout_creates_scouted_bridge(bridge, events):
    assert bridge["status"] == "scouted"
    assert bridge["outreach_attempts"] == 0
    assert bridge["gofundme_donor_count"] == 42
    assert len(events("bridge_scouted")) == 1


def test_scout_requires_fields(client, admin):
    res = client.post("/api/admin/bridge/scout", json={"gofundme_url": "x"}, headers=admin.headers)
    assert res.status_code == 400


def test_scout_requires_admin(client, member):
    assert client.post("/api/admin/bridge/scout", json=SCOUT).status_code == 401
    assert client.post("/api/admin/bridge/scout", json=SCOUT, headers=member.headers).status_code == 403


def test_list_and_filter_by_status(client, admin, bridge):
    all_rows = client.get("/api/admin/bridge", headers=admin.headers).get_json()["bridges"]
    assert [b["id"] for b in all_rows] == [bridge["id"]]
    contacted = client.get("/api/admin/bridge?status=contacted", headers=admin.headers).get_json()["bridges"]
    assert contacted == []


def test_get_bridge(client, admin, bridge):
    res = client.get(f"/api/admin/bridge/{bridge['id']}", headers=admin.headers)
    assert res.get_json()["bridge"]["outreach"] == []
    assert client.get("/api/admin/bridge/missing", headers=admin.headers).status_code == 404


def test_outreach_moves_scouted_to_contacted(app, client, admin, bridge, events):
    body = {"channel": "email", "message_summary": "Introduced Tree of Hope"}
    res = client.post(f"/api/admin/bridge/{bridge['id']}/outreach", json=body, headers=admin.headers)
    assert res.status_code == 201
    assert res.get_json()["outreach"]["channel"] == "email"

    client.post(f"/api/admin/bridge/{bridge['id']}/outreach", json=body, headers=admin.headers)
    with app.app_context():
        row = db.session.get(BridgeCampaign, bridge["id"])
        assert row.status == "contacted"
        assert row.outreach_attempts == 2
    assert events("bridge_outreach_sent")[0]["properties"] == {"bridge_id": bridge["id"], "channel": "email"}


def test_outreach_requires_channel_and_summary(client, admin, bridge):
    res = client.post(f"/api/admin/bridge/{bridge['id']}/outreach", json={"channel": "email"}, headers=admin.headers)
    assert res.status_code == 400
    assert res.get_json()["error"] == "Channel and message_summary are required"


def test_patch_bridge(client, admin, bridge):
    res = client.patch(
        f"/api/admin/bridge/{bridge['id']}",
        json={"status": "declined", "gofundme_donor_count": "50"},
        headers=admin.headers,
    )
    assert res.status_code == 200
    assert res.get_json()["bridge"]["status"] == "declined"
    assert res.get_json()["bridge"]["gofundme_donor_count"] == 50

    bad = client.patch(f"/api/admin/bridge/{bridge['id']}", json={"status": "nope"}, headers=admin.headers)
    assert bad.status_code == 400
    assert bad.get_json()["error"] == "Invalid status"


def test_pre_build_creates_draft_campaign_with_seed_leaves(app, client, admin, bridge, events):
    body = {"bridge_id": bridge["id"], "patient_name": "Mike", "title": "Help Mike Recover!", "story": "Mike's story"}
    res = client.post("/api/admin/bridge/pre-build", json=body, headers=admin.headers)
    assert res.status_code == 201
    campaign = res.get_json()["campaign"]
    assert campaign["slug"] == "help-mike-recover"
    assert campaign["status"] == "draft"
    assert campaign["description"] == "Mike's story"
    assert campaign["leaf_count"] == 3

    with app.app_context():
        leaves = Leaf.query.filter_by(campaign_id=campaign["id"]).all()
        assert {leaf.author_name for leaf in leaves} == {"Tree of Hope"}
        assert {(leaf.position_x, leaf.position_y) for leaf in leaves} == {tuple(leaf_position(i)) for i in range(3)}
        row = db.session.get(BridgeCampaign, bridge["id"])
        assert row.status == "pre_built"
        assert row.campaign_id == campaign["id"]
    assert len(events("bridge_pre_built")) == 1


def test_pre_build_suffixes_colliding_slug(client, admin, bridge, make_campaign):
    make_campaign("help-mike-recover")
    body = {"bridge_id": bridge["id"], "patient_name": "Mike", "title": "Help Mike Recover", "story": "s"}
    res = client.post("/api/admin/bridge/pre-build", json=body, headers=admin.headers)
    assert res.get_json()["campaign"]["slug"] == "help-mike-recover-2"


def test_pre_build_unknown_bridge(client, admin):
    body = {"bridge_id": "missing", "patient_name": "Mike", "title": "T", "story": "s"}
    res = client.post("/api/admin/bridge/pre-build", json=body, headers=admin.headers)
    assert res.status_code == 404
    assert res.get_json()["error"] == "Bridge not found"


# ----------------------------
# Public bridge page + activation
# ----------------------------
@pytest.fixture
def prebuilt(client, admin, bridge):
    body = {"bridge_id": bridge["id"], "patient_name": "Mike", "title": "Help Mike", "story": "s"}
    campaign = client.post("/api/admin/bridge/pre-build", json=body, headers=admin.headers).get_json()["campaign"]
    return {"bridge": bridge, "campaign": campaign}


def test_bridge_page(client, prebuilt):
    body = client.get("/api/bridge/help-mike").get_json()
    assert body["campaign"]["id"] == prebuilt["campaign"]["id"]
    assert body["bridge"]["id"] == prebuilt["bridge"]["id"]
    assert len(body["leaves"]) == 3
    assert client.get("/api/bridge/unknown").status_code == 404


def _activate_body(campaign_id, **overrides):
    body = {
        "campaign_id": campaign_id,
        "author_name": "Neighbour",
        "message": "We're with you",
        "email": "neighbour@example.com",
        "monthly_tier": "sustain",
        "joining_gift_tier": "sapling",
    }
    body.update(overrides)
    return body


def test_activate_creates_leaf_and_checkout(app, client, prebuilt, fake_checkout, events):
    cid = prebuilt["campaign"]["id"]
    res = client.post("/api/bridge/activate", json=_activate_body(cid))
    assert res.status_code == 200
    body = res.get_json()
    assert body["success"] is True
    assert body["checkout_url"] == "https://checkout.stripe.com/c/pay/cs_test_123"

    (params,) = fake_checkout
    assert params["mode"] == "subscription"
    assert params["customer_email"] == "neighbour@example.com"
    assert params["line_items"] == [{"price": "price_sustain", "quantity": 1}, {"price": "price_sapling", "quantity": 1}]
    assert params["metadata"] == {
        "campaign_id": cid,
        "monthly_tier": "sustain",
        "joining_gift_tier": "sapling",
        "source": "bridge",
    }

    with app.app_context():
        leaf = db.session.get(Leaf, body["leaf_id"])
        assert (leaf.position_x, leaf.position_y) == tuple(leaf_position(3))
    assert events("bridge_activated")[0]["properties"] == {"campaign_id": cid, "monthly_tier": "sustain"}


def test_activate_invalid_tier_creates_nothing(app, client, prebuilt, fake_checkout):
    cid = prebuilt["campaign"]["id"]
    res = client.post("/api/bridge/activate", json=_activate_body(cid, monthly_tier="platinum"))
    assert res.status_code == 400
    assert res.get_json()["error"] == "Invalid monthly tier"
    assert fake_checkout == []
    with app.app_context():
        assert db.session.get(Campaign, cid).leaf_count == 3


def test_activate_missing_fields(client, prebuilt):
    body = _activate_body(prebuilt["campaign"]["id"])
    del body["email"]
    assert client.post("/api/bridge/activate", json=body).status_code == 400


def test_activate_without_stripe_returns_demo(app, client, prebuilt, fake_checkout):
    app.config["STRIPE_SECRET_KEY"] = "sk_test_placeholder"
    res = client.post("/api/bridge/activate", json=_activate_body(prebuilt["campaign"]["id"]))
    body = res.get_json()
    assert res.status_code == 200
    assert body["checkout_url"] is None
    assert body["demo"] is True
    assert body["message"] == STRIPE_DEMO_MESSAGE
    assert body["leaf_id"]
    assert fake_checkout == []


# ----------------------------
# Organiser claim
# ----------------------------
def test_claim_requires_auth(client, prebuilt, member):
    res = client.post("/api/bridge/claim", json={"bridge_id": prebuilt["bridge"]["id"], "user_id": member.id})
    assert res.status_code == 401


def test_claim_for_someone_else_is_rejected(client, prebuilt, member, make_user):
    other = make_user("other@example.com")
    res = client.post(
        "/api/bridge/claim",
        json={"bridge_id": prebuilt["bridge"]["id"], "user_id": other.id},
        headers=member.headers,
    )
    assert res.status_code == 401
    assert res.get_json()["error"] == "Unauthorized: user can only claim for themselves"


def test_claim_requires_ids(client, member):
    res = client.post("/api/bridge/claim", json={"bridge_id": ""}, headers=member.headers)
    assert res.status_code == 400
    assert res.get_json()["error"] == "Bridge ID and user ID are required"


def test_claim_sets_caregiver(app, client, prebuilt, member, events):
    res = client.post(
        "/api/bridge/claim",
        json={"bridge_id": prebuilt["bridge"]["id"], "user_id": member.id},
        headers=member.headers,
    )
    assert res.status_code == 200
    bridge = res.get_json()["bridge"]
    assert bridge["status"] == "claimed"
    assert bridge["claimed_by"] == member.id
    with app.app_context():
        assert Membership.has_role(prebuilt["campaign"]["id"], member.id, ("caregiver",))
    assert len(events("bridge_organiser_claimed")) == 1


def test_activate_stripe_failure_records_no_activation(client, prebuilt, monkeypatch, events):
    def _boom(**params):
        raise stripe.APIConnectionError("network down")

    monkeypatch.setattr(stripe.checkout.Session, "create", _boom)
    res = client.post("/api/bridge/activate", json=_activate_body(prebuilt["campaign"]["id"], monthly_tier="nurture"))
    assert res.status_code == 500
    assert res.get_json()["error"] == "Failed to create checkout session"
    assert res.get_json()["leaf_id"]
    assert events("bridge_activated") == []


def test_activate_demo_mode_records_activation(app, client, prebuilt, events):
    app.config["STRIPE_SECRET_KEY"] = "sk_test_placeholder"
    client.post("/api/bridge/activate", json=_activate_body(prebuilt["campaign"]["id"]))
    assert len(events("bridge_activated")) == 1


def test_scout_failure_message(client, admin, monkeypatch):
    monkeypatch.setattr(Session, "commit", _failing_commit)
    res = client.post("/api/admin/bridge/scout", json=SCOUT, headers=admin.headers)
    assert res.status_code == 500
    assert res.get_json()["error"] == "Failed to scout bridge"


def test_outreach_failure_message(client, admin, bridge, monkeypatch):
    monkeypatch.setattr(Session, "commit", _failing_commit)
    res = client.post(
        f"/api/admin/bridge/{bridge['id']}/outreach",
        json={"channel": "email", "message_summary": "hello"},
        headers=admin.headers,
    )
    assert res.status_code == 500
    assert res.get_json()["error"] == "Failed to log outreach"


def _failing_commit(self):
    raise SQLAlchemyError("database unavailable")
