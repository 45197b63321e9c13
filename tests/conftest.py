"""Shared fixtures: an app on in-memory SQLite, factories, auth and Stripe helpers.

The app context is only held while a fixture or assertion touches the
database, never across test-client requests, so per-request state (the
signed-in user on ``g``) does not leak from one request into the next.
"""

import hashlib
import hmac
import json
import time
from types import SimpleNamespace

import pytest
import stripe

from treeofhope import create_app
from treeofhope.config import TestingConfig
from treeofhope.extensions import db
from treeofhope.models import AnalyticsEvent, Campaign, Membership, User
from treeofhope.services.auth import issue_access_token


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    def _make(email="member@example.com", is_admin=False, full_name=None):
        with app.app_context():
            user = User(email=email, is_admin=is_admin, full_name=full_name)
            db.session.add(user)
            db.session.commit()
            token = issue_access_token(user)
            return SimpleNamespace(
                id=user.id,
                email=user.email,
                token=token,
                headers={"Authorization": f"Bearer {token}"},
            )

    return _make


@pytest.fixture
def admin(make_user):
    return make_user("admin@treeofhope.com", is_admin=True)


@pytest.fixture
def member(make_user):
    return make_user("member@example.com")


@pytest.fixture
def make_campaign(app):
    def _make(slug="sarah", status="active", **overrides):
        fields = {
            "slug": slug,
            "title": f"{slug.title()}'s Tree",
            "description": "A tree of hope",
            "patient_name": slug.title(),
            "status": status,
            "leaf_count": 0,
            "supporter_count": 0,
            "monthly_total_cents": 0,
        }
        fields.update(overrides)
        with app.app_context():
            campaign = Campaign(**fields)
            db.session.add(campaign)
            db.session.commit()
            return SimpleNamespace(id=campaign.id, slug=campaign.slug)

    return _make


@pytest.fixture
def add_membership(app):
    def _add(campaign_id, user_id, role):
        with app.app_context():
            db.session.add(Membership(campaign_id=campaign_id, user_id=user_id, role=role))
            db.session.commit()

    return _add


@pytest.fixture
def events(app):
    """events() -> every analytics row; events("name") -> rows for that event."""

    def _events(name=None):
        with app.app_context():
            q = AnalyticsEvent.query
            if name:
                q = q.filter_by(event_name=name)
            return [e.as_dict() for e in q.order_by(AnalyticsEvent.created_at.asc()).all()]

    return _events


@pytest.fixture
def fake_checkout(monkeypatch):
    """Replace stripe.checkout.Session.create; returns the list of captured kwargs."""
    calls = []

    def _create(**params):
        calls.append(params)
        return SimpleNamespace(id="cs_test_123", url="https://checkout.stripe.com/c/pay/cs_test_123")

    monkeypatch.setattr(stripe.checkout.Session, "create", _create)
    return calls


def stripe_signature(payload: bytes, secret: str = TestingConfig.STRIPE_WEBHOOK_SECRET) -> str:
    ts = int(time.time())
    signed = f"{ts}.{payload.decode('utf-8')}".encode("utf-8")
    sig = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={ts},v1={sig}"


@pytest.fixture
def post_webhook(client):
    def _post(event, secret=TestingConfig.STRIPE_WEBHOOK_SECRET, signature=None):
        payload = json.dumps(event).encode("utf-8")
        header = signature if signature is not None else stripe_signature(payload, secret)
        return client.post(
            "/api/billing/webhook",
            data=payload,
            headers={"Stripe-Signature": header, "Content-Type": "application/json"},
        )

    return _post
