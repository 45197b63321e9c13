from datetime import timedelta
from urllib.parse import parse_qs, urlparse

import pytest

from treeofhope.extensions import db
from treeofhope.models import MagicLink, User
from treeofhope.models.mixins import utcnow
from treeofhope.services import auth as auth_service


@pytest.fixture
def outbox(monkeypatch):
    sent = []
    monkeypatch.setattr(auth_service, "send_magic_link_email", lambda email, url: sent.append((email, url)))
    return sent


def _request_link(client, outbox, email="New.Person@Example.com", redirect_to="/c/sarah"):
    res = client.post("/api/auth/magic-link", json={"email": email, "redirect_to": redirect_to})
    assert res.status_code == 200
    _email, url = outbox[-1]
    query = parse_qs(urlparse(url).query)
    return query["token_hash"][0], query["type"][0], query


def test_magic_link_requires_email(client, outbox):
    res = client.post("/api/auth/magic-link", json={})
    assert res.status_code == 400
    assert res.get_json()["error"] == "Email is required"
    assert outbox == []


def test_magic_link_stores_only_the_hash(app, client, outbox, events):
    res = client.post("/api/auth/magic-link", json={"email": "a@example.com", "redirect_to": "/c/sarah"})
    assert res.get_json() == {"success": True, "message": "Magic link sent to email"}

    token, link_type, query = _request_link(client, outbox, email="a@example.com")
    assert link_type == "magiclink"
    assert query["next"] == ["http://localhost/c/sarah"]
    with app.app_context():
        assert MagicLink.query.filter_by(token_hash=token).first() is None
        assert MagicLink.query.filter_by(token_hash=auth_service.hash_token(token)).first() is not None

    props = events("magic_link_sent")[0]["properties"]
    assert props == {"email_domain": "example.com", "redirect_to": "http://localhost/c/sarah"}


def test_verify_signs_in_and_sets_cookie(app, client, outbox, events):
    token, link_type, _ = _request_link(client, outbox)
    res = client.get(f"/api/auth/verify?token_hash={token}&type={link_type}&next=/c/sarah")
    assert res.status_code == 200
    body = res.get_json()
    assert body["message"] == "Email verified successfully"
    assert body["redirectUrl"] == "/c/sarah"

    cookie = client.get_cookie("auth-token")
    assert cookie is not None
    assert cookie.value == body["access_token"]
    assert cookie.http_only

    with app.app_context():
        user = User.by_email("new.person@example.com")
        assert user is not None
        assert auth_service.user_from_token(body["access_token"]).id == user.id

    assert [e["properties"]["success"] for e in events("magic_link_opened")] == [True]
    assert events("sign_in_success")[0]["properties"]["new_user"] is True


def test_cookie_authenticates_following_requests(client, outbox, make_campaign):
    campaign = make_campaign()
    assert client.get(f"/api/sanctuary/{campaign.id}").status_code == 401

    token, link_type, _ = _request_link(client, outbox)
    client.get(f"/api/auth/verify?token_hash={token}&type={link_type}")
    # signed in, but not a member of this sanctuary
    assert client.get(f"/api/sanctuary/{campaign.id}").status_code == 403


def test_link_is_single_use(client, outbox, events):
    token, link_type, _ = _request_link(client, outbox)
    assert client.get(f"/api/auth/verify?token_hash={token}&type={link_type}").status_code == 200

    res = client.get(f"/api/auth/verify?token_hash={token}&type={link_type}")
    assert res.status_code == 400
    assert res.get_json() == {"success": False, "error": "Invalid or expired link", "redirectUrl": "/"}
    assert len(events("sign_in_failed")) == 1


def test_expired_link_is_rejected(app, client, outbox):
    token, link_type, _ = _request_link(client, outbox)
    with app.app_context():
        link = MagicLink.query.filter_by(token_hash=auth_service.hash_token(token)).one()
        link.expires_at = utcnow() - timedelta(minutes=1)
        db.session.commit()
    assert client.get(f"/api/auth/verify?token_hash={token}&type={link_type}").status_code == 400


def test_wrong_type_is_rejected(client, outbox):
    token, _, _ = _request_link(client, outbox)
    assert client.get(f"/api/auth/verify?token_hash={token}&type=recovery").status_code == 400
    assert client.get(f"/api/auth/verify?token_hash={token}&type=signup").status_code == 400


def test_verify_requires_params(client, events):
    res = client.get("/api/auth/verify?token_hash=abc")
    assert res.status_code == 400
    assert res.get_json()["error"] == "Missing token_hash or type"
    assert len(events("missing_token_or_type")) == 1


def test_existing_user_is_reused(app, client, outbox, member):
    token, link_type, _ = _request_link(client, outbox, email=member.email)
    body = client.get(f"/api/auth/verify?token_hash={token}&type={link_type}").get_json()
    with app.app_context():
        assert User.query.count() == 1
        assert auth_service.user_from_token(body["access_token"]).id == member.id


def test_admin_emails_are_promoted_on_first_sign_in(app, client, outbox):
    app.config["ADMIN_EMAILS"] = ["boss@treeofhope.com"]
    token, link_type, _ = _request_link(client, outbox, email="boss@treeofhope.com")
    client.get(f"/api/auth/verify?token_hash={token}&type={link_type}")
    with app.app_context():
        assert User.by_email("boss@treeofhope.com").is_admin is True


def test_logout_clears_cookie(client, outbox):
    token, link_type, _ = _request_link(client, outbox)
    client.get(f"/api/auth/verify?token_hash={token}&type={link_type}")
    res = client.post("/api/auth/logout")
    assert res.status_code == 200
    assert client.get_cookie("auth-token") is None


def test_tampered_token_is_unauthorized(client, member):
    res = client.get("/api/me", headers={"Authorization": f"Bearer {member.token}x"})
    assert res.status_code == 401


def test_magic_link_email_is_sent_through_flask_mail(app):
    from treeofhope.extensions import mail

    with app.app_context():
        with mail.record_messages() as outbox:
            future = auth_service.send_magic_link_email("jo@example.com", "http://localhost/auth/verify?token_hash=t")
            assert future.result(timeout=5) is True
    (msg,) = outbox
    assert msg.recipients == ["jo@example.com"]
    assert "http://localhost/auth/verify?token_hash=t" in msg.body
    assert msg.subject == "Your Tree of Hope sign-in link"
