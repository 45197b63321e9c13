"""
Magic-link authentication.

Mount: /api/auth

  POST /api/auth/magic-link   e-mail a single-use sign-in link
  GET  /api/auth/verify       exchange the link for an access token + cookie
  POST /api/auth/logout       clear the cookie
"""

from __future__ import annotations

from flask import Blueprint, current_app, request
from sqlalchemy.exc import SQLAlchemyError

from treeofhope.extensions import db
from treeofhope.services import auth as auth_service
from treeofhope.services.analytics import track_server_event

from .api_utils import _clean_str, _json_error, _json_ok, _request_payload

bp = Blueprint("auth", __name__)


def _cookie_name() -> str:
    return current_app.config.get("AUTH_COOKIE_NAME", "auth-token")


@bp.post("/magic-link")
def magic_link():
    data = _request_payload()
    email = _clean_str(data.get("email"))
    if not email:
        return _json_error("Email is required", 400)

    redirect_url = auth_service.resolve_redirect(_clean_str(data.get("redirect_to")))
    try:
        _link, raw = auth_service.issue_magic_link(email, redirect_url)
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Failed to issue magic link")
        return _json_error("Failed to send magic link", 500)

    url = auth_service.magic_link_url(raw, "magiclink", redirect_url)
    auth_service.send_magic_link_email(email, url)

    domain = email.rsplit("@", 1)[-1].lower() if "@" in email else None
    track_server_event("magic_link_sent", {"email_domain": domain, "redirect_to": redirect_url})
    return _json_ok({"message": "Magic link sent to email"})


@bp.get("/verify")
def verify():
    token = _clean_str(request.args.get("token_hash"))
    link_type = _clean_str(request.args.get("type"))
    next_url = _clean_str(request.args.get("next")) or "/"

    if not token or not link_type:
        track_server_event("missing_token_or_type")
        return _json_error("Missing token_hash or type", 400)

    link = auth_service.consume_magic_link(token, link_type) if link_type in auth_service.MAGIC_LINK_TYPES else None
    if link is None:
        track_server_event("magic_link_opened", {"success": False, "type": link_type})
        track_server_event("sign_in_failed", {"reason": "invalid_or_expired"})
        return _json_error("Invalid or expired link", 400, {"redirectUrl": "/"})

    try:
        user, created = auth_service.get_or_create_user(link.email)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Failed to sign in from magic link")
        return _json_error("Failed to verify email", 500, {"redirectUrl": "/"})

    access_token = auth_service.issue_access_token(user)
    track_server_event("magic_link_opened", {"success": True, "type": link_type}, user_id=user.id)
    track_server_event("sign_in_success", {"user_id": user.id, "new_user": created})

    resp = _json_ok(
        {
            "message": "Email verified successfully",
            "redirectUrl": next_url,
            "access_token": access_token,
        }
    )
    resp.set_cookie(
        _cookie_name(),
        access_token,
        max_age=int(current_app.config.get("ACCESS_TOKEN_TTL_SECONDS") or 3600),
        httponly=True,
        secure=bool(current_app.config.get("SESSION_COOKIE_SECURE")),
        samesite=current_app.config.get("SESSION_COOKIE_SAMESITE") or "Lax",
        path="/",
    )
    return resp


@bp.post("/logout")
def logout():
    resp = _json_ok({"message": "Signed out"})
    resp.delete_cookie(_cookie_name(), path="/")
    return resp
