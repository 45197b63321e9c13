# treeofhope/services/auth.py
# ─────────────────────────────────────────────────────────────────────────────
# Magic-link sign-in + bearer/cookie identity resolution
# ─────────────────────────────────────────────────────────────────────────────
from __future__ import annotations

import hashlib
import logging
import secrets
from datetime import timedelta
from typing import Any, Dict, Optional, Tuple
from urllib.parse import urlencode

import jwt
from flask import Request, current_app, request
from sqlalchemy import update as sa_update

from treeofhope.extensions import db, send_email_async
from treeofhope.models.magic_link import MagicLink
from treeofhope.models.mixins import utcnow
from treeofhope.models.user import User

log = logging.getLogger(__name__)

MAGIC_LINK_TYPES = ("magiclink", "signup", "email")


# =============================================================================
# Token helpers
# =============================================================================


def hash_token(raw: str) -> str:
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def _jwt_key() -> str:
    return str(current_app.config.get("JWT_SECRET") or current_app.config["SECRET_KEY"])


def _jwt_alg() -> str:
    return str(current_app.config.get("JWT_ALG") or "HS256")


def issue_access_token(user: User) -> str:
    now = utcnow()
    ttl = int(current_app.config.get("ACCESS_TOKEN_TTL_SECONDS") or 3600)
    claims = {
        "sub": user.id,
        "email": user.email,
        "iat": now,
        "exp": now + timedelta(seconds=ttl),
        "typ": "access",
    }
    return jwt.encode(claims, _jwt_key(), algorithm=_jwt_alg())


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """Return the claims of a valid access token, None otherwise."""
    try:
        claims = jwt.decode(token, _jwt_key(), algorithms=[_jwt_alg()])
    except jwt.InvalidTokenError as e:
        log.info("Rejected access token: %s", e)
        return None
    if claims.get("typ") != "access" or not claims.get("sub"):
        return None
    return claims


def user_from_token(token: Optional[str]) -> Optional[User]:
    if not token:
        return None
    claims = decode_access_token(token)
    if not claims:
        return None
    user = db.session.get(User, str(claims["sub"]))
    if user is None or not user.is_active:
        return None
    return user


def bearer_token(req: Optional[Request] = None) -> Optional[str]:
    """Extract bearer token from request headers."""
    h = (req or request).headers.get("Authorization", "")
    return h.split(" ", 1)[1].strip() if h.lower().startswith("bearer ") else None


def load_user_from_request(req: Request) -> Optional[User]:
    """Bearer header first, then the auth cookie set by /api/auth/verify."""
    tok = bearer_token(req) or req.cookies.get(current_app.config.get("AUTH_COOKIE_NAME", "auth-token"))
    return user_from_token(tok)


# =============================================================================
# Users
# =============================================================================


def get_or_create_user(email: str) -> Tuple[User, bool]:
    email = User.normalize_email(email)
    user = User.by_email(email)
    if user:
        return user, False
    admins = set(current_app.config.get("ADMIN_EMAILS") or [])
    user = User(email=email, is_admin=email in admins)
    db.session.add(user)
    db.session.flush()
    return user, True


# =============================================================================
# Magic links
# =============================================================================


def resolve_redirect(redirect_to: Optional[str], req: Optional[Request] = None) -> str:
    """Absolute redirect_to wins; a relative one is joined to the caller's origin."""
    req = req or request
    origin = (req.headers.get("Origin") or "").strip().rstrip("/")
    if not origin:
        referer = (req.headers.get("Referer") or "").strip()
        if referer:
            origin = referer.rsplit("/", 1)[0] if referer.count("/") > 2 else referer
    if not origin:
        origin = (current_app.config.get("PUBLIC_BASE_URL") or req.host_url or "").rstrip("/")

    target = (redirect_to or "").strip()
    if not target:
        return origin
    if target.startswith(("http://", "https://")):
        return target
    return f"{origin}{target if target.startswith('/') else '/' + target}"


def issue_magic_link(email: str, redirect_to: Optional[str], link_type: str = "magiclink") -> Tuple[MagicLink, str]:
    """Persist a new single-use link and return it with the raw token (only ever e-mailed)."""
    raw = secrets.token_urlsafe(32)
    ttl = int(current_app.config.get("MAGIC_LINK_TTL_SECONDS") or 3600)
    link = MagicLink(
        email=User.normalize_email(email),
        token_hash=hash_token(raw),
        type=link_type,
        redirect_to=redirect_to,
        expires_at=utcnow() + timedelta(seconds=ttl),
    )
    db.session.add(link)
    db.session.commit()
    return link, raw


def magic_link_url(raw_token: str, link_type: str, next_url: Optional[str]) -> str:
    base = (current_app.config.get("PUBLIC_BASE_URL") or request.host_url or "").rstrip("/")
    path = current_app.config.get("MAGIC_LINK_VERIFY_PATH", "/auth/verify")
    query = {"token_hash": raw_token, "type": link_type}
    if next_url:
        query["next"] = next_url
    return f"{base}{path}?{urlencode(query)}"


def send_magic_link_email(email: str, url: str):
    app = current_app._get_current_object()
    brand = app.config.get("BRAND_NAME", "Tree of Hope")
    body = (
        f"Hello,\n\n"
        f"Use the link below to sign in to {brand}. It works once and expires soon.\n\n"
        f"{url}\n\n"
        f"If you did not ask for this e-mail you can ignore it.\n"
    )
    html = (
        f"<p>Hello,</p><p>Use the link below to sign in to {brand}. It works once and expires soon.</p>"
        f'<p><a href="{url}">Sign in to {brand}</a></p>'
        f"<p>If you did not ask for this e-mail you can ignore it.</p>"
    )
    return send_email_async(app, f"Your {brand} sign-in link", [email], body=body, html=html)


def consume_magic_link(token: str, link_type: str) -> Optional[MagicLink]:
    """
    Mark the link used and return it. The guarded UPDATE makes a link
    single-use even when two requests race on it.
    """
    now = utcnow()
    digest = hash_token(token)
    res = db.session.execute(
        sa_update(MagicLink)
        .where(
            MagicLink.token_hash == digest,
            MagicLink.type == link_type,
            MagicLink.consumed_at.is_(None),
            MagicLink.expires_at > now,
        )
        .values(consumed_at=now)
        .execution_options(synchronize_session=False)
    )
    if not res.rowcount:
        db.session.rollback()
        return None
    return MagicLink.query.filter_by(token_hash=digest).first()
