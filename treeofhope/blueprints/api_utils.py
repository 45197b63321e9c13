# treeofhope/blueprints/api_utils.py
# ─────────────────────────────────────────────────────────────────────────────
# JSON envelope, payload + auth helpers shared by every /api blueprint
# ─────────────────────────────────────────────────────────────────────────────
from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from functools import wraps
from typing import Any, Dict, Iterable, Optional

from flask import jsonify, request
from flask_login import current_user

log = logging.getLogger(__name__)


class ApiError(Exception):
    """Raised inside a handler to short-circuit with a JSON error envelope."""

    def __init__(self, message: str, status: int = 400, **extra: Any):
        super().__init__(message)
        self.message = message
        self.status = int(status)
        self.extra = extra


# =============================================================================
# Envelope
# =============================================================================


def _json_response(payload: Dict[str, Any], status: int = 200):
    resp = jsonify(payload)
    resp.status_code = int(status)
    resp.headers.setdefault("Cache-Control", "no-store, no-cache, must-revalidate, max-age=0")
    resp.headers.setdefault("Pragma", "no-cache")
    resp.headers.setdefault("Expires", "0")
    return resp


def _json_ok(payload: Optional[Dict[str, Any]] = None, status: int = 200):
    body = {"success": True}
    body.update(payload or {})
    return _json_response(body, status)


def _json_error(message: str, status: int, extra: Optional[Dict[str, Any]] = None):
    body: Dict[str, Any] = {"success": False}
    if extra:
        body.update(extra)
    body["error"] = message
    return _json_response(body, status)


# =============================================================================
# Payload helpers
# =============================================================================


def _request_payload() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _missing(payload: Dict[str, Any], fields: Iterable[str]) -> bool:
    """True when any field is absent or falsy."""
    return any(not payload.get(f) for f in fields)


def _clean_str(v: Any) -> Optional[str]:
    if v is None:
        return None
    s = str(v).strip()
    return s or None


def _as_bool(v: Any, default: bool = False) -> bool:
    if v is None:
        return default
    if isinstance(v, bool):
        return v
    return str(v).strip().lower() in {"1", "true", "yes", "on", "y"}


def _as_int(v: Any, field: str) -> Optional[int]:
    if v is None or v == "":
        return None
    if isinstance(v, bool):
        raise ApiError(f"Invalid value for {field}")
    try:
        return int(v)
    except (TypeError, ValueError):
        raise ApiError(f"Invalid value for {field}")


def _as_date(v: Any, field: str) -> Optional[date]:
    if v is None or v == "":
        return None
    if isinstance(v, datetime):
        return v.date()
    if isinstance(v, date):
        return v
    try:
        return date.fromisoformat(str(v)[:10])
    except ValueError:
        raise ApiError(f"Invalid value for {field}")


def _as_datetime(v: Any, field: str) -> Optional[datetime]:
    if v is None or v == "":
        return None
    if isinstance(v, datetime):
        return v
    raw = str(v).strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(raw)
    except ValueError:
        raise ApiError(f"Invalid value for {field}")
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


# =============================================================================
# Auth decorators
# =============================================================================


def auth_required(fn):
    """401 unless the bearer header or auth cookie resolves to an active user."""

    @wraps(fn)
    def wrapped(*args, **kwargs):
        if not current_user.is_authenticated:
            return _json_error("Unauthorized", 401)
        return fn(*args, **kwargs)

    return wrapped


def admin_required(fn):
    @wraps(fn)
    def wrapped(*args, **kwargs):
        if not current_user.is_authenticated:
            return _json_error("Unauthorized", 401)
        if not current_user.is_admin:
            log.info("Non-admin %s refused on %s", current_user.id, request.path)
            return _json_error("Forbidden", 403)
        return fn(*args, **kwargs)

    return wrapped
