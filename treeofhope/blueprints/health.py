from __future__ import annotations

import os
import socket
import time
from datetime import datetime, timezone
from typing import Any, Dict

from flask import Blueprint, current_app
from sqlalchemy import inspect, text
from sqlalchemy.exc import SQLAlchemyError

from treeofhope.extensions import _guess_stripe_mode, db
from treeofhope.models import available_models
from treeofhope.services.billing import is_stripe_configured

from .api_utils import _json_response

bp = Blueprint("health", __name__)

APP_STARTED_AT = time.time()
HOSTNAME = socket.gethostname()
GIT_SHA = os.getenv("GIT_COMMIT", "")[:12]


def _db_check() -> Dict[str, Any]:
    try:
        db.session.execute(text("SELECT 1"))
        present = set(inspect(db.engine).get_table_names())
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.warning("health: database check failed: %s", e)
        return {"status": "fail", "ok": False, "error": e.__class__.__name__}

    missing = sorted(
        m.__tablename__ for m in available_models().values() if m.__tablename__ not in present
    )
    if missing:
        return {"status": "degraded", "ok": False, "missing_tables": missing}
    return {"status": "ok", "ok": True}


def _stripe_check() -> Dict[str, Any]:
    key = (current_app.config.get("STRIPE_SECRET_KEY") or "").strip()
    if not is_stripe_configured():
        return {"status": "degraded", "ok": False, "reason": "not-configured", "demo": True}
    return {
        "status": "ok",
        "ok": True,
        "mode": _guess_stripe_mode(key),
        "webhook": bool(current_app.config.get("STRIPE_WEBHOOK_SECRET")),
    }


@bp.get("/health")
def health():
    components = {"db": _db_check(), "stripe": _stripe_check()}
    return _json_response(
        {
            "success": components["db"]["ok"],
            "components": components,
            "git": GIT_SHA,
            "hostname": HOSTNAME,
            "uptime_s": int(time.time() - APP_STARTED_AT),
            "now": datetime.now(timezone.utc).isoformat(timespec="seconds"),
        },
        200 if components["db"]["ok"] else 503,
    )
