"""
Server-side analytics.

Every successful write handler reports what happened here. Events never carry
free-text user content (messages, journal text); callers pass identifiers and
enumerations only.

Delivery is best effort:
  1. the blinker ``app_event`` signal fires for in-process listeners,
  2. a row lands in ``analytics_events``,
  3. when ANALYTICS_SINK_URL is configured the event is POSTed there from the
     background executor.
A failure in any step is logged and never reaches the caller.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import requests
from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from treeofhope.extensions import app_event, db, run_bg
from treeofhope.models.analytics_event import AnalyticsEvent

log = logging.getLogger(__name__)


def _post_to_sink(url: str, payload: Dict[str, Any], timeout: float) -> None:
    try:
        resp = requests.post(url, json=payload, timeout=timeout)
        if resp.status_code >= 400:
            log.warning("analytics sink rejected %s: HTTP %s", payload.get("event_name"), resp.status_code)
    except requests.RequestException as e:
        log.warning("analytics sink unreachable: %s", e)


def track_server_event(
    event_name: str,
    properties: Optional[Dict[str, Any]] = None,
    campaign_id: Optional[str] = None,
    user_id: Optional[str] = None,
) -> Optional[AnalyticsEvent]:
    """Record an analytics event. Returns the stored row, or None on failure.

    Call after the handler's own commit: this function commits (or rolls back)
    its own insert.
    """
    props = {k: v for k, v in (properties or {}).items() if v is not None}
    campaign_id = campaign_id or props.get("campaign_id")
    user_id = user_id or props.get("user_id")

    try:
        app_event.send(current_app._get_current_object(), name=event_name, properties=props)
    except Exception:
        log.exception("app_event receiver failed for %s", event_name)

    row: Optional[AnalyticsEvent] = AnalyticsEvent(
        event_name=event_name,
        campaign_id=str(campaign_id) if campaign_id else None,
        user_id=str(user_id) if user_id else None,
        session_id=None,
        properties=props,
    )
    try:
        db.session.add(row)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        log.exception("Server analytics tracking error (%s)", event_name)
        row = None

    sink = (current_app.config.get("ANALYTICS_SINK_URL") or "").strip()
    if sink:
        payload = {
            "event_name": event_name,
            "campaign_id": campaign_id,
            "user_id": user_id,
            "properties": props,
        }
        run_bg(_post_to_sink, sink, payload, float(current_app.config.get("ANALYTICS_SINK_TIMEOUT") or 3))

    return row
