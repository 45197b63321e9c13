import requests

from treeofhope.extensions import app_event
from treeofhope.models import AnalyticsEvent
from treeofhope.services import analytics


def test_event_row_and_signal(app):
    received = []

    def _listener(sender, name, properties):
        received.append((name, properties))

    app_event.connect(_listener)
    try:
        with app.app_context():
            row = analytics.track_server_event("leaf_submitted", {"campaign_id": "c1", "is_public": True, "x": None})
            assert row is not None
            stored = AnalyticsEvent.query.one()
            assert stored.event_name == "leaf_submitted"
            assert stored.campaign_id == "c1"
            assert stored.properties == {"campaign_id": "c1", "is_public": True}
    finally:
        app_event.disconnect(_listener)

    assert received == [("leaf_submitted", {"campaign_id": "c1", "is_public": True})]


def test_failing_listener_does_not_break_tracking(app):
    def _broken(sender, name, properties):
        raise RuntimeError("listener bug")

    app_event.connect(_broken)
    try:
        with app.app_context():
            assert analytics.track_server_event("tool_used", {"tool": "tasks"}) is not None
            assert AnalyticsEvent.query.count() == 1
    finally:
        app_event.disconnect(_broken)


def test_sink_receives_event(app, monkeypatch):
    posted = []

    class _Resp:
        status_code = 202

    def _post(url, json=None, timeout=None):
        posted.append((url, json, timeout))
        return _Resp()

    monkeypatch.setattr(analytics, "run_bg", lambda fn, *args: fn(*args))
    monkeypatch.setattr(analytics.requests, "post", _post)
    app.config["ANALYTICS_SINK_URL"] = "https://sink.example.com/events"

    with app.app_context():
        analytics.track_server_event("sign_in_success", {"user_id": "u1", "new_user": True})

    (url, payload, timeout) = posted[0]
    assert url == "https://sink.example.com/events"
    assert payload == {
        "event_name": "sign_in_success",
        "campaign_id": None,
        "user_id": "u1",
        "properties": {"user_id": "u1", "new_user": True},
    }
    assert timeout == 3.0


def test_unreachable_sink_is_swallowed(app, monkeypatch):
    def _down(url, json=None, timeout=None):
        raise requests.ConnectionError("refused")

    monkeypatch.setattr(analytics, "run_bg", lambda fn, *args: fn(*args))
    monkeypatch.setattr(analytics.requests, "post", _down)
    app.config["ANALYTICS_SINK_URL"] = "https://sink.example.com/events"

    with app.app_context():
        assert analytics.track_server_event("checkout_started", {"campaign_id": "c1"}) is not None


def test_no_sink_configured_posts_nothing(app, monkeypatch):
    calls = []
    monkeypatch.setattr(analytics, "run_bg", lambda fn, *args: calls.append(fn))
    with app.app_context():
        analytics.track_server_event("campaign_created", {"campaign_id": "c1"})
    assert calls == []
