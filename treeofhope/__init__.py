# treeofhope/__init__.py
# Tree of Hope: Flask app factory
# Goals:
# - deterministic blueprint registration (every /api surface is mandatory)
# - JSON error envelope everywhere under /api
# - request-id aware logging, optional Sentry

from __future__ import annotations

import logging
import os
import time
from importlib import import_module
from typing import Any, List, Optional, Tuple, Type, Union
from uuid import uuid4

import sentry_sdk
from dotenv import load_dotenv
from flask import Flask, g, jsonify, request
from sentry_sdk.integrations.flask import FlaskIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration
from werkzeug.exceptions import HTTPException, InternalServerError

# never override real env vars in prod
load_dotenv(override=False)

from treeofhope.extensions import cors, db, init_stripe, login_manager, mail, migrate  # noqa: E402

ConfigLike = Union[str, Type[Any]]

__version__ = "1.0.0"


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------
def _env_mode(app: Optional[Flask] = None) -> str:
    if app is not None:
        v = str(app.config.get("ENV") or "").strip().lower()
        if v:
            return v
    for key in ("TOH_ENV", "ENV", "FLASK_ENV"):
        val = (os.getenv(key) or "").strip().lower()
        if val:
            return {"prod": "production", "dev": "development", "test": "testing"}.get(val, val)
    return "development"


def _resolve_config(target: Optional[ConfigLike]) -> ConfigLike:
    """
    Choose the config class.
    - explicit argument wins (class, dotted path or short name)
    - else FLASK_CONFIG
    - else ProductionConfig when the env says production, DevelopmentConfig otherwise
    """
    from treeofhope.config import CONFIG_BY_NAME

    if target is None:
        target = (os.getenv("FLASK_CONFIG") or "").strip() or None
    if target is None:
        return CONFIG_BY_NAME["production" if _env_mode(None) == "production" else "development"]
    if isinstance(target, str) and target.lower() in CONFIG_BY_NAME:
        return CONFIG_BY_NAME[target.lower()]
    return target


def _json_error(message: str, status: int, **extra: Any):
    payload = {"success": False, "error": str(message)}
    payload.update(extra)
    resp = jsonify(payload)
    resp.status_code = int(status)
    return resp


def _wants_json_response() -> bool:
    path = request.path or ""
    if path.startswith("/api/"):
        return True
    accept = (request.headers.get("Accept") or "").lower()
    return ("application/json" in accept) or bool(request.is_json)


def _parse_cors_origins(raw: str) -> Union[str, List[str]]:
    raw = (raw or "*").strip()
    if raw in {"", "*"}:
        return "*"
    if "," in raw:
        return [o.strip() for o in raw.split(",") if o.strip()]
    return raw


# -----------------------------------------------------------------------------
# Logging with request_id
# -----------------------------------------------------------------------------
class _RequestIDFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        try:
            record.request_id = getattr(g, "request_id", "-")
        except RuntimeError:
            # outside an app/request context
            record.request_id = "-"
        return True


def _configure_logging(app: Flask) -> None:
    fmt = "%(asctime)s [%(levelname)s] %(name)s [rid=%(request_id)s]: %(message)s"
    root = logging.getLogger()

    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(fmt))
        handler.addFilter(_RequestIDFilter())
        root.addHandler(handler)
    else:
        for h in root.handlers:
            if not any(isinstance(f, _RequestIDFilter) for f in h.filters):
                h.addFilter(_RequestIDFilter())
            if not getattr(h, "formatter", None) or "%(request_id)s" not in getattr(h.formatter, "_fmt", ""):
                h.setFormatter(logging.Formatter(fmt))

    root.setLevel(str(app.config.get("LOG_LEVEL", "INFO")).upper())
    logging.getLogger("werkzeug").setLevel(str(app.config.get("WERKZEUG_LOG_LEVEL", "WARNING")).upper())
    app.logger.info("Loaded config: ENV=%s DEBUG=%s", app.config.get("ENV", "?"), app.debug)


# -----------------------------------------------------------------------------
# Blueprint registration
# -----------------------------------------------------------------------------
_BLUEPRINTS: List[Tuple[str, str]] = [
    ("treeofhope.blueprints.health", "/api"),
    ("treeofhope.blueprints.campaigns", "/api"),
    ("treeofhope.blueprints.admin", "/api/admin"),
    ("treeofhope.blueprints.bridge", "/api/bridge"),
    ("treeofhope.blueprints.auth", "/api/auth"),
    ("treeofhope.blueprints.billing", "/api/billing"),
    ("treeofhope.blueprints.me", "/api/me"),
    ("treeofhope.blueprints.sanctuary", "/api/sanctuary"),
]


def _safe_register(app: Flask, dotted: str, url_prefix: str) -> bool:
    disabled = {p.strip().lower() for p in (os.getenv("DISABLE_BPS", "")).split(",") if p.strip()}
    if dotted.split(".")[-1].lower() in disabled:
        app.logger.info("Disabled module: %s", dotted)
        return False

    blueprint = getattr(import_module(dotted), "bp")
    if blueprint.name in app.blueprints:
        return False
    app.register_blueprint(blueprint, url_prefix=url_prefix)
    app.logger.debug("Registered blueprint: %-10s → %s", blueprint.name, url_prefix)
    return True


def _register_blueprints(app: Flask) -> None:
    for dotted, prefix in _BLUEPRINTS:
        _safe_register(app, dotted, prefix)


# -----------------------------------------------------------------------------
# Integrations
# -----------------------------------------------------------------------------
def _init_sentry(app: Flask) -> None:
    dsn = (app.config.get("SENTRY_DSN") or "").strip()
    if not dsn:
        return
    sentry_sdk.init(
        dsn=dsn,
        integrations=[
            FlaskIntegration(),
            LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
            SqlalchemyIntegration(),
        ],
        traces_sample_rate=float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.0")),
        send_default_pii=False,
        environment=app.config.get("ENV", "development"),
        release=os.getenv("GIT_COMMIT"),
    )
    app.logger.info("Sentry initialized")


def _init_cors(app: Flask, cors_origins: Union[str, List[str]]) -> None:
    cors.init_app(
        app,
        supports_credentials=cors_origins != "*",
        resources={r"/api/*": {"origins": cors_origins}},
        expose_headers=["X-Request-ID"],
        allow_headers=["Content-Type", "Authorization", "Stripe-Signature", "X-Request-ID"],
        methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    )


def _init_login(app: Flask) -> None:
    from treeofhope.models.user import User
    from treeofhope.services.auth import load_user_from_request

    login_manager.init_app(app)

    @login_manager.user_loader
    def _load_user(uid: str):
        return db.session.get(User, uid)

    login_manager.request_loader(load_user_from_request)

    @login_manager.unauthorized_handler
    def _unauthorized():
        return _json_error("Unauthorized", 401)


def _maybe_create_sqlite_tables(app: Flask) -> None:
    uri = (app.config.get("SQLALCHEMY_DATABASE_URI") or "").strip()
    if not uri.startswith("sqlite"):
        return
    if app.config.get("AUTO_CREATE_SQLITE", True) is not True:
        return
    import treeofhope.models  # noqa: F401

    with app.app_context():
        db.create_all()


# -----------------------------------------------------------------------------
# Request lifecycle + errors
# -----------------------------------------------------------------------------
def _register_request_lifecycle(app: Flask) -> None:
    @app.before_request
    def _bootstrap_request():
        g.request_id = request.headers.get("X-Request-ID") or uuid4().hex
        g._start_ts = time.perf_counter()

    @app.after_request
    def _attach_request_headers(resp):
        resp.headers["X-Request-ID"] = getattr(g, "request_id", "-")
        start = getattr(g, "_start_ts", None)
        if start:
            resp.headers["X-Response-Time-ms"] = str(int((time.perf_counter() - start) * 1000))
        return resp


def _register_error_handlers(app: Flask) -> None:
    from treeofhope.blueprints.api_utils import ApiError

    @app.errorhandler(ApiError)
    def _api_err(err: ApiError):
        return _json_error(err.message, err.status, **err.extra)

    @app.errorhandler(HTTPException)
    def _http_err(err: HTTPException):
        if _wants_json_response():
            return _json_error(err.description or err.name, err.code or 500)
        return err

    @app.errorhandler(Exception)
    def _uncaught(err: Exception):
        db.session.rollback()
        app.logger.exception("Unhandled error")
        if _wants_json_response():
            return _json_error("Internal server error", 500)
        return InternalServerError()


# -----------------------------------------------------------------------------
# Health endpoints
# -----------------------------------------------------------------------------
def _register_health_endpoints(app: Flask) -> None:
    @app.get("/healthz")
    def _healthz():
        return {
            "status": "ok",
            "brand": app.config.get("BRAND_NAME", "Tree of Hope"),
            "env": app.config.get("ENV", "unknown"),
            "request_id": getattr(g, "request_id", "-"),
        }

    @app.get("/version")
    def _version():
        return {
            "version": os.getenv("GIT_COMMIT", "dev"),
            "package": __version__,
            "env": app.config.get("ENV"),
        }


# -----------------------------------------------------------------------------
# App Factory
# -----------------------------------------------------------------------------
def create_app(config_class: Optional[ConfigLike] = None) -> Flask:
    app = Flask(__name__, static_folder=None)

    # ---- Config loading
    cfg = _resolve_config(config_class)
    app.config.from_object(cfg)
    init_hook = getattr(cfg, "init_app", None) if not isinstance(cfg, str) else None
    if callable(init_hook):
        init_hook(app)

    env = _env_mode(app)
    app.config["ENV"] = env
    app.url_map.strict_slashes = False
    app.config.setdefault("JSON_SORT_KEYS", False)

    _configure_logging(app)

    # ---- Optional integrations
    _init_sentry(app)
    _init_cors(app, _parse_cors_origins(str(app.config.get("CORS_ORIGINS") or "*")))

    # ---- Core extensions
    db.init_app(app)
    _maybe_create_sqlite_tables(app)
    migrate.init_app(app, db, compare_type=True, render_as_batch=True)
    mail.init_app(app)
    init_stripe(app)
    _init_login(app)

    # ---- Request lifecycle / errors
    _register_request_lifecycle(app)
    _register_error_handlers(app)

    # ---- Blueprints + health
    _register_blueprints(app)
    _register_health_endpoints(app)

    # ---- CLI
    from treeofhope.cli import tree_cli

    app.cli.add_command(tree_cli)

    return app
