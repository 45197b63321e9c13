# treeofhope/config/config.py
# Canonical Tree of Hope configuration (env-first, production-safe)

from __future__ import annotations

import os
from datetime import timedelta
from typing import Optional


# ----------------------------
# Env helpers
# ----------------------------
_TRUTHY = {"1", "true", "yes", "on", "y"}
_FALSY = {"0", "false", "no", "off", "n"}


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    v = os.getenv(name)
    if v is None:
        return default
    s = str(v).strip()
    return s if s else default


def _bool(name: str, default: bool = False) -> bool:
    v = _env(name)
    if v is None:
        return default
    s = v.strip().lower()
    if s in _TRUTHY:
        return True
    if s in _FALSY:
        return False
    return default


def _int(name: str, default: int) -> int:
    v = _env(name)
    if v is None:
        return default
    try:
        return int(str(v).strip())
    except ValueError:
        return default


def _clean_base_url(v: Optional[str]) -> str:
    return (v or "").strip().rstrip("/")


def _csv(name: str) -> list[str]:
    return [p.strip().lower() for p in (_env(name, "") or "").split(",") if p.strip()]


# ----------------------------
# Config classes
# ----------------------------
class BaseConfig:
    """
    Env-first config:
    - every setting can be overridden via environment variables
    - safe defaults for local dev
    """

    ENV = (_env("APP_ENV") or _env("ENV") or _env("FLASK_ENV") or "base").strip().lower()

    DEBUG = _bool("FLASK_DEBUG", False)
    TESTING = _bool("TESTING", False)

    BRAND_NAME = _env("BRAND_NAME", "Tree of Hope")
    SUPPORT_EMAIL = _env("SUPPORT_EMAIL", "hello@treeofhope.com")

    # Security
    SECRET_KEY = _env("SECRET_KEY", "dev-change-me")

    # URLs
    PUBLIC_BASE_URL = _clean_base_url(_env("PUBLIC_BASE_URL", ""))
    PREFERRED_URL_SCHEME = _env("PREFERRED_URL_SCHEME", "https")
    CORS_ORIGINS = _env("CORS_ORIGINS", "*")

    # Logging
    LOG_LEVEL = _env("LOG_LEVEL", "INFO")
    WERKZEUG_LOG_LEVEL = _env("WERKZEUG_LOG_LEVEL", "WARNING")
    SENTRY_DSN = _env("SENTRY_DSN", "")

    # Cookies
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = _env("SESSION_COOKIE_SAMESITE", "Lax")
    SESSION_COOKIE_SECURE = True
    PERMANENT_SESSION_LIFETIME = timedelta(days=_int("SESSION_DAYS", 31))

    # Auth (magic link + access tokens)
    AUTH_COOKIE_NAME = _env("AUTH_COOKIE_NAME", "auth-token")
    ACCESS_TOKEN_TTL_SECONDS = _int("ACCESS_TOKEN_TTL_SECONDS", 7 * 24 * 3600)
    MAGIC_LINK_TTL_SECONDS = _int("MAGIC_LINK_TTL_SECONDS", 3600)
    MAGIC_LINK_VERIFY_PATH = _env("MAGIC_LINK_VERIFY_PATH", "/auth/verify")
    JWT_SECRET = _env("JWT_SECRET", "")
    JWT_ALG = _env("JWT_ALG", "HS256")
    ADMIN_EMAILS = _csv("ADMIN_EMAILS")

    # Mail
    MAIL_SERVER = _env("MAIL_SERVER", "localhost")
    MAIL_PORT = _int("MAIL_PORT", 25)
    MAIL_USE_TLS = _bool("MAIL_USE_TLS", False)
    MAIL_USE_SSL = _bool("MAIL_USE_SSL", False)
    MAIL_USERNAME = _env("MAIL_USERNAME")
    MAIL_PASSWORD = _env("MAIL_PASSWORD")
    MAIL_SUPPRESS_SEND = _bool("MAIL_SUPPRESS_SEND", False)
    DEFAULT_MAIL_SENDER = _env("DEFAULT_MAIL_SENDER", "Tree of Hope <hello@treeofhope.com>")
    MAIL_DEFAULT_SENDER = DEFAULT_MAIL_SENDER

    # Stripe
    STRIPE_SECRET_KEY = _env("STRIPE_SECRET_KEY", "")
    STRIPE_PUBLISHABLE_KEY = _env("STRIPE_PUBLISHABLE_KEY", "")
    STRIPE_WEBHOOK_SECRET = _env("STRIPE_WEBHOOK_SECRET", "")
    STRIPE_PRICE_NURTURE = _env("STRIPE_PRICE_NURTURE", "")
    STRIPE_PRICE_SUSTAIN = _env("STRIPE_PRICE_SUSTAIN", "")
    STRIPE_PRICE_FLOURISH = _env("STRIPE_PRICE_FLOURISH", "")
    STRIPE_PRICE_SEEDLING = _env("STRIPE_PRICE_SEEDLING", "")
    STRIPE_PRICE_SAPLING = _env("STRIPE_PRICE_SAPLING", "")
    STRIPE_PRICE_MIGHTY_OAK = _env("STRIPE_PRICE_MIGHTY_OAK", "")
    STRIPE_MAX_NETWORK_RETRIES = _int("STRIPE_MAX_NETWORK_RETRIES", 0)

    # Analytics
    ANALYTICS_SINK_URL = _env("ANALYTICS_SINK_URL", "")
    ANALYTICS_SINK_TIMEOUT = _int("ANALYTICS_SINK_TIMEOUT", 3)

    # SQLAlchemy
    SQLALCHEMY_DATABASE_URI = _env("SQLALCHEMY_DATABASE_URI", "sqlite:///treeofhope-dev.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}
    AUTO_CREATE_SQLITE = _bool("AUTO_CREATE_SQLITE", True)

    @classmethod
    def init_app(cls, app) -> None:
        """
        Boot hook called from create_app() after app.config.from_object(...).
        """
        uri = str(app.config.get("SQLALCHEMY_DATABASE_URI") or "")

        if uri.startswith("sqlite:"):
            opts = dict(app.config.get("SQLALCHEMY_ENGINE_OPTIONS") or {})
            connect_args = dict(opts.get("connect_args") or {})
            connect_args.setdefault("check_same_thread", False)
            opts["connect_args"] = connect_args
            opts.setdefault("pool_pre_ping", True)
            app.config["SQLALCHEMY_ENGINE_OPTIONS"] = opts


class DevelopmentConfig(BaseConfig):
    ENV = "development"
    DEBUG = True

    SQLALCHEMY_DATABASE_URI = _env("SQLALCHEMY_DATABASE_URI", "sqlite:///treeofhope-dev.db")

    SESSION_COOKIE_SECURE = False
    PREFERRED_URL_SCHEME = _env("PREFERRED_URL_SCHEME", "http")
    PUBLIC_BASE_URL = _clean_base_url(_env("PUBLIC_BASE_URL", "http://localhost:5000"))
    MAIL_SUPPRESS_SEND = _bool("MAIL_SUPPRESS_SEND", True)


class TestingConfig(BaseConfig):
    ENV = "testing"
    TESTING = True
    DEBUG = False

    SECRET_KEY = "testing-secret-key"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    AUTO_CREATE_SQLITE = False

    SESSION_COOKIE_SECURE = False
    PUBLIC_BASE_URL = "http://localhost"
    PREFERRED_URL_SCHEME = "http"
    LOG_LEVEL = "WARNING"
    SENTRY_DSN = ""
    ADMIN_EMAILS: list[str] = []

    MAIL_SUPPRESS_SEND = True
    ANALYTICS_SINK_URL = ""

    STRIPE_SECRET_KEY = "sk_test_tree_of_hope"
    STRIPE_PUBLISHABLE_KEY = "pk_test_tree_of_hope"
    STRIPE_WEBHOOK_SECRET = "whsec_tree_of_hope"
    STRIPE_PRICE_NURTURE = "price_nurture"
    STRIPE_PRICE_SUSTAIN = "price_sustain"
    STRIPE_PRICE_FLOURISH = "price_flourish"
    STRIPE_PRICE_SEEDLING = "price_seedling"
    STRIPE_PRICE_SAPLING = "price_sapling"
    STRIPE_PRICE_MIGHTY_OAK = "price_mighty_oak"


class ProductionConfig(BaseConfig):
    ENV = "production"
    DEBUG = False

    SESSION_COOKIE_SECURE = True
    PREFERRED_URL_SCHEME = _env("PREFERRED_URL_SCHEME", "https")

    @classmethod
    def init_app(cls, app) -> None:
        super().init_app(app)

        # ---- Production guardrails (fail fast) ----
        sk = app.config.get("SECRET_KEY")
        if not sk or sk == "dev-change-me":
            raise RuntimeError("SECRET_KEY must be set to a strong random value in production.")

        base = (app.config.get("PUBLIC_BASE_URL") or "").strip()
        if base and base.startswith("http://"):
            raise RuntimeError("PUBLIC_BASE_URL must be https:// in production.")

        if _bool("FLASK_DEBUG", False):
            raise RuntimeError("FLASK_DEBUG must be 0 in production.")

        if not app.config.get("STRIPE_WEBHOOK_SECRET") and app.config.get("STRIPE_SECRET_KEY"):
            app.logger.warning("STRIPE_WEBHOOK_SECRET is not set; billing webhooks will be rejected.")
