import atexit
import logging
import os
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, List, Optional

import stripe
from blinker import Namespace
from flask_cors import CORS
from flask_login import LoginManager
from flask_mail import Mail, Message
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy

log = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────
# Core singletons
# ─────────────────────────────────────────────────────────────
db = SQLAlchemy()
migrate = Migrate()
mail = Mail()
login_manager = LoginManager()
cors = CORS()


# ─────────────────────────────────────────────────────────────
# Background tasks + clean shutdown
# ─────────────────────────────────────────────────────────────
_BG_MAX_WORKERS = int(os.getenv("BG_MAX_WORKERS", "4"))
_EXECUTOR = ThreadPoolExecutor(max_workers=_BG_MAX_WORKERS, thread_name_prefix="toh-bg")


def run_bg(func: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
    return _EXECUTOR.submit(func, *args, **kwargs)


@atexit.register
def _shutdown_executor() -> None:
    _EXECUTOR.shutdown(wait=False, cancel_futures=True)


# ─────────────────────────────────────────────────────────────
# Email helper
# ─────────────────────────────────────────────────────────────
def send_email_async(
    app: Any,
    subject: str,
    recipients: List[str],
    *,
    body: str,
    html: Optional[str] = None,
    sender: Optional[str] = None,
    max_retries: int = 2,
    retry_backoff: float = 0.5,
) -> Future:
    """Send a message through Flask-Mail on the background executor.

    The returned future resolves to True on delivery, False once retries are
    exhausted. Failures are logged, never raised to the request thread.
    """

    def _job() -> bool:
        with app.app_context():
            logger = getattr(app, "logger", log)
            msg = Message(
                subject=subject,
                recipients=recipients,
                sender=sender or app.config.get("DEFAULT_MAIL_SENDER"),
                body=body,
                html=html,
            )

            attempts = 0
            while True:
                try:
                    mail.send(msg)
                    return True
                except Exception as e:
                    attempts += 1
                    if attempts > max_retries:
                        logger.error("Email send permanently failed: %s", e, exc_info=True)
                        return False
                    logger.warning("Mail send failed (attempt %s/%s): %s", attempts, max_retries, e)
                    time.sleep(float(retry_backoff) * attempts)

    return run_bg(_job)


# ─────────────────────────────────────────────────────────────
# Lightweight signals
# ─────────────────────────────────────────────────────────────
_signals = Namespace()
app_event = _signals.signal("app-event")


# ─────────────────────────────────────────────────────────────
# Stripe initialization
# ─────────────────────────────────────────────────────────────
def _guess_stripe_mode(api_key: Optional[str]) -> str:
    if not api_key:
        return "disabled"
    if api_key.startswith(("sk_live_", "rk_live_")):
        return "live"
    if api_key.startswith(("sk_test_", "rk_test_")):
        return "test"
    return "unknown"


def init_stripe(app: Any) -> None:
    api_key = (app.config.get("STRIPE_SECRET_KEY") or "").strip()

    if not api_key:
        app.logger.warning("Stripe NOT initialized: missing STRIPE_SECRET_KEY")
        return

    stripe.api_key = api_key
    stripe.max_network_retries = int(app.config.get("STRIPE_MAX_NETWORK_RETRIES") or 0)
    stripe.set_app_info(app.config.get("BRAND_NAME", "Tree of Hope"), version=os.getenv("GIT_COMMIT", "dev"))
    app.logger.info("Stripe initialized (%s mode)", _guess_stripe_mode(api_key))


__all__ = [
    "db",
    "migrate",
    "mail",
    "login_manager",
    "cors",
    "run_bg",
    "send_email_async",
    "init_stripe",
    "app_event",
]
