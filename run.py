#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Tree of Hope dev launcher.

- Local dev:             ./run.py --env development
- No reloader:           ./run.py --env development --no-reload
- Gunicorn export:       gunicorn "wsgi:app"
"""

from __future__ import annotations

import argparse
import os

from dotenv import load_dotenv


def _parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Run the Tree of Hope API")
    p.add_argument("--env", default=os.getenv("ENV", "development"), choices=["development", "production", "testing"])
    p.add_argument("--host", default=os.getenv("HOST", "127.0.0.1"))
    p.add_argument("--port", type=int, default=int(os.getenv("PORT", "5000")))
    p.add_argument("--no-reload", action="store_true", help="disable the werkzeug reloader")
    return p.parse_args()


def main() -> None:
    load_dotenv(override=False)
    args = _parse_args()
    os.environ["ENV"] = args.env

    from treeofhope import create_app

    app = create_app(args.env)
    if args.env == "production":
        app.logger.warning("run.py is a dev server; serve production with gunicorn \"wsgi:app\"")
    app.run(host=args.host, port=args.port, debug=app.debug, use_reloader=app.debug and not args.no_reload)


if __name__ == "__main__":
    main()
