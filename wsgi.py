import os

# Force production env when served by gunicorn
os.environ.setdefault("ENV", "production")

from treeofhope import create_app  # noqa: E402

app = create_app()
