"""Campaign lookups, slugs and the single leaf-creation path."""

from __future__ import annotations

import re
from typing import Optional

from sqlalchemy import or_

from treeofhope.extensions import db
from treeofhope.models.campaign import Campaign, Leaf
from treeofhope.placement import leaf_position

_UUID_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)
_SLUG_STRIP_RE = re.compile(r"[^\w\s-]", re.ASCII)
_SLUG_SPACE_RE = re.compile(r"[\s_]+")

SLUG_MAX_LEN = 50

PRE_BUILD_SEED_MESSAGES = (
    "Wishing you strength and healing on this journey.",
    "Your story matters. We are here to support you.",
    "May this tree grow with love and hope for your recovery.",
)
PRE_BUILD_SEED_AUTHOR = "Tree of Hope"


def looks_like_id(ref: str) -> bool:
    return bool(_UUID_RE.match(ref or ""))


def resolve_campaign(ref: Optional[str]) -> Optional[Campaign]:
    """Find a campaign by id or slug. Only id-shaped refs are tried as ids."""
    ref = (ref or "").strip()
    if not ref:
        return None
    if looks_like_id(ref):
        return Campaign.query.filter(or_(Campaign.id == ref.lower(), Campaign.slug == ref)).first()
    return Campaign.by_slug(ref)


def slugify(text: str, max_len: int = SLUG_MAX_LEN) -> str:
    s = _SLUG_STRIP_RE.sub("", (text or "").lower())
    s = _SLUG_SPACE_RE.sub("-", s).strip("-")
    return s[:max_len].strip("-")


def unique_slug(text: str) -> str:
    """slugify(text), suffixed with -2, -3, ... until unused."""
    base = slugify(text) or "campaign"
    slug, n = base, 1
    while db.session.query(Campaign.id).filter_by(slug=slug).first() is not None:
        n += 1
        suffix = f"-{n}"
        slug = f"{base[: SLUG_MAX_LEN - len(suffix)]}{suffix}"
    return slug


def add_leaf(campaign_id: str, *, author_name: str, message: str, is_public: bool = True) -> Optional[Leaf]:
    """
    Place and insert a leaf. The counter increment and the insert share the
    caller's transaction; the caller commits. None when the campaign is gone.
    """
    index = Campaign.advance_leaf_count(campaign_id)
    if index is None:
        return None
    x, y = leaf_position(index)
    leaf = Leaf(
        campaign_id=campaign_id,
        author_name=author_name,
        message=message,
        position_x=x,
        position_y=y,
        is_public=bool(is_public),
        is_hidden=False,
    )
    db.session.add(leaf)
    db.session.flush()
    return leaf
