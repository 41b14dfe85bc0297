#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Item hyperlink strings as the game client produces them, e.g.

    |cff0070dd|Hitem:19019::::::::60:::::|h[Thunderfury, Blessed Blade]|h|r

Only two things are pulled out: the bracketed display name and the numeric item id.
"""

import re
from typing import Any, Optional

LINK_NAME_RE = re.compile(r"\|h\[(.+?)\]\|h")
# Bare "[Name]" without the |h wrapper (some addons strip colour/link codes)
BRACKET_NAME_RE = re.compile(r"\[(.+?)\]")
ITEM_ID_RE = re.compile(r"item:(\d+)")


def link_name(link: str) -> Optional[str]:
    m = LINK_NAME_RE.search(link) or BRACKET_NAME_RE.search(link)
    if not m:
        return None
    name = m.group(1).strip()
    return name or None


def link_item_id(link: str) -> Optional[int]:
    m = ITEM_ID_RE.search(link)
    return int(m.group(1)) if m else None


def _as_item_id(v: Any) -> Optional[int]:
    if isinstance(v, bool):
        return None
    if isinstance(v, int):
        return v
    if isinstance(v, str) and v.strip().isdigit():
        return int(v.strip())
    return None


def item_label(ref: Any) -> str:
    """
    Display name for an equipped entry or a bag slot.

    Accepts a hyperlink string, a bare item id, or a slot dict carrying
    "hyperlink" and/or "itemID". Falls back to the raw string, then to "Item #<id>".
    """
    item_id = None
    if isinstance(ref, dict):
        item_id = _as_item_id(ref.get("itemID"))
        ref = ref.get("hyperlink")

    if isinstance(ref, str) and ref.strip():
        name = link_name(ref)
        if name:
            return name
        bare_id = _as_item_id(ref)
        if bare_id is None:
            return ref.strip()
        item_id = bare_id
    elif item_id is None:
        item_id = _as_item_id(ref)

    if item_id is not None:
        return f"Item #{item_id}"
    return "Unknown item"
