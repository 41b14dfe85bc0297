#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Typed view over a stored death record.

The store keeps the raw JSON object the addon sent (plus server fields). Rendering
parses it through DeathRecord.from_dict, which never raises: malformed
sub-structures become None or empty lists.
"""

import datetime as dt
import math
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from item_links import item_label

UNKNOWN = "Unknown"

COPPER_PER_SILVER = 100
COPPER_PER_GOLD = 100 * COPPER_PER_SILVER


def _str_or_none(v: Any) -> Optional[str]:
    if v is None or isinstance(v, (dict, list)):
        return None
    s = str(v).strip()
    return s or None


def _int_or_none(v: Any) -> Optional[int]:
    if isinstance(v, bool) or v is None:
        return None
    if isinstance(v, str):
        try:
            v = float(v.strip())
        except ValueError:
            return None
    if isinstance(v, int):
        return v
    if isinstance(v, float) and math.isfinite(v):
        return int(v)
    return None


def _float_or_none(v: Any) -> Optional[float]:
    if isinstance(v, bool) or v is None:
        return None
    try:
        return float(v)
    except (TypeError, ValueError, OverflowError):
        return None


def is_timestamp(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool) and math.isfinite(v)


def format_money(copper: int) -> str:
    """12345 -> '1g 23s 45c'"""
    copper = max(0, int(copper))
    gold, rest = divmod(copper, COPPER_PER_GOLD)
    silver, copper = divmod(rest, COPPER_PER_SILVER)
    return f"{gold}g {silver}s {copper}c"


def money_in_copper(d: Dict[str, Any]) -> Optional[int]:
    """
    Normalize both money shapes to a copper total.
    moneyCopperOnly takes precedence; None when the record carries no money at all.
    """
    only = _int_or_none(d.get("moneyCopperOnly"))
    if only is not None:
        return only

    parts = [_int_or_none(d.get(k)) for k in ("moneyGold", "moneySilver", "moneyCopper")]
    if all(p is None for p in parts):
        return None
    gold, silver, copper = (p or 0 for p in parts)
    return gold * COPPER_PER_GOLD + silver * COPPER_PER_SILVER + copper


def format_timestamp(ts: Optional[int]) -> str:
    if ts is None:
        return "unknown"
    try:
        return dt.datetime.fromtimestamp(ts, tz=dt.timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
    except (OverflowError, OSError, ValueError):
        return "unknown"


def player_slug(player: str, realm: str) -> str:
    return f"{player}@{realm}"


def split_slug(slug: str) -> Tuple[str, str]:
    """
    "Thrall@Durotan" -> ("Thrall", "Durotan"). Names are stored without "@",
    so the first "@" is the separator.
    """
    player, _, realm = (slug or "").strip().partition("@")
    return player.strip(), realm.strip()


@dataclass
class Location:
    zone: Optional[str] = None
    subzone: Optional[str] = None
    x: Optional[float] = None
    y: Optional[float] = None

    @classmethod
    def from_dict(cls, d: Any) -> Optional["Location"]:
        if not isinstance(d, dict):
            return None
        loc = cls(
            zone=_str_or_none(d.get("zone")),
            subzone=_str_or_none(d.get("subzone")),
            x=_float_or_none(d.get("x")),
            y=_float_or_none(d.get("y")),
        )
        if loc.zone is None and loc.subzone is None and loc.x is None:
            return None
        return loc

    def label(self) -> str:
        place = " - ".join(p for p in (self.zone, self.subzone) if p) or UNKNOWN
        if self.x is None or self.y is None:
            return place
        x, y = self.x, self.y
        # map positions come in as 0..1 fractions
        if 0 <= x <= 1 and 0 <= y <= 1:
            x, y = x * 100, y * 100
        return f"{place} ({x:.1f}, {y:.1f})"


@dataclass
class Killer:
    source_name: str = UNKNOWN
    detail: Optional[str] = None

    @classmethod
    def from_dict(cls, d: Any) -> Optional["Killer"]:
        if not isinstance(d, dict):
            return None
        detail = None
        for k in ("spellName", "detail", "subevent"):
            detail = _str_or_none(d.get(k))
            if detail:
                break
        return cls(source_name=_str_or_none(d.get("sourceName")) or UNKNOWN, detail=detail)

    def label(self) -> str:
        return f"{self.source_name} ({self.detail})" if self.detail else self.source_name


@dataclass
class BagSlot:
    label: str
    count: int = 1

    def display(self) -> str:
        return f"{self.label} x{self.count}" if self.count > 1 else self.label


@dataclass
class Bag:
    bag_id: Optional[int]
    slots: List[BagSlot] = field(default_factory=list)

    @classmethod
    def from_dict(cls, d: Any) -> Optional["Bag"]:
        if not isinstance(d, dict):
            return None
        slots = []
        raw_slots = d.get("slots")
        for s in raw_slots if isinstance(raw_slots, list) else []:
            if not isinstance(s, dict):
                continue
            if s.get("hyperlink") is None and s.get("itemID") is None:
                continue
            slots.append(BagSlot(label=item_label(s), count=_int_or_none(s.get("stackCount")) or 1))
        return cls(bag_id=_int_or_none(d.get("bagID")), slots=slots)


@dataclass
class DeathRecord:
    id: str
    player: str = UNKNOWN
    realm: str = UNKNOWN
    at: Optional[int] = None
    received_at: Optional[int] = None
    char_class: Optional[str] = None
    level: Optional[int] = None
    location: Optional[Location] = None
    killer: Optional[Killer] = None
    money_copper: Optional[int] = None
    equipped: List[str] = field(default_factory=list)
    bags: List[Bag] = field(default_factory=list)
    screenshot: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "DeathRecord":
        equipped = d.get("equipped")
        if isinstance(equipped, dict):
            # Lua tables keyed by slot number arrive as objects
            equipped = [equipped[k] for k in sorted(equipped, key=lambda k: _int_or_none(k) or 0)]
        elif not isinstance(equipped, list):
            equipped = []
        bags = d.get("bags") if isinstance(d.get("bags"), list) else []

        return cls(
            id=str(d.get("id") or ""),
            player=_str_or_none(d.get("player")) or UNKNOWN,
            realm=_str_or_none(d.get("realm")) or UNKNOWN,
            at=_int_or_none(d.get("at")),
            received_at=_int_or_none(d.get("receivedAt")),
            char_class=_str_or_none(d.get("class")),
            level=_int_or_none(d.get("level")),
            location=Location.from_dict(d.get("location")),
            killer=Killer.from_dict(d.get("killer")),
            money_copper=money_in_copper(d),
            equipped=[item_label(e) for e in equipped if e not in (None, "")],
            bags=[b for b in (Bag.from_dict(x) for x in bags) if b is not None],
            screenshot=_str_or_none(d.get("screenshot")),
            raw=d,
        )

    @property
    def slug(self) -> str:
        return player_slug(self.player, self.realm)

    @property
    def when(self) -> str:
        return format_timestamp(self.at)

    @property
    def money(self) -> Optional[str]:
        return format_money(self.money_copper) if self.money_copper is not None else None

    @property
    def killer_label(self) -> str:
        return self.killer.label() if self.killer else UNKNOWN

    def matches_slug(self, slug: str) -> bool:
        player, realm = split_slug(slug)
        return (self.player.casefold(), self.realm.casefold()) == (player.casefold(), realm.casefold())


def newest_first(records: Iterable[DeathRecord]) -> List[DeathRecord]:
    # stable: equal timestamps keep file order
    return sorted(records, key=lambda r: r.at or 0, reverse=True)


@dataclass
class PlayerProfile:
    player: str
    realm: str
    deaths: List[DeathRecord]
    total_copper: Optional[int] = None
    highest_level: Optional[int] = None
    top_killer: Optional[str] = None

    @property
    def death_count(self) -> int:
        return len(self.deaths)

    @property
    def total_money(self) -> Optional[str]:
        return format_money(self.total_copper) if self.total_copper is not None else None


def build_profile(records: Iterable[DeathRecord], slug: str) -> Optional[PlayerProfile]:
    """
    Aggregate every record of one player@realm. None when nothing matches.
    """
    mine = newest_first(r for r in records if r.matches_slug(slug))
    if not mine:
        return None

    money = [r.money_copper for r in mine if r.money_copper is not None]
    levels = [r.level for r in mine if r.level is not None]
    killers = Counter(r.killer.source_name for r in mine if r.killer and r.killer.source_name != UNKNOWN)

    return PlayerProfile(
        player=mine[0].player,
        realm=mine[0].realm,
        deaths=mine,
        total_copper=sum(money) if money else None,
        highest_level=max(levels) if levels else None,
        top_killer=killers.most_common(1)[0][0] if killers else None,
    )
