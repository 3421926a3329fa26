"""Pure tiering helpers: medals for times, style bonus scoring, time strings."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import StrEnum


class Medal(StrEnum):
    GOLD = "gold"
    SILVER = "silver"
    BRONZE = "bronze"
    NONE = "none"


@dataclass(frozen=True, slots=True)
class MedalThresholds:
    gold_s: float = 180.0
    silver_s: float = 300.0
    bronze_s: float = 480.0

    def __post_init__(self) -> None:
        if not (0.0 < self.gold_s < self.silver_s < self.bronze_s):
            raise ValueError("medal thresholds must satisfy 0 < gold < silver < bronze")

    def as_pairs(self) -> tuple[tuple[Medal, float], ...]:
        return (
            (Medal.GOLD, self.gold_s),
            (Medal.SILVER, self.silver_s),
            (Medal.BRONZE, self.bronze_s),
        )


def medal_for_time(time_s: float, thresholds: MedalThresholds | None = None) -> Medal:
    t = thresholds or MedalThresholds()
    for medal, limit in t.as_pairs():
        if time_s <= limit:
            return medal
    return Medal.NONE


@dataclass(slots=True)
class StyleBonus:
    """Per-run style trackers. Flags only ever clear; combo only ratchets up."""

    no_damage: bool = True
    melee_only: bool = True
    combo_max: int = 0

    def damage_taken(self) -> None:
        self.no_damage = False

    def ranged_kill(self) -> None:
        self.melee_only = False

    def combo(self, count: int) -> None:
        if count > self.combo_max:
            self.combo_max = int(count)


@dataclass(frozen=True, slots=True)
class StyleBonusItem:
    name: str
    value: int


@dataclass(frozen=True, slots=True)
class StyleBonusScore:
    total: int
    breakdown: tuple[StyleBonusItem, ...]


NO_DAMAGE_BONUS = 1000
MELEE_ONLY_BONUS = 500
COMBO_MIN = 10
COMBO_POINTS_PER_HIT = 50
COMBO_POINTS_CAP = 1000


def style_bonus_score(style: StyleBonus) -> StyleBonusScore:
    items: list[StyleBonusItem] = []
    if style.no_damage:
        items.append(StyleBonusItem("No Damage", NO_DAMAGE_BONUS))
    if style.melee_only:
        items.append(StyleBonusItem("Melee Only", MELEE_ONLY_BONUS))
    if style.combo_max >= COMBO_MIN:
        points = min(style.combo_max * COMBO_POINTS_PER_HIT, COMBO_POINTS_CAP)
        items.append(StyleBonusItem(f"{style.combo_max}x Combo", points))
    return StyleBonusScore(total=sum(i.value for i in items), breakdown=tuple(items))


def format_clock(seconds: float | None) -> str:
    """MM:SS:mmm, as shown on the run timer."""

    if seconds is None:
        return "--:--:---"
    s = max(0.0, float(seconds))
    mins = int(s // 60)
    secs = int(s % 60)
    ms = int(math.floor((s % 1) * 1000))
    return f"{mins:02d}:{secs:02d}:{ms:03d}"


def format_split(seconds: float | None) -> str:
    """M:SS.cc, as shown on per-encounter splits."""

    if seconds is None:
        return "--:--"
    s = max(0.0, float(seconds))
    mins = int(s // 60)
    secs = int(s % 60)
    cs = int(math.floor((s % 1) * 100))
    return f"{mins}:{secs:02d}.{cs:02d}"
