from __future__ import annotations

from dataclasses import dataclass
from types import SimpleNamespace

import pytest

from arcade_modes.boss_rush import (
    POWER_UPS,
    BossRushConfig,
    BossRushMode,
    boss_name,
    fisher_yates,
    power_up_label,
)
from arcade_modes.mode_core import SeededRng, build_context


@dataclass
class FakeClock:
    t: float = 0.0

    def now(self) -> float:
        return self.t

    def advance(self, dt: float) -> None:
        self.t += float(dt)


def test_boss_names_and_unknown_fallback() -> None:
    assert boss_name(0) == "The Warlord"
    assert boss_name(3) == "The Overlord"
    assert boss_name(4) == "Unknown Boss"
    assert boss_name(None) == "Unknown Boss"


def test_power_up_label() -> None:
    assert power_up_label("powerup_rapid_fire") == "RAPID FIRE"


def test_fisher_yates_is_a_deterministic_permutation() -> None:
    items = list(range(8))
    a = fisher_yates(items, SeededRng(12))
    b = fisher_yates(items, SeededRng(12))
    assert a == b
    assert sorted(a) == items
    assert items == list(range(8))


def test_default_order_and_first_boss() -> None:
    rush = BossRushMode(context=build_context(clock=FakeClock(), seed=1))
    assert rush.current_boss_id() is None
    assert rush.start() == 0
    assert rush.boss_order == (0, 1, 2, 3)
    assert rush.current_boss_id() == 0
    assert len(rush.power_up_queue) == 3
    assert all(p in POWER_UPS for p in rush.power_up_queue)


def test_start_index_trims_order_and_out_of_range_falls_back() -> None:
    rush = BossRushMode(context=build_context(clock=FakeClock(), seed=1))
    assert rush.start(start_index=2) == 2
    assert rush.boss_order == (2, 3)

    rush2 = BossRushMode(context=build_context(clock=FakeClock(), seed=1))
    assert rush2.start(start_index=9) == 0
    assert rush2.boss_order == (0, 1, 2, 3)


def test_randomized_order_is_a_seeded_permutation() -> None:
    orders = []
    for _ in range(2):
        rush = BossRushMode(context=build_context(clock=FakeClock(), seed=2024))
        rush.start(randomize_order=True)
        orders.append(rush.boss_order)
    assert orders[0] == orders[1]
    assert sorted(orders[0]) == [0, 1, 2, 3]


@pytest.mark.parametrize(
    ("tier", "expected"),
    [(0, 1.0), (1, 1.5), (2, 2.0), (3, 3.0), (4, 1.0), (-1, 1.0)],
)
def test_difficulty_tiers(tier: int, expected: float) -> None:
    rush = BossRushMode(context=build_context(clock=FakeClock(), seed=1))
    rush.start(difficulty_tier=tier)
    assert rush.difficulty_multiplier == expected


def test_apply_difficulty_scales_health_and_half_damage() -> None:
    rush = BossRushMode(context=build_context(clock=FakeClock(), seed=1))
    boss = SimpleNamespace(max_health=100, health=40, damage=10)

    rush.apply_difficulty_to_boss(boss)
    assert (boss.max_health, boss.health, boss.damage) == (100, 40, 10)

    rush.start(difficulty_tier=2)
    rush.apply_difficulty_to_boss(boss)
    assert boss.max_health == 200
    assert boss.health == 200
    assert boss.damage == 15


def test_defeat_outside_active_session_is_ignored() -> None:
    rush = BossRushMode(context=build_context(clock=FakeClock(), seed=1))
    assert rush.boss_defeated(0) is None
    rush.start()
    rush.abandon()
    assert rush.boss_defeated(0) is None


def test_start_twice_is_rejected() -> None:
    rush = BossRushMode(context=build_context(clock=FakeClock(), seed=1))
    assert rush.start() == 0
    assert rush.start() is None


@pytest.mark.parametrize(
    "kwargs",
    [
        {"boss_ids": ()},
        {"difficulty_multipliers": ()},
        {"power_ups": ()},
        {"health_refill_percent": 1.5},
    ],
)
def test_invalid_config_raises(kwargs: dict[str, object]) -> None:
    with pytest.raises(ValueError):
        BossRushConfig(**kwargs)  # type: ignore[arg-type]
