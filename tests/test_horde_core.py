from __future__ import annotations

import pytest

from arcade_modes.horde import (
    BOSS_TYPE,
    MINI_BOSS_TYPES,
    HordeConfig,
    boss_id_for_wave,
    calculate_wave_config,
    elite_chance_for_wave,
    enemy_count_for_wave,
    enemy_types_for_wave,
    is_boss_wave,
    is_mini_boss_wave,
    wave_scaling_factor,
)
from arcade_modes.mode_core import SeededRng


def test_enemy_count_grows_with_wave() -> None:
    assert enemy_count_for_wave(1) == 6
    assert enemy_count_for_wave(2) == 8
    assert enemy_count_for_wave(3) == 9
    assert enemy_count_for_wave(10) == 20

    for wave in range(1, 60):
        assert enemy_count_for_wave(wave) == 5 + (3 * wave) // 2


def test_scaling_factor_is_linear_in_wave() -> None:
    assert wave_scaling_factor(1) == pytest.approx(1.1)
    assert wave_scaling_factor(10) == pytest.approx(2.0)
    assert wave_scaling_factor(4, HordeConfig(wave_scaling=0.25)) == pytest.approx(2.0)


def test_elite_chance_ramps_between_start_and_reach_wave() -> None:
    assert elite_chance_for_wave(1) == 0.0
    assert elite_chance_for_wave(2) == 0.0
    assert elite_chance_for_wave(3) == pytest.approx(0.1)
    assert elite_chance_for_wave(20) == pytest.approx(0.5)
    assert elite_chance_for_wave(45) == pytest.approx(0.5)

    prev = 0.0
    for wave in range(3, 21):
        chance = elite_chance_for_wave(wave)
        assert chance >= prev
        prev = chance


def test_boss_and_mini_boss_cadence() -> None:
    assert [w for w in range(1, 41) if is_boss_wave(w)] == [10, 20, 30, 40]
    assert [w for w in range(1, 41) if is_mini_boss_wave(w)] == [5, 15, 25, 35]
    assert not is_mini_boss_wave(10)


def test_boss_id_cycles_through_rotation() -> None:
    assert [boss_id_for_wave(w) for w in (10, 20, 30, 40, 50, 60)] == [0, 1, 2, 3, 0, 1]


def test_enemy_types_unlock_progressively() -> None:
    assert enemy_types_for_wave(1) == ("infantry", "scout")
    assert "heavy" not in enemy_types_for_wave(2)
    assert "heavy" in enemy_types_for_wave(3)
    assert "riot" in enemy_types_for_wave(15)
    assert len(enemy_types_for_wave(100)) == len(enemy_types_for_wave(15))


def test_wave_one_config_has_no_elites_boss_or_shop() -> None:
    cfg = calculate_wave_config(1, rng=SeededRng(3))
    assert cfg.total_enemies == 6
    assert not cfg.has_boss
    assert not cfg.has_mini_boss
    assert cfg.show_shop is False
    assert all(not e.is_elite for e in cfg.enemies)
    assert all(e.type in ("infantry", "scout") for e in cfg.enemies)
    assert all(e.health_multiplier == pytest.approx(1.1) for e in cfg.enemies)


def test_mini_boss_wave_appends_one_mini_boss() -> None:
    cfg = calculate_wave_config(5, rng=SeededRng(11))
    assert cfg.has_mini_boss
    assert cfg.total_enemies == enemy_count_for_wave(5) + 1
    minis = [e for e in cfg.enemies if e.is_mini_boss]
    assert len(minis) == 1
    assert minis[0].type in MINI_BOSS_TYPES
    assert minis[0].is_elite is False
    assert minis[0].health_multiplier == pytest.approx(1.5 * 3.0)
    assert cfg.show_shop is True


def test_boss_wave_appends_boss_and_skips_shop() -> None:
    cfg = calculate_wave_config(10, rng=SeededRng(11))
    assert cfg.has_boss
    assert not cfg.has_mini_boss
    assert cfg.show_shop is False
    assert cfg.total_enemies == enemy_count_for_wave(10) + 1
    boss = cfg.enemies[-1]
    assert boss.type == BOSS_TYPE
    assert boss.is_boss
    assert boss.boss_id == 0
    assert boss.health_multiplier == pytest.approx(4.0)
    assert boss.damage_multiplier == pytest.approx(3.0)


def test_shop_flag_follows_config() -> None:
    cfg = calculate_wave_config(4, rng=SeededRng(1), config=HordeConfig(shop_between_waves=False))
    assert cfg.show_shop is False


def test_same_seed_same_wave_composition() -> None:
    a = [calculate_wave_config(w, rng=SeededRng(77)) for w in (1, 8, 16)]
    b = [calculate_wave_config(w, rng=SeededRng(77)) for w in (1, 8, 16)]
    assert a == b


def test_late_waves_roll_some_elites() -> None:
    rng = SeededRng(5)
    elites = sum(
        sum(1 for e in calculate_wave_config(25, rng=rng).enemies if e.is_elite)
        for _ in range(10)
    )
    # 10 waves x 42 rank-and-file units at p=0.5.
    assert 150 < elites < 270


def test_wave_below_one_is_rejected() -> None:
    with pytest.raises(ValueError):
        calculate_wave_config(0, rng=SeededRng(1))


@pytest.mark.parametrize(
    "kwargs",
    [
        {"wave_scaling": -0.1},
        {"elite_start_chance": 0.6, "elite_max_chance": 0.5},
        {"elite_start_wave": 20, "elite_reach_wave": 20},
        {"boss_interval": 0},
        {"enemies_per_wave": -1.0},
    ],
)
def test_invalid_config_raises(kwargs: dict[str, object]) -> None:
    with pytest.raises(ValueError):
        HordeConfig(**kwargs)  # type: ignore[arg-type]
