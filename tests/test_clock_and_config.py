from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import pytest

from arcade_modes.clock import Stopwatch
from arcade_modes.config import DB_PATH_ENV, LOG_LEVEL_ENV, AppSettings
from arcade_modes.mode_core import (
    ModeKind,
    ModeProgress,
    ModeState,
    SeededRng,
    build_context,
    clamp01,
    lerp,
)


@dataclass
class FakeClock:
    t: float = 0.0

    def now(self) -> float:
        return self.t

    def advance(self, dt: float) -> None:
        self.t += float(dt)


def test_stopwatch_excludes_paused_time() -> None:
    clock = FakeClock(t=100.0)
    sw = Stopwatch(clock)
    assert sw.elapsed_s() == 0.0

    sw.start()
    clock.advance(4.0)
    sw.pause()
    clock.advance(6.0)
    assert sw.elapsed_s() == pytest.approx(4.0)
    sw.resume()
    clock.advance(1.0)
    assert sw.stop() == pytest.approx(5.0)
    assert sw.paused_total_s == pytest.approx(6.0)

    clock.advance(50.0)
    assert sw.elapsed_s() == pytest.approx(5.0)
    assert not sw.running


def test_stopwatch_pause_before_start_is_ignored() -> None:
    clock = FakeClock()
    sw = Stopwatch(clock)
    sw.pause()
    assert not sw.paused


def test_seeded_rng_chance_edges() -> None:
    rng = SeededRng(3)
    assert not any(rng.chance(0.0) for _ in range(200))
    assert all(rng.chance(1.0) for _ in range(200))


def test_interpolation_helpers() -> None:
    assert clamp01(-2.0) == 0.0
    assert clamp01(3.0) == 1.0
    assert lerp(0.1, 0.5, 0.5) == pytest.approx(0.3)
    assert lerp(0.1, 0.5, 9.0) == pytest.approx(0.5)
    assert ModeProgress(current=3, total=4).ratio == pytest.approx(0.75)
    assert ModeProgress(current=3, total=0).ratio == 0.0


def test_settings_from_env(tmp_path: Path) -> None:
    settings = AppSettings.from_env({DB_PATH_ENV: str(tmp_path / "x.sqlite3"), LOG_LEVEL_ENV: "debug"})
    assert settings.db_path == tmp_path / "x.sqlite3"
    assert settings.log_level == logging.DEBUG


def test_settings_defaults_and_bad_level() -> None:
    settings = AppSettings.from_env({LOG_LEVEL_ENV: "chatty"})
    assert settings.db_path == AppSettings.default_db_path()
    assert settings.log_level == logging.WARNING


def test_build_context_picks_a_seed_when_none_given() -> None:
    a = build_context(clock=FakeClock())
    b = build_context(clock=FakeClock(), seed=17)
    assert 1 <= a.seed <= 2**31 - 1
    assert b.seed == 17


def test_mode_enums_are_plain_string_values() -> None:
    assert ModeKind("boss_rush") is ModeKind.BOSS_RUSH
    assert ModeState("active") is ModeState.ACTIVE
    assert isinstance(ModeKind.HORDE, str)
    assert ModeKind.HORDE == "horde"
    assert ModeState.FAILED.value == "failed"
