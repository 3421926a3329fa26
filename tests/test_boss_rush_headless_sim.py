from __future__ import annotations

from dataclasses import dataclass

import pytest

from arcade_modes.boss_rush import BossRushCompletion, BossRushMode, BossTransition
from arcade_modes.mode_core import ModeState, build_context
from arcade_modes.records import (
    KEY_BOSS_RUSH_BEST_TOTAL,
    KEY_BOSS_RUSH_UNLOCKED,
    MemoryRecordStore,
)
from arcade_modes.results import RunOutcome


@dataclass
class FakeClock:
    t: float = 0.0

    def now(self) -> float:
        return self.t

    def advance(self, dt: float) -> None:
        self.t += float(dt)


def _run_gauntlet(rush: BossRushMode, clock: FakeClock, split_s: float) -> list:
    results = []
    while rush.current_boss_id() is not None:
        clock.advance(split_s)
        results.append(rush.boss_defeated(rush.current_boss_id()))
    return results


def test_full_gauntlet_completes_only_on_last_boss() -> None:
    clock = FakeClock()
    store = MemoryRecordStore()
    rush = BossRushMode(context=build_context(clock=clock, store=store, seed=5))
    rush.start()

    results = _run_gauntlet(rush, clock, 10.0)
    assert len(results) == 4
    assert all(isinstance(r, BossTransition) for r in results[:3])
    assert [r.next_boss_id for r in results[:3]] == [1, 2, 3]
    assert [r.power_up for r in results[:3]] == list(rush.power_up_queue)
    assert all(r.health_refill_percent == 0.5 for r in results[:3])
    assert all(r.boss_time_s == pytest.approx(10.0) for r in results[:3])

    done = results[3]
    assert isinstance(done, BossRushCompletion)
    assert done.total_time_s == pytest.approx(40.0)
    assert done.is_new_best is True
    assert done.score_bonus == 9600
    assert [(e.boss_id, e.order) for e in done.encounter_history] == [(0, 1), (1, 2), (2, 3), (3, 4)]

    assert rush.state is ModeState.COMPLETED
    assert rush.boss_defeated(3) is None
    assert store.get(KEY_BOSS_RUSH_BEST_TOTAL).value == pytest.approx(40.0)
    assert store.get(KEY_BOSS_RUSH_UNLOCKED).value == [0, 1, 2, 3]


def test_best_total_and_unlocks_across_runs() -> None:
    store = MemoryRecordStore()

    clock = FakeClock()
    first = BossRushMode(context=build_context(clock=clock, store=store, seed=1))
    first.start()
    _run_gauntlet(first, clock, 10.0)

    clock = FakeClock()
    slower = BossRushMode(context=build_context(clock=clock, store=store, seed=2))
    assert slower.best_total_time() == pytest.approx(40.0)
    slower.start()
    results = _run_gauntlet(slower, clock, 12.0)
    assert results[-1].is_new_best is False
    assert all(r.is_new_best is False for r in results[:3])
    assert store.get(KEY_BOSS_RUSH_UNLOCKED).value == [0, 1, 2, 3]
    assert store.get(KEY_BOSS_RUSH_BEST_TOTAL).value == pytest.approx(40.0)

    clock = FakeClock()
    faster = BossRushMode(context=build_context(clock=clock, store=store, seed=3))
    faster.start()
    results = _run_gauntlet(faster, clock, 8.0)
    assert results[-1].is_new_best is True
    assert faster.best_boss_time(2) == pytest.approx(8.0)
    assert store.get(KEY_BOSS_RUSH_BEST_TOTAL).value == pytest.approx(32.0)


def test_abandon_keeps_per_boss_bests_but_not_total_or_unlocks() -> None:
    clock = FakeClock()
    store = MemoryRecordStore()
    rush = BossRushMode(context=build_context(clock=clock, store=store, seed=8))
    rush.start(start_index=1)

    clock.advance(7.0)
    assert isinstance(rush.boss_defeated(1), BossTransition)
    clock.advance(3.0)
    rush.abandon()

    assert rush.state is ModeState.FAILED
    assert rush.current_boss_id() is None
    assert rush.best_boss_time(1) == pytest.approx(7.0)
    assert store.get(KEY_BOSS_RUSH_BEST_TOTAL).value is None
    assert rush.unlocked_bosses() == (0,)

    summary = rush.finalize()
    assert summary is not None
    assert summary.outcome is RunOutcome.FAILED
    assert summary.duration_s == pytest.approx(10.0)
    assert summary.metrics["bosses_defeated"] == "1"
    assert summary.metrics["bosses_total"] == "3"
    assert rush.finalize() is None


def test_finalize_after_completion_reports_score() -> None:
    clock = FakeClock()
    rush = BossRushMode(context=build_context(clock=clock, seed=8))
    rush.start(difficulty_tier=3)
    _run_gauntlet(rush, clock, 25.0)

    summary = rush.finalize()
    assert summary is not None
    assert summary.outcome is RunOutcome.COMPLETED
    assert summary.score_bonus == 9000
    assert summary.metrics["difficulty_multiplier"] == "3.000000"
    assert summary.metrics["is_new_best"] == "1"


def test_snapshot_tracks_current_boss() -> None:
    clock = FakeClock()
    rush = BossRushMode(context=build_context(clock=clock, seed=8))
    rush.start()
    clock.advance(61.5)
    snap = rush.snapshot()
    assert snap.lines[0] == "BOSS RUSH  Boss 1/4"
    assert snap.lines[1] == "The Warlord  1:01.50"
    assert snap.payload == 0

    rush.boss_defeated(0)
    p = rush.progress()
    assert (p.current, p.total) == (2, 4)
