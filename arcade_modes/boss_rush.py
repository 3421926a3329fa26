from __future__ import annotations

import logging
import math
from dataclasses import dataclass

from .medals import format_split
from .mode_core import (
    ModeContext,
    ModeKind,
    ModeProgress,
    ModeSnapshot,
    ModeState,
    SeededRng,
)
from .results import RunOutcome, RunSummary, build_run_summary

logger = logging.getLogger(__name__)

BOSS_NAMES: tuple[str, ...] = ("The Warlord", "The Devastator", "The Annihilator", "The Overlord")

POWER_UPS: tuple[str, ...] = (
    "powerup_damage_boost",
    "powerup_speed",
    "powerup_rapid_fire",
    "powerup_multi_shot",
    "powerup_shield",
    "powerup_invincibility",
    "powerup_time_slow",
)


@dataclass(frozen=True, slots=True)
class BossRushConfig:
    boss_ids: tuple[int, ...] = (0, 1, 2, 3)
    difficulty_multipliers: tuple[float, ...] = (1.0, 1.5, 2.0, 3.0)
    health_refill_percent: float = 0.5
    power_ups: tuple[str, ...] = POWER_UPS
    # Completion score is base - total seconds * per_second.
    completion_score_base: int = 10000
    completion_score_per_second: int = 10

    def __post_init__(self) -> None:
        if not self.boss_ids:
            raise ValueError("boss_ids must not be empty")
        if not self.difficulty_multipliers:
            raise ValueError("difficulty_multipliers must not be empty")
        if not self.power_ups:
            raise ValueError("power_ups must not be empty")
        if not (0.0 <= self.health_refill_percent <= 1.0):
            raise ValueError("health_refill_percent must be in [0.0, 1.0]")


def boss_name(boss_id: int | None) -> str:
    if boss_id is None or not (0 <= boss_id < len(BOSS_NAMES)):
        return "Unknown Boss"
    return BOSS_NAMES[boss_id]


def power_up_label(power_up: str) -> str:
    return power_up.removeprefix("powerup_").replace("_", " ").upper()


def fisher_yates(items: list[int], rng: SeededRng) -> list[int]:
    out = list(items)
    for i in range(len(out) - 1, 0, -1):
        j = rng.randint(0, i)
        out[i], out[j] = out[j], out[i]
    return out


@dataclass(frozen=True, slots=True)
class EncounterRecord:
    boss_id: int
    order: int
    elapsed_s: float


@dataclass(frozen=True, slots=True)
class BossTransition:
    boss_time_s: float
    is_new_best: bool
    next_boss_id: int
    power_up: str | None
    health_refill_percent: float
    completed: bool = False


@dataclass(frozen=True, slots=True)
class BossRushCompletion:
    total_time_s: float
    encounter_history: tuple[EncounterRecord, ...]
    is_new_best: bool
    difficulty_multiplier: float
    score_bonus: int
    completed: bool = True


class BossRushMode:
    """Sequential gauntlet over the boss catalog.

    Order, reward queue and difficulty are fixed at start(); the host spawns
    current_boss_id(), runs it through apply_difficulty_to_boss() and reports
    boss_defeated() when it dies.
    """

    def __init__(self, *, context: ModeContext, config: BossRushConfig | None = None) -> None:
        self._ctx = context
        self._cfg = config or BossRushConfig()
        self._rng = SeededRng(context.seed)

        self._state = ModeState.IDLE
        self._unlocked = context.records.boss_rush_unlocked()
        self._best_total = context.records.boss_rush_best_total()
        self._best_boss_times = context.records.boss_rush_best_boss_times()

        self._order: list[int] = []
        self._power_up_queue: list[str] = []
        self._index = 0
        self._difficulty_multiplier = 1.0

        self._started_at_s = 0.0
        self._ended_at_s: float | None = None
        self._boss_started_at_s = 0.0

        self._history: list[EncounterRecord] = []
        self._completion: BossRushCompletion | None = None
        self._summary_emitted = False

    @property
    def kind(self) -> ModeKind:
        return ModeKind.BOSS_RUSH

    @property
    def state(self) -> ModeState:
        return self._state

    @property
    def active(self) -> bool:
        return self._state is ModeState.ACTIVE

    @property
    def difficulty_multiplier(self) -> float:
        return self._difficulty_multiplier

    @property
    def boss_order(self) -> tuple[int, ...]:
        return tuple(self._order)

    @property
    def power_up_queue(self) -> tuple[str, ...]:
        return tuple(self._power_up_queue)

    def unlocked_bosses(self) -> tuple[int, ...]:
        return tuple(self._unlocked)

    def best_total_time(self) -> float | None:
        return self._best_total

    def best_boss_time(self, boss_id: int) -> float | None:
        return self._best_boss_times.get(int(boss_id))

    def start(
        self,
        start_index: int = 0,
        difficulty_tier: int = 0,
        randomize_order: bool = False,
    ) -> int | None:
        """Begin the gauntlet; returns the first boss id."""

        if self._state is not ModeState.IDLE:
            logger.warning("Boss rush session already used; create a new session to restart")
            return None

        order = list(self._cfg.boss_ids)
        if 0 <= start_index < len(order):
            order = order[start_index:]
        else:
            logger.warning("Boss rush start index %r out of range; starting from the first boss", start_index)
        if randomize_order:
            order = fisher_yates(order, self._rng)
        self._order = order

        if 0 <= difficulty_tier < len(self._cfg.difficulty_multipliers):
            self._difficulty_multiplier = float(self._cfg.difficulty_multipliers[difficulty_tier])
        else:
            logger.warning("Unknown boss rush difficulty tier %r; using 1.0", difficulty_tier)
            self._difficulty_multiplier = 1.0

        self._power_up_queue = [self._rng.choice(self._cfg.power_ups) for _ in range(len(order) - 1)]

        self._state = ModeState.ACTIVE
        self._index = 0
        self._history = []
        self._started_at_s = self._ctx.clock.now()
        self._boss_started_at_s = self._started_at_s
        logger.debug("Boss rush started: order=%s x%s", self._order, self._difficulty_multiplier)
        return self._order[0]

    def current_boss_id(self) -> int | None:
        if not self.active or self._index >= len(self._order):
            return None
        return self._order[self._index]

    def boss_defeated(self, boss_id: int) -> BossTransition | BossRushCompletion | None:
        if not self.active:
            return None

        now = self._ctx.clock.now()
        boss_time = now - self._boss_started_at_s
        self._history.append(EncounterRecord(boss_id=int(boss_id), order=self._index + 1, elapsed_s=boss_time))
        is_new_best = self._check_boss_best(int(boss_id), boss_time)

        power_up = self._power_up_queue[self._index] if self._index < len(self._power_up_queue) else None
        self._index += 1

        if self._index >= len(self._order):
            return self._complete(now)

        self._boss_started_at_s = now
        return BossTransition(
            boss_time_s=boss_time,
            is_new_best=is_new_best,
            next_boss_id=self._order[self._index],
            power_up=power_up,
            health_refill_percent=self._cfg.health_refill_percent,
        )

    def abandon(self) -> None:
        """The player lost; keep whatever per-boss bests were already saved."""

        if not self.active:
            return
        self._state = ModeState.FAILED
        self._ended_at_s = self._ctx.clock.now()

    def update(self, dt: float) -> None:
        _ = dt

    def finalize(self) -> RunSummary | None:
        if self._state is ModeState.IDLE or self._summary_emitted:
            return None
        self.abandon()
        self._summary_emitted = True
        completion = self._completion
        return build_run_summary(
            mode=self.kind,
            seed=self._ctx.seed,
            outcome=RunOutcome.COMPLETED if completion is not None else RunOutcome.FAILED,
            duration_s=self.elapsed_s(),
            score_bonus=0 if completion is None else completion.score_bonus,
            metrics={
                "bosses_defeated": len(self._history),
                "bosses_total": len(self._order),
                "difficulty_multiplier": self._difficulty_multiplier,
                "is_new_best": False if completion is None else completion.is_new_best,
            },
        )

    def apply_difficulty_to_boss(self, boss: object) -> None:
        if not self.active:
            return
        m = self._difficulty_multiplier
        boss.max_health = int(math.floor(boss.max_health * m))  # type: ignore[attr-defined]
        boss.health = boss.max_health  # type: ignore[attr-defined]
        boss.damage = int(math.floor(boss.damage * (1.0 + (m - 1.0) * 0.5)))  # type: ignore[attr-defined]

    def boss_name(self, boss_id: int | None) -> str:
        return boss_name(boss_id)

    def encounter_history(self) -> tuple[EncounterRecord, ...]:
        return tuple(self._history)

    def elapsed_s(self) -> float:
        if self._state is ModeState.IDLE:
            return 0.0
        end = self._ended_at_s if self._ended_at_s is not None else self._ctx.clock.now()
        return max(0.0, end - self._started_at_s)

    def boss_elapsed_s(self) -> float:
        if not self.active:
            return 0.0
        return max(0.0, self._ctx.clock.now() - self._boss_started_at_s)

    def progress(self) -> ModeProgress:
        total = len(self._order)
        return ModeProgress(current=min(self._index + 1, total), total=total)

    def snapshot(self) -> ModeSnapshot:
        p = self.progress()
        lines = [
            f"BOSS RUSH  Boss {p.current}/{p.total}",
            f"{boss_name(self.current_boss_id())}  {format_split(self.boss_elapsed_s())}",
            f"Total: {format_split(self.elapsed_s())}",
        ]
        if self._difficulty_multiplier > 1.0:
            lines.append(f"{self._difficulty_multiplier}x")
        if self._best_total is not None:
            lines.append(f"Best: {format_split(self._best_total)}")
        return ModeSnapshot(
            title="Boss Rush",
            kind=self.kind,
            state=self._state,
            lines=tuple(lines),
            elapsed_s=self.elapsed_s(),
            payload=self.current_boss_id(),
        )

    def _complete(self, now: float) -> BossRushCompletion:
        self._state = ModeState.COMPLETED
        self._ended_at_s = now
        total = now - self._started_at_s

        is_new_best = self._best_total is None or total < self._best_total
        if is_new_best:
            self._best_total = total
            self._ctx.records.save_boss_rush_best_total(total)

        for record in self._history:
            self._unlock(record.boss_id)

        score = int(
            math.floor(self._cfg.completion_score_base - total * self._cfg.completion_score_per_second)
        )
        self._completion = BossRushCompletion(
            total_time_s=total,
            encounter_history=tuple(self._history),
            is_new_best=is_new_best,
            difficulty_multiplier=self._difficulty_multiplier,
            score_bonus=score,
        )
        logger.debug("Boss rush complete in %.2fs", total)
        return self._completion

    def _check_boss_best(self, boss_id: int, seconds: float) -> bool:
        best = self._best_boss_times.get(boss_id)
        if best is not None and seconds >= best:
            return False
        self._best_boss_times[boss_id] = seconds
        self._ctx.records.save_boss_rush_best_boss_times(self._best_boss_times)
        return True

    def _unlock(self, boss_id: int) -> None:
        if boss_id in self._unlocked:
            return
        self._unlocked.append(boss_id)
        self._ctx.records.save_boss_rush_unlocked(self._unlocked)
