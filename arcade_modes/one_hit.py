from __future__ import annotations

import logging
from dataclasses import dataclass

from .mode_core import (
    ModeContext,
    ModeKind,
    ModeProgress,
    ModeSnapshot,
    ModeState,
    SeededRng,
)
from .records import BestRun
from .results import RunOutcome, RunSummary, build_run_summary

logger = logging.getLogger(__name__)

GHOST_MODE_PICKUP = "powerup_ghost_mode"


@dataclass(frozen=True, slots=True)
class OneHitConfig:
    max_level: int = 10
    ghost_mode_chance: float = 0.2
    healing_pickups: tuple[str, ...] = ("health", "healing")
    # What a healing pickup becomes when the ghost-mode roll fails.
    # None drops the pickup entirely.
    health_fallback_pickup: str | None = "ammo"
    level_clear_score: int = 2000

    def __post_init__(self) -> None:
        if self.max_level < 1:
            raise ValueError("max_level must be >= 1")
        if not (0.0 <= self.ghost_mode_chance <= 1.0):
            raise ValueError("ghost_mode_chance must be in [0.0, 1.0]")


@dataclass(frozen=True, slots=True)
class Reward:
    type: str
    reward_id: str
    name: str


REWARD_LADDER: dict[int, Reward] = {
    1: Reward("skin", "shadow", "Shadow Skin (unlock progress)"),
    2: Reward("title", "survivor", "Title: Survivor"),
    3: Reward("weapon", "golden_knife", "Golden Knife"),
    4: Reward("title", "untouchable", "Title: Untouchable"),
    5: Reward("skin", "crimson", "Crimson Skin (unlock progress)"),
    6: Reward("weapon", "death_scythe", "Death Scythe"),
    7: Reward("title", "legend", "Title: Legend"),
    8: Reward("effect", "death_trail", "Death Trail Effect"),
    9: Reward("title", "immortal", "Title: Immortal"),
    10: Reward("skin", "reaper", "Reaper Skin"),
}


def reward_for_level(level: int) -> Reward | None:
    return REWARD_LADDER.get(int(level))


@dataclass(frozen=True, slots=True)
class LevelResult:
    level: int
    levels_completed: int
    time_s: float
    is_new_best: bool
    has_next_level: bool
    unlocked_reward: Reward | None
    score_bonus: int


@dataclass(frozen=True, slots=True)
class DeathResult:
    levels_completed: int
    current_level: int
    total_kills: int
    total_time_s: float
    is_new_best: bool
    death_position: tuple[float, float] | None


class OneHitMode:
    """Permadeath overlay: every entity routed through it ends up with 1 HP.

    The overlay is applied once at entity creation; callers route every new
    player/enemy through apply_to_player()/apply_to_enemy().
    """

    def __init__(self, *, context: ModeContext, config: OneHitConfig | None = None) -> None:
        self._ctx = context
        self._cfg = config or OneHitConfig()
        self._rng = SeededRng(context.seed)

        self._state = ModeState.IDLE
        self._rewards = context.records.one_hit_rewards()
        self._best_run = context.records.one_hit_best_run()

        self._started_at_s = 0.0
        self._ended_at_s: float | None = None
        self._current_level = 1
        self._levels_completed = 0
        self._total_kills = 0
        self._score_bonus = 0
        self._death_position: tuple[float, float] | None = None
        self._abandoned = False
        self._summary_emitted = False

    @property
    def kind(self) -> ModeKind:
        return ModeKind.ONE_HIT

    @property
    def state(self) -> ModeState:
        return self._state

    @property
    def active(self) -> bool:
        return self._state is ModeState.ACTIVE

    @property
    def current_level(self) -> int:
        return self._current_level

    @property
    def levels_completed(self) -> int:
        return self._levels_completed

    @property
    def total_kills(self) -> int:
        return self._total_kills

    @property
    def best_run(self) -> BestRun:
        return self._best_run

    def unlocked_rewards(self) -> tuple[int, ...]:
        return tuple(self._rewards)

    def is_reward_unlocked(self, level: int) -> bool:
        return int(level) in self._rewards

    def start(self, start_level: int = 1) -> int | None:
        if self._state is not ModeState.IDLE:
            logger.warning("One-hit session already used; create a new session to restart")
            return None
        if not (1 <= start_level <= self._cfg.max_level):
            logger.warning("One-hit start level %r out of range; starting at level 1", start_level)
            start_level = 1
        self._state = ModeState.ACTIVE
        self._current_level = int(start_level)
        self._started_at_s = self._ctx.clock.now()
        return self._current_level

    def apply_to_player(self, player: object) -> None:
        if not self.active:
            return
        player.max_health = 1  # type: ignore[attr-defined]
        player.health = 1  # type: ignore[attr-defined]
        player.can_heal = False  # type: ignore[attr-defined]
        player.one_hit_mode = True  # type: ignore[attr-defined]

    def apply_to_enemy(self, enemy: object) -> None:
        if not self.active:
            return
        enemy.max_health = 1  # type: ignore[attr-defined]
        enemy.health = 1  # type: ignore[attr-defined]
        enemy.one_hit_mode = True  # type: ignore[attr-defined]

    def modify_pickup_type(self, original_type: str) -> str | None:
        """Swap pickups for this mode.

        Healing never survives: it becomes a ghost-mode power-up on a
        successful roll, otherwise the configured fallback. Every other kind
        gets the same independent roll and is otherwise left alone.
        """

        if not self.active:
            return original_type
        if original_type in self._cfg.healing_pickups:
            if self._rng.chance(self._cfg.ghost_mode_chance):
                return GHOST_MODE_PICKUP
            return self._cfg.health_fallback_pickup
        if self._rng.chance(self._cfg.ghost_mode_chance):
            return GHOST_MODE_PICKUP
        return original_type

    def enemy_killed(self) -> None:
        if self.active:
            self._total_kills += 1

    def level_completed(self) -> LevelResult | None:
        if not self.active:
            return None
        now = self._ctx.clock.now()
        level = self._current_level
        self._levels_completed += 1
        elapsed = now - self._started_at_s

        self._unlock_reward(level)
        is_new_best = self._check_best_run(elapsed)

        has_next = level < self._cfg.max_level
        self._current_level += 1
        self._score_bonus += self._cfg.level_clear_score
        if not has_next:
            self._state = ModeState.COMPLETED
            self._ended_at_s = now
            logger.debug("One-hit: all %s levels cleared", self._cfg.max_level)

        return LevelResult(
            level=level,
            levels_completed=self._levels_completed,
            time_s=elapsed,
            is_new_best=is_new_best,
            has_next_level=has_next,
            unlocked_reward=reward_for_level(level),
            score_bonus=self._cfg.level_clear_score,
        )

    def player_died(self, position: tuple[float, float] | None = None) -> DeathResult | None:
        if not self.active:
            return None
        now = self._ctx.clock.now()
        self._state = ModeState.FAILED
        self._ended_at_s = now
        self._death_position = None if position is None else (float(position[0]), float(position[1]))
        total = now - self._started_at_s

        is_new_best = self._check_best_run(total)
        return DeathResult(
            levels_completed=self._levels_completed,
            current_level=self._current_level,
            total_kills=self._total_kills,
            total_time_s=total,
            is_new_best=is_new_best,
            death_position=self._death_position,
        )

    def update(self, dt: float) -> None:
        _ = dt

    def finalize(self) -> RunSummary | None:
        if self._state is ModeState.IDLE or self._summary_emitted:
            return None
        if self.active:
            # Quit mid-run: no death, no record update.
            self._abandoned = True
            self._state = ModeState.FAILED
            self._ended_at_s = self._ctx.clock.now()
        self._summary_emitted = True

        if self._state is ModeState.COMPLETED:
            outcome = RunOutcome.COMPLETED
        elif self._abandoned:
            outcome = RunOutcome.ABANDONED
        else:
            outcome = RunOutcome.FAILED
        return build_run_summary(
            mode=self.kind,
            seed=self._ctx.seed,
            outcome=outcome,
            duration_s=self.elapsed_s(),
            score_bonus=self._score_bonus,
            metrics={
                "levels_completed": self._levels_completed,
                "current_level": self._current_level,
                "total_kills": self._total_kills,
            },
        )

    def elapsed_s(self) -> float:
        if self._state is ModeState.IDLE:
            return 0.0
        end = self._ended_at_s if self._ended_at_s is not None else self._ctx.clock.now()
        return max(0.0, end - self._started_at_s)

    def progress(self) -> ModeProgress:
        return ModeProgress(current=self._levels_completed, total=self._cfg.max_level)

    def snapshot(self) -> ModeSnapshot:
        lines = [
            "ONE-HIT MODE",
            f"Level {min(self._current_level, self._cfg.max_level)}/{self._cfg.max_level} | Kills: {self._total_kills}",
        ]
        if self._best_run.levels > 0:
            lines.append(f"Best: {self._best_run.levels} levels")
        lines.append(f"Rewards unlocked: {len(self._rewards)}")
        return ModeSnapshot(
            title="One-Hit",
            kind=self.kind,
            state=self._state,
            lines=tuple(lines),
            elapsed_s=self.elapsed_s(),
        )

    def _check_best_run(self, elapsed_s: float) -> bool:
        if self._levels_completed <= self._best_run.levels:
            return False
        self._best_run = BestRun(levels=self._levels_completed, kills=self._total_kills, time_s=elapsed_s)
        self._ctx.records.save_one_hit_best_run(self._best_run)
        return True

    def _unlock_reward(self, level: int) -> None:
        if level in self._rewards:
            return
        self._rewards.append(level)
        self._ctx.records.save_one_hit_rewards(self._rewards)
