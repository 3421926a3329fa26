from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from dataclasses import dataclass, field

from .mode_core import (
    ModeContext,
    ModeKind,
    ModeProgress,
    ModeSnapshot,
    ModeState,
    SeededRng,
    lerp,
)
from .results import RunOutcome, RunSummary, build_run_summary

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class HordeConfig:
    wave_scaling: float = 0.1

    elite_start_chance: float = 0.1
    elite_max_chance: float = 0.5
    elite_start_wave: int = 3
    elite_reach_wave: int = 20

    base_enemy_count: int = 5
    enemies_per_wave: float = 1.5

    mini_boss_interval: int = 5
    boss_interval: int = 10
    boss_rotation: int = 4
    shop_between_waves: bool = True

    boss_health_scale: float = 2.0
    boss_damage_scale: float = 1.5
    mini_boss_health_scale: float = 3.0
    mini_boss_damage_scale: float = 2.0

    # Host-side rewards for clearing a wave.
    score_per_wave: int = 500
    heal_per_wave: int = 30

    slow_enemies_speed_multiplier: float = 0.8
    fast_reload_multiplier: float = 0.7

    def __post_init__(self) -> None:
        if self.wave_scaling < 0.0:
            raise ValueError("wave_scaling must be >= 0")
        if not (0.0 <= self.elite_start_chance <= self.elite_max_chance <= 1.0):
            raise ValueError("elite chances must satisfy 0 <= start <= max <= 1")
        if self.elite_reach_wave <= self.elite_start_wave:
            raise ValueError("elite_reach_wave must be > elite_start_wave")
        if self.mini_boss_interval <= 0 or self.boss_interval <= 0 or self.boss_rotation <= 0:
            raise ValueError("boss intervals and rotation must be > 0")
        if self.base_enemy_count < 0 or self.enemies_per_wave < 0.0:
            raise ValueError("enemy counts must be >= 0")


# (first eligible wave, types added at that wave)
ENEMY_TYPE_UNLOCKS: tuple[tuple[int, tuple[str, ...]], ...] = (
    (1, ("infantry", "scout")),
    (3, ("heavy",)),
    (5, ("sniper",)),
    (7, ("medic",)),
    (8, ("drone",)),
    (10, ("engineer", "berserker")),
    (12, ("bomber",)),
    (15, ("flamethrower", "riot")),
)

MINI_BOSS_TYPES: tuple[str, ...] = ("heavy", "berserker", "flamethrower")
BOSS_TYPE = "boss"


@dataclass(frozen=True, slots=True)
class ModifierDef:
    modifier_id: str
    name: str
    unlock_wave: int


MODIFIER_CATALOG: tuple[ModifierDef, ...] = (
    ModifierDef("double_coins", "Double Coins", 5),
    ModifierDef("extra_drops", "Extra Drops", 10),
    ModifierDef("slow_enemies", "Slow Enemies", 15),
    ModifierDef("fast_reload", "Fast Reload", 20),
    ModifierDef("vampire", "Vampiric Hits", 25),
    ModifierDef("explosive_kills", "Explosive Kills", 30),
)


@dataclass(slots=True)
class Modifier:
    modifier_id: str
    name: str
    unlock_wave: int
    active: bool = False


@dataclass(frozen=True, slots=True)
class EnemySpec:
    type: str
    is_elite: bool = False
    is_mini_boss: bool = False
    is_boss: bool = False
    boss_id: int | None = None
    health_multiplier: float = 1.0
    damage_multiplier: float = 1.0


@dataclass(frozen=True, slots=True)
class WaveConfig:
    wave: int
    enemies: tuple[EnemySpec, ...]
    scaling: float
    elite_chance: float
    has_mini_boss: bool
    has_boss: bool
    show_shop: bool
    active_modifier_ids: frozenset[str] = field(default_factory=frozenset)

    @property
    def total_enemies(self) -> int:
        return len(self.enemies)


def wave_scaling_factor(wave: int, config: HordeConfig | None = None) -> float:
    cfg = config or HordeConfig()
    return 1.0 + wave * cfg.wave_scaling


def elite_chance_for_wave(wave: int, config: HordeConfig | None = None) -> float:
    cfg = config or HordeConfig()
    if wave < cfg.elite_start_wave:
        return 0.0
    progress = (wave - cfg.elite_start_wave) / float(cfg.elite_reach_wave - cfg.elite_start_wave)
    return lerp(cfg.elite_start_chance, cfg.elite_max_chance, progress)


def enemy_count_for_wave(wave: int, config: HordeConfig | None = None) -> int:
    cfg = config or HordeConfig()
    return cfg.base_enemy_count + int(math.floor(wave * cfg.enemies_per_wave))


def enemy_types_for_wave(wave: int) -> tuple[str, ...]:
    types: list[str] = []
    for first_wave, added in ENEMY_TYPE_UNLOCKS:
        if wave >= first_wave:
            types.extend(added)
    return tuple(types)


def is_boss_wave(wave: int, config: HordeConfig | None = None) -> bool:
    cfg = config or HordeConfig()
    return wave >= cfg.boss_interval and wave % cfg.boss_interval == 0


def is_mini_boss_wave(wave: int, config: HordeConfig | None = None) -> bool:
    cfg = config or HordeConfig()
    if is_boss_wave(wave, cfg):
        return False
    return wave >= cfg.mini_boss_interval and wave % cfg.mini_boss_interval == 0


def boss_id_for_wave(wave: int, config: HordeConfig | None = None) -> int:
    cfg = config or HordeConfig()
    return int(((wave / cfg.boss_interval) - 1) % cfg.boss_rotation)


def calculate_wave_config(
    wave: int,
    *,
    rng: SeededRng,
    config: HordeConfig | None = None,
    active_modifier_ids: Iterable[str] = (),
) -> WaveConfig:
    """Build the composition of one wave.

    Rank-and-file units share the wave scaling factor; a mini-boss or boss
    is appended after the base pool and never rolls elite.
    """

    if wave < 1:
        raise ValueError("wave must be >= 1")
    cfg = config or HordeConfig()

    scaling = wave_scaling_factor(wave, cfg)
    elite_chance = elite_chance_for_wave(wave, cfg)
    pool = enemy_types_for_wave(wave)

    enemies: list[EnemySpec] = []
    for _ in range(enemy_count_for_wave(wave, cfg)):
        is_elite = rng.chance(elite_chance)
        enemies.append(
            EnemySpec(
                type=rng.choice(pool),
                is_elite=is_elite,
                health_multiplier=scaling,
                damage_multiplier=scaling,
            )
        )

    has_boss = is_boss_wave(wave, cfg)
    has_mini_boss = is_mini_boss_wave(wave, cfg)

    if has_mini_boss:
        enemies.append(
            EnemySpec(
                type=rng.choice(MINI_BOSS_TYPES),
                is_mini_boss=True,
                health_multiplier=scaling * cfg.mini_boss_health_scale,
                damage_multiplier=scaling * cfg.mini_boss_damage_scale,
            )
        )

    if has_boss:
        enemies.append(
            EnemySpec(
                type=BOSS_TYPE,
                is_boss=True,
                boss_id=boss_id_for_wave(wave, cfg),
                health_multiplier=scaling * cfg.boss_health_scale,
                damage_multiplier=scaling * cfg.boss_damage_scale,
            )
        )

    return WaveConfig(
        wave=wave,
        enemies=tuple(enemies),
        scaling=scaling,
        elite_chance=elite_chance,
        has_mini_boss=has_mini_boss,
        has_boss=has_boss,
        show_shop=cfg.shop_between_waves and wave > 1 and not has_boss,
        active_modifier_ids=frozenset(active_modifier_ids),
    )


@dataclass(frozen=True, slots=True)
class WaveTime:
    wave: int
    time_s: float
    kills: int


@dataclass(frozen=True, slots=True)
class WaveResult:
    wave: int
    wave_time_s: float
    kills: int
    is_new_record: bool
    score_bonus: int
    heal_amount: int
    next_wave_scaling: float
    next_unlock: str | None = None


@dataclass(frozen=True, slots=True)
class HordeRunResult:
    final_wave: int
    total_time_s: float
    total_kills: int
    wave_times: tuple[WaveTime, ...]
    is_new_record: bool


class HordeMode:
    """Endless waves. The host spawns each WaveConfig and reports kills.

    The engine never auto-advances: after a WaveResult the host calls
    start_next_wave() when it is ready for the next batch.
    """

    def __init__(self, *, context: ModeContext, config: HordeConfig | None = None) -> None:
        self._ctx = context
        self._cfg = config or HordeConfig()
        self._rng = SeededRng(context.seed)

        self._state = ModeState.IDLE
        self._highest_wave = context.records.highest_wave()

        self._started_at_s = 0.0
        self._ended_at_s: float | None = None

        self._wave = 0
        self._wave_started_at_s = 0.0
        self._wave_config: WaveConfig | None = None
        self._wave_enemy_count = 0
        self._wave_kills = 0
        self._wave_cleared = False
        self._total_kills = 0
        self._score_bonus = 0
        self._wave_times: list[WaveTime] = []

        self._modifiers: list[Modifier] = []
        self._active_modifiers: list[Modifier] = []

        self._run_result: HordeRunResult | None = None
        self._summary_emitted = False

    @property
    def kind(self) -> ModeKind:
        return ModeKind.HORDE

    @property
    def state(self) -> ModeState:
        return self._state

    @property
    def active(self) -> bool:
        return self._state is ModeState.ACTIVE

    @property
    def wave(self) -> int:
        return self._wave

    @property
    def total_kills(self) -> int:
        return self._total_kills

    @property
    def highest_wave(self) -> int:
        return self._highest_wave

    @property
    def current_wave_config(self) -> WaveConfig | None:
        return self._wave_config

    def start(self) -> WaveConfig | None:
        if self._state is not ModeState.IDLE:
            logger.warning("Horde session already used; create a new session to restart")
            return None
        self._state = ModeState.ACTIVE
        self._started_at_s = self._ctx.clock.now()
        self._modifiers = [
            Modifier(modifier_id=d.modifier_id, name=d.name, unlock_wave=d.unlock_wave)
            for d in MODIFIER_CATALOG
        ]
        self._active_modifiers = []
        self._wave_cleared = True
        logger.debug("Horde started (seed=%s, best wave=%s)", self._ctx.seed, self._highest_wave)
        return self.start_next_wave()

    def start_next_wave(self) -> WaveConfig | None:
        if not self.active or not self._wave_cleared:
            return None

        self._wave += 1
        self._wave_started_at_s = self._ctx.clock.now()
        self._wave_kills = 0
        self._wave_cleared = False

        self._check_modifier_unlocks()

        cfg = calculate_wave_config(
            self._wave,
            rng=self._rng,
            config=self._cfg,
            active_modifier_ids=(m.modifier_id for m in self._active_modifiers),
        )
        self._wave_config = cfg
        self._wave_enemy_count = cfg.total_enemies
        return cfg

    def enemy_killed(self) -> WaveResult | None:
        if not self.active:
            return None
        self._total_kills += 1
        if self._wave_cleared:
            return None
        self._wave_kills += 1
        if self._wave_kills >= self._wave_enemy_count:
            return self._complete_wave()
        return None

    def update(self, dt: float) -> None:
        # Wave timing reads the clock directly; nothing accumulates per tick.
        _ = dt

    def end(self) -> HordeRunResult | None:
        if not self.active:
            return None
        self._state = ModeState.FAILED
        self._ended_at_s = self._ctx.clock.now()
        self._run_result = HordeRunResult(
            final_wave=self._wave,
            total_time_s=self._ended_at_s - self._started_at_s,
            total_kills=self._total_kills,
            wave_times=tuple(self._wave_times),
            is_new_record=self._wave > self._highest_wave,
        )
        logger.debug("Horde ended at wave %s", self._wave)
        return self._run_result

    def finalize(self) -> RunSummary | None:
        if self._state is ModeState.IDLE or self._summary_emitted:
            return None
        self.end()
        result = self._run_result
        assert result is not None
        self._summary_emitted = True
        return build_run_summary(
            mode=self.kind,
            seed=self._ctx.seed,
            outcome=RunOutcome.FAILED,
            duration_s=result.total_time_s,
            score_bonus=self._score_bonus,
            metrics={
                "final_wave": result.final_wave,
                "waves_cleared": len(result.wave_times),
                "total_kills": result.total_kills,
                "is_new_record": result.is_new_record,
            },
        )

    def has_modifier(self, modifier_id: str) -> bool:
        return any(m.modifier_id == modifier_id for m in self._active_modifiers)

    def active_modifier_names(self) -> tuple[str, ...]:
        return tuple(m.name for m in self._active_modifiers)

    def wave_times(self) -> tuple[WaveTime, ...]:
        return tuple(self._wave_times)

    def apply_modifiers(self, enemies: Iterable[object], player: object | None = None) -> None:
        """Apply the entity-side modifiers; each entity is touched at most once."""

        if not self.active:
            return
        if self.has_modifier("slow_enemies"):
            for enemy in enemies:
                if getattr(enemy, "horde_modifier_applied", False) or not hasattr(enemy, "speed"):
                    continue
                enemy.speed = enemy.speed * self._cfg.slow_enemies_speed_multiplier  # type: ignore[attr-defined]
                enemy.horde_modifier_applied = True  # type: ignore[attr-defined]
        if self.has_modifier("fast_reload") and player is not None:
            if not getattr(player, "horde_reload_modifier", False):
                player.reload_speed_multiplier = self._cfg.fast_reload_multiplier  # type: ignore[attr-defined]
                player.horde_reload_modifier = True  # type: ignore[attr-defined]

    def elapsed_s(self) -> float:
        if self._state is ModeState.IDLE:
            return 0.0
        end = self._ended_at_s if self._ended_at_s is not None else self._ctx.clock.now()
        return max(0.0, end - self._started_at_s)

    def progress(self) -> ModeProgress:
        return ModeProgress(current=self._wave_kills, total=self._wave_enemy_count)

    def snapshot(self) -> ModeSnapshot:
        lines = [
            f"WAVE {self._wave}",
            f"{self._wave_kills}/{self._wave_enemy_count} enemies",
        ]
        if self._highest_wave > 0:
            lines.append(f"Best: Wave {self._highest_wave}")
        for name in self.active_modifier_names()[:3]:
            lines.append(f"+ {name}")
        next_scaling = wave_scaling_factor(self._wave + 1, self._cfg)
        lines.append(f"Enemy scaling next wave: {int(math.floor(next_scaling * 100))}%")
        return ModeSnapshot(
            title="Horde",
            kind=self.kind,
            state=self._state,
            lines=tuple(lines),
            elapsed_s=self.elapsed_s(),
            payload=self._wave_config,
        )

    def _check_modifier_unlocks(self) -> None:
        for modifier in self._modifiers:
            if not modifier.active and self._wave >= modifier.unlock_wave:
                modifier.active = True
                self._active_modifiers.append(modifier)
                logger.debug("Horde modifier unlocked: %s", modifier.modifier_id)

    def _complete_wave(self) -> WaveResult:
        wave_time = self._ctx.clock.now() - self._wave_started_at_s
        self._wave_cleared = True
        self._wave_times.append(WaveTime(wave=self._wave, time_s=wave_time, kills=self._wave_kills))

        is_new_record = self._wave > self._highest_wave
        if is_new_record:
            self._highest_wave = self._wave
            self._ctx.records.save_highest_wave(self._wave)

        bonus = self._wave * self._cfg.score_per_wave
        self._score_bonus += bonus

        next_unlock = next(
            (m.name for m in self._modifiers if m.unlock_wave == self._wave + 1 and not m.active),
            None,
        )
        return WaveResult(
            wave=self._wave,
            wave_time_s=wave_time,
            kills=self._wave_kills,
            is_new_record=is_new_record,
            score_bonus=bonus,
            heal_amount=self._cfg.heal_per_wave,
            next_wave_scaling=wave_scaling_factor(self._wave + 1, self._cfg),
            next_unlock=next_unlock,
        )
