from __future__ import annotations

import bisect
import logging
import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from .clock import Stopwatch
from .medals import (
    Medal,
    MedalThresholds,
    StyleBonus,
    StyleBonusScore,
    format_clock,
    medal_for_time,
    style_bonus_score,
)
from .mode_core import ModeContext, ModeKind, ModeProgress, ModeSnapshot, ModeState
from .results import RunOutcome, RunSummary, build_run_summary

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TimeAttackConfig:
    thresholds: MedalThresholds = field(default_factory=MedalThresholds)
    sample_interval_s: float = 0.1
    # 10 minutes at 10 samples/s.
    max_ghost_samples: int = 6000
    level_count: int = 10
    completion_score_base: int = 1000
    completion_score_per_second: int = 10

    def __post_init__(self) -> None:
        if self.sample_interval_s <= 0.0:
            raise ValueError("sample_interval_s must be > 0")
        if self.max_ghost_samples < 0:
            raise ValueError("max_ghost_samples must be >= 0")
        if self.level_count < 1:
            raise ValueError("level_count must be >= 1")


@dataclass(frozen=True, slots=True)
class PlayerPose:
    x: float
    y: float
    facing: int = 1


@dataclass(frozen=True, slots=True)
class GhostSample:
    time: float
    x: float
    y: float
    facing: int = 1

    def to_dict(self) -> dict[str, Any]:
        return {"time": self.time, "x": self.x, "y": self.y, "facing": self.facing}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> GhostSample | None:
        try:
            return cls(
                time=float(data["time"]),
                x=float(data["x"]),
                y=float(data["y"]),
                facing=int(data.get("facing", 1)),
            )
        except (KeyError, TypeError, ValueError):
            return None


class GhostRecorder:
    """Fixed-rate position sampler.

    Samples land on a grid anchored at the first one: a sample is kept when
    the next grid point ``first + k * interval_s`` has been reached, so
    accumulated frame-time rounding never drifts the rate. At
    ``max_samples`` recording silently stops.
    """

    # Tolerance for frame times that sum to just under a grid point.
    _due_epsilon_s = 1e-9

    def __init__(self, *, interval_s: float = 0.1, max_samples: int = 6000) -> None:
        self._interval_s = float(interval_s)
        self._max_samples = int(max_samples)
        self._samples: list[GhostSample] = []
        self._origin_s = 0.0
        self._next_step = 1
        self._next_due_s = 0.0

    @property
    def full(self) -> bool:
        return len(self._samples) >= self._max_samples

    def __len__(self) -> int:
        return len(self._samples)

    def record(self, time_s: float, pose: PlayerPose) -> bool:
        if self.full:
            return False
        time_s = float(time_s)
        if not self._samples:
            self._origin_s = time_s
            self._next_step = 1
        elif time_s + self._due_epsilon_s < self._next_due_s:
            return False
        self._samples.append(GhostSample(time=time_s, x=float(pose.x), y=float(pose.y), facing=int(pose.facing)))

        # Skip every grid point this sample already covers.
        while True:
            self._next_due_s = self._origin_s + self._next_step * self._interval_s
            if self._next_due_s > time_s + self._due_epsilon_s:
                break
            self._next_step += 1
        return True

    def samples(self) -> tuple[GhostSample, ...]:
        return tuple(self._samples)


class GhostTrack:
    """Read-only replay of a recorded run (hold-last-frame, no interpolation)."""

    def __init__(self, samples: Iterable[GhostSample]) -> None:
        ordered: list[GhostSample] = []
        for s in samples:
            # Drop anything that would break the ascending-time order.
            if ordered and s.time <= ordered[-1].time:
                continue
            ordered.append(s)
        self._samples = tuple(ordered)
        self._times = [s.time for s in self._samples]

    @classmethod
    def from_records(cls, raw: Iterable[Mapping[str, Any]]) -> GhostTrack:
        parsed = (GhostSample.from_dict(item) for item in raw)
        return cls(s for s in parsed if s is not None)

    def __len__(self) -> int:
        return len(self._samples)

    @property
    def samples(self) -> tuple[GhostSample, ...]:
        return self._samples

    def position_at(self, time_s: float) -> GhostSample | None:
        if not self._samples:
            return None
        idx = bisect.bisect_left(self._times, time_s)
        if idx >= len(self._samples):
            return self._samples[-1]
        return self._samples[idx]


@dataclass(frozen=True, slots=True)
class TimeAttackResult:
    completed: bool
    time_s: float
    medal: Medal | None
    is_new_best: bool = False
    style_bonus: StyleBonusScore | None = None
    score_bonus: int = 0


@dataclass(frozen=True, slots=True)
class LevelRecord:
    level: int
    best_time_s: float | None
    medal: Medal | None


class TimeAttackMode:
    """Timed level run with medals, style bonus and a best-run ghost."""

    def __init__(self, *, context: ModeContext, config: TimeAttackConfig | None = None) -> None:
        self._ctx = context
        self._cfg = config or TimeAttackConfig()

        self._state = ModeState.IDLE
        self._best_times = context.records.time_attack_best_times()

        self._level = 1
        self._stopwatch = Stopwatch(context.clock)
        self._elapsed_s = 0.0
        self._recorder = GhostRecorder(
            interval_s=self._cfg.sample_interval_s,
            max_samples=self._cfg.max_ghost_samples,
        )
        self._ghost = GhostTrack(())
        self._style = StyleBonus()
        self._result: TimeAttackResult | None = None
        self._summary_emitted = False

    @property
    def kind(self) -> ModeKind:
        return ModeKind.TIME_ATTACK

    @property
    def state(self) -> ModeState:
        return self._state

    @property
    def active(self) -> bool:
        return self._state is ModeState.ACTIVE

    @property
    def paused(self) -> bool:
        return self._stopwatch.paused

    @property
    def level(self) -> int:
        return self._level

    @property
    def style(self) -> StyleBonus:
        return self._style

    @property
    def thresholds(self) -> MedalThresholds:
        return self._cfg.thresholds

    def recorded_samples(self) -> tuple[GhostSample, ...]:
        return self._recorder.samples()

    def ghost(self) -> GhostTrack:
        return self._ghost

    def start(self, level: int) -> int | None:
        if self._state is not ModeState.IDLE:
            logger.warning("Time attack session already used; create a new session to restart")
            return None
        self._level = int(level)
        self._state = ModeState.ACTIVE
        self._style = StyleBonus()
        self._ghost = GhostTrack.from_records(self._ctx.records.time_attack_ghost(self._level))
        self._stopwatch.start()
        self._elapsed_s = 0.0
        logger.debug("Time attack level %s started (ghost samples=%s)", self._level, len(self._ghost))
        return self._level

    def pause(self) -> None:
        if self.active:
            self._stopwatch.pause()

    def resume(self) -> None:
        if self.active:
            self._stopwatch.resume()

    def update(self, dt: float, pose: PlayerPose | None = None) -> None:
        _ = dt
        if not self.active or self._stopwatch.paused:
            return
        self._elapsed_s = self._stopwatch.elapsed_s()
        if pose is not None:
            self._recorder.record(self._elapsed_s, pose)

    def track_damage_taken(self) -> None:
        if self.active:
            self._style.damage_taken()

    def track_ranged_kill(self) -> None:
        if self.active:
            self._style.ranged_kill()

    def track_combo(self, count: int) -> None:
        if self.active:
            self._style.combo(count)

    def stop(self, completed: bool) -> TimeAttackResult | None:
        if not self.active:
            return None
        self._elapsed_s = self._stopwatch.stop()
        elapsed = self._elapsed_s

        if not completed:
            self._state = ModeState.FAILED
            self._result = TimeAttackResult(completed=False, time_s=elapsed, medal=None)
            return self._result

        self._state = ModeState.COMPLETED
        medal = medal_for_time(elapsed, self._cfg.thresholds)
        is_new_best = self._check_best_time(elapsed)
        if is_new_best:
            samples = self._recorder.samples()
            self._ctx.records.save_time_attack_ghost(self._level, [s.to_dict() for s in samples])

        score = int(
            math.floor(self._cfg.completion_score_base - elapsed * self._cfg.completion_score_per_second)
        )
        self._result = TimeAttackResult(
            completed=True,
            time_s=elapsed,
            medal=medal,
            is_new_best=is_new_best,
            style_bonus=style_bonus_score(self._style),
            score_bonus=score,
        )
        return self._result

    def finalize(self) -> RunSummary | None:
        if self._state is ModeState.IDLE or self._summary_emitted:
            return None
        self.stop(False)
        result = self._result
        assert result is not None
        self._summary_emitted = True
        style_total = 0 if result.style_bonus is None else result.style_bonus.total
        return build_run_summary(
            mode=self.kind,
            seed=self._ctx.seed,
            outcome=RunOutcome.COMPLETED if result.completed else RunOutcome.FAILED,
            duration_s=result.time_s,
            score_bonus=result.score_bonus + style_total,
            metrics={
                "level": self._level,
                "medal": "" if result.medal is None else result.medal.value,
                "is_new_best": result.is_new_best,
                "ghost_samples": len(self._recorder),
            },
        )

    def elapsed_s(self) -> float:
        if self.active:
            return self._stopwatch.elapsed_s()
        return self._elapsed_s

    def ghost_position(self, time_s: float | None = None) -> GhostSample | None:
        t = self.elapsed_s() if time_s is None else float(time_s)
        return self._ghost.position_at(t)

    def best_time(self, level: int) -> float | None:
        return self._best_times.get(int(level))

    def all_level_data(self) -> tuple[LevelRecord, ...]:
        out: list[LevelRecord] = []
        for level in range(1, self._cfg.level_count + 1):
            best = self._best_times.get(level)
            out.append(
                LevelRecord(
                    level=level,
                    best_time_s=best,
                    medal=None if best is None else medal_for_time(best, self._cfg.thresholds),
                )
            )
        return tuple(out)

    def progress(self) -> ModeProgress:
        # Progress against the bronze cutoff, in whole seconds.
        return ModeProgress(current=int(self.elapsed_s()), total=int(self._cfg.thresholds.bronze_s))

    def snapshot(self) -> ModeSnapshot:
        elapsed = self.elapsed_s()
        lines = [f"LEVEL {self._level}  {format_clock(elapsed)}"]
        best = self.best_time(self._level)
        if best is not None:
            lines.append(f"BEST: {format_clock(best)}")
            diff = elapsed - best
            sign = "-" if diff < 0 else "+"
            lines.append(f"{sign}{format_clock(abs(diff))}")
        t = self._cfg.thresholds
        lines.append(
            f"Gold <{format_clock(t.gold_s)[:5]}  Silver <{format_clock(t.silver_s)[:5]}  "
            f"Bronze <{format_clock(t.bronze_s)[:5]}"
        )
        if self.paused:
            lines.append("PAUSED")
        return ModeSnapshot(
            title="Time Attack",
            kind=self.kind,
            state=self._state,
            lines=tuple(lines),
            elapsed_s=elapsed,
            payload=self.ghost_position(elapsed),
        )

    def _check_best_time(self, seconds: float) -> bool:
        best = self._best_times.get(self._level)
        if best is not None and seconds >= best:
            return False
        self._best_times[self._level] = seconds
        self._ctx.records.save_time_attack_best_times(self._best_times)
        return True
