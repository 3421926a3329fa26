from __future__ import annotations

import random
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Protocol, TypeVar

from .clock import Clock, RealClock
from .records import MemoryRecordStore, ModeRecords, RecordStore

if TYPE_CHECKING:
    from .results import RunSummary

T = TypeVar("T")


class ModeKind(str, Enum):
    HORDE = "horde"
    BOSS_RUSH = "boss_rush"
    ONE_HIT = "one_hit"
    TIME_ATTACK = "time_attack"


class ModeState(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class ModeProgress:
    current: int
    total: int

    @property
    def ratio(self) -> float:
        return 0.0 if self.total <= 0 else clamp01(self.current / self.total)


@dataclass(frozen=True, slots=True)
class ModeSnapshot:
    """View model for the HUD (pure data)."""

    title: str
    kind: ModeKind
    state: ModeState
    lines: tuple[str, ...]
    elapsed_s: float
    payload: object | None = None


@dataclass(frozen=True, slots=True)
class ModeContext:
    """Everything a session needs from the host, passed at construction.

    Replaces reads of a shared "current game" object: sessions see only the
    clock, the record accessors and the seed for their random stream.
    """

    clock: Clock
    records: ModeRecords
    seed: int


def build_context(
    *,
    clock: Clock | None = None,
    store: RecordStore | None = None,
    seed: int | None = None,
) -> ModeContext:
    if seed is None:
        seed = random.SystemRandom().randint(1, 2**31 - 1)
    return ModeContext(
        clock=clock or RealClock(),
        records=ModeRecords(store if store is not None else MemoryRecordStore()),
        seed=int(seed),
    )


class ModeSession(Protocol):
    """Lifecycle shared by the four modes: start -> update -> finalize."""

    @property
    def kind(self) -> ModeKind: ...

    @property
    def state(self) -> ModeState: ...

    @property
    def active(self) -> bool: ...

    def update(self, dt: float) -> None: ...

    def finalize(self) -> RunSummary | None:
        """Stop now (if still running) and return the run summary once."""
        ...

    def progress(self) -> ModeProgress: ...

    def snapshot(self) -> ModeSnapshot: ...


class SeededRng:
    """Simple seeded RNG wrapper to keep deterministic streams explicit."""

    def __init__(self, seed: int) -> None:
        self._rng = random.Random(int(seed))

    def randint(self, a: int, b: int) -> int:
        return self._rng.randint(a, b)

    def choice(self, seq: Sequence[T]) -> T:
        return self._rng.choice(seq)

    def chance(self, p: float) -> bool:
        # Strict comparison so p == 0.0 never fires and p == 1.0 always does.
        return self._rng.random() < p


def clamp01(x: float) -> float:
    return 0.0 if x <= 0.0 else 1.0 if x >= 1.0 else float(x)


def lerp(a: float, b: float, t: float) -> float:
    return a + (b - a) * clamp01(t)
