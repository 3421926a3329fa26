from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum

from .mode_core import ModeKind


class RunOutcome(StrEnum):
    COMPLETED = "completed"
    FAILED = "failed"
    ABANDONED = "abandoned"


@dataclass(frozen=True, slots=True)
class RunSummary:
    """Persistable summary of one finished mode session.

    Generic across modes: mode-specific numbers go into ``metrics`` as
    pre-formatted strings, the same shape the run-history table stores.
    """

    mode: ModeKind
    seed: int
    outcome: RunOutcome
    duration_s: float
    score_bonus: int = 0
    metrics: dict[str, str] = field(default_factory=dict)


def _format_metric(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, float):
        return f"{value:.6f}"
    return str(value)


def build_run_summary(
    *,
    mode: ModeKind,
    seed: int,
    outcome: RunOutcome,
    duration_s: float,
    score_bonus: int = 0,
    metrics: Mapping[str, object] | None = None,
) -> RunSummary:
    """Build a RunSummary, normalising metric values to strings."""

    return RunSummary(
        mode=ModeKind(mode),
        seed=int(seed),
        outcome=RunOutcome(outcome),
        duration_s=max(0.0, float(duration_s)),
        score_bonus=int(score_bonus),
        metrics={str(k): _format_metric(v) for k, v in (metrics or {}).items()},
    )
