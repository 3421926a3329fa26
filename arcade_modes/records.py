"""Persistent records for the mode sessions.

The store itself is an external key -> JSON collaborator. Backends never
raise on I/O or decode problems; they return a StoreResult carrying a
StoreError instead. ModeRecords is the one place that turns those errors
into documented defaults.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import Any, Protocol

logger = logging.getLogger(__name__)

KEY_HORDE_HIGHEST_WAVE = "arcade_modes.horde.highest_wave"
KEY_BOSS_RUSH_UNLOCKED = "arcade_modes.boss_rush.unlocked"
KEY_BOSS_RUSH_BEST_TOTAL = "arcade_modes.boss_rush.best_total_time"
KEY_BOSS_RUSH_BEST_PER_BOSS = "arcade_modes.boss_rush.best_boss_times"
KEY_ONE_HIT_BEST_RUN = "arcade_modes.one_hit.best_run"
KEY_ONE_HIT_REWARDS = "arcade_modes.one_hit.rewards"
KEY_TIME_ATTACK_BEST_TIMES = "arcade_modes.time_attack.best_times"
KEY_TIME_ATTACK_GHOST_PREFIX = "arcade_modes.time_attack.ghost."


class StoreErrorKind(StrEnum):
    UNAVAILABLE = "unavailable"
    CORRUPT = "corrupt"


@dataclass(frozen=True, slots=True)
class StoreError:
    kind: StoreErrorKind
    message: str


@dataclass(frozen=True, slots=True)
class StoreResult:
    """Either a value (None for a missing key) or an error."""

    value: Any = None
    error: StoreError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class RecordStore(Protocol):
    def get(self, key: str) -> StoreResult: ...
    def set(self, key: str, value: Any) -> StoreResult: ...


def _copy_json(value: Any) -> StoreResult:
    try:
        return StoreResult(value=json.loads(json.dumps(value)))
    except (TypeError, ValueError) as exc:
        return StoreResult(error=StoreError(StoreErrorKind.CORRUPT, f"not JSON-serializable: {exc}"))


class MemoryRecordStore:
    """In-process store. Values are copied through JSON so callers never alias them."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = {}
        for key, value in (initial or {}).items():
            self.set(key, value)

    def get(self, key: str) -> StoreResult:
        if key not in self._data:
            return StoreResult()
        return _copy_json(self._data[key])

    def set(self, key: str, value: Any) -> StoreResult:
        copied = _copy_json(value)
        if copied.ok:
            self._data[str(key)] = copied.value
        return copied

    def keys(self) -> list[str]:
        return sorted(self._data)


class JsonFileRecordStore:
    """All records in one JSON document, rewritten atomically on every set()."""

    _version = 1

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._records: dict[str, Any] | None = None

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str) -> StoreResult:
        loaded = self._load()
        if not loaded.ok:
            return loaded
        assert self._records is not None
        if key not in self._records:
            return StoreResult()
        return _copy_json(self._records[key])

    def set(self, key: str, value: Any) -> StoreResult:
        loaded = self._load()
        if not loaded.ok:
            # Never clobber a document we could not read.
            return loaded
        copied = _copy_json(value)
        if not copied.ok:
            return copied
        assert self._records is not None
        records = dict(self._records)
        records[str(key)] = copied.value
        payload = {"version": self._version, "records": records}
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self._path.with_suffix(f"{self._path.suffix}.tmp")
            tmp_path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
            tmp_path.replace(self._path)
        except OSError as exc:
            return StoreResult(error=StoreError(StoreErrorKind.UNAVAILABLE, str(exc)))
        self._records = records
        return StoreResult(value=copied.value)

    def _load(self) -> StoreResult:
        if self._records is not None:
            return StoreResult()
        if not self._path.exists():
            self._records = {}
            return StoreResult()
        try:
            text = self._path.read_text(encoding="utf-8")
        except OSError as exc:
            return StoreResult(error=StoreError(StoreErrorKind.UNAVAILABLE, str(exc)))
        try:
            payload = json.loads(text)
        except ValueError as exc:
            return StoreResult(error=StoreError(StoreErrorKind.CORRUPT, f"invalid JSON: {exc}"))
        if not isinstance(payload, dict) or not isinstance(payload.get("records"), dict):
            return StoreResult(error=StoreError(StoreErrorKind.CORRUPT, "missing 'records' object"))
        self._records = dict(payload["records"])
        return StoreResult()


@dataclass(frozen=True, slots=True)
class BestRun:
    levels: int = 0
    kills: int = 0
    time_s: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {"levels": int(self.levels), "kills": int(self.kills), "time": float(self.time_s)}


class ModeRecords:
    """Typed, write-through accessors over a RecordStore.

    Policy for failures, in one place:
    - a store error on read or write logs a warning, yields the default and
      turns persistence off for the rest of this accessor's life;
    - a readable but malformed payload logs a warning and yields the default
      (later writes replace it).
    """

    def __init__(self, store: RecordStore) -> None:
        self._store = store
        self._enabled = True

    @property
    def enabled(self) -> bool:
        return self._enabled

    # Horde

    def highest_wave(self) -> int:
        raw = self._read(KEY_HORDE_HIGHEST_WAVE)
        if raw is None:
            return 0
        try:
            return max(0, int(raw))
        except (TypeError, ValueError):
            self._malformed(KEY_HORDE_HIGHEST_WAVE, raw)
            return 0

    def save_highest_wave(self, wave: int) -> None:
        self._write(KEY_HORDE_HIGHEST_WAVE, int(wave))

    # Boss rush

    def boss_rush_unlocked(self) -> list[int]:
        raw = self._read(KEY_BOSS_RUSH_UNLOCKED)
        if raw is None:
            # First boss is always selectable.
            return [0]
        ids = self._int_list(KEY_BOSS_RUSH_UNLOCKED, raw)
        return ids if ids is not None else [0]

    def save_boss_rush_unlocked(self, boss_ids: list[int]) -> None:
        self._write(KEY_BOSS_RUSH_UNLOCKED, [int(v) for v in boss_ids])

    def boss_rush_best_total(self) -> float | None:
        raw = self._read(KEY_BOSS_RUSH_BEST_TOTAL)
        if raw is None:
            return None
        value = self._positive_float(raw)
        if value is None:
            self._malformed(KEY_BOSS_RUSH_BEST_TOTAL, raw)
        return value

    def save_boss_rush_best_total(self, seconds: float) -> None:
        self._write(KEY_BOSS_RUSH_BEST_TOTAL, float(seconds))

    def boss_rush_best_boss_times(self) -> dict[int, float]:
        return self._time_map(KEY_BOSS_RUSH_BEST_PER_BOSS)

    def save_boss_rush_best_boss_times(self, times: dict[int, float]) -> None:
        self._write(KEY_BOSS_RUSH_BEST_PER_BOSS, {str(k): float(v) for k, v in times.items()})

    # One-hit

    def one_hit_best_run(self) -> BestRun:
        raw = self._read(KEY_ONE_HIT_BEST_RUN)
        if raw is None:
            return BestRun()
        if not isinstance(raw, dict):
            self._malformed(KEY_ONE_HIT_BEST_RUN, raw)
            return BestRun()
        try:
            return BestRun(
                levels=max(0, int(raw.get("levels", 0) or 0)),
                kills=max(0, int(raw.get("kills", 0) or 0)),
                time_s=max(0.0, float(raw.get("time", 0.0) or 0.0)),
            )
        except (TypeError, ValueError):
            self._malformed(KEY_ONE_HIT_BEST_RUN, raw)
            return BestRun()

    def save_one_hit_best_run(self, best: BestRun) -> None:
        self._write(KEY_ONE_HIT_BEST_RUN, best.to_dict())

    def one_hit_rewards(self) -> list[int]:
        raw = self._read(KEY_ONE_HIT_REWARDS)
        if raw is None:
            return []
        levels = self._int_list(KEY_ONE_HIT_REWARDS, raw)
        return levels if levels is not None else []

    def save_one_hit_rewards(self, levels: list[int]) -> None:
        self._write(KEY_ONE_HIT_REWARDS, [int(v) for v in levels])

    # Time attack

    def time_attack_best_times(self) -> dict[int, float]:
        return self._time_map(KEY_TIME_ATTACK_BEST_TIMES)

    def save_time_attack_best_times(self, times: dict[int, float]) -> None:
        self._write(KEY_TIME_ATTACK_BEST_TIMES, {str(k): float(v) for k, v in times.items()})

    def time_attack_ghost(self, level: int) -> list[dict[str, Any]]:
        key = f"{KEY_TIME_ATTACK_GHOST_PREFIX}{int(level)}"
        raw = self._read(key)
        if raw is None:
            return []
        if not isinstance(raw, list):
            self._malformed(key, raw)
            return []
        return [item for item in raw if isinstance(item, dict)]

    def save_time_attack_ghost(self, level: int, samples: list[dict[str, Any]]) -> None:
        self._write(f"{KEY_TIME_ATTACK_GHOST_PREFIX}{int(level)}", list(samples))

    # Plumbing

    def _read(self, key: str) -> Any:
        result = self._store.get(key)
        if not result.ok:
            assert result.error is not None
            logger.warning(
                "Could not load record %s (%s: %s); using default and disabling persistence",
                key,
                result.error.kind.value,
                result.error.message,
            )
            self._enabled = False
            return None
        return result.value

    def _write(self, key: str, value: Any) -> None:
        if not self._enabled:
            logger.debug("Persistence disabled; dropping write to %s", key)
            return
        result = self._store.set(key, value)
        if not result.ok:
            assert result.error is not None
            logger.warning(
                "Could not save record %s (%s: %s); disabling persistence",
                key,
                result.error.kind.value,
                result.error.message,
            )
            self._enabled = False

    def _malformed(self, key: str, raw: object) -> None:
        logger.warning("Ignoring malformed record %s: %r", key, raw)

    def _int_list(self, key: str, raw: object) -> list[int] | None:
        if not isinstance(raw, list):
            self._malformed(key, raw)
            return None
        out: list[int] = []
        for item in raw:
            try:
                value = int(item)
            except (TypeError, ValueError):
                self._malformed(key, raw)
                return None
            if value not in out:
                out.append(value)
        return out

    def _time_map(self, key: str) -> dict[int, float]:
        raw = self._read(key)
        if raw is None:
            return {}
        if not isinstance(raw, dict):
            self._malformed(key, raw)
            return {}
        out: dict[int, float] = {}
        for k, v in raw.items():
            try:
                ident = int(k)
            except (TypeError, ValueError):
                continue
            seconds = self._positive_float(v)
            if seconds is not None:
                out[ident] = seconds
        return out

    @staticmethod
    def _positive_float(raw: object) -> float | None:
        try:
            value = float(raw)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return None
        if value != value or value <= 0.0:
            return None
        return value
