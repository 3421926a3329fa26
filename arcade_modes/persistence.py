from __future__ import annotations

import json
import sqlite3
import time
from pathlib import Path
from typing import Any

from .mode_core import ModeKind
from .records import StoreError, StoreErrorKind, StoreResult
from .results import RunOutcome, RunSummary

SCHEMA_VERSION = 1


def open_db(path: Path) -> sqlite3.Connection:
    conn = sqlite3.connect(path)
    conn.execute("PRAGMA foreign_keys=ON;")
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    _migrate(conn)
    return conn


def _utc_now_iso() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(time.time()))


def _migrate(conn: sqlite3.Connection) -> None:
    row = conn.execute("PRAGMA user_version;").fetchone()
    ver = int(row[0]) if row else 0
    if ver >= SCHEMA_VERSION:
        return

    with conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS record (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at_utc TEXT NOT NULL
            );
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS run (
                id INTEGER PRIMARY KEY,
                mode TEXT NOT NULL,
                rng_seed INTEGER NOT NULL,
                outcome TEXT NOT NULL,
                duration_s REAL NOT NULL,
                score_bonus INTEGER NOT NULL,
                app_version TEXT NOT NULL,
                completed_at_utc TEXT NOT NULL
            );
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS metric (
                run_id INTEGER NOT NULL REFERENCES run(id) ON DELETE CASCADE,
                key TEXT NOT NULL,
                value TEXT NOT NULL,
                PRIMARY KEY (run_id, key)
            );
            """
        )
        conn.execute("CREATE INDEX IF NOT EXISTS idx_run_mode ON run(mode, id);")
        conn.execute(f"PRAGMA user_version={SCHEMA_VERSION};")


class SqliteRecordStore:
    """RecordStore backed by the ``record`` table; values are JSON text."""

    def __init__(self, db_path: Path) -> None:
        self._db_path = Path(db_path)
        self._conn: sqlite3.Connection | None = None

    def get(self, key: str) -> StoreResult:
        try:
            conn = self._connection()
            row = conn.execute("SELECT value FROM record WHERE key = ?", (str(key),)).fetchone()
        except (sqlite3.Error, OSError) as exc:
            return StoreResult(error=StoreError(StoreErrorKind.UNAVAILABLE, str(exc)))
        if row is None:
            return StoreResult()
        try:
            return StoreResult(value=json.loads(row[0]))
        except ValueError as exc:
            return StoreResult(error=StoreError(StoreErrorKind.CORRUPT, f"{key}: {exc}"))

    def set(self, key: str, value: Any) -> StoreResult:
        try:
            text = json.dumps(value)
        except (TypeError, ValueError) as exc:
            return StoreResult(error=StoreError(StoreErrorKind.CORRUPT, f"{key}: {exc}"))
        try:
            conn = self._connection()
            with conn:
                conn.execute(
                    """
                    INSERT INTO record(key, value, updated_at_utc) VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET
                        value = excluded.value,
                        updated_at_utc = excluded.updated_at_utc
                    """,
                    (str(key), text, _utc_now_iso()),
                )
        except (sqlite3.Error, OSError) as exc:
            return StoreResult(error=StoreError(StoreErrorKind.UNAVAILABLE, str(exc)))
        return StoreResult(value=json.loads(text))

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = open_db(self._db_path)
        return self._conn


def record_run(*, db_path: Path, summary: RunSummary, app_version: str) -> int:
    """
    Append a finished session to the run history:
      run -> metric
    """
    conn = open_db(db_path)
    try:
        return _insert_run(conn=conn, summary=summary, app_version=app_version)
    finally:
        conn.close()


def _insert_run(*, conn: sqlite3.Connection, summary: RunSummary, app_version: str) -> int:
    with conn:
        cur = conn.execute(
            """
            INSERT INTO run(
                mode, rng_seed, outcome, duration_s, score_bonus,
                app_version, completed_at_utc
            )
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                str(summary.mode.value),
                int(summary.seed),
                str(summary.outcome.value),
                float(summary.duration_s),
                int(summary.score_bonus),
                app_version,
                _utc_now_iso(),
            ),
        )
        run_id = int(cur.lastrowid)

        for k, v in summary.metrics.items():
            conn.execute("INSERT INTO metric(run_id, key, value) VALUES (?, ?, ?)", (run_id, k, v))

    return run_id


def load_runs(*, db_path: Path, mode: ModeKind | None = None, limit: int = 20) -> list[RunSummary]:
    """Most recent runs first, optionally filtered by mode."""

    conn = open_db(db_path)
    try:
        if mode is None:
            rows = conn.execute(
                "SELECT id, mode, rng_seed, outcome, duration_s, score_bonus FROM run "
                "ORDER BY id DESC LIMIT ?",
                (int(limit),),
            ).fetchall()
        else:
            rows = conn.execute(
                "SELECT id, mode, rng_seed, outcome, duration_s, score_bonus FROM run "
                "WHERE mode = ? ORDER BY id DESC LIMIT ?",
                (str(ModeKind(mode).value), int(limit)),
            ).fetchall()

        out: list[RunSummary] = []
        for run_id, mode_code, seed, outcome, duration_s, score_bonus in rows:
            metrics = {
                str(k): str(v)
                for k, v in conn.execute(
                    "SELECT key, value FROM metric WHERE run_id = ? ORDER BY key", (run_id,)
                )
            }
            out.append(
                RunSummary(
                    mode=ModeKind(mode_code),
                    seed=int(seed),
                    outcome=RunOutcome(outcome),
                    duration_s=float(duration_s),
                    score_bonus=int(score_bonus),
                    metrics=metrics,
                )
            )
        return out
    finally:
        conn.close()
