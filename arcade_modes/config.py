from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

APP_VERSION = "0.1.0"

DB_PATH_ENV = "ARCADE_MODES_DB_PATH"
LOG_LEVEL_ENV = "ARCADE_MODES_LOG_LEVEL"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass(frozen=True, slots=True)
class AppSettings:
    db_path: Path
    log_level: int = logging.WARNING

    @classmethod
    def default_db_path(cls) -> Path:
        return Path.home() / ".arcade_modes.sqlite3"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> AppSettings:
        env = os.environ if environ is None else environ

        explicit = env.get(DB_PATH_ENV, "").strip()
        db_path = Path(explicit).expanduser() if explicit else cls.default_db_path()

        level_name = env.get(LOG_LEVEL_ENV, "").strip().upper()
        level = logging.WARNING
        if level_name:
            resolved = logging.getLevelName(level_name)
            if isinstance(resolved, int):
                level = resolved
            else:
                logging.getLogger(__name__).warning(
                    "Unknown %s=%r; using WARNING", LOG_LEVEL_ENV, level_name
                )
        return cls(db_path=db_path, log_level=level)


def configure_logging(settings: AppSettings) -> None:
    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)
    logging.getLogger("arcade_modes").setLevel(settings.log_level)
