from __future__ import annotations

import os
from pathlib import Path


def _key(key: int) -> None:
    import pygame

    pygame.event.post(pygame.event.Event(pygame.KEYDOWN, {"key": key, "unicode": ""}))


def test_ui_smoke_play_horde_wave_and_record_run(tmp_path: Path) -> None:
    # Headless SDL for CI.
    os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
    os.environ.setdefault("SDL_AUDIODRIVER", "dummy")

    import pygame

    from arcade_modes.app import run
    from arcade_modes.config import AppSettings
    from arcade_modes.mode_core import ModeKind
    from arcade_modes.persistence import load_runs

    db = tmp_path / "arcade.sqlite3"

    def inject(frame: int) -> None:
        # Main Menu -> Horde, clear wave 1 (6 kills), next wave, leave.
        if frame == 1:
            _key(pygame.K_RETURN)
        elif 2 <= frame <= 7:
            _key(pygame.K_k)
        elif frame == 8:
            _key(pygame.K_n)
        elif frame == 9:
            _key(pygame.K_ESCAPE)

    assert run(max_frames=14, event_injector=inject, settings=AppSettings(db_path=db)) == 0

    runs = load_runs(db_path=db, mode=ModeKind.HORDE)
    assert len(runs) == 1
    assert runs[0].metrics["final_wave"] == "2"
    assert runs[0].metrics["waves_cleared"] == "1"
    assert runs[0].score_bonus == 500


def test_ui_smoke_time_attack_pause_and_finish(tmp_path: Path) -> None:
    os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
    os.environ.setdefault("SDL_AUDIODRIVER", "dummy")

    import pygame

    from arcade_modes.app import run
    from arcade_modes.config import AppSettings
    from arcade_modes.mode_core import ModeKind
    from arcade_modes.persistence import load_runs

    db = tmp_path / "arcade.sqlite3"

    def inject(frame: int) -> None:
        # Main Menu -> Time Attack (4th item), pause/resume, finish, leave.
        if frame in (1, 2, 3):
            _key(pygame.K_DOWN)
        elif frame == 4:
            _key(pygame.K_RETURN)
        elif frame in (6, 8):
            _key(pygame.K_p)
        elif frame == 10:
            _key(pygame.K_f)
        elif frame == 11:
            _key(pygame.K_ESCAPE)

    assert run(max_frames=16, event_injector=inject, settings=AppSettings(db_path=db)) == 0

    runs = load_runs(db_path=db, mode=ModeKind.TIME_ATTACK)
    assert len(runs) == 1
    assert runs[0].metrics["medal"] == "gold"
    assert runs[0].metrics["is_new_best"] == "1"
