"""Pygame shell for the alternative play modes.

A menu picks one of the four modes; the mode screen shows the session's
HUD snapshot as text and maps keys to the gameplay events a real level
would report (kills, boss deaths, damage, ...).

Deterministic timing/scoring/RNG/state lives in arcade_modes/* (core modules).
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

import pygame

from .boss_rush import BossRushCompletion, BossRushMode, BossTransition, power_up_label
from .clock import RealClock
from .config import APP_VERSION, AppSettings, configure_logging
from .horde import HordeMode
from .medals import format_clock, format_split
from .mode_core import ModeContext, ModeSession, build_context
from .one_hit import OneHitMode
from .persistence import SqliteRecordStore, record_run
from .results import RunSummary
from .time_attack import PlayerPose, TimeAttackMode

logger = logging.getLogger(__name__)

WINDOW_SIZE = (960, 540)
TARGET_FPS = 60

BG = (3, 9, 78)
PANEL_BG = (8, 18, 104)
BORDER = (226, 236, 255)
TEXT_MAIN = (238, 245, 255)
TEXT_MUTED = (186, 200, 224)
TEXT_ACCENT = (255, 210, 90)


class Screen(Protocol):
    def handle_event(self, event: pygame.event.Event) -> None: ...
    def update(self, dt: float) -> None: ...
    def render(self, surface: pygame.Surface) -> None: ...


@dataclass(frozen=True, slots=True)
class MenuItem:
    label: str
    action: Callable[[], None]


@dataclass(frozen=True, slots=True)
class KeyAction:
    key: int
    label: str
    action: Callable[[], str | None]


class App:
    def __init__(self, surface: pygame.Surface) -> None:
        self._surface = surface
        self._screens: list[Screen] = []
        self._running = True

    @property
    def running(self) -> bool:
        return self._running

    def push(self, screen: Screen) -> None:
        self._screens.append(screen)

    def pop(self) -> None:
        # Never pop the last/root screen; root handles its own quit/back behavior.
        if len(self._screens) > 1:
            self._screens.pop()

    def quit(self) -> None:
        self._running = False

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type == pygame.QUIT:
            self.quit()
            return
        if not self._screens:
            return
        self._screens[-1].handle_event(event)

    def update(self, dt: float) -> None:
        if self._screens:
            self._screens[-1].update(dt)

    def render(self) -> None:
        if not self._screens:
            return
        self._screens[-1].render(self._surface)


class MenuScreen:
    def __init__(self, app: App, title: str, items: list[MenuItem], *, is_root: bool = False) -> None:
        self._app = app
        self._title = title
        self._items = items
        self._selected = 0
        self._is_root = is_root
        self._title_font = pygame.font.Font(None, 42)
        self._item_font = pygame.font.Font(None, 32)
        self._hint_font = pygame.font.Font(None, 22)

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type != pygame.KEYDOWN:
            return
        if event.key in (pygame.K_UP, pygame.K_w):
            self._move(-1)
        elif event.key in (pygame.K_DOWN, pygame.K_s):
            self._move(1)
        elif event.key in (pygame.K_RETURN, pygame.K_KP_ENTER, pygame.K_SPACE):
            if self._items:
                self._items[self._selected].action()
        elif event.key in (pygame.K_ESCAPE, pygame.K_BACKSPACE):
            if self._is_root:
                self._app.quit()
            else:
                self._app.pop()

    def update(self, dt: float) -> None:
        _ = dt

    def _move(self, delta: int) -> None:
        if not self._items:
            return
        self._selected = (self._selected + delta) % len(self._items)

    def render(self, surface: pygame.Surface) -> None:
        w, h = surface.get_size()
        surface.fill(BG)
        frame = pygame.Rect(20, 20, max(260, w - 40), max(220, h - 40))
        pygame.draw.rect(surface, PANEL_BG, frame)
        pygame.draw.rect(surface, BORDER, frame, 2)

        title = self._title_font.render(self._title, True, TEXT_MAIN)
        surface.blit(title, title.get_rect(center=(frame.centerx, frame.y + 36)))

        y = frame.y + 90
        for idx, item in enumerate(self._items):
            row = pygame.Rect(frame.x + 40, y, frame.w - 80, 40)
            selected = idx == self._selected
            if selected:
                pygame.draw.rect(surface, (244, 248, 255), row)
            else:
                pygame.draw.rect(surface, (62, 84, 152), row, 1)
            color = (14, 26, 74) if selected else TEXT_MAIN
            text = self._item_font.render(item.label, True, color)
            surface.blit(text, (row.x + 10, row.y + (row.h - text.get_height()) // 2))
            y += 48

        foot = self._hint_font.render("Enter/Space: Select  |  Esc/Backspace: Back", True, TEXT_MUTED)
        surface.blit(foot, foot.get_rect(midbottom=(frame.centerx, frame.bottom - 10)))


class ModeScreen:
    """Drives one session: ticks it, maps keys to its event hooks, shows its HUD."""

    def __init__(
        self,
        app: App,
        *,
        session: ModeSession,
        actions: list[KeyAction],
        on_finish: Callable[[RunSummary], None],
        tick: Callable[[float], None] | None = None,
        opening_message: str | None = None,
    ) -> None:
        self._app = app
        self._session = session
        self._actions = actions
        self._on_finish = on_finish
        self._tick = tick
        self._messages: list[str] = [] if opening_message is None else [opening_message]

        self._title_font = pygame.font.Font(None, 40)
        self._line_font = pygame.font.Font(None, 30)
        self._hint_font = pygame.font.Font(None, 22)

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type != pygame.KEYDOWN:
            return
        if event.key == pygame.K_ESCAPE:
            self._leave()
            return
        for binding in self._actions:
            if binding.key == event.key:
                message = binding.action()
                if message:
                    self._messages = (self._messages + [message])[-4:]
                return

    def update(self, dt: float) -> None:
        if self._tick is not None:
            self._tick(dt)
        else:
            self._session.update(dt)

    def render(self, surface: pygame.Surface) -> None:
        w, h = surface.get_size()
        surface.fill(BG)
        frame = pygame.Rect(20, 20, max(260, w - 40), max(220, h - 40))
        pygame.draw.rect(surface, PANEL_BG, frame)
        pygame.draw.rect(surface, BORDER, frame, 2)

        snap = self._session.snapshot()
        title = self._title_font.render(f"{snap.title}  [{snap.state.value}]", True, TEXT_MAIN)
        surface.blit(title, (frame.x + 20, frame.y + 16))

        y = frame.y + 64
        for line in snap.lines:
            surface.blit(self._line_font.render(line, True, TEXT_MAIN), (frame.x + 20, y))
            y += 30

        y += 12
        for line in self._messages:
            surface.blit(self._line_font.render(line, True, TEXT_ACCENT), (frame.x + 20, y))
            y += 30

        keys = "  ".join(f"{pygame.key.name(a.key).upper()}={a.label}" for a in self._actions)
        foot = self._hint_font.render(f"{keys}  ESC=leave", True, TEXT_MUTED)
        surface.blit(foot, (frame.x + 20, frame.bottom - 30))

    def _leave(self) -> None:
        summary = self._session.finalize()
        if summary is not None:
            self._on_finish(summary)
        self._app.pop()


def _horde_screen(app: App, ctx: ModeContext, on_finish: Callable[[RunSummary], None]) -> ModeScreen:
    horde = HordeMode(context=ctx)
    first = horde.start()
    opening = None if first is None else f"Wave {first.wave}: {first.total_enemies} enemies"

    def kill() -> str | None:
        result = horde.enemy_killed()
        if result is None:
            return None
        text = f"WAVE {result.wave} COMPLETE in {format_split(result.wave_time_s)} (+{result.score_bonus})"
        if result.is_new_record:
            text += "  NEW RECORD!"
        return text

    def next_wave() -> str | None:
        cfg = horde.start_next_wave()
        if cfg is None:
            return None
        extras = " +BOSS" if cfg.has_boss else " +MINI-BOSS" if cfg.has_mini_boss else ""
        return f"Wave {cfg.wave}: {cfg.total_enemies} enemies{extras}"

    def end() -> str | None:
        result = horde.end()
        if result is None:
            return None
        return f"Fell on wave {result.final_wave} with {result.total_kills} kills"

    return ModeScreen(
        app,
        session=horde,
        actions=[
            KeyAction(pygame.K_k, "kill", kill),
            KeyAction(pygame.K_n, "next wave", next_wave),
            KeyAction(pygame.K_x, "die", end),
        ],
        on_finish=on_finish,
        opening_message=opening,
    )


def _boss_rush_screen(app: App, ctx: ModeContext, on_finish: Callable[[RunSummary], None]) -> ModeScreen:
    rush = BossRushMode(context=ctx)
    first = rush.start()

    def defeat() -> str | None:
        boss_id = rush.current_boss_id()
        if boss_id is None:
            return None
        result = rush.boss_defeated(boss_id)
        if isinstance(result, BossTransition):
            reward = "" if result.power_up is None else f"  {power_up_label(result.power_up)}"
            return f"{rush.boss_name(boss_id)} down in {format_split(result.boss_time_s)}{reward}"
        if isinstance(result, BossRushCompletion):
            best = "  NEW BEST!" if result.is_new_best else ""
            return f"GAUNTLET CLEARED in {format_split(result.total_time_s)}{best}"
        return None

    return ModeScreen(
        app,
        session=rush,
        actions=[KeyAction(pygame.K_b, "boss defeated", defeat)],
        on_finish=on_finish,
        opening_message=None if first is None else f"First up: {rush.boss_name(first)}",
    )


def _one_hit_screen(app: App, ctx: ModeContext, on_finish: Callable[[RunSummary], None]) -> ModeScreen:
    mode = OneHitMode(context=ctx)
    mode.start(1)

    def kill() -> str | None:
        mode.enemy_killed()
        return None

    def level_done() -> str | None:
        result = mode.level_completed()
        if result is None:
            return None
        reward = "" if result.unlocked_reward is None else f"  {result.unlocked_reward.name}"
        return f"LEVEL {result.level} SURVIVED{reward}"

    def died() -> str | None:
        result = mode.player_died()
        if result is None:
            return None
        best = "  NEW PERSONAL BEST!" if result.is_new_best else ""
        return f"DEATH after {result.levels_completed} levels{best}"

    def pickup() -> str | None:
        return f"health pickup -> {mode.modify_pickup_type('health') or 'nothing'}"

    return ModeScreen(
        app,
        session=mode,
        actions=[
            KeyAction(pygame.K_k, "kill", kill),
            KeyAction(pygame.K_l, "level done", level_done),
            KeyAction(pygame.K_x, "die", died),
            KeyAction(pygame.K_p, "pickup", pickup),
        ],
        on_finish=on_finish,
    )


def _time_attack_screen(app: App, ctx: ModeContext, on_finish: Callable[[RunSummary], None]) -> ModeScreen:
    attack = TimeAttackMode(context=ctx)
    attack.start(1)
    pose = {"x": 0.0, "facing": 1}
    combo = {"n": 0}

    def tick(dt: float) -> None:
        pressed = pygame.key.get_pressed()
        if pressed[pygame.K_RIGHT]:
            pose["x"] += 240.0 * dt
            pose["facing"] = 1
        elif pressed[pygame.K_LEFT]:
            pose["x"] -= 240.0 * dt
            pose["facing"] = -1
        attack.update(dt, PlayerPose(x=pose["x"], y=0.0, facing=int(pose["facing"])))

    def damage() -> str | None:
        attack.track_damage_taken()
        combo["n"] = 0
        return "Hit taken: no-damage bonus lost"

    def ranged() -> str | None:
        attack.track_ranged_kill()
        return "Ranged kill: melee-only bonus lost"

    def melee() -> str | None:
        combo["n"] += 1
        attack.track_combo(combo["n"])
        return None

    def toggle_pause() -> str | None:
        if attack.paused:
            attack.resume()
            return "Resumed"
        attack.pause()
        return "Paused"

    def finish() -> str | None:
        result = attack.stop(True)
        if result is None or result.medal is None:
            return None
        style = 0 if result.style_bonus is None else result.style_bonus.total
        best = "  NEW BEST!" if result.is_new_best else ""
        return f"{format_clock(result.time_s)}  {result.medal.value.upper()}  style +{style}{best}"

    return ModeScreen(
        app,
        session=attack,
        actions=[
            KeyAction(pygame.K_d, "damage", damage),
            KeyAction(pygame.K_r, "ranged kill", ranged),
            KeyAction(pygame.K_m, "melee hit", melee),
            KeyAction(pygame.K_p, "pause", toggle_pause),
            KeyAction(pygame.K_f, "finish", finish),
        ],
        on_finish=on_finish,
        tick=tick,
    )


def run(
    *,
    max_frames: int | None = None,
    event_injector: Callable[[int], None] | None = None,
    settings: AppSettings | None = None,
) -> int:
    settings = settings or AppSettings.from_env()
    configure_logging(settings)

    pygame.init()
    pygame.display.set_caption("Arcade Modes")
    surface = pygame.display.set_mode(WINDOW_SIZE, pygame.RESIZABLE)

    clock = pygame.time.Clock()

    app = App(surface=surface)

    store = SqliteRecordStore(settings.db_path)
    real_clock = RealClock()

    def new_context() -> ModeContext:
        return build_context(clock=real_clock, store=store)

    def save_summary(summary: RunSummary) -> None:
        try:
            record_run(db_path=settings.db_path, summary=summary, app_version=APP_VERSION)
        except (sqlite3.Error, OSError) as exc:
            logger.warning("Could not record %s run: %s", summary.mode.value, exc)

    main_items = [
        MenuItem("Horde", lambda: app.push(_horde_screen(app, new_context(), save_summary))),
        MenuItem("Boss Rush", lambda: app.push(_boss_rush_screen(app, new_context(), save_summary))),
        MenuItem("One-Hit", lambda: app.push(_one_hit_screen(app, new_context(), save_summary))),
        MenuItem("Time Attack", lambda: app.push(_time_attack_screen(app, new_context(), save_summary))),
        MenuItem("Quit", app.quit),
    ]

    app.push(MenuScreen(app, "Arcade Modes", main_items, is_root=True))

    frame = 0
    try:
        while app.running:
            if event_injector is not None:
                event_injector(frame)

            for event in pygame.event.get():
                app.handle_event(event)

            dt = clock.tick(TARGET_FPS) / 1000.0
            app.update(dt)
            app.render()

            pygame.display.flip()

            frame += 1
            if max_frames is not None and frame >= max_frames:
                break
    finally:
        store.close()
        pygame.quit()

    return 0
