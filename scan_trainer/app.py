"""Pygame UI shell for the Scan Trainer.

Two screens sit on top of a single DrillEngine:
- Settings: mode, interval, language, colour/direction toggles, duration limit
- Running: full-window colour cues or spoken direction cues until stopped

Timing, cue selection and state live in scan_trainer/drill_core.py. This
module only renders engine state and forwards user commands.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol, TypeVar

import pygame

from .audio import AlertSound, OfflineTtsSpeaker
from .clock import RealClock, TimerQueue
from .config import (
    DURATION_OPTIONS_MIN,
    INTERVAL_OPTIONS_MS,
    LANGUAGE_OPTIONS,
    RuntimeOptions,
    configure_logging,
    default_drill_config,
)
from .drill_core import (
    COLORS,
    DIRECTIONS,
    INFINITE,
    NEUTRAL,
    DrillEngine,
    DrillMode,
    ScreenState,
    ValidationError,
)
from .languages import language_label, translate

logger = logging.getLogger(__name__)

T = TypeVar("T")

WINDOW_SIZE = (960, 540)
TARGET_FPS = 60

COLOR_RGB: dict[str, tuple[int, int, int]] = {
    "red": (220, 38, 38),
    "blue": (37, 99, 235),
    "yellow": (250, 204, 21),
    "green": (22, 163, 74),
    "orange": (234, 88, 12),
    NEUTRAL: (0, 0, 0),
}

_MODE_LABELS = {
    DrillMode.VISUAL: "Visual (Colors)",
    DrillMode.DIRECTIONS: "Directions (Audio)",
}


class Screen(Protocol):
    def handle_event(self, event: pygame.event.Event) -> None: ...
    def render(self, surface: pygame.Surface) -> None: ...


@dataclass(frozen=True, slots=True)
class SettingsRow:
    label: str
    value: str = ""
    activate: Callable[[], None] | None = None  # Enter/Space/click
    cycle: Callable[[int], None] | None = None  # Left/Right
    checked: bool | None = None  # None = not a toggle row


def _cycle_option(options: tuple[T, ...], current: T, delta: int) -> T:
    idx = options.index(current) if current in options else 0
    return options[(idx + delta) % len(options)]


def _format_duration(minutes: int | None) -> str:
    return "Infinite" if minutes is None else f"{minutes} min"


def _format_clock(seconds: float) -> str:
    rem = int(round(seconds))
    return f"{rem // 60:02d}:{rem % 60:02d}"


class PygamePresenter:
    """CuePresenter for the pygame shell.

    Holds the latest cue/background for rendering, plays the alert tick and
    queues speech. Screen changes are forwarded to listeners so the App can
    follow the engine (including automatic stops on duration expiry).
    """

    def __init__(self, *, options: RuntimeOptions) -> None:
        self._background = NEUTRAL
        self._cue = NEUTRAL
        self._display_text = ""
        self._screen_listeners: list[Callable[[ScreenState], None]] = []
        self._alert = AlertSound()
        self._tts = OfflineTtsSpeaker(disabled=options.disable_tts, forced_backend=options.tts_backend)

    @property
    def background(self) -> str:
        return self._background

    @property
    def background_rgb(self) -> tuple[int, int, int]:
        return COLOR_RGB.get(self._background, COLOR_RGB[NEUTRAL])

    @property
    def cue(self) -> str:
        return self._cue

    @property
    def display_text(self) -> str:
        return self._display_text

    def add_screen_listener(self, listener: Callable[[ScreenState], None]) -> None:
        self._screen_listeners.append(listener)

    def on_screen_change(self, screen: ScreenState) -> None:
        if screen is ScreenState.SETTINGS:
            self._tts.stop()
            self._alert.stop()
        for listener in list(self._screen_listeners):
            listener(screen)

    def on_cue_change(self, cue: str, display_text: str) -> None:
        self._cue = cue
        self._display_text = display_text

    def on_background_change(self, color: str) -> None:
        self._background = color

    def play_alert_sound(self) -> None:
        self._alert.play()

    def speak(self, text: str, language_code: str) -> None:
        self._tts.speak(text, language_code)

    def update(self) -> None:
        self._tts.update()

    def close(self) -> None:
        self._tts.stop()
        self._alert.stop()


class App:
    def __init__(self, surface: pygame.Surface) -> None:
        self._surface = surface
        self._screens: list[Screen] = []
        self._running = True

    @property
    def running(self) -> bool:
        return self._running

    @property
    def top(self) -> Screen | None:
        return self._screens[-1] if self._screens else None

    def push(self, screen: Screen) -> None:
        if self.top is screen:
            return
        self._screens.append(screen)

    def pop_to(self, screen: Screen) -> None:
        while len(self._screens) > 1 and self._screens[-1] is not screen:
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

    def render(self) -> None:
        if not self._screens:
            return
        self._screens[-1].render(self._surface)


class SettingsScreen:
    def __init__(self, app: App, *, engine: DrillEngine) -> None:
        self._app = app
        self._engine = engine
        self._selected = 0
        self._notice: str | None = None
        self._row_hitboxes: list[tuple[pygame.Rect, int]] = []

        self._title_font = pygame.font.Font(None, 42)
        self._item_font = pygame.font.Font(None, 30)
        self._hint_font = pygame.font.Font(None, 22)
        self._notice_font = pygame.font.Font(None, 34)

    @property
    def notice(self) -> str | None:
        return self._notice

    @property
    def selected_label(self) -> str:
        rows = self.rows()
        return rows[min(self._selected, len(rows) - 1)].label

    def rows(self) -> list[SettingsRow]:
        engine = self._engine
        cfg = engine.config

        rows = [
            SettingsRow(
                "Mode",
                _MODE_LABELS[cfg.mode],
                activate=lambda: self._cycle_mode(1),
                cycle=self._cycle_mode,
            )
        ]

        if cfg.mode is DrillMode.VISUAL:
            rows.append(
                SettingsRow(
                    "Color Change Interval",
                    f"{cfg.interval_ms / 1000:g}s",
                    activate=lambda: self._cycle_interval(1),
                    cycle=self._cycle_interval,
                )
            )
            for color in COLORS:
                rows.append(
                    SettingsRow(
                        color.capitalize(),
                        activate=lambda c=color: engine.toggle_color(c),
                        checked=color in cfg.colors,
                    )
                )
        else:
            rows.append(
                SettingsRow(
                    "Language",
                    language_label(cfg.language),
                    activate=lambda: self._cycle_language(1),
                    cycle=self._cycle_language,
                )
            )
            for direction in DIRECTIONS:
                rows.append(
                    SettingsRow(
                        translate(cfg.language, direction),
                        activate=lambda d=direction: engine.toggle_direction(d),
                        checked=direction in cfg.directions,
                    )
                )

        rows.append(
            SettingsRow(
                "Duration",
                _format_duration(cfg.duration_min),
                activate=lambda: self._cycle_duration(1),
                cycle=self._cycle_duration,
            )
        )
        rows.append(SettingsRow("Start Drill", activate=self._start))
        return rows

    def handle_event(self, event: pygame.event.Event) -> None:
        if self._notice is not None:
            # Blocking notice: any key or button dismisses it.
            if event.type in (pygame.KEYDOWN, pygame.JOYBUTTONDOWN, pygame.MOUSEBUTTONDOWN):
                self._notice = None
            return

        if event.type == pygame.KEYDOWN:
            self._handle_key(event.key)
            return

        if event.type == pygame.JOYHATMOTION:
            x, y = event.value
            if y == 1:
                self._move(-1)
            elif y == -1:
                self._move(1)
            elif x != 0:
                self._cycle_selected(x)
            return

        if event.type == pygame.JOYBUTTONDOWN:
            # Common mapping: 0 = select, 1 = back/cancel.
            if event.button == 0:
                self._activate()
            elif event.button == 1:
                self._app.quit()
            return

        if event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:
            for rect, idx in self._row_hitboxes:
                if rect.collidepoint(event.pos):
                    self._selected = idx
                    self._activate()
                    return

    def _handle_key(self, key: int) -> None:
        if key in (pygame.K_UP, pygame.K_w):
            self._move(-1)
        elif key in (pygame.K_DOWN, pygame.K_s):
            self._move(1)
        elif key in (pygame.K_LEFT, pygame.K_a):
            self._cycle_selected(-1)
        elif key in (pygame.K_RIGHT, pygame.K_d):
            self._cycle_selected(1)
        elif key in (pygame.K_RETURN, pygame.K_KP_ENTER, pygame.K_SPACE):
            self._activate()
        elif key == pygame.K_ESCAPE:
            self._app.quit()

    def _move(self, delta: int) -> None:
        count = len(self.rows())
        self._selected = (min(self._selected, count - 1) + delta) % count

    def _activate(self) -> None:
        rows = self.rows()
        self._selected = min(self._selected, len(rows) - 1)
        action = rows[self._selected].activate
        if action is not None:
            action()

    def _cycle_selected(self, delta: int) -> None:
        rows = self.rows()
        self._selected = min(self._selected, len(rows) - 1)
        cycle = rows[self._selected].cycle
        if cycle is not None:
            cycle(delta)

    def _cycle_mode(self, delta: int) -> None:
        modes = (DrillMode.VISUAL, DrillMode.DIRECTIONS)
        self._engine.set_mode(_cycle_option(modes, self._engine.config.mode, delta))

    def _cycle_interval(self, delta: int) -> None:
        self._engine.set_interval(_cycle_option(INTERVAL_OPTIONS_MS, self._engine.config.interval_ms, delta))

    def _cycle_language(self, delta: int) -> None:
        self._engine.set_language(_cycle_option(LANGUAGE_OPTIONS, self._engine.config.language, delta))

    def _cycle_duration(self, delta: int) -> None:
        value = _cycle_option(DURATION_OPTIONS_MIN, self._engine.config.duration_min, delta)
        self._engine.set_duration_limit(INFINITE if value is None else value)

    def _start(self) -> None:
        try:
            self._engine.start()
        except ValidationError as exc:
            logger.info("drill not started: %s", exc)
            self._notice = str(exc)

    def render(self, surface: pygame.Surface) -> None:
        w, h = surface.get_size()
        bg = (3, 9, 78)
        panel_bg = (8, 18, 104)
        header_bg = (18, 30, 118)
        border = (226, 236, 255)
        text_main = (238, 245, 255)
        text_muted = (186, 200, 224)
        active_bg = (244, 248, 255)
        active_text = (14, 26, 74)

        surface.fill(bg)

        frame_margin = max(10, min(26, w // 34))
        frame = pygame.Rect(
            frame_margin,
            frame_margin,
            max(260, w - frame_margin * 2),
            max(220, h - frame_margin * 2),
        )
        pygame.draw.rect(surface, panel_bg, frame)
        pygame.draw.rect(surface, border, frame, 2)

        header_h = max(34, min(52, h // 8))
        header = pygame.Rect(frame.x + 2, frame.y + 2, frame.w - 4, header_h)
        pygame.draw.rect(surface, header_bg, header)
        pygame.draw.line(surface, border, (header.x, header.bottom), (header.right, header.bottom), 1)

        title = self._title_font.render("Scanning App", True, text_main)
        surface.blit(title, title.get_rect(center=(frame.centerx, header.centery)))

        rows = self.rows()
        self._selected = min(self._selected, len(rows) - 1)

        content_top = header.bottom + max(12, h // 40)
        content_bottom = frame.bottom - max(40, h // 13)
        list_rect = pygame.Rect(
            frame.x + max(14, w // 44),
            content_top,
            frame.w - max(28, w // 22),
            max(120, content_bottom - content_top),
        )
        pygame.draw.rect(surface, (6, 13, 92), list_rect)
        pygame.draw.rect(surface, (78, 102, 170), list_rect, 1)

        gap = 4
        row_h = max(22, min(40, (list_rect.h - gap * (len(rows) + 1)) // len(rows)))
        total_h = row_h * len(rows) + gap * (len(rows) - 1)
        y = list_rect.y + max(6, (list_rect.h - total_h) // 2)

        self._row_hitboxes = []
        for idx, row in enumerate(rows):
            rect = pygame.Rect(list_rect.x + 12, y, list_rect.w - 24, row_h)
            selected = idx == self._selected
            is_start = row.activate == self._start
            if selected:
                pygame.draw.rect(surface, active_bg, rect)
                pygame.draw.rect(surface, (120, 142, 196), rect, 2)
            elif is_start:
                pygame.draw.rect(surface, (37, 99, 235), rect)
            else:
                pygame.draw.rect(surface, (9, 20, 106), rect)
                pygame.draw.rect(surface, (62, 84, 152), rect, 1)
            self._row_hitboxes.append((rect, idx))

            color = active_text if selected else text_main
            label = row.label
            if row.checked is not None:
                label = f"[{'x' if row.checked else ' '}] {label}"
                swatch = COLOR_RGB.get(row.label.lower())
                if swatch is not None:
                    sw = pygame.Rect(rect.right - row_h, rect.y + 4, row_h - 8, row_h - 8)
                    pygame.draw.rect(surface, swatch, sw)
            text = self._item_font.render(label, True, color)
            if is_start:
                surface.blit(text, text.get_rect(center=rect.center))
            else:
                surface.blit(text, (rect.x + 10, rect.y + (rect.h - text.get_height()) // 2))
            if row.value:
                value = self._item_font.render(f"< {row.value} >", True, color)
                surface.blit(value, value.get_rect(midright=(rect.right - 10, rect.centery)))
            y += row_h + gap

        footer = "Up/Down: Move  |  Left/Right: Change  |  Enter/Space: Toggle/Start  |  Esc: Quit"
        foot = self._hint_font.render(footer, True, text_muted)
        surface.blit(foot, foot.get_rect(midbottom=(frame.centerx, frame.bottom - 10)))

        if self._notice is not None:
            self._render_notice(surface, self._notice)

    def _render_notice(self, surface: pygame.Surface, message: str) -> None:
        w, h = surface.get_size()
        shade = pygame.Surface((w, h), pygame.SRCALPHA)
        shade.fill((0, 0, 0, 160))
        surface.blit(shade, (0, 0))

        box = pygame.Rect(0, 0, min(w - 40, 560), 150)
        box.center = (w // 2, h // 2)
        pygame.draw.rect(surface, (244, 248, 255), box)
        pygame.draw.rect(surface, (220, 38, 38), box, 3)

        msg = self._notice_font.render(message, True, (14, 26, 74))
        surface.blit(msg, msg.get_rect(center=(box.centerx, box.centery - 18)))
        hint = self._hint_font.render("Press any key to continue", True, (90, 100, 130))
        surface.blit(hint, hint.get_rect(center=(box.centerx, box.centery + 30)))


class RunningScreen:
    def __init__(self, app: App, *, engine: DrillEngine, presenter: PygamePresenter) -> None:
        self._app = app
        self._engine = engine
        self._presenter = presenter
        self._stop_hitbox: pygame.Rect | None = None

        self._cue_fonts = [
            pygame.font.Font(None, 200),
            pygame.font.Font(None, 150),
            pygame.font.Font(None, 110),
        ]
        self._button_font = pygame.font.Font(None, 40)
        self._small_font = pygame.font.Font(None, 28)

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type == pygame.KEYDOWN:
            if event.key in (
                pygame.K_ESCAPE,
                pygame.K_BACKSPACE,
                pygame.K_RETURN,
                pygame.K_KP_ENTER,
                pygame.K_SPACE,
            ):
                self._engine.stop()
            return

        if event.type == pygame.JOYBUTTONDOWN:
            if event.button in (0, 1):
                self._engine.stop()
            return

        if event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:
            if self._stop_hitbox is not None and self._stop_hitbox.collidepoint(event.pos):
                self._engine.stop()

    def render(self, surface: pygame.Surface) -> None:
        w, h = surface.get_size()
        surface.fill(self._presenter.background_rgb)
        snap = self._engine.snapshot()

        # Only directions mode shows text; colour cues are the background itself.
        text = self._presenter.display_text
        if snap.mode is DrillMode.DIRECTIONS and text:
            for font in self._cue_fonts:
                if font.size(text)[0] <= w - 60:
                    break
            cue = font.render(text, True, (255, 255, 255))
            surface.blit(cue, cue.get_rect(center=(w // 2, h // 2 - 20)))

        if snap.time_remaining_s is not None:
            remaining = self._small_font.render(_format_clock(snap.time_remaining_s), True, (235, 235, 245))
            surface.blit(remaining, remaining.get_rect(topright=(w - 20, 16)))

        button = pygame.Rect(0, 0, 260, 56)
        button.midbottom = (w // 2, h - 24)
        pygame.draw.rect(surface, (220, 38, 38), button, border_radius=8)
        label = self._button_font.render("Stop Drill", True, (255, 255, 255))
        surface.blit(label, label.get_rect(center=button.center))
        self._stop_hitbox = button


def _init_joysticks() -> None:
    # Safe on platforms with no joystick support.
    try:
        count = pygame.joystick.get_count()
    except pygame.error:
        return

    for i in range(count):
        try:
            js = pygame.joystick.Joystick(i)
            js.init()
        except pygame.error:
            logger.warning("could not initialise joystick %d", i)


def mount_drill_screens(
    app: App,
    *,
    engine: DrillEngine,
    presenter: PygamePresenter,
) -> tuple[SettingsScreen, RunningScreen]:
    """Push the settings screen and make the App follow the engine's screen state."""

    settings = SettingsScreen(app, engine=engine)
    running = RunningScreen(app, engine=engine, presenter=presenter)

    def follow_engine(screen: ScreenState) -> None:
        if screen is ScreenState.RUNNING:
            app.push(running)
        else:
            app.pop_to(settings)

    presenter.add_screen_listener(follow_engine)
    app.push(settings)
    return settings, running


def run(*, max_frames: int | None = None, event_injector: Callable[[int], None] | None = None) -> int:
    options = RuntimeOptions.from_env()
    configure_logging(options)

    pygame.init()
    _init_joysticks()

    pygame.display.set_caption("Scan Trainer")
    surface = pygame.display.set_mode(WINDOW_SIZE, pygame.RESIZABLE)

    frame_clock = pygame.time.Clock()

    app = App(surface=surface)

    real_clock = RealClock()
    timers = TimerQueue(real_clock)
    presenter = PygamePresenter(options=options)
    engine = DrillEngine(
        clock=real_clock,
        scheduler=timers,
        presenter=presenter,
        seed=options.resolve_seed(),
        config=default_drill_config(),
        drop_stale_reveals=not options.keep_stale_reveals,
    )

    mount_drill_screens(app, engine=engine, presenter=presenter)

    frame = 0
    try:
        while app.running:
            if event_injector is not None:
                event_injector(frame)

            for event in pygame.event.get():
                app.handle_event(event)

            timers.run_due()
            presenter.update()
            app.render()

            pygame.display.flip()

            frame += 1
            if max_frames is not None and frame >= max_frames:
                break

            frame_clock.tick(TARGET_FPS)
    finally:
        engine.stop()
        presenter.close()
        pygame.quit()

    return 0
