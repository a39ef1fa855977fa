from __future__ import annotations

import logging
import random
from dataclasses import dataclass, replace
from enum import StrEnum
from typing import Protocol

from .clock import Clock, Scheduler, TimerHandle
from .languages import DEFAULT_LANGUAGE, translate

logger = logging.getLogger(__name__)

COLORS: tuple[str, ...] = ("red", "blue", "yellow", "green", "orange")
DIRECTIONS: tuple[str, ...] = ("Left", "Right", "Turn", "Protect")

NEUTRAL = "black"
INFINITE = "infinite"

# Gap between the alert tick and the spoken direction.
REVEAL_DELAY_MS = 1800


class DrillMode(StrEnum):
    VISUAL = "visual"
    DIRECTIONS = "directions"


class ScreenState(StrEnum):
    SETTINGS = "settings"
    RUNNING = "running"


class ValidationError(ValueError):
    """The drill cannot start because the active mode has nothing selected."""


class DrillStateError(RuntimeError):
    """A command was issued in a screen state that does not allow it."""


class CuePresenter(Protocol):
    """Rendering/audio side of the drill. The engine only ever calls these."""

    def on_screen_change(self, screen: ScreenState) -> None: ...
    def on_cue_change(self, cue: str, display_text: str) -> None: ...
    def on_background_change(self, color: str) -> None: ...
    def play_alert_sound(self) -> None: ...
    def speak(self, text: str, language_code: str) -> None: ...


def parse_duration_limit(value: object) -> int | None:
    """Normalize a duration limit to minutes, or None for ``"infinite"``."""

    if value is None:
        return None
    raw = value
    if isinstance(value, str):
        token = value.strip().lower()
        if token == INFINITE:
            return None
        try:
            value = int(token)
        except ValueError:
            raise ValueError(f"duration limit must be {INFINITE!r} or minutes, got {raw!r}") from None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"duration limit must be {INFINITE!r} or minutes, got {raw!r}")
    if value <= 0:
        raise ValueError("duration limit must be > 0 minutes")
    return value


def _unique(items: tuple[str, ...]) -> tuple[str, ...]:
    seen: set[str] = set()
    out: list[str] = []
    for item in items:
        if item in seen:
            continue
        seen.add(item)
        out.append(item)
    return tuple(out)


def _toggled(items: tuple[str, ...], item: str) -> tuple[str, ...]:
    if item in items:
        return tuple(i for i in items if i != item)
    return (*items, item)


@dataclass(frozen=True, slots=True)
class DrillConfig:
    mode: DrillMode = DrillMode.VISUAL
    colors: tuple[str, ...] = COLORS
    directions: tuple[str, ...] = DIRECTIONS
    interval_ms: int = 3000
    duration_min: int | None = None  # None = infinite
    language: str = DEFAULT_LANGUAGE

    def __post_init__(self) -> None:
        object.__setattr__(self, "mode", DrillMode(self.mode))

        colors = _unique(tuple(str(c) for c in self.colors))
        unknown = [c for c in colors if c not in COLORS]
        if unknown:
            raise ValueError(f"unknown colors: {', '.join(unknown)}")
        object.__setattr__(self, "colors", colors)

        directions = _unique(tuple(str(d) for d in self.directions))
        unknown = [d for d in directions if d not in DIRECTIONS]
        if unknown:
            raise ValueError(f"unknown directions: {', '.join(unknown)}")
        object.__setattr__(self, "directions", directions)

        if isinstance(self.interval_ms, bool) or int(self.interval_ms) <= 0:
            raise ValueError("interval_ms must be > 0")
        object.__setattr__(self, "interval_ms", int(self.interval_ms))

        object.__setattr__(self, "duration_min", parse_duration_limit(self.duration_min))

        language = str(self.language).strip()
        if language == "":
            raise ValueError("language must be a non-empty locale code")
        object.__setattr__(self, "language", language)

    @property
    def interval_s(self) -> float:
        return self.interval_ms / 1000.0

    @property
    def duration_s(self) -> float | None:
        return None if self.duration_min is None else self.duration_min * 60.0

    def enabled_items(self) -> tuple[str, ...]:
        """Selection set for the active mode."""

        return self.colors if self.mode is DrillMode.VISUAL else self.directions


@dataclass(frozen=True, slots=True)
class DrillSnapshot:
    """View model for the UI (pure data)."""

    screen: ScreenState
    mode: DrillMode
    cue: str
    display_text: str
    background: str
    language: str
    time_remaining_s: float | None
    elapsed_s: float | None
    tick_count: int


class SeededRng:
    """Simple seeded RNG wrapper to keep deterministic streams explicit."""

    def __init__(self, seed: int) -> None:
        self._rng = random.Random(int(seed))

    def randint(self, a: int, b: int) -> int:
        return self._rng.randint(a, b)


class DrillEngine:
    """Timer-driven drill state machine: settings -> running -> settings.

    - Deterministic: cue selection comes from an RNG seeded at construction.
    - Time and timers come entirely from the injected Clock and Scheduler.
    - Rendering, sound and speech go through the CuePresenter; the engine
      never touches a drawing surface.

    Every ``start()`` and ``stop()`` bumps a generation counter. Direction
    reveals remember the generation they were scheduled in; with
    ``drop_stale_reveals`` the reveal timers still in flight are cancelled on
    stop and any late reveal is discarded, otherwise it still updates the cue
    and speaks after the stop.
    """

    def __init__(
        self,
        *,
        clock: Clock,
        scheduler: Scheduler,
        presenter: CuePresenter,
        seed: int,
        config: DrillConfig | None = None,
        drop_stale_reveals: bool = True,
    ) -> None:
        self._clock = clock
        self._scheduler = scheduler
        self._presenter = presenter
        self._rng = SeededRng(seed)
        self._config = DrillConfig() if config is None else config
        self._drop_stale_reveals = bool(drop_stale_reveals)

        self._screen = ScreenState.SETTINGS
        self._cue = NEUTRAL
        self._display_text = ""
        self._background = NEUTRAL

        self._tick_timer: TimerHandle | None = None
        self._duration_timer: TimerHandle | None = None
        self._reveal_timers: set[TimerHandle] = set()
        self._generation = 0
        self._started_at_s: float | None = None
        self._tick_count = 0

    @property
    def config(self) -> DrillConfig:
        return self._config

    @property
    def screen(self) -> ScreenState:
        return self._screen

    @property
    def is_running(self) -> bool:
        return self._screen is ScreenState.RUNNING

    @property
    def current_cue(self) -> str:
        return self._cue

    @property
    def display_text(self) -> str:
        return self._display_text

    @property
    def background(self) -> str:
        return self._background

    @property
    def tick_count(self) -> int:
        return self._tick_count

    def active_timer_count(self) -> int:
        """Live tick + duration timers (reveals in flight are not counted)."""

        timers = (self._tick_timer, self._duration_timer)
        return sum(1 for t in timers if t is not None and t.active)

    # Settings commands (legal only on the settings screen).

    def reconfigure(self, **changes: object) -> DrillConfig:
        if self._screen is ScreenState.RUNNING:
            raise DrillStateError("stop the drill before changing its settings")
        self._config = replace(self._config, **changes)
        logger.debug("drill reconfigured: %s", self._config)
        return self._config

    def set_mode(self, mode: DrillMode | str) -> None:
        self.reconfigure(mode=DrillMode(mode))

    def toggle_color(self, color: str) -> None:
        if color not in COLORS:
            raise ValueError(f"unknown color: {color!r}")
        self.reconfigure(colors=_toggled(self._config.colors, color))

    def toggle_direction(self, direction: str) -> None:
        if direction not in DIRECTIONS:
            raise ValueError(f"unknown direction: {direction!r}")
        self.reconfigure(directions=_toggled(self._config.directions, direction))

    def set_interval(self, interval_ms: int) -> None:
        self.reconfigure(interval_ms=interval_ms)

    def set_duration_limit(self, value: int | str | None) -> None:
        self.reconfigure(duration_min=parse_duration_limit(value))

    def set_language(self, language_code: str) -> None:
        self.reconfigure(language=language_code)

    # Drill lifecycle.

    def start(self, config: DrillConfig | None = None) -> None:
        if self._screen is ScreenState.RUNNING:
            return

        candidate = self._config if config is None else config
        if not candidate.enabled_items():
            noun = "color" if candidate.mode is DrillMode.VISUAL else "direction"
            raise ValidationError(f"Please select at least one {noun}!")

        self._config = candidate
        self._generation += 1
        self._screen = ScreenState.RUNNING
        self._started_at_s = self._clock.now()
        self._tick_count = 0
        self._reset_cue()

        self._tick_timer = self._scheduler.call_repeating(candidate.interval_s, self._on_tick)
        duration_s = candidate.duration_s
        if duration_s is not None:
            self._duration_timer = self._scheduler.call_later(duration_s, self._on_duration_elapsed)

        logger.info(
            "drill started: mode=%s interval=%dms duration=%s",
            candidate.mode.value,
            candidate.interval_ms,
            INFINITE if candidate.duration_min is None else f"{candidate.duration_min}min",
        )
        self._notify_reset()

    def stop(self) -> None:
        if self._screen is ScreenState.SETTINGS:
            return

        for timer in (self._tick_timer, self._duration_timer):
            if timer is not None:
                timer.cancel()
        self._tick_timer = None
        self._duration_timer = None
        if self._drop_stale_reveals:
            for timer in self._reveal_timers:
                timer.cancel()
            self._reveal_timers.clear()

        self._generation += 1
        self._screen = ScreenState.SETTINGS
        self._started_at_s = None
        self._reset_cue()

        logger.info("drill stopped after %d ticks", self._tick_count)
        self._notify_reset()

    def elapsed_s(self) -> float | None:
        if self._started_at_s is None:
            return None
        return max(0.0, self._clock.now() - self._started_at_s)

    def time_remaining_s(self) -> float | None:
        elapsed = self.elapsed_s()
        duration_s = self._config.duration_s
        if elapsed is None or duration_s is None:
            return None
        return max(0.0, duration_s - elapsed)

    def snapshot(self) -> DrillSnapshot:
        return DrillSnapshot(
            screen=self._screen,
            mode=self._config.mode,
            cue=self._cue,
            display_text=self._display_text,
            background=self._background,
            language=self._config.language,
            time_remaining_s=self.time_remaining_s(),
            elapsed_s=self.elapsed_s(),
            tick_count=self._tick_count,
        )

    # Timer callbacks.

    def _on_tick(self) -> None:
        self._tick_count += 1
        config = self._config

        if config.mode is DrillMode.VISUAL:
            color = self._pick(config.colors)
            self._cue = color
            self._display_text = ""
            self._background = color
            logger.debug("tick %d: color %s", self._tick_count, color)
            self._presenter.on_cue_change(color, "")
            self._presenter.on_background_change(color)
            return

        self._presenter.play_alert_sound()
        generation = self._generation

        def reveal() -> None:
            self._reveal_timers.discard(handle)
            self._reveal_direction(generation=generation, config=config)

        handle = self._scheduler.call_later(REVEAL_DELAY_MS / 1000.0, reveal)
        self._reveal_timers.add(handle)

    def _reveal_direction(self, *, generation: int, config: DrillConfig) -> None:
        if generation != self._generation:
            if self._drop_stale_reveals:
                logger.debug("dropping reveal from stopped drill %d", generation)
                return
            logger.debug("stale reveal from drill %d applied", generation)

        direction = self._pick(config.directions)
        text = translate(config.language, direction)
        self._cue = direction
        self._display_text = text
        self._background = NEUTRAL
        logger.debug("reveal: %s (%s)", direction, text)
        self._presenter.on_background_change(NEUTRAL)
        self._presenter.on_cue_change(direction, text)
        self._presenter.speak(text, config.language)

    def _on_duration_elapsed(self) -> None:
        logger.info("duration limit reached")
        self.stop()

    def _pick(self, pool: tuple[str, ...]) -> str:
        return pool[self._rng.randint(0, len(pool) - 1)]

    def _reset_cue(self) -> None:
        self._cue = NEUTRAL
        self._display_text = ""
        self._background = NEUTRAL

    def _notify_reset(self) -> None:
        self._presenter.on_screen_change(self._screen)
        self._presenter.on_cue_change(NEUTRAL, "")
        self._presenter.on_background_change(NEUTRAL)


def build_drill_engine(
    *,
    clock: Clock,
    scheduler: Scheduler,
    presenter: CuePresenter,
    seed: int,
    config: DrillConfig | None = None,
    drop_stale_reveals: bool = True,
) -> DrillEngine:
    return DrillEngine(
        clock=clock,
        scheduler=scheduler,
        presenter=presenter,
        seed=seed,
        config=config,
        drop_stale_reveals=drop_stale_reveals,
    )
