from __future__ import annotations

from dataclasses import dataclass, field

from scan_trainer.clock import TimerQueue
from scan_trainer.drill_core import (
    NEUTRAL,
    DrillConfig,
    DrillEngine,
    DrillMode,
    ScreenState,
)


@dataclass
class FakeClock:
    t: float = 0.0

    def now(self) -> float:
        return self.t

    def advance(self, dt: float) -> None:
        self.t += float(dt)


@dataclass
class CueLog:
    cues: list[tuple[float, str, str]] = field(default_factory=list)
    screens: list[ScreenState] = field(default_factory=list)
    alerts: list[float] = field(default_factory=list)
    spoken: list[tuple[str, str]] = field(default_factory=list)
    clock: FakeClock | None = None

    def _t(self) -> float:
        return 0.0 if self.clock is None else round(self.clock.now(), 6)

    def on_screen_change(self, screen: ScreenState) -> None:
        self.screens.append(screen)

    def on_cue_change(self, cue: str, display_text: str) -> None:
        if cue != NEUTRAL:
            self.cues.append((self._t(), cue, display_text))

    def on_background_change(self, color: str) -> None:
        pass

    def play_alert_sound(self) -> None:
        self.alerts.append(self._t())

    def speak(self, text: str, language_code: str) -> None:
        self.spoken.append((text, language_code))


def _drive(clock: FakeClock, timers: TimerQueue, *, seconds: float, fps: float = 60.0) -> None:
    steps = int(round(seconds * fps))
    for _ in range(steps):
        clock.advance(1.0 / fps)
        timers.run_due()


def _build(
    config: DrillConfig,
    *,
    seed: int,
    drop_stale_reveals: bool = True,
) -> tuple[DrillEngine, FakeClock, TimerQueue, CueLog]:
    clock = FakeClock()
    timers = TimerQueue(clock)
    log = CueLog(clock=clock)
    engine = DrillEngine(
        clock=clock,
        scheduler=timers,
        presenter=log,
        seed=seed,
        config=config,
        drop_stale_reveals=drop_stale_reveals,
    )
    return engine, clock, timers, log


def _run_scripted_directions_drill(seed: int) -> list[tuple[float, str, str]]:
    cfg = DrillConfig(
        mode=DrillMode.DIRECTIONS,
        directions=("Left", "Right", "Turn", "Protect"),
        interval_ms=3000,
        duration_min=1,
        language="fi-FI",
    )
    engine, clock, timers, log = _build(cfg, seed=seed)
    engine.start()
    _drive(clock, timers, seconds=65.0)

    assert engine.screen is ScreenState.SETTINGS
    assert log.screens == [ScreenState.RUNNING, ScreenState.SETTINGS]
    return log.cues


def test_headless_directions_drill_is_deterministic_and_ends_on_its_own() -> None:
    cues_1 = _run_scripted_directions_drill(seed=2024)
    cues_2 = _run_scripted_directions_drill(seed=2024)

    assert cues_1 == cues_2

    # The duration timeout was armed before the tick due at 60 s, so it wins
    # the tie: ticks at 3, 6, ... 57 s, each revealed 1.8 s later.
    assert len(cues_1) == 19
    translations = {"Left": "Vasen", "Right": "Oikea", "Turn": "Käänny", "Protect": "Suojaa"}
    for _, cue, text in cues_1:
        assert translations[cue] == text


def test_headless_visual_drill_changes_color_every_interval() -> None:
    cfg = DrillConfig(mode=DrillMode.VISUAL, colors=("red", "green", "blue"), interval_ms=2000)
    engine, clock, timers, log = _build(cfg, seed=5)
    engine.start()
    _drive(clock, timers, seconds=20.5)

    assert engine.is_running
    assert len(log.cues) == 10
    times = [t for t, _, _ in log.cues]
    gaps = [b - a for a, b in zip(times, times[1:])]
    # Frame quantization at 60 fps adds at most one frame of jitter.
    assert all(abs(g - 2.0) <= (1.0 / 60.0) + 1e-4 for g in gaps)
    assert {cue for _, cue, _ in log.cues} <= {"red", "green", "blue"}


def test_short_interval_lets_reveals_overlap_with_following_ticks() -> None:
    cfg = DrillConfig(mode=DrillMode.DIRECTIONS, directions=("Left", "Right"), interval_ms=1000)
    engine, clock, timers, log = _build(cfg, seed=11)
    engine.start()
    _drive(clock, timers, seconds=6.5)

    # Alerts keep the 1 s cadence even though every reveal trails by 1.8 s.
    assert len(log.alerts) == 6
    assert len(log.cues) == 4
    assert all(cue in {"Left", "Right"} for _, cue, _ in log.cues)
    assert len(log.spoken) == 4


def test_stale_reveal_is_dropped_after_stop_by_default() -> None:
    cfg = DrillConfig(mode=DrillMode.DIRECTIONS, directions=("Turn",), interval_ms=2000)
    engine, clock, timers, log = _build(cfg, seed=3)
    engine.start()

    _drive(clock, timers, seconds=2.5)
    assert len(log.alerts) == 1
    engine.stop()

    _drive(clock, timers, seconds=3.0)
    assert log.cues == []
    assert log.spoken == []
    assert engine.current_cue == NEUTRAL


def test_stale_reveal_still_fires_after_stop_when_kept() -> None:
    cfg = DrillConfig(mode=DrillMode.DIRECTIONS, directions=("Turn",), interval_ms=2000)
    engine, clock, timers, log = _build(cfg, seed=3, drop_stale_reveals=False)
    engine.start()

    _drive(clock, timers, seconds=2.5)
    engine.stop()
    assert engine.screen is ScreenState.SETTINGS

    _drive(clock, timers, seconds=3.0)
    assert [cue for _, cue, _ in log.cues] == ["Turn"]
    assert log.spoken == [("Turn", "en-US")]
    # The late reveal mutates the cue but never restarts the drill.
    assert engine.current_cue == "Turn"
    assert engine.screen is ScreenState.SETTINGS
    assert engine.active_timer_count() == 0


def test_engine_restarts_from_settings_indefinitely() -> None:
    cfg = DrillConfig(mode=DrillMode.VISUAL, colors=("orange",), interval_ms=2000, duration_min=1)
    engine, clock, timers, log = _build(cfg, seed=1)

    for _ in range(3):
        engine.start()
        _drive(clock, timers, seconds=61.0)
        assert engine.screen is ScreenState.SETTINGS
        engine.set_interval(3000 if engine.config.interval_ms == 2000 else 2000)

    assert log.screens == [ScreenState.RUNNING, ScreenState.SETTINGS] * 3
    assert all(cue == "orange" for _, cue, _ in log.cues)
