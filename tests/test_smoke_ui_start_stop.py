from __future__ import annotations

import os

import pytest


def test_ui_smoke_start_directions_drill_and_stop(monkeypatch: pytest.MonkeyPatch) -> None:
    # Headless SDL for CI.
    os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
    os.environ.setdefault("SDL_AUDIODRIVER", "dummy")

    import pygame

    from scan_trainer import app as app_module
    from scan_trainer.drill_core import ScreenState

    screens: list[ScreenState] = []
    original = app_module.PygamePresenter.on_screen_change

    def record(self: app_module.PygamePresenter, screen: ScreenState) -> None:
        screens.append(screen)
        original(self, screen)

    monkeypatch.setattr(app_module.PygamePresenter, "on_screen_change", record)

    def key(k: int) -> None:
        pygame.event.post(pygame.event.Event(pygame.KEYDOWN, {"key": k, "unicode": ""}))

    def inject(frame: int) -> None:
        # Settings: switch to directions -> jump to Start Drill -> start -> stop -> quit
        if frame == 1:
            key(pygame.K_RIGHT)
        elif frame == 2:
            key(pygame.K_UP)
        elif frame == 3:
            key(pygame.K_RETURN)
        elif frame == 8:
            key(pygame.K_ESCAPE)
        elif frame == 10:
            key(pygame.K_ESCAPE)

    assert app_module.run(max_frames=40, event_injector=inject) == 0
    assert screens == [ScreenState.RUNNING, ScreenState.SETTINGS]
