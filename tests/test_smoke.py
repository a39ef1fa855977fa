"""Headless start-up check for the drill window.

Runs the real frame loop (settings screen, timer pump, presenter update)
for a few frames on the SDL dummy drivers and expects a clean exit.
"""

from __future__ import annotations

import os

os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
os.environ.setdefault("SDL_AUDIODRIVER", "dummy")
os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")


def test_settings_screen_runs_headless(monkeypatch) -> None:
    monkeypatch.setenv("SCAN_TRAINER_DISABLE_TTS", "1")
    monkeypatch.setenv("SCAN_TRAINER_SEED", "3")

    from scan_trainer.app import run

    assert run(max_frames=3) == 0
