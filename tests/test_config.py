from __future__ import annotations

import logging

from scan_trainer.config import (
    DURATION_OPTIONS_MIN,
    INTERVAL_OPTIONS_MS,
    LANGUAGE_OPTIONS,
    RuntimeOptions,
    default_drill_config,
)
from scan_trainer.drill_core import DrillConfig


def test_defaults_when_environment_is_empty() -> None:
    opts = RuntimeOptions.from_env({})
    assert opts == RuntimeOptions()
    assert opts.log_level == logging.WARNING
    assert opts.seed is None
    assert opts.keep_stale_reveals is False


def test_environment_overrides() -> None:
    opts = RuntimeOptions.from_env(
        {
            "SCAN_TRAINER_DISABLE_TTS": "1",
            "SCAN_TRAINER_TTS_BACKEND": "ESPEAK",
            "SCAN_TRAINER_LOG_LEVEL": "debug",
            "SCAN_TRAINER_SEED": "42",
            "SCAN_TRAINER_KEEP_STALE_REVEALS": "1",
        }
    )
    assert opts.disable_tts is True
    assert opts.tts_backend == "espeak"
    assert opts.log_level == logging.DEBUG
    assert opts.seed == 42
    assert opts.keep_stale_reveals is True
    assert opts.resolve_seed() == 42


def test_bad_values_fall_back_to_defaults() -> None:
    opts = RuntimeOptions.from_env(
        {
            "SCAN_TRAINER_TTS_BACKEND": "festival",
            "SCAN_TRAINER_LOG_LEVEL": "chatty",
            "SCAN_TRAINER_SEED": "abc",
        }
    )
    assert opts.tts_backend is None
    assert opts.log_level == logging.WARNING
    assert opts.seed is None
    assert 1 <= opts.resolve_seed() <= 2**31 - 1


def test_settings_options_include_the_defaults() -> None:
    cfg = default_drill_config()
    assert cfg == DrillConfig()
    assert cfg.interval_ms in INTERVAL_OPTIONS_MS
    assert cfg.duration_min in DURATION_OPTIONS_MIN
    assert cfg.language in LANGUAGE_OPTIONS
    assert DURATION_OPTIONS_MIN[0] is None
