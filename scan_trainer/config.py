from __future__ import annotations

import logging
import os
import random
from collections.abc import Mapping
from dataclasses import dataclass

from .drill_core import DrillConfig, DrillMode
from .languages import DEFAULT_LANGUAGE, LANGUAGES

ENV_PREFIX = "SCAN_TRAINER_"

# Choices offered on the settings screen.
INTERVAL_OPTIONS_MS: tuple[int, ...] = (2000, 3000, 5000)
DURATION_OPTIONS_MIN: tuple[int | None, ...] = (None, 1, 2, 5, 10)
LANGUAGE_OPTIONS: tuple[str, ...] = tuple(LANGUAGES)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_TTS_BACKENDS = ("pyttsx3-subprocess", "say", "powershell", "espeak")


def default_drill_config() -> DrillConfig:
    return DrillConfig(mode=DrillMode.VISUAL, interval_ms=3000, duration_min=None, language=DEFAULT_LANGUAGE)


@dataclass(frozen=True, slots=True)
class RuntimeOptions:
    disable_tts: bool = False
    tts_backend: str | None = None
    log_level: int = logging.WARNING
    seed: int | None = None
    keep_stale_reveals: bool = False

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "RuntimeOptions":
        env = os.environ if environ is None else environ

        backend = env.get(f"{ENV_PREFIX}TTS_BACKEND", "").strip().lower()
        level_name = env.get(f"{ENV_PREFIX}LOG_LEVEL", "").strip().upper()
        level = logging.getLevelName(level_name) if level_name else logging.WARNING
        if not isinstance(level, int):
            level = logging.WARNING

        seed_raw = env.get(f"{ENV_PREFIX}SEED", "").strip()
        try:
            seed = int(seed_raw) if seed_raw else None
        except ValueError:
            seed = None

        return cls(
            disable_tts=env.get(f"{ENV_PREFIX}DISABLE_TTS", "0") == "1",
            tts_backend=backend if backend in _TTS_BACKENDS else None,
            log_level=level,
            seed=seed,
            keep_stale_reveals=env.get(f"{ENV_PREFIX}KEEP_STALE_REVEALS", "0") == "1",
        )

    def resolve_seed(self) -> int:
        if self.seed is not None:
            return self.seed
        return random.SystemRandom().randint(1, 2**31 - 1)


def configure_logging(options: RuntimeOptions) -> None:
    logging.basicConfig(level=options.log_level, format=LOG_FORMAT)
    logging.getLogger().setLevel(options.log_level)
