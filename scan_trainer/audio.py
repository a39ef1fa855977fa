"""Presenter-side audio for the drill: alert tick and spoken directions.

Everything here is best effort. Failures are logged and swallowed so a
missing mixer or speech backend never interrupts the drill schedule.
"""

from __future__ import annotations

import importlib.util
import logging
import math
import os
import shutil
import subprocess
import sys
import time
from array import array
from pathlib import Path

import pygame

from .languages import LANGUAGES

logger = logging.getLogger(__name__)

ASSETS_DIR = Path(__file__).resolve().parents[1] / "assets" / "audio"


class OfflineTtsSpeaker:
    """Best-effort offline TTS via isolated subprocesses.

    Speech runs out of process so a crashing engine cannot take the window
    down with it. Only one utterance plays at a time; ``update()`` must be
    called every frame to launch the next one.
    """

    _max_queue = 8
    _max_utterance_s = 6.0

    def __init__(self, *, disabled: bool = False, forced_backend: str | None = None) -> None:
        self._enabled = False
        self._backends: list[str] = []
        self._backend: str | None = None
        self._pending: list[tuple[str, str]] = []
        self._active_proc: subprocess.Popen[bytes] | None = None
        self._active_started_s = 0.0

        if disabled:
            return
        if os.environ.get("SDL_AUDIODRIVER", "").strip().lower() == "dummy":
            # Keep automated/headless runs silent and stable.
            return

        self._backends = self._resolve_backends(forced_backend)
        self._backend = self._backends[0] if self._backends else None
        self._enabled = self._backend is not None
        if self._enabled:
            logger.info("speech backend: %s", self._backend)
        else:
            logger.warning("no speech backend available; directions will be shown but not spoken")

    @property
    def enabled(self) -> bool:
        return bool(self._enabled)

    def speak(self, text: str, language_code: str) -> None:
        if not self._enabled:
            return
        phrase = " ".join(str(text).strip().split())
        if phrase == "":
            return
        self._pending.append((phrase, language_code))
        if len(self._pending) > self._max_queue:
            del self._pending[: len(self._pending) - self._max_queue]

    def update(self) -> None:
        if not self._enabled:
            return

        proc = self._active_proc
        if proc is not None:
            if proc.poll() is None:
                if (time.monotonic() - self._active_started_s) > self._max_utterance_s:
                    logger.warning("speech process timed out; terminating")
                    self._terminate_process(proc)
                    self._active_proc = None
            else:
                self._active_proc = None

        if self._active_proc is not None:
            return
        if not self._pending:
            return

        while self._pending and self._enabled:
            text, language_code = self._pending[0]
            launched = self._launch_process(text, language_code)
            if launched is not None:
                del self._pending[0]
                self._active_proc = launched
                self._active_started_s = time.monotonic()
                return
            self._drop_current_backend()

        if not self._enabled:
            self._pending.clear()

    def stop(self) -> None:
        self._pending.clear()
        proc = self._active_proc
        self._active_proc = None
        if proc is not None:
            self._terminate_process(proc)

    @staticmethod
    def _terminate_process(proc: subprocess.Popen[bytes]) -> None:
        try:
            proc.terminate()
        except OSError:
            return
        try:
            proc.wait(timeout=0.5)
        except subprocess.TimeoutExpired:
            try:
                proc.kill()
            except OSError:
                logger.warning("could not kill speech process %s", proc.pid)

    @staticmethod
    def _resolve_backends(forced: str | None) -> list[str]:
        if forced is not None and OfflineTtsSpeaker._backend_available(forced):
            return [forced]

        candidates: list[str] = []
        if sys.platform == "darwin":
            candidates.append("say")
        if os.name == "nt":
            candidates.append("powershell")
        candidates.extend(("espeak", "pyttsx3-subprocess"))

        seen: set[str] = set()
        resolved: list[str] = []
        for name in candidates:
            if name in seen:
                continue
            seen.add(name)
            if OfflineTtsSpeaker._backend_available(name):
                resolved.append(name)
        return resolved

    @staticmethod
    def _backend_available(name: str) -> bool:
        if name == "say":
            return (shutil.which("say") is not None) or Path("/usr/bin/say").exists()
        if name == "powershell":
            return (shutil.which("powershell") is not None) or (shutil.which("pwsh") is not None)
        if name == "pyttsx3-subprocess":
            return importlib.util.find_spec("pyttsx3") is not None
        if name == "espeak":
            return shutil.which("espeak") is not None
        return False

    def _drop_current_backend(self) -> None:
        backend = self._backend
        if backend is None:
            self._enabled = False
            return
        logger.warning("speech backend %s failed; trying the next one", backend)
        self._backends = [name for name in self._backends if name != backend]
        self._backend = self._backends[0] if self._backends else None
        self._enabled = self._backend is not None

    def _launch_process(self, text: str, language_code: str) -> subprocess.Popen[bytes] | None:
        backend = self._backend
        if backend is None:
            return None
        language = LANGUAGES.get(language_code)

        try:
            if backend == "pyttsx3-subprocess":
                script = (
                    "import sys\n"
                    "txt=' '.join(sys.argv[1:]).strip()\n"
                    "import pyttsx3\n"
                    "e=pyttsx3.init()\n"
                    "e.setProperty('rate', 176)\n"
                    "e.say(txt)\n"
                    "e.runAndWait()\n"
                )
                return subprocess.Popen(
                    [sys.executable, "-c", script, text],
                    stdout=subprocess.DEVNULL,
                    stderr=subprocess.DEVNULL,
                )

            if backend == "say":
                cmd = [shutil.which("say") or "/usr/bin/say", "-r", "176"]
                if language is not None and language.say_voice is not None:
                    cmd.extend(("-v", language.say_voice))
                cmd.append(text)
                return subprocess.Popen(cmd, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)

            if backend == "powershell":
                ps_bin = shutil.which("powershell") or shutil.which("pwsh")
                if ps_bin is None:
                    return None
                script = (
                    "Add-Type -AssemblyName System.Speech; "
                    "$s=New-Object System.Speech.Synthesis.SpeechSynthesizer; "
                    "$v=$s.GetInstalledVoices() | Where-Object { $_.VoiceInfo.Culture.Name -eq $args[0] } "
                    "| Select-Object -First 1; "
                    "if ($v) { $s.SelectVoice($v.VoiceInfo.Name) }; "
                    "$s.Speak($args[1]);"
                )
                return subprocess.Popen(
                    [ps_bin, "-NoProfile", "-NonInteractive", "-Command", script, language_code, text],
                    stdout=subprocess.DEVNULL,
                    stderr=subprocess.DEVNULL,
                )

            if backend == "espeak":
                cmd = ["espeak", "-s", "176"]
                if language is not None:
                    cmd.extend(("-v", language.espeak_voice))
                cmd.append(text)
                return subprocess.Popen(cmd, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
        except OSError as exc:
            logger.warning("could not launch speech backend %s: %s", backend, exc)
            return None
        return None


class AlertSound:
    """Short alert tick played ahead of each spoken direction.

    Uses ``assets/audio/tick.wav`` when present, otherwise a synthesized
    two-tone click rendered in whatever format the mixer was opened with.
    """

    _sample_rate = 22050
    _amp = 32767

    def __init__(self, *, assets_dir: Path = ASSETS_DIR) -> None:
        self._available = False
        self._sound: pygame.mixer.Sound | None = None
        self._channel: pygame.mixer.Channel | None = None
        self._mixer_rate = self._sample_rate
        self._mixer_channels = 1

        try:
            if pygame.mixer.get_init() is None:
                pygame.mixer.init(frequency=self._sample_rate, size=-16, channels=1, buffer=512)
            init = pygame.mixer.get_init()
            if init is not None:
                self._mixer_rate, _, self._mixer_channels = init
            self._sound = self._load_sound(assets_dir / "tick.wav")
            if self._sound is None:
                self._sound = self._build_tick_sound()
            self._channel = pygame.mixer.Channel(0)
            self._available = True
        except (pygame.error, NotImplementedError, ValueError) as exc:
            logger.warning("audio mixer unavailable, alert tick disabled: %s", exc)
            self._available = False

    def play(self) -> None:
        if not self._available:
            return
        assert self._channel is not None
        assert self._sound is not None
        try:
            self._channel.stop()
            self._channel.set_volume(0.8)
            self._channel.play(self._sound)
        except pygame.error as exc:
            logger.warning("alert tick playback failed: %s", exc)

    def stop(self) -> None:
        if self._channel is None:
            return
        try:
            self._channel.stop()
        except pygame.error as exc:
            logger.warning("could not stop alert channel: %s", exc)

    @staticmethod
    def _load_sound(path: Path) -> pygame.mixer.Sound | None:
        if not path.exists():
            return None
        try:
            return pygame.mixer.Sound(str(path))
        except pygame.error as exc:
            logger.warning("could not load %s, using generated tick: %s", path, exc)
            return None

    def _build_tick_sound(self) -> pygame.mixer.Sound:
        pcm = self._render_tone_pcm(1320.0, 0.045, gain=0.55)
        pcm.extend(self._render_tone_pcm(880.0, 0.060, gain=0.45))
        return pygame.mixer.Sound(buffer=pcm.tobytes())

    def _render_tone_pcm(self, frequency_hz: float, duration_s: float, *, gain: float) -> array[int]:
        rate = float(self._mixer_rate)
        channels = max(1, int(self._mixer_channels))
        sample_count = max(1, int(rate * duration_s))
        fade_n = max(1, int(rate * 0.004))
        out = array("h")
        for idx in range(sample_count):
            envelope = 1.0
            if idx < fade_n:
                envelope = idx / float(fade_n)
            tail = sample_count - idx - 1
            if tail < fade_n:
                envelope = min(envelope, tail / float(fade_n))
            phase = (2.0 * math.pi * float(frequency_hz) * idx) / rate
            sample = math.sin(phase) * gain * max(0.0, envelope)
            value = int(max(-1.0, min(1.0, sample)) * self._amp)
            out.extend([value] * channels)
        return out
