from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Language:
    code: str
    label: str
    words: dict[str, str]
    espeak_voice: str  # passed to ``espeak -v``
    say_voice: str | None = None  # macOS ``say -v``; None keeps the system default


LANGUAGES: dict[str, Language] = {
    "en-US": Language(
        code="en-US",
        label="English",
        words={"Left": "Left", "Right": "Right", "Turn": "Turn", "Protect": "Protect"},
        espeak_voice="en-us",
    ),
    "fi-FI": Language(
        code="fi-FI",
        label="Finnish",
        words={"Left": "Vasen", "Right": "Oikea", "Turn": "Käänny", "Protect": "Suojaa"},
        espeak_voice="fi",
        say_voice="Satu",
    ),
}

DEFAULT_LANGUAGE = "en-US"


def translate(language_code: str, key: str) -> str:
    """Localized text for a direction key, or the key itself when unmapped."""

    language = LANGUAGES.get(language_code)
    if language is None:
        return key
    return language.words.get(key, key)


def language_label(language_code: str) -> str:
    language = LANGUAGES.get(language_code)
    return language_code if language is None else language.label
