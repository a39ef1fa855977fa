from __future__ import annotations

from scan_trainer.drill_core import DIRECTIONS
from scan_trainer.languages import DEFAULT_LANGUAGE, LANGUAGES, language_label, translate


def test_every_language_covers_every_direction() -> None:
    for language in LANGUAGES.values():
        assert set(language.words) == set(DIRECTIONS)


def test_finnish_translations() -> None:
    assert [translate("fi-FI", d) for d in DIRECTIONS] == ["Vasen", "Oikea", "Käänny", "Suojaa"]


def test_english_is_identity_and_default() -> None:
    assert DEFAULT_LANGUAGE == "en-US"
    assert [translate("en-US", d) for d in DIRECTIONS] == list(DIRECTIONS)


def test_unknown_key_or_language_falls_back_to_raw_key() -> None:
    assert translate("fi-FI", "Jump") == "Jump"
    assert translate("de-DE", "Left") == "Left"


def test_language_labels() -> None:
    assert language_label("en-US") == "English"
    assert language_label("fi-FI") == "Finnish"
    assert language_label("xx-YY") == "xx-YY"
