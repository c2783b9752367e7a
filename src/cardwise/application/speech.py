"""
Language handling for text-to-speech.

Picks the language for a card side and the best installed voice for it.
Playback itself lives in the infrastructure speech adapter.
"""

import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from cardwise.domain.constants import AUTO_LANGUAGE, NO_LANGUAGE
from cardwise.domain.errors import InvalidInput

SUPPORTED_LANGUAGES = {
    "auto": "Auto-detect",
    "zh-TW": "Chinese",
    "en-US": "English",
    "es-ES": "Spanish",
    "ja-JP": "Japanese",
    "ko-KR": "Korean",
    "fr-FR": "French",
    "de-DE": "German",
}

# Spellings different platforms use for the same language.
LANGUAGE_ALIASES = {
    "zh-TW": ["zh-TW", "zh_TW", "zh-Hant", "zh"],
    "zh-CN": ["zh-CN", "zh_CN", "zh-Hans", "zh"],
    "en-US": ["en-US", "en_US", "en-GB", "en"],
    "es-ES": ["es-ES", "es_ES", "es-MX", "es"],
    "ja-JP": ["ja-JP", "ja_JP", "ja"],
    "ko-KR": ["ko-KR", "ko_KR", "ko"],
    "fr-FR": ["fr-FR", "fr_FR", "fr"],
    "de-DE": ["de-DE", "de_DE", "de"],
}

_SCRIPT_RULES = [
    (re.compile(r"[\u4e00-\u9fa5]"), "zh-TW"),
    (re.compile(r"[\u3040-\u309f\u30a0-\u30ff]"), "ja-JP"),
    (re.compile(r"[\uac00-\ud7af]"), "ko-KR"),
    (re.compile(r"[áéíóúüñ¿¡]", re.IGNORECASE), "es-ES"),
    (re.compile(r"[àâäéèêëïîôùûüÿœæç]", re.IGNORECASE), "fr-FR"),
    (re.compile(r"[äöüß]", re.IGNORECASE), "de-DE"),
]


def detect_language(text: str) -> str:
    """Guess a language tag from the characters used. Defaults to en-US."""
    for pattern, lang in _SCRIPT_RULES:
        if pattern.search(text):
            return lang
    return "en-US"


def resolve_language(lang: str | None, text: str) -> str | None:
    """
    Language to speak `text` in, or None if speech is off for this side.

    "auto" is resolved by script detection.
    """
    if not lang or lang == NO_LANGUAGE:
        return None
    if lang == AUTO_LANGUAGE:
        return detect_language(text)
    return lang


def check_language(lang: str | None) -> str | None:
    """Validate a deck's speech language setting before it is stored."""
    if lang is None or lang == NO_LANGUAGE or lang in SUPPORTED_LANGUAGES:
        return lang
    choices = ", ".join([NO_LANGUAGE, *SUPPORTED_LANGUAGES])
    raise InvalidInput(f"Unsupported speech language {lang!r} (choose from {choices})")


@dataclass(frozen=True)
class Voice:
    name: str
    lang: str
    default: bool = False


def _normalize(tag: str) -> str:
    return tag.replace("_", "-").lower()


def find_best_voice(voices: list[Voice], lang: str) -> Voice | None:
    """
    Choose the closest voice for `lang`.

    Order: exact match on any alias, then base-language prefix,
    then the platform default, then whatever comes first.
    """
    if not voices:
        return None

    for candidate in LANGUAGE_ALIASES.get(lang, [lang]):
        for voice in voices:
            if _normalize(voice.lang) == _normalize(candidate):
                return voice

    base = lang.split("-")[0]
    for voice in voices:
        if voice.lang.startswith(base):
            return voice

    for voice in voices:
        if voice.default:
            return voice
    return voices[0]


class VoiceCache:
    """
    Holds the installed voice list once it has been loaded.

    Owned by a speech player instance so separate players (and tests)
    never share state.
    """

    def __init__(self) -> None:
        # None until loaded. An empty list means no voices are installed.
        self._voices: list[Voice] | None = None

    async def get(self, loader: Callable[[], Awaitable[list[Voice]]]) -> list[Voice]:
        if self._voices is None:
            self._voices = await loader()
        return self._voices

    def clear(self) -> None:
        self._voices = None
