from __future__ import annotations

from dataclasses import replace
from typing import Iterable, List, Mapping, Sequence

from speakbridge.contracts import Language, LanguageOption, Voice


def base_language(code: str) -> str:
    return (code or "").split("-")[0]


def translation_language_code(code: str) -> str:
    """Code handed to the engine as translation target and used to look up its output."""
    return base_language(code)


def locales_for_language(code: str, voices: Mapping[str, Sequence[Voice]]) -> List[str]:
    """
    Voice catalog locales usable for `code`.

    Chinese scripts map onto regions: zh-Hans -> the zh-CN family,
    zh-Hant -> zh-TW and zh-HK. A code that is itself a catalog locale
    resolves to just that locale.
    """
    base = base_language(code)
    matching = [locale for locale in voices if locale.startswith(base + "-")]

    if code == "zh-Hans":
        return [l for l in matching if l == "zh-CN" or l.startswith("zh-CN-")]
    if code == "zh-Hant":
        return [l for l in matching if l in ("zh-TW", "zh-HK")]

    if "-" in code and code in matching:
        return [code]
    return matching


def source_locale(code: str, voices: Mapping[str, Sequence[Voice]]) -> str:
    """Recognition locale for a source language."""
    locales = locales_for_language(code, voices)
    if not locales:
        # Best-effort guess, e.g. "fr" -> "fr-FR".
        return f"{code}-{code.upper()}"

    upper = code.upper()
    base = base_language(code)
    for wanted in (f"{code}-US", f"{upper}-{upper}"):
        if wanted in locales:
            return wanted
    for locale in locales:
        if locale.startswith(base + "-"):
            return locale
    return locales[0]


def sort_voices(voices: Iterable[Voice]) -> List[Voice]:
    """Female voices first, then by display name (case-insensitive)."""
    return sorted(
        voices,
        key=lambda v: (0 if v.gender == "Female" else 1, v.name.casefold()),
    )


def voices_for_language(code: str, voices: Mapping[str, Sequence[Voice]]) -> List[Voice]:
    tagged = [
        replace(v, locale=locale)
        for locale in locales_for_language(code, voices)
        for v in voices.get(locale, ())
    ]
    return sort_voices(tagged)


def default_voice(voices: Sequence[Voice]) -> str:
    for v in voices:
        if v.gender == "Female":
            return v.short_name
    return voices[0].short_name if voices else ""


def language_options(languages: Mapping[str, Language]) -> List[LanguageOption]:
    out = []
    for code, lang in languages.items():
        if lang.name == lang.native_name:
            label = lang.name
        else:
            label = f"{lang.name} ({lang.native_name})"
        out.append(LanguageOption(code=code, label=label))
    return sorted(out, key=lambda o: o.label.casefold())


def language_display_name(code: str, languages: Mapping[str, Language]) -> str:
    lang = languages.get(code)
    return lang.name if lang is not None else code
