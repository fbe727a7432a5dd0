from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from speakbridge.contracts import Language, Voice

LanguageCatalog = dict[str, Language]
VoiceCatalog = dict[str, list[Voice]]


def assets_dir() -> Path:
    return Path(__file__).resolve().parents[1] / "assets"


def _load_json_dict(path: Path) -> dict[str, Any]:
    with path.open("r", encoding="utf-8-sig") as f:
        loaded = json.load(f)
    if not isinstance(loaded, dict):
        raise ValueError(f"catalog must be a JSON object: {path}")
    return loaded


def load_language_catalog(path: str | Path | None = None) -> LanguageCatalog:
    """Language code -> Language, from a `{code: {name, nativeName}}` JSON file."""
    chosen = Path(path) if path else assets_dir() / "languages.json"
    out: LanguageCatalog = {}
    for code, data in _load_json_dict(chosen).items():
        name = str(data.get("name") or code)
        out[code] = Language(
            code=code,
            name=name,
            native_name=str(data.get("nativeName") or name),
        )
    return out


def load_voice_catalog(path: str | Path | None = None) -> VoiceCatalog:
    """Locale -> voices in file order, from a `{locale: [{short_name, name, gender}]}` JSON file."""
    chosen = Path(path) if path else assets_dir() / "voices.json"
    out: VoiceCatalog = {}
    for locale, entries in _load_json_dict(chosen).items():
        out[locale] = [
            Voice(
                short_name=str(v["short_name"]),
                name=str(v.get("name") or v["short_name"]),
                gender=str(v.get("gender") or ""),
            )
            for v in entries
        ]
    return out
