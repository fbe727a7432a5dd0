from __future__ import annotations

_NOISE_PREFIXES = ("Traceback ", "File ", "^")

# (substrings to look for, hint); first match wins.
_HINTS: tuple[tuple[tuple[str, ...], str], ...] = (
    (
        ("missing speech key or region",),
        "Set SPEAKBRIDGE_SPEECH_KEY and SPEAKBRIDGE_SPEECH_REGION, then start again.",
    ),
    (("select a voice",), "Pick a neural voice for the target language."),
    (
        ("401", "authentication", "unauthorized"),
        "The speech service rejected the key. Check the key and that the region matches it.",
    ),
    (
        ("mic permissions", "microphone", "audio device"),
        "Microphone init failed. Check input device selection and mic permissions.",
    ),
    (
        ("no module named", "is not installed"),
        "A required package is missing in this environment. Reinstall dependencies and retry.",
    ),
    (
        ("config file not found",),
        "Configured JSON file is missing. Update the config path or restore the file.",
    ),
)


def summarize_exception(detail: str, *, max_len: int = 220) -> str:
    """Last line of a traceback/detail string worth showing in the UI."""
    lines = [ln.strip() for ln in str(detail or "").splitlines() if ln.strip()]
    if not lines:
        return "Unknown error."
    meaningful = [ln for ln in lines if not ln.startswith(_NOISE_PREFIXES)]
    out = (meaningful or lines)[-1]
    if len(out) > max_len:
        out = out[: max_len - 3].rstrip() + "..."
    return out


def hint_for_exception(summary: str) -> str:
    s = str(summary or "").lower()
    for needles, hint in _HINTS:
        if any(n in s for n in needles):
            return hint
    return "Check logs for full traceback."
