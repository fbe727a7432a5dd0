from __future__ import annotations

import argparse
import copy
import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

from platformdirs import user_config_dir

from speakbridge.contracts import Credentials

ENV_SPEECH_KEY = "SPEAKBRIDGE_SPEECH_KEY"
ENV_SPEECH_REGION = "SPEAKBRIDGE_SPEECH_REGION"

DEFAULTS: dict[str, Any] = {
    "list_devices": False,
    "engine": "azure",
    "speech_region": "",
    "source_language": "en",
    "target_language": "fr",
    "voice": "",
    "input_device": None,
    "output_device": None,
    "countdown_sec": 3,
    "logs_expanded": False,
    "log_capacity": 100,
    "poll_ms": 60,
    "queue_maxsize": 200,
    "max_updates_per_tick": 50,
    "print_console": False,
    "debug": False,
}
CONFIG_KEYS: tuple[str, ...] = tuple(DEFAULTS.keys())


@dataclass(frozen=True)
class AppPaths:
    config_dir: Path
    config_path: Path


@dataclass(frozen=True)
class UiPreferences:
    countdown_sec: int = 3
    logs_expanded: bool = False


def default_asset_config_path() -> Path:
    return Path(__file__).resolve().parents[1] / "assets" / "default_config.json"


def app_paths() -> AppPaths:
    config_dir = Path(user_config_dir("SpeakBridge", "SpeakBridge"))
    return AppPaths(config_dir=config_dir, config_path=config_dir / "config.json")


def _read_json_object(path: Path) -> dict[str, Any]:
    # Windows editors often save with a BOM.
    data = json.loads(path.read_text(encoding="utf-8-sig"))
    if not isinstance(data, dict):
        raise ValueError(f"{path} does not hold a JSON object")
    return data


def _write_json_object(path: Path, payload: Mapping[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    text = json.dumps(dict(payload), ensure_ascii=False, indent=2)
    path.write_text(text + "\n", encoding="utf-8")


def _filter_known(values: Mapping[str, Any]) -> dict[str, Any]:
    return {key: values[key] for key in CONFIG_KEYS if key in values}


def load_default_config() -> dict[str, Any]:
    """DEFAULTS overlaid with the bundled default_config.json, when present."""
    out = copy.deepcopy(DEFAULTS)
    bundled = default_asset_config_path()
    if bundled.is_file():
        out.update(_filter_known(_read_json_object(bundled)))
    return out


def _existing_config_path(config_path: str | None, defaults: dict[str, Any]) -> Path:
    if not config_path:
        return ensure_user_config_exists(defaults)
    explicit = Path(config_path)
    if not explicit.exists():
        raise SystemExit(f"Config file not found: {explicit}")
    return explicit


def load_user_config(config_path: str | None = None) -> tuple[dict[str, Any], Path]:
    defaults = load_default_config()
    path = _existing_config_path(config_path, defaults)
    return {**defaults, **_filter_known(_read_json_object(path))}, path


def save_user_config(values: Mapping[str, Any], config_path: str | None = None) -> Path:
    """Merge `values` into the stored config. Unknown keys are dropped."""
    defaults = load_default_config()
    path = Path(config_path) if config_path else ensure_user_config_exists(defaults)
    stored = _filter_known(_read_json_object(path)) if path.exists() else {}
    _write_json_object(path, {**defaults, **stored, **_filter_known(values)})
    return path


def ensure_user_config_exists(defaults: dict[str, Any] | None = None) -> Path:
    target = app_paths().config_path
    if not target.exists():
        _write_json_object(target, defaults or load_default_config())
    return target


def resolve_defaults(config_path: str | None = None) -> tuple[dict[str, Any], Path]:
    return load_user_config(config_path=config_path)


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return bool(value)


def ui_preferences(values: Mapping[str, Any]) -> UiPreferences:
    try:
        countdown = int(values.get("countdown_sec", DEFAULTS["countdown_sec"]))
    except (TypeError, ValueError):
        countdown = int(DEFAULTS["countdown_sec"])
    return UiPreferences(
        countdown_sec=max(0, countdown),
        logs_expanded=_as_bool(values.get("logs_expanded", False)),
    )


def load_ui_preferences(config_path: str | None = None) -> UiPreferences:
    values, _ = load_user_config(config_path=config_path)
    return ui_preferences(values)


def save_ui_preferences(prefs: UiPreferences, config_path: str | None = None) -> Path:
    return save_user_config(
        {"countdown_sec": int(prefs.countdown_sec), "logs_expanded": bool(prefs.logs_expanded)},
        config_path=config_path,
    )


def resolve_credentials(
    environ: Mapping[str, str] | None = None,
    region_default: str = "",
) -> Credentials | None:
    env = os.environ if environ is None else environ
    key = (env.get(ENV_SPEECH_KEY) or "").strip()
    region = (env.get(ENV_SPEECH_REGION) or region_default or "").strip()
    if not key or not region:
        return None
    return Credentials(api_key=key, region=region)


def parser_with_defaults(defaults: dict[str, Any]) -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="speakbridge")
    p.add_argument("--config", default=None, help="JSON config path (CLI flags override config)")
    p.add_argument("--list-devices", action="store_true", help="print audio devices and exit")
    p.add_argument("--list-languages", action="store_true", help="print selectable languages and exit")
    p.add_argument(
        "--list-voices",
        action="store_true",
        help="print voices for the target language and exit",
    )
    p.add_argument(
        "--console",
        action="store_true",
        help="run one session in the terminal instead of the window",
    )
    p.add_argument("--engine", default=defaults["engine"], help="speech engine (azure)")
    p.add_argument(
        "--speech-region",
        default=defaults["speech_region"],
        help=f"service region when {ENV_SPEECH_REGION} is unset",
    )
    p.add_argument("--source-language", default=defaults["source_language"], help="spoken language code")
    p.add_argument("--target-language", default=defaults["target_language"], help="translation language code")
    p.add_argument("--voice", default=defaults["voice"], help="synthesis voice short name (blank = default)")
    p.add_argument("--input-device", default=defaults["input_device"], help="microphone device name")
    p.add_argument("--output-device", default=defaults["output_device"], help="playback device name")
    p.add_argument(
        "--countdown-sec",
        type=int,
        default=defaults["countdown_sec"],
        help="seconds to wait before listening starts (0 = start immediately)",
    )
    p.add_argument(
        "--logs-expanded",
        action=argparse.BooleanOptionalAction,
        default=defaults["logs_expanded"],
        help="show the event log panel expanded",
    )
    p.add_argument("--log-capacity", type=int, default=defaults["log_capacity"], help="event log entries kept")
    p.add_argument("--poll-ms", type=int, default=defaults["poll_ms"], help="UI queue poll interval (ms)")
    p.add_argument(
        "--queue-maxsize",
        type=int,
        default=defaults["queue_maxsize"],
        help="max pending updates between worker threads and UI",
    )
    p.add_argument(
        "--max-updates-per-tick",
        type=int,
        default=defaults["max_updates_per_tick"],
        help="max updates to apply per UI timer tick",
    )
    p.add_argument(
        "--print-console",
        action=argparse.BooleanOptionalAction,
        default=defaults["print_console"],
        help="print transcript and translation lines to console",
    )
    p.add_argument("--debug", action="store_true", help="verbose logging")
    return p


def resolve_args(argv: list[str] | None = None) -> argparse.Namespace:
    """CLI flags win over the config file, which wins over DEFAULTS."""
    pre = argparse.ArgumentParser(add_help=False)
    pre.add_argument("--config", default=None)
    known, _ = pre.parse_known_args(argv)
    defaults, _ = resolve_defaults(config_path=known.config)
    args = parser_with_defaults(defaults).parse_args(argv)
    # store_true flags can only be switched on from the file.
    args.list_devices = bool(args.list_devices or defaults.get("list_devices"))
    args.debug = bool(args.debug or defaults.get("debug"))
    return args
