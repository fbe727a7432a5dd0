from __future__ import annotations

import argparse
import logging
import signal
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Optional

from speakbridge.app.config import (
    UiPreferences,
    resolve_args,
    save_ui_preferences,
    save_user_config,
    ui_preferences,
)
from speakbridge.app.diagnostic_log import LogCategory
from speakbridge.app.logging_setup import setup_app_logger
from speakbridge.app.runtime import _drain_update_bus, begin_session, end_session, run_console
from speakbridge.app.services import SessionServices, build_session_services, session_config_from_args
from speakbridge.app.state import SessionState
from speakbridge.audio.devices import default_device_id, enumerate_audio_devices, format_device_list
from speakbridge.audio.resource import AudioResource
from speakbridge.catalog.loader import load_language_catalog, load_voice_catalog
from speakbridge.catalog.resolver import (
    default_voice,
    language_display_name,
    language_options,
    voices_for_language,
)
from speakbridge.ui.bridge import UiUpdate, UpdateBus, UpdateKind


def _print_languages() -> None:
    for opt in language_options(load_language_catalog()):
        print(f"{opt.code:<10} {opt.label}")


def _print_voices(target_language: str) -> None:
    voices = voices_for_language(target_language, load_voice_catalog())
    if not voices:
        print(f"No voices available for {target_language}")
        return
    for v in voices:
        print(f"{v.short_name:<36} {v.name:<16} {v.gender:<7} {v.locale}")


def _update_ui_preferences(args: argparse.Namespace, prefs: UiPreferences, **changes: object) -> UiPreferences:
    """Normalize, persist and mirror onto `args` a change to the window preferences."""
    updated = ui_preferences({**asdict(prefs), **changes})
    save_ui_preferences(updated, config_path=args.config)
    args.countdown_sec = updated.countdown_sec
    args.logs_expanded = updated.logs_expanded
    return updated


def main(argv: list[str] | None = None) -> int:
    args = resolve_args(argv)
    logger, _log_dir, log_path = setup_app_logger(debug=bool(args.debug))
    logger.info("app_start", extra={"config_path": str(getattr(args, "config", "")), "argv": argv or []})

    if args.list_devices:
        print(format_device_list(enumerate_audio_devices(logger=logger)))
        return 0
    if args.list_languages:
        _print_languages()
        return 0
    if args.list_voices:
        _print_voices(str(args.target_language))
        return 0

    bus = UpdateBus(maxsize=max(1, int(args.queue_maxsize)))
    services = build_session_services(args, bus, logger=logger)

    if args.console:
        print(f"Logs: {log_path}")
        return run_console(
            services,
            session_config_from_args(args, services.voices),
            bus,
            countdown_sec=ui_preferences(vars(args)).countdown_sec,
            poll_sec=max(10, int(args.poll_ms)) / 1000.0,
            max_updates_per_tick=max(1, int(args.max_updates_per_tick)),
            print_transcript=bool(args.print_console),
            logger=logger,
        )
    return _run_gui(args, services, bus, logger, log_path)


def _run_gui(
    args: argparse.Namespace,
    services: SessionServices,
    bus: UpdateBus,
    logger: logging.Logger,
    log_path: Path,
) -> int:
    from PyQt6 import QtCore, QtWidgets
    from speakbridge.app.main_window_qt import MainWindow

    app = QtWidgets.QApplication(sys.argv)
    window = MainWindow()
    window.set_log_capacity(int(args.log_capacity))
    prefs = ui_preferences(vars(args))
    window.set_logs_expanded(prefs.logs_expanded)
    window.set_countdown_seconds(prefs.countdown_sec)

    latest_audio: Optional[AudioResource] = None

    def _on_preferences_changed(**changes: object) -> None:
        nonlocal prefs
        prefs = _update_ui_preferences(args, prefs, **changes)
        logger.info("ui_preferences_saved", extra=asdict(prefs))

    def _persist(key: str, value: object) -> None:
        setattr(args, key, value)
        save_user_config({key: value}, config_path=args.config)
        logger.info("settings_saved", extra={"key": key, "config_path": str(getattr(args, "config", ""))})

    def _names() -> tuple[str, str]:
        return (
            language_display_name(str(args.source_language), services.languages),
            language_display_name(str(args.target_language), services.languages),
        )

    def _refresh_voices() -> None:
        voices = voices_for_language(str(args.target_language), services.voices)
        if str(args.voice or "") not in {v.short_name for v in voices}:
            args.voice = default_voice(voices)
        window.set_voices(voices, str(args.voice or ""))

    def _apply_update(update: UiUpdate) -> None:
        nonlocal latest_audio
        kind, payload = update.kind, update.payload
        if kind == UpdateKind.STATE:
            window.set_listening(payload in (SessionState.STARTING, SessionState.ACTIVE), *_names())
            if payload == SessionState.IDLE:
                latest_audio = None
                window.set_latest_audio(None)
        elif kind == UpdateKind.TRANSCRIPT:
            window.set_transcript(str(payload or ""))
        elif kind == UpdateKind.TRANSLATION:
            window.set_translation(str(payload or ""))
        elif kind == UpdateKind.ERROR:
            window.set_error(str(payload or ""))
        elif kind == UpdateKind.AUDIO:
            latest_audio = payload
            window.set_latest_audio(payload)
        elif kind == UpdateKind.LOG:
            window.add_log_entry(payload)
        elif kind == UpdateKind.LOG_CLEARED:
            window.clear_log_entries()
        elif kind == UpdateKind.COUNTDOWN:
            window.set_countdown(payload)

    class _WindowSink:
        def apply_update(self, update: UiUpdate) -> None:
            _apply_update(update)

    sink = _WindowSink()

    def _on_start() -> None:
        begin_session(
            services,
            session_config_from_args(args, services.voices),
            bus,
            prefs.countdown_sec,
            logger=logger,
        )

    def _on_stop() -> None:
        end_session(services, bus)

    def _on_source_changed(code: str) -> None:
        _persist("source_language", code)
        services.log.append(LogCategory.SETTINGS, f"Source language: {code}")

    def _on_target_changed(code: str) -> None:
        _persist("target_language", code)
        _refresh_voices()
        _persist("voice", str(args.voice or ""))
        services.log.append(LogCategory.SETTINGS, f"Target language: {code}", {"voice": args.voice})

    def _on_voice_changed(voice: str) -> None:
        _persist("voice", voice)
        services.log.append(LogCategory.SETTINGS, f"Voice: {voice}")

    def _on_input_changed(device: str) -> None:
        _persist("input_device", device or None)
        services.log.append(LogCategory.SETTINGS, f"Microphone: {device or 'default'}")

    def _on_output_changed(device: str) -> None:
        _persist("output_device", device or None)
        services.player.device = device or None
        services.log.append(LogCategory.SETTINGS, f"Speaker: {device or 'default'}")

    def _on_save_audio() -> None:
        if latest_audio is None or latest_audio.released:
            return
        target = window.choose_save_path()
        if not target:
            return
        try:
            saved = latest_audio.save_as(target)
        except OSError as e:
            logger.exception("save_audio_failed", extra={"target": target})
            window.set_error(f"Unable to save audio: {e}")
            return
        services.log.append(LogCategory.STATUS, f"Audio saved to {saved}")

    window.set_language_options(
        language_options(services.languages),
        str(args.source_language),
        str(args.target_language),
    )
    _refresh_voices()

    devices = enumerate_audio_devices(logger=logger, log=services.log)
    if not args.input_device:
        args.input_device = default_device_id(devices.inputs)
    if not args.output_device:
        args.output_device = default_device_id(devices.outputs)
        services.player.device = args.output_device
    window.set_devices(devices.inputs, devices.outputs, args.input_device, args.output_device)

    window.start_requested.connect(_on_start)
    window.stop_requested.connect(_on_stop)
    window.clear_logs_requested.connect(services.log.clear)
    window.save_audio_requested.connect(_on_save_audio)
    window.logs_toggled.connect(lambda expanded: _on_preferences_changed(logs_expanded=bool(expanded)))
    window.countdown_changed.connect(lambda seconds: _on_preferences_changed(countdown_sec=int(seconds)))
    window.source_language_changed.connect(_on_source_changed)
    window.target_language_changed.connect(_on_target_changed)
    window.voice_changed.connect(_on_voice_changed)
    window.input_device_changed.connect(_on_input_changed)
    window.output_device_changed.connect(_on_output_changed)

    timer = QtCore.QTimer()
    timer.timeout.connect(lambda: _drain_update_bus(bus, sink, max(1, int(args.max_updates_per_tick))))
    timer.start(max(10, int(args.poll_ms)))

    def _on_about_to_quit() -> None:
        logger.info("app_quit")
        end_session(services, bus)

    app.aboutToQuit.connect(_on_about_to_quit)
    signal.signal(signal.SIGINT, lambda *_: app.quit())

    window.set_listening(False, *_names())
    window.show()
    services.log.append(LogCategory.STATUS, "Application ready")

    print("SpeakBridge ready. Pick languages and a voice, then press Start.")
    print(f"Logs: {log_path}")
    return app.exec()


if __name__ == "__main__":
    raise SystemExit(main())
