from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from speakbridge.app.config import resolve_credentials
from speakbridge.app.diagnostic_log import DiagnosticLog, LogCategory
from speakbridge.app.state import SessionState
from speakbridge.audio.playback import SoundDevicePlayer
from speakbridge.audio.resource import AudioResource
from speakbridge.catalog.loader import LanguageCatalog, VoiceCatalog, load_language_catalog, load_voice_catalog
from speakbridge.catalog.resolver import default_voice, voices_for_language
from speakbridge.contracts import SessionConfig
from speakbridge.engine.factory import get_engine
from speakbridge.live.countdown import CountdownGate
from speakbridge.live.session import SessionController
from speakbridge.ui.bridge import UpdateBus, UpdateKind


@dataclass(frozen=True)
class SessionServices:
    languages: LanguageCatalog
    voices: VoiceCatalog
    log: DiagnosticLog
    player: SoundDevicePlayer
    controller: SessionController
    countdown: CountdownGate


def session_config_from_args(args: Any, voices: VoiceCatalog) -> SessionConfig:
    voice = str(args.voice or "") or default_voice(voices_for_language(str(args.target_language), voices))
    return SessionConfig(
        source_language=str(args.source_language),
        target_language=str(args.target_language),
        voice=voice,
        input_device=args.input_device or None,
    )


def build_session_services(
    args: Any,
    bus: UpdateBus,
    logger: logging.Logger | None = None,
) -> SessionServices:
    languages = load_language_catalog()
    voices = load_voice_catalog()
    log = DiagnosticLog(
        capacity=max(1, int(args.log_capacity)),
        logger=logger,
        on_append=lambda entry: bus.post(UpdateKind.LOG, entry),
        on_clear=lambda: bus.post(UpdateKind.LOG_CLEARED),
    )
    player = SoundDevicePlayer(device=args.output_device or None, logger=logger)

    def _on_audio(resource: AudioResource) -> None:
        bus.post(UpdateKind.AUDIO, resource)
        try:
            player.play(resource)
        except Exception as e:
            if logger is not None:
                logger.exception("playback_failed", extra={"clip": resource.path.name})
            log.append(LogCategory.ERROR, f"Audio playback error: {e}")

    def _on_state(state: SessionState) -> None:
        bus.post(UpdateKind.STATE, state)
        if state != SessionState.IDLE:
            return
        try:
            player.stop()
        except Exception:
            if logger is not None:
                logger.exception("playback_stop_failed")

    controller = SessionController(
        engine=get_engine(str(args.engine), logger=logger),
        credentials=lambda: resolve_credentials(region_default=str(args.speech_region or "")),
        voices=voices,
        log=log,
        logger=logger,
        on_transcript=lambda text: bus.post(UpdateKind.TRANSCRIPT, text),
        on_translation=lambda text: bus.post(UpdateKind.TRANSLATION, text),
        on_audio=_on_audio,
        on_error=lambda text: bus.post(UpdateKind.ERROR, text),
        on_state=_on_state,
    )
    countdown = CountdownGate(on_tick=lambda remaining: bus.post(UpdateKind.COUNTDOWN, remaining))
    return SessionServices(
        languages=languages,
        voices=voices,
        log=log,
        player=player,
        controller=controller,
        countdown=countdown,
    )
