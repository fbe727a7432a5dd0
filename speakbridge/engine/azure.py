from __future__ import annotations

import logging
from typing import Any, Optional

from speakbridge.contracts import Credentials, RecognitionEvent, SynthesisOutcome
from speakbridge.engine.base import EventSink, RecognitionHandle, SpeechEngine, SynthesisHandle
from speakbridge.errors import RecognitionError, SynthesisError


def _translations_of(result: Any) -> dict[str, str]:
    raw = getattr(result, "translations", None) or {}
    return {str(k): str(v) for k, v in dict(raw).items()}


def _cancellation_detail(evt: Any) -> Optional[str]:
    detail = getattr(evt, "error_details", None)
    if not detail:
        details = getattr(evt, "cancellation_details", None)
        detail = getattr(details, "error_details", None)
    return str(detail) if detail else None


class AzureRecognitionHandle(RecognitionHandle):
    def __init__(self, recognizer: Any, logger: logging.Logger | None = None) -> None:
        self._recognizer = recognizer
        self.logger = logger

    def close(self) -> None:
        recognizer, self._recognizer = self._recognizer, None
        if recognizer is None:
            return
        for signal in (
            recognizer.recognizing,
            recognizer.recognized,
            recognizer.canceled,
            recognizer.session_stopped,
        ):
            signal.disconnect_all()
        # Fire-and-forget: the SDK finishes stopping on its own thread.
        recognizer.stop_continuous_recognition_async()


class AzureSynthesisHandle(SynthesisHandle):
    def __init__(self, synthesizer: Any) -> None:
        self._synthesizer = synthesizer

    def synthesize(self, text: str) -> SynthesisOutcome:
        import azure.cognitiveservices.speech as speechsdk

        synthesizer = self._synthesizer
        if synthesizer is None:
            return SynthesisOutcome(canceled_reason="synthesizer closed")

        result = synthesizer.speak_text_async(text).get()
        if result.reason == speechsdk.ResultReason.SynthesizingAudioCompleted:
            return SynthesisOutcome(audio=bytes(result.audio_data))
        if result.reason == speechsdk.ResultReason.Canceled:
            details = result.cancellation_details
            if details.reason == speechsdk.CancellationReason.Error:
                raise SynthesisError(details.error_details or "Unable to synthesize the translated audio.")
            return SynthesisOutcome(canceled_reason=details.error_details or str(details.reason))
        raise SynthesisError(f"Unexpected synthesis result: {result.reason}")

    def close(self) -> None:
        synthesizer, self._synthesizer = self._synthesizer, None
        if synthesizer is not None:
            synthesizer.stop_speaking_async()


class AzureSpeechEngine(SpeechEngine):
    """Azure Speech translation recognizer + neural voice synthesizer."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.logger = logger

    @property
    def name(self) -> str:
        return "azure"

    def open_recognition(
        self,
        credentials: Credentials,
        *,
        source_locale: str,
        target_language: str,
        input_device: Optional[str],
        on_event: EventSink,
    ) -> RecognitionHandle:
        try:
            import azure.cognitiveservices.speech as speechsdk
        except ImportError as e:
            raise RecognitionError(
                "azure-cognitiveservices-speech is not installed. "
                "Install with: python -m pip install azure-cognitiveservices-speech"
            ) from e

        try:
            cfg = speechsdk.translation.SpeechTranslationConfig(
                subscription=credentials.api_key,
                region=credentials.region,
            )
            cfg.speech_recognition_language = source_locale
            cfg.add_target_language(target_language)
            if input_device:
                audio_cfg = speechsdk.audio.AudioConfig(device_name=input_device)
            else:
                audio_cfg = speechsdk.audio.AudioConfig(use_default_microphone=True)
            recognizer = speechsdk.translation.TranslationRecognizer(
                translation_config=cfg,
                audio_config=audio_cfg,
            )
        except Exception as e:
            raise RecognitionError("Unable to start translation. Check mic permissions.") from e

        translated = speechsdk.ResultReason.TranslatedSpeech
        recognizer.recognizing.connect(
            lambda evt: on_event(RecognitionEvent.interim(evt.result.text or ""))
        )
        recognizer.recognized.connect(
            lambda evt: on_event(
                RecognitionEvent.final(
                    evt.result.text or "",
                    _translations_of(evt.result),
                    translated=evt.result.reason == translated,
                )
            )
        )
        recognizer.canceled.connect(
            lambda evt: on_event(RecognitionEvent.canceled(_cancellation_detail(evt)))
        )
        recognizer.session_stopped.connect(lambda evt: on_event(RecognitionEvent.ended()))

        handle = AzureRecognitionHandle(recognizer, logger=self.logger)
        try:
            # Only waits for connection setup; recognition itself keeps running.
            recognizer.start_continuous_recognition_async().get()
        except Exception as e:
            handle.close()
            raise RecognitionError("Unable to start translation. Check mic permissions.") from e

        if self.logger is not None:
            self.logger.info(
                "azure_recognition_started",
                extra={"locale": source_locale, "target": target_language, "region": credentials.region},
            )
        return handle

    def open_synthesizer(self, credentials: Credentials, voice: str) -> SynthesisHandle:
        import azure.cognitiveservices.speech as speechsdk

        cfg = speechsdk.SpeechConfig(subscription=credentials.api_key, region=credentials.region)
        cfg.speech_synthesis_voice_name = voice
        cfg.set_speech_synthesis_output_format(
            speechsdk.SpeechSynthesisOutputFormat.Riff16Khz16BitMonoPcm
        )
        # No audio output: clips are played by our own player.
        synthesizer = speechsdk.SpeechSynthesizer(speech_config=cfg, audio_config=None)
        return AzureSynthesisHandle(synthesizer)
