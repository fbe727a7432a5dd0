from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, Optional

from speakbridge.contracts import Credentials, RecognitionEvent, SynthesisOutcome

EventSink = Callable[[RecognitionEvent], None]


class RecognitionHandle(ABC):
    @abstractmethod
    def close(self) -> None: ...


class SynthesisHandle(ABC):
    @abstractmethod
    def synthesize(self, text: str) -> SynthesisOutcome:
        """Return audio or a canceled outcome; raise on engine errors."""
        raise NotImplementedError

    @abstractmethod
    def close(self) -> None: ...


class SpeechEngine(ABC):
    @property
    @abstractmethod
    def name(self) -> str: ...

    @abstractmethod
    def open_recognition(
        self,
        credentials: Credentials,
        *,
        source_locale: str,
        target_language: str,
        input_device: Optional[str],
        on_event: EventSink,
    ) -> RecognitionHandle:
        """Start continuous recognition; events may arrive on any thread."""
        raise NotImplementedError

    @abstractmethod
    def open_synthesizer(self, credentials: Credentials, voice: str) -> SynthesisHandle: ...
