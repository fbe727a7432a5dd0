from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Optional


class RecognitionEventKind(str, Enum):
    INTERIM = "interim"
    FINAL = "final"
    CANCELED = "canceled"
    ENDED = "ended"


@dataclass(frozen=True)
class RecognitionEvent:
    """
    One engine callback, as a message for the session event loop.
    translations/translated only matter for FINAL, reason only for CANCELED.
    """
    kind: RecognitionEventKind
    text: str = ""
    translations: Mapping[str, str] = field(default_factory=dict)
    translated: bool = False  # engine reported a completed translation
    reason: Optional[str] = None

    @classmethod
    def interim(cls, text: str) -> "RecognitionEvent":
        return cls(kind=RecognitionEventKind.INTERIM, text=text)

    @classmethod
    def final(
        cls,
        text: str,
        translations: Mapping[str, str],
        translated: bool = True,
    ) -> "RecognitionEvent":
        return cls(
            kind=RecognitionEventKind.FINAL,
            text=text,
            translations=dict(translations),
            translated=translated,
        )

    @classmethod
    def canceled(cls, reason: Optional[str] = None) -> "RecognitionEvent":
        return cls(kind=RecognitionEventKind.CANCELED, reason=reason)

    @classmethod
    def ended(cls) -> "RecognitionEvent":
        return cls(kind=RecognitionEventKind.ENDED)


@dataclass(frozen=True)
class SynthesisRequest:
    text: str
    target_language: str


@dataclass(frozen=True)
class SynthesisOutcome:
    audio: Optional[bytes] = None
    canceled_reason: Optional[str] = None

    @property
    def canceled(self) -> bool:
        return self.audio is None


@dataclass(frozen=True)
class Credentials:
    api_key: str
    region: str


@dataclass(frozen=True)
class SessionConfig:
    source_language: str
    target_language: str
    voice: str
    input_device: Optional[str] = None


@dataclass(frozen=True)
class Voice:
    short_name: str
    name: str
    gender: str
    locale: str = ""


@dataclass(frozen=True)
class Language:
    code: str
    name: str
    native_name: str


@dataclass(frozen=True)
class LanguageOption:
    code: str
    label: str
