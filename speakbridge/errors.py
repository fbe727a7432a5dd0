"""Exception hierarchy for translation sessions."""


class SpeakBridgeError(Exception):
    """Base exception for SpeakBridge errors."""

    pass


class ConfigError(SpeakBridgeError):
    """Credentials or voice missing when a session is started."""

    pass


class DeviceError(SpeakBridgeError):
    """Audio device enumeration or permission failure."""

    pass


class RecognitionError(SpeakBridgeError):
    """The engine could not open or start recognition."""

    pass


class SynthesisError(SpeakBridgeError):
    """Synthesis of a single utterance failed. The session keeps running."""

    pass


class CancellationError(SpeakBridgeError):
    """The engine canceled recognition. Ends the session."""

    def __init__(self, reason: str | None = None) -> None:
        self.reason = reason
        super().__init__(reason or "Translation canceled.")
