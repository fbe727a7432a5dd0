from __future__ import annotations

import logging
import os

from .azure import AzureSpeechEngine
from .base import SpeechEngine


def get_engine(provider: str | None = None, logger: logging.Logger | None = None) -> SpeechEngine:
    provider = (provider or os.getenv("SPEAKBRIDGE_ENGINE", "azure")).lower().strip()

    if provider == "azure":
        return AzureSpeechEngine(logger=logger)

    raise ValueError(f"Unknown speech engine: {provider}")
