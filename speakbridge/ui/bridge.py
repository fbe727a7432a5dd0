from __future__ import annotations

import queue
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class UpdateKind(str, Enum):
    STATE = "state"
    TRANSCRIPT = "transcript"
    TRANSLATION = "translation"
    ERROR = "error"
    AUDIO = "audio"
    LOG = "log"
    LOG_CLEARED = "log_cleared"
    COUNTDOWN = "countdown"


@dataclass(frozen=True)
class UiUpdate:
    kind: UpdateKind
    payload: Any = None


class UpdateBus:
    """
    Thread-safe handoff from session/engine threads -> UI thread.
    Workers push UiUpdate. UI polls (non-blocking).
    """
    def __init__(self, maxsize: int = 100):
        self.q: "queue.Queue[UiUpdate]" = queue.Queue(maxsize=maxsize)

    def push(self, update: UiUpdate) -> None:
        try:
            self.q.put_nowait(update)
        except queue.Full:
            # drop oldest to keep UI responsive
            try:
                _ = self.q.get_nowait()
            except queue.Empty:
                return
            try:
                self.q.put_nowait(update)
            except queue.Full:
                return

    def post(self, kind: UpdateKind, payload: Any = None) -> None:
        self.push(UiUpdate(kind=kind, payload=payload))

    def pop(self) -> Optional[UiUpdate]:
        try:
            return self.q.get_nowait()
        except queue.Empty:
            return None
