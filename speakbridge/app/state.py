from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class SessionState(str, Enum):
    IDLE = "idle"
    STARTING = "starting"
    ACTIVE = "active"
    STOPPING = "stopping"


@dataclass
class SessionStateTracker:
    state: SessionState = SessionState.IDLE
    last_error: str | None = None

    @property
    def listening(self) -> bool:
        return self.state in (SessionState.STARTING, SessionState.ACTIVE)

    def set_starting(self) -> None:
        self.state = SessionState.STARTING
        self.last_error = None

    def set_active(self) -> None:
        if self.state == SessionState.STARTING:
            self.state = SessionState.ACTIVE

    def set_stopping(self) -> None:
        if self.state != SessionState.IDLE:
            self.state = SessionState.STOPPING

    def set_idle(self) -> None:
        self.state = SessionState.IDLE

    def record_error(self, detail: str) -> None:
        self.last_error = detail
