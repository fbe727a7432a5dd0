from __future__ import annotations

import logging
import threading
import time
import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Deque, List, Mapping, Optional

DEFAULT_CAPACITY = 100


class LogCategory(str, Enum):
    STATUS = "status"
    SPEECH = "speech"
    TRANSLATION = "translation"
    SETTINGS = "settings"
    ERROR = "error"


@dataclass(frozen=True)
class LogEntry:
    id: str
    timestamp: str
    category: LogCategory
    message: str
    metadata: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))


def _new_entry_id() -> str:
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"


class DiagnosticLog:
    """
    Bounded newest-first event log shown in the UI.
    Entries are also forwarded to the app logger so they end up in the log file.
    """

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        *,
        logger: logging.Logger | None = None,
        on_append: Callable[[LogEntry], None] | None = None,
        on_clear: Callable[[], None] | None = None,
    ) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be > 0")
        self.capacity = int(capacity)
        self.logger = logger
        self.on_append = on_append
        self.on_clear = on_clear
        self._lock = threading.Lock()
        # appendleft on a bounded deque drops from the right, i.e. the oldest.
        self._entries: Deque[LogEntry] = deque(maxlen=self.capacity)

    def append(
        self,
        category: LogCategory | str,
        message: str,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> LogEntry:
        entry = LogEntry(
            id=_new_entry_id(),
            timestamp=datetime.now(timezone.utc).isoformat(),
            category=LogCategory(category),
            message=str(message),
            metadata=MappingProxyType(dict(metadata or {})),
        )
        with self._lock:
            self._entries.appendleft(entry)

        if self.logger is not None:
            level = logging.ERROR if entry.category == LogCategory.ERROR else logging.INFO
            self.logger.log(
                level,
                entry.message,
                extra={
                    "event": "diagnostic",
                    "category": entry.category.value,
                    "entry_id": entry.id,
                    "metadata": dict(entry.metadata),
                },
            )
        if self.on_append is not None:
            self.on_append(entry)
        return entry

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
        if self.on_clear is not None:
            self.on_clear()

    def entries(self) -> List[LogEntry]:
        with self._lock:
            return list(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
