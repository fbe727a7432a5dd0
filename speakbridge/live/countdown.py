from __future__ import annotations

import threading
from typing import Callable, Optional


class CountdownGate:
    """
    Optional delay before a session starts.

    One timer is owned at a time. Ticks and the fire callback run while the
    gate lock is held, so once cancel() returns neither can run for that
    countdown. Callbacks may call cancel()/begin() from inside (re-entrant lock).
    """

    def __init__(
        self,
        *,
        on_tick: Callable[[int], None] | None = None,
        interval: float = 1.0,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be > 0")
        self.on_tick = on_tick
        self.interval = float(interval)
        self._lock = threading.RLock()
        self._token: Optional[object] = None
        self._timer: Optional[threading.Timer] = None
        self._remaining = 0
        self._on_fire: Optional[Callable[[], None]] = None

    @property
    def counting(self) -> bool:
        with self._lock:
            return self._token is not None

    @property
    def remaining(self) -> int:
        with self._lock:
            return self._remaining if self._token is not None else 0

    def begin(self, duration_sec: int, on_fire: Callable[[], None]) -> None:
        with self._lock:
            self.cancel()
            duration = int(duration_sec)
            if duration <= 0:
                on_fire()
                return
            token = object()
            self._token = token
            self._remaining = duration
            self._on_fire = on_fire
            self._emit_tick(duration)
            if self._token is token:
                self._schedule(token)

    def cancel(self) -> bool:
        with self._lock:
            if self._token is None:
                return False
            self._reset()
            return True

    def _schedule(self, token: object) -> None:
        timer = threading.Timer(self.interval, self._tick, args=(token,))
        timer.daemon = True
        self._timer = timer
        timer.start()

    def _tick(self, token: object) -> None:
        with self._lock:
            if self._token is not token:
                return
            self._remaining -= 1
            if self._remaining > 0:
                self._emit_tick(self._remaining)
                if self._token is token:
                    self._schedule(token)
                return
            on_fire = self._on_fire
            self._reset()
            if on_fire is not None:
                on_fire()

    def _emit_tick(self, remaining: int) -> None:
        if self.on_tick is None:
            return
        try:
            self.on_tick(remaining)
        except Exception:
            # A failed observer ends the countdown instead of wedging it.
            self._reset()
            raise

    def _reset(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        self._timer = None
        self._token = None
        self._remaining = 0
        self._on_fire = None
