from __future__ import annotations

import logging
import queue
import threading
import time
from typing import Callable, Optional

from speakbridge.app.diagnostic_log import DiagnosticLog, LogCategory
from speakbridge.app.logging_setup import log_event
from speakbridge.audio.resource import AudioResource
from speakbridge.contracts import SynthesisRequest
from speakbridge.engine.base import SynthesisHandle
from speakbridge.errors import SynthesisError


class SynthesisQueue:
    """
    Turns translated lines into audio, one request at a time in arrival order.

    Holds the single current AudioResource: a new clip is only created after
    the previous one has been released, so at most one is ever live.
    """

    def __init__(
        self,
        *,
        synthesizer: SynthesisHandle,
        on_audio: Callable[[AudioResource], None] | None = None,
        on_error: Callable[[SynthesisError], None] | None = None,
        log: DiagnosticLog | None = None,
        logger: logging.Logger | None = None,
        maxsize: int = 64,
    ) -> None:
        self.synthesizer = synthesizer
        self.on_audio = on_audio
        self.on_error = on_error
        self.log = log
        self.logger = logger
        self._jobs: "queue.Queue[Optional[SynthesisRequest]]" = queue.Queue(maxsize=maxsize)
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._pending = 0
        self._closed = False
        self._current: Optional[AudioResource] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def current(self) -> Optional[AudioResource]:
        with self._lock:
            return self._current

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    def start(self) -> None:
        with self._lock:
            if self._thread is not None or self._closed:
                return
            self._thread = threading.Thread(
                target=self._worker_loop,
                name="speakbridge-synthesis-worker",
                daemon=True,
            )
            self._thread.start()

    def enqueue(self, request: SynthesisRequest) -> bool:
        with self._lock:
            if self._closed:
                return False
            self._pending += 1
        try:
            self._jobs.put_nowait(request)
        except queue.Full:
            with self._lock:
                self._pending -= 1
                self._idle.notify_all()
            log_event(self.logger, logging.WARNING, "synthesis_queue_full", chars=len(request.text))
            return False
        log_event(
            self.logger,
            logging.INFO,
            "synthesis_enqueued",
            chars=len(request.text),
            queue_depth=self._jobs.qsize(),
        )
        return True

    def wait_until_idle(self, timeout: float | None = None) -> bool:
        with self._idle:
            return self._idle.wait_for(lambda: self._pending == 0 or self._closed, timeout=timeout)

    def close(self) -> None:
        """Stop accepting work and release the current clip. Does not wait for the worker."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            released, self._current = self._current, None
            self._idle.notify_all()
        if released is not None:
            released.release()
        try:
            self._jobs.put_nowait(None)
        except queue.Full:
            pass  # the worker checks the closed flag after every job
        log_event(self.logger, logging.INFO, "synthesis_queue_closed", released=released is not None)

    def join(self, timeout: float | None = None) -> None:
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout)

    def _worker_loop(self) -> None:
        while True:
            job = self._jobs.get()
            if job is None or self.closed:
                return
            try:
                self._process(job)
            except Exception as e:
                # One bad job must not take the worker down with it.
                if self.logger is not None:
                    self.logger.exception("synthesis_job_failed", extra={"chars": len(job.text)})
                if self.log is not None:
                    self.log.append(LogCategory.ERROR, f"Audio handling failed: {e}")
            finally:
                with self._lock:
                    self._pending -= 1
                    self._idle.notify_all()

    def _process(self, request: SynthesisRequest) -> None:
        t0 = time.perf_counter()
        try:
            outcome = self.synthesizer.synthesize(request.text)
        except Exception as e:
            err = e if isinstance(e, SynthesisError) else SynthesisError(str(e) or type(e).__name__)
            if self.closed:
                return
            log_event(self.logger, logging.ERROR, "synthesis_failed", detail=str(err), chars=len(request.text))
            if self.log is not None:
                self.log.append(LogCategory.ERROR, f"Unable to synthesize the translated audio: {err}")
            if self.on_error is not None:
                self.on_error(err)
            return

        dur_ms = (time.perf_counter() - t0) * 1000.0
        if outcome.canceled:
            log_event(
                self.logger,
                logging.WARNING,
                "synthesis_canceled",
                reason=outcome.canceled_reason,
                ms=round(dur_ms, 2),
            )
            if self.log is not None and not self.closed:
                self.log.append(
                    LogCategory.ERROR,
                    "Text synthesized but playback was canceled.",
                    {"reason": outcome.canceled_reason},
                )
            return

        with self._lock:
            if self._closed:
                return
            previous, self._current = self._current, None
            if previous is not None:
                previous.release()
            resource = AudioResource(outcome.audio or b"")
            self._current = resource

        log_event(
            self.logger,
            logging.INFO,
            "synthesis_done",
            chars=len(request.text),
            bytes=len(resource.data),
            ms=round(dur_ms, 2),
            superseded=previous is not None,
        )
        if self.log is not None:
            self.log.append(
                LogCategory.TRANSLATION,
                "Audio generated",
                {"bytes": len(resource.data), "language": request.target_language},
            )
        if self.on_audio is not None and not self.closed:
            self.on_audio(resource)
