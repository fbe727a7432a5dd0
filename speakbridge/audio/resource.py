from __future__ import annotations

import os
import tempfile
import threading
from pathlib import Path


class AudioResource:
    """
    One synthesized clip: the raw bytes plus a temp-file handle that players
    and "save as" can point at. release() revokes the handle (deletes the file).
    """

    def __init__(self, data: bytes, *, suffix: str = ".wav") -> None:
        self.data = bytes(data)
        fd, tmp_path = tempfile.mkstemp(suffix=suffix, prefix="speakbridge_clip_")
        with os.fdopen(fd, "wb") as f:
            f.write(self.data)
        self._path = Path(tmp_path)
        self._lock = threading.Lock()
        self._released = False

    @property
    def path(self) -> Path:
        return self._path

    @property
    def url(self) -> str:
        return self._path.as_uri()

    @property
    def released(self) -> bool:
        with self._lock:
            return self._released

    def release(self) -> bool:
        """Revoke the handle. Returns False if it was already released."""
        with self._lock:
            if self._released:
                return False
            self._released = True
        try:
            os.remove(self._path)
        except OSError:
            pass
        return True

    def save_as(self, target: str | Path) -> Path:
        out = Path(target)
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_bytes(self.data)
        return out

    def __repr__(self) -> str:
        state = "released" if self.released else "live"
        return f"AudioResource({self._path.name}, {len(self.data)} bytes, {state})"
