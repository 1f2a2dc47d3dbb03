# server/session_registry.py
"""Per-client session bookkeeping: which files a session owns and when it was last active.

The registry is injected into the HTTP routes and the idle sweeper instead of living in
module globals, so both can be tested with a fake clock and a recording release hook.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import threading
import time
from typing import Callable, Dict, List


@dataclass
class _Session:
    last_activity: float
    files: List[str] = field(default_factory=list)


class SessionRegistry:
    """
    Thread-safe map of session id -> (owned filenames, last activity).

    Lifecycle operations:
    - touch(): create on first sight, refresh activity afterwards.
    - attach(): record a new upload, releasing the session's previous files.
    - forget_file(): drop a filename that was retired elsewhere (e.g. after a crop).
    - evict_idle(): release files of sessions idle for longer than `idle_seconds`.
    - evict_all(): release everything (shutdown).

    File deletion is delegated to `release_file`, called outside the lock. A failing
    release is reported and does not stop the remaining releases. A hook that returns
    False (nothing was deleted) is logged as "already removed".
    """

    def __init__(
        self,
        *,
        idle_seconds: float,
        release_file: Callable[[str], object],
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._idle_seconds = float(idle_seconds)
        self._release_file = release_file
        self._clock = clock
        self._lock = threading.Lock()
        self._sessions: Dict[str, _Session] = {}

    @property
    def idle_seconds(self) -> float:
        return self._idle_seconds

    def touch(self, session_id: str) -> None:
        now = self._clock()
        with self._lock:
            s = self._sessions.get(session_id)
            if s is None:
                self._sessions[session_id] = _Session(last_activity=now)
            else:
                s.last_activity = now

    def attach(self, session_id: str, filename: str) -> List[str]:
        """
        Associate a freshly uploaded file with a session.

        Any file the session held before is released (one image per session).

        Returns:
            list[str]: the filenames that were replaced.
        """
        now = self._clock()
        with self._lock:
            s = self._sessions.get(session_id)
            if s is None:
                s = _Session(last_activity=now)
                self._sessions[session_id] = s
            replaced = [f for f in s.files if f != filename]
            s.files = [filename]
            s.last_activity = now

        self._release(replaced, reason="replaced")
        return replaced

    def owner_of(self, filename: str) -> str | None:
        with self._lock:
            for sid, s in self._sessions.items():
                if filename in s.files:
                    return sid
        return None

    def forget_file(self, filename: str) -> None:
        """Stop tracking a filename without releasing it (the caller already did)."""
        with self._lock:
            for s in self._sessions.values():
                if filename in s.files:
                    s.files.remove(filename)

    def evict_idle(self, now: float | None = None) -> List[str]:
        """
        Evict sessions whose last activity is older than the idle threshold.

        Returns:
            list[str]: evicted session ids.
        """
        t = self._clock() if now is None else float(now)
        with self._lock:
            stale = [sid for sid, s in self._sessions.items() if t - s.last_activity > self._idle_seconds]
            files: List[str] = []
            for sid in stale:
                files.extend(self._sessions.pop(sid).files)

        self._release(files, reason="inactive")
        return stale

    def evict_all(self) -> int:
        """Release every tracked file and forget all sessions. Returns the session count."""
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        files = [f for s in sessions for f in s.files]
        self._release(files, reason="shutdown")
        return len(sessions)

    def session_count(self) -> int:
        with self._lock:
            return len(self._sessions)

    def _release(self, filenames: List[str], *, reason: str) -> None:
        for filename in filenames:
            try:
                removed = self._release_file(filename)
            except OSError as e:
                print("[cleanup]", f"failed to delete {reason} file:", filename, e, flush=True)
                continue
            if removed is False:
                print("[cleanup]", f"{reason} file already removed:", filename, flush=True)
            else:
                print("[cleanup]", f"removed {reason} file:", filename, flush=True)
