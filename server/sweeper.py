# server/sweeper.py
from __future__ import annotations

import threading
import traceback
from typing import Optional

from server.session_registry import SessionRegistry


class IdleSweeper:
    """
    Background worker that periodically evicts idle sessions (and their files).

    Threading model:
    - `start()` spawns a daemon thread that runs until `stop()` is requested.
    - Uses Event.wait(timeout=...) so stop requests interrupt the sleep promptly.
    - A failing sweep is reported and retried on the next tick.
    """

    def __init__(self, *, sessions: SessionRegistry, interval_seconds: float) -> None:
        self._sessions = sessions
        self._interval = max(0.05, float(interval_seconds))

        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        """Start the sweeper thread if it is not already running (idempotent)."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="imagecropper-sweeper", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Signal the thread to stop (non-blocking)."""
        self._stop.set()

    def join(self, timeout: float) -> None:
        if self._thread is not None:
            self._thread.join(timeout=timeout)

    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def sweep_once(self) -> list[str]:
        evicted = self._sessions.evict_idle()
        if evicted:
            print("[sweeper]", "evicted idle sessions:", len(evicted), flush=True)
        return evicted

    def _run(self) -> None:
        while not self._stop.wait(timeout=self._interval):
            try:
                self.sweep_once()
            except Exception:
                traceback.print_exc()
