# ui/crop/ui_logic.py
from __future__ import annotations

import threading
from typing import Callable, Optional

from PySide6.QtCore import QTimer
from PySide6.QtWidgets import QApplication

from selection.state import SelectionConfig
from ui.crop.api_client import CropApiClient
from ui.crop.window import CropWindow


def run_crop_ui(
    *,
    server_base_url: str,
    on_close: Callable[[], None],
    quit_flag: threading.Event,
    handle_px: int = 8,
    min_size_px: int = 20,
    max_display_width: int = 1200,
    max_display_height: int = 800,
    max_upload_bytes: int = 10 * 1024 * 1024,
    http_timeout_sec: float = 10.0,
    heartbeat_ms: int = 60_000,
    initial_path: Optional[str] = None,
) -> None:
    """
    Start (or attach to) the Qt application and show the crop window.

    Threading model:
    - Must be called from the main thread (Qt requirement).
    - quit_flag may be set by another thread (e.g. a signal handler) to request shutdown;
      it is polled with a QTimer so Python code gets to run inside the Qt loop.
    """
    base = (server_base_url or "").strip().rstrip("/")
    if not base:
        raise ValueError("server_base_url must be provided (e.g. http://127.0.0.1:8740)")

    app = QApplication.instance() or QApplication([])

    w = CropWindow(
        api=CropApiClient(base, timeout_sec=float(http_timeout_sec)),
        selection_cfg=SelectionConfig(handle_px=float(handle_px), min_size_px=float(min_size_px)),
        max_display_width=int(max_display_width),
        max_display_height=int(max_display_height),
        max_upload_bytes=int(max_upload_bytes),
        heartbeat_ms=int(heartbeat_ms),
        on_close=on_close,
    )
    w.show()
    if initial_path:
        w.open_path(initial_path)

    quit_timer = QTimer()
    quit_timer.setInterval(200)

    def on_quit_tick() -> None:
        if quit_flag.is_set():
            quit_timer.stop()
            w.close()
            app.quit()

    quit_timer.timeout.connect(on_quit_tick)  # type: ignore[arg-type]
    quit_timer.start()

    # Blocks until the window closes or quit_flag trips.
    app.exec()
