"""Entry point for the image cropper.

Startup order: config, upload store and session registry, FastAPI server thread, idle
sweeper, then the Qt crop window (unless --no-client). Uploaded files are purged on
the way out, whether the window was closed or a signal arrived.
"""

from __future__ import annotations

import argparse
import signal
import threading
import time
import traceback
from typing import Optional

import httpx

from config.config import AppConfig, load_config
from server.image_store import ImageStore
from server.server import ServerOptions, run_server_in_thread
from server.session_registry import SessionRegistry
from server.sweeper import IdleSweeper


def _parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="imagecropper")
    p.add_argument("--config", default="./config/config.json", help="Path to config.json.")
    g = p.add_mutually_exclusive_group()
    g.add_argument("--no-client", action="store_true", help="Run the HTTP server only (no crop window).")
    g.add_argument(
        "--server-url",
        default=None,
        help="Open the crop window against an already running server instead of starting one.",
    )
    p.add_argument("image", nargs="?", default=None, help="Optional image to upload on startup.")
    return p.parse_args(argv)


def _client_base_url(cfg: AppConfig) -> str:
    # If the server binds to 0.0.0.0, the client cannot call "http://0.0.0.0:PORT"; use loopback.
    host = "127.0.0.1" if cfg.server_host == "0.0.0.0" else str(cfg.server_host)
    return f"http://{host}:{int(cfg.server_port)}"


def _wait_for_server(base_url: str, *, timeout_sec: float) -> bool:
    """Poll /api/health until the server thread answers or the timeout expires."""
    deadline = time.monotonic() + float(timeout_sec)
    with httpx.Client(timeout=0.5) as client:
        while time.monotonic() < deadline:
            try:
                if client.get(f"{base_url}/api/health").status_code == 200:
                    return True
            except httpx.HTTPError:
                pass
            time.sleep(0.1)
    return False


def _run_client(cfg: AppConfig, *, base_url: str, quit_flag: threading.Event, initial_path: Optional[str]) -> None:
    # Imported lazily so a server-only run does not need a Qt installation/display.
    from ui.crop.ui_logic import run_crop_ui

    run_crop_ui(
        server_base_url=base_url,
        on_close=quit_flag.set,
        quit_flag=quit_flag,
        handle_px=cfg.handle_px,
        min_size_px=cfg.min_size_px,
        max_display_width=cfg.max_display_width,
        max_display_height=cfg.max_display_height,
        max_upload_bytes=cfg.upload_max_bytes,
        http_timeout_sec=cfg.http_timeout_sec,
        heartbeat_ms=cfg.heartbeat_ms,
        initial_path=initial_path,
    )


def main(argv: Optional[list[str]] = None) -> int:
    """
    Application entry point.

    High-level responsibilities:
    - Load config.
    - Remote-client mode (--server-url): only run the crop window.
    - Otherwise start the HTTP server and the idle sweeper, then either run the crop
      window (default) or wait for a shutdown signal (--no-client).
    - On shutdown, stop the sweeper and delete every uploaded file.
    """
    args = _parse_args(argv)
    cfg = load_config(args.config)

    # Quit coordination primitive shared by signal handlers, the UI and the server-only wait.
    quit_flag = threading.Event()

    def on_signal(signum, _frame) -> None:
        print("[shutdown]", "received signal", signum, flush=True)
        quit_flag.set()

    signal.signal(signal.SIGINT, on_signal)
    signal.signal(signal.SIGTERM, on_signal)

    if args.server_url:
        _run_client(cfg, base_url=str(args.server_url), quit_flag=quit_flag, initial_path=args.image)
        return 0

    store = ImageStore(cfg.uploads_dir, max_bytes=cfg.upload_max_bytes, mime_prefix=cfg.upload_mime_prefix)
    sessions = SessionRegistry(idle_seconds=cfg.session_idle_seconds, release_file=store.delete)

    run_server_in_thread(
        host=cfg.server_host,
        port=cfg.server_port,
        store=store,
        sessions=sessions,
        options=ServerOptions(
            cookie_name=cfg.session_cookie_name,
            output_format=cfg.crop_output_format,
            retire_source_after_crop=cfg.crop_retire_source_after_crop,
        ),
    )
    if _wait_for_server(_client_base_url(cfg), timeout_sec=5.0):
        print("[server]", "listening on", _client_base_url(cfg), flush=True)
    else:
        print("[server]", "not reachable yet at", _client_base_url(cfg), flush=True)

    sweeper = IdleSweeper(sessions=sessions, interval_seconds=cfg.session_sweep_interval_seconds)
    sweeper.start()

    try:
        if args.no_client:
            # Wait with timeout so signal handlers get a chance to run promptly.
            while not quit_flag.wait(0.5):
                pass
        else:
            _run_client(cfg, base_url=_client_base_url(cfg), quit_flag=quit_flag, initial_path=args.image)
    finally:
        quit_flag.set()
        try:
            sweeper.stop()
            sweeper.join(timeout=1.0)
            if sweeper.is_alive():
                print("[shutdown]", "sweeper did not stop in time", flush=True)
        except Exception:
            traceback.print_exc()

        print("[shutdown]", "cleaning up uploaded files...", flush=True)
        sessions.evict_all()
        removed = store.purge_all()
        print("[shutdown]", "cleanup completed, removed", removed, "file(s)", flush=True)

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
