"""Cropper settings: JSON schema, defaults and validation.

`load_config` reads `config/config.json` and returns a frozen `AppConfig`. Every
section except "server" is optional; bad values raise ValueError naming the dotted key.
"""

from __future__ import annotations

from dataclasses import dataclass
import json
from typing import Any, Dict


@dataclass(frozen=True)
class AppConfig:
    """
    Settings for the upload server, session cleanup, crop output and crop window.

    JSON layout (all values shown are the defaults):

    {
      "server": { "host": "127.0.0.1", "port": 8740 },
      "uploads": { "dir": "./uploads", "max_bytes": 10485760, "mime_prefix": "image/" },
      "session": { "idle_seconds": 300, "sweep_interval_seconds": 60, "cookie_name": "session_id" },
      "crop": { "output_format": "png", "retire_source_after_crop": true },
      "ui": {
        "handle_px": 8,
        "min_size_px": 20,
        "max_display_width": 1200,
        "max_display_height": 800,
        "http_timeout_sec": 10.0,
        "heartbeat_ms": 60000
      }
    }

    Only "server" is required; every other section falls back to defaults.
    """

    # -----------------------------
    # Server / API settings
    # -----------------------------
    server_host: str
    server_port: int

    # -----------------------------
    # Upload storage
    # -----------------------------
    uploads_dir: str
    upload_max_bytes: int
    upload_mime_prefix: str

    # -----------------------------
    # Session lifecycle
    # -----------------------------
    session_idle_seconds: float
    session_sweep_interval_seconds: float
    session_cookie_name: str

    # -----------------------------
    # Crop output
    # -----------------------------
    crop_output_format: str
    crop_retire_source_after_crop: bool

    # -----------------------------
    # Crop window (client)
    # -----------------------------
    handle_px: int
    min_size_px: int
    max_display_width: int
    max_display_height: int
    http_timeout_sec: float
    heartbeat_ms: int


# Formats cv2.imencode can produce for the download.
_OUTPUT_FORMATS = ("png", "jpg", "webp")


def _require_obj(raw: Dict[str, Any], key: str) -> Dict[str, Any]:
    """
    Mandatory section: `raw[key]` must be an object.
    """
    v = raw.get(key)
    if not isinstance(v, dict):
        raise ValueError(f"Missing or invalid '{key}' object in config")
    return v


def _opt_obj(raw: Dict[str, Any], key: str) -> Dict[str, Any]:
    """Optional section: missing => {}, present => must be an object."""
    v = raw.get(key)
    if v is None:
        return {}
    if isinstance(v, dict):
        return v
    raise ValueError(f"Missing or invalid '{key}' object in config (expected object)")


def _require_num(v: Any, key: str) -> float:
    """
    JSON number as float.

    bool is rejected explicitly because it is a subclass of int.
    """
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        raise ValueError(f"Missing or invalid '{key}' (expected number)")
    return float(v)


def _require_str(v: Any, key: str) -> str:
    """
    Non-empty string.
    """
    if not isinstance(v, str) or not v.strip():
        raise ValueError(f"Missing or invalid '{key}' (expected non-empty string)")
    return v


def _opt_bool(v: Any, key: str, default: bool) -> bool:
    """
    Optional JSON boolean.

    Quoted "true"/"false" are rejected.
    """
    if v is None:
        return default
    if isinstance(v, bool):
        return v
    raise ValueError(f"Missing or invalid '{key}' (expected boolean)")


def _opt_int(v: Any, key: str, default: int) -> int:
    """
    Optional integer with default. Accepts JSON numbers like 10 or 10.0.
    """
    if v is None:
        return default
    if isinstance(v, bool):
        raise ValueError(f"Missing or invalid '{key}' (expected number)")
    if isinstance(v, (int, float)):
        return int(v)
    raise ValueError(f"Missing or invalid '{key}' (expected number)")


def _opt_num(v: Any, key: str, default: float) -> float:
    if v is None:
        return default
    return _require_num(v, key)


def _opt_str(v: Any, key: str, default: str) -> str:
    """
    Optional string with default; when present it must be non-empty.
    """
    if v is None:
        return default
    if isinstance(v, str) and v.strip():
        return v
    raise ValueError(f"Missing or invalid '{key}' (expected non-empty string)")


def parse_config(raw: Dict[str, Any]) -> AppConfig:
    """
    Validate an already-decoded config object and return an `AppConfig`.

    Raises:
        ValueError: a key is missing, has the wrong type or is out of range.
    """
    if not isinstance(raw, dict):
        raise ValueError("Config root must be a JSON object")

    server = _require_obj(raw, "server")
    uploads = _opt_obj(raw, "uploads")
    session = _opt_obj(raw, "session")
    crop = _opt_obj(raw, "crop")
    ui = _opt_obj(raw, "ui")

    # ---- Server ----
    server_host = _require_str(server.get("host"), "server.host").strip()
    server_port = int(_require_num(server.get("port"), "server.port"))
    if not (0 < server_port < 65536):
        raise ValueError("server.port must be in [1, 65535]")

    # ---- Uploads ----
    uploads_dir = _opt_str(uploads.get("dir"), "uploads.dir", "./uploads")
    upload_max_bytes = _opt_int(uploads.get("max_bytes"), "uploads.max_bytes", 10 * 1024 * 1024)
    upload_mime_prefix = _opt_str(uploads.get("mime_prefix"), "uploads.mime_prefix", "image/").strip().lower()
    if upload_max_bytes <= 0:
        raise ValueError("uploads.max_bytes must be > 0")

    # ---- Session ----
    session_idle_seconds = _opt_num(session.get("idle_seconds"), "session.idle_seconds", 300.0)
    session_sweep_interval_seconds = _opt_num(
        session.get("sweep_interval_seconds"),
        "session.sweep_interval_seconds",
        60.0,
    )
    session_cookie_name = _opt_str(session.get("cookie_name"), "session.cookie_name", "session_id").strip()
    if session_idle_seconds <= 0:
        raise ValueError("session.idle_seconds must be > 0")
    if session_sweep_interval_seconds <= 0:
        raise ValueError("session.sweep_interval_seconds must be > 0")

    # ---- Crop ----
    # Normalize to lowercase so "PNG" and "png" are equivalent.
    crop_output_format = _opt_str(crop.get("output_format"), "crop.output_format", "png").strip().lower()
    if crop_output_format not in _OUTPUT_FORMATS:
        raise ValueError(f"crop.output_format must be one of: {', '.join(_OUTPUT_FORMATS)}")
    crop_retire_source_after_crop = _opt_bool(
        crop.get("retire_source_after_crop"),
        "crop.retire_source_after_crop",
        True,
    )

    # ---- UI ----
    handle_px = _opt_int(ui.get("handle_px"), "ui.handle_px", 8)
    min_size_px = _opt_int(ui.get("min_size_px"), "ui.min_size_px", 20)
    max_display_width = _opt_int(ui.get("max_display_width"), "ui.max_display_width", 1200)
    max_display_height = _opt_int(ui.get("max_display_height"), "ui.max_display_height", 800)
    http_timeout_sec = _opt_num(ui.get("http_timeout_sec"), "ui.http_timeout_sec", 10.0)
    heartbeat_ms = _opt_int(ui.get("heartbeat_ms"), "ui.heartbeat_ms", 60_000)

    if handle_px <= 0:
        raise ValueError("ui.handle_px must be > 0")
    if min_size_px < 1:
        raise ValueError("ui.min_size_px must be >= 1")
    if max_display_width <= 0 or max_display_height <= 0:
        raise ValueError("ui.max_display_width and ui.max_display_height must be > 0")
    if http_timeout_sec <= 0:
        raise ValueError("ui.http_timeout_sec must be > 0")
    if heartbeat_ms <= 0:
        raise ValueError("ui.heartbeat_ms must be > 0")

    return AppConfig(
        server_host=server_host,
        server_port=server_port,
        uploads_dir=uploads_dir,
        upload_max_bytes=upload_max_bytes,
        upload_mime_prefix=upload_mime_prefix,
        session_idle_seconds=session_idle_seconds,
        session_sweep_interval_seconds=session_sweep_interval_seconds,
        session_cookie_name=session_cookie_name,
        crop_output_format=crop_output_format,
        crop_retire_source_after_crop=crop_retire_source_after_crop,
        handle_px=handle_px,
        min_size_px=min_size_px,
        max_display_width=max_display_width,
        max_display_height=max_display_height,
        http_timeout_sec=http_timeout_sec,
        heartbeat_ms=heartbeat_ms,
    )


def load_config(path: str) -> AppConfig:
    """
    Read `path` and return the validated `AppConfig`.

    Raises:
        ValueError: a key is missing, has the wrong type or is out of range.
        OSError: file cannot be opened/read.
        json.JSONDecodeError: invalid JSON.
    """
    with open(path, "r", encoding="utf-8") as f:
        raw: Dict[str, Any] = json.load(f)
    return parse_config(raw)
