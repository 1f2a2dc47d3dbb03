# ui/crop/api_client.py
"""HTTP wrapper around the imagecropper server for the crop window.

One `httpx.Client` is kept for the window's lifetime so the session cookie set by the
server on the first response is sent back on every later call; the server uses it to
tie uploads to this client and to track activity.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import re
from typing import Optional

import httpx

from selection.commit import CropRequest
from ui.crop.files import guess_mime_type


class ApiError(Exception):
    """
    A failed server call, carrying a user-facing message.

    status_code is None for transport failures (server unreachable, timeout).
    """

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


@dataclass(frozen=True)
class UploadedImage:
    """Upload response: {id, filename, originalName, mimeType, size}."""
    id: str
    filename: str
    original_name: str
    mime_type: str
    size: int

    @classmethod
    def from_json(cls, data: dict) -> "UploadedImage":
        return cls(
            id=str(data["id"]),
            filename=str(data["filename"]),
            original_name=str(data["originalName"]),
            mime_type=str(data["mimeType"]),
            size=int(data["size"]),
        )


# Crop content types the server can produce -> file extension.
_CROP_EXTENSIONS = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/webp": ".webp",
}

_DISPOSITION_NAME = re.compile(r'filename="?([^";]+)"?')


@dataclass(frozen=True)
class CroppedImage:
    """
    Crop response: encoded bytes plus what the server said about them.

    `filename` is the Content-Disposition name ("" when absent).
    """
    data: bytes
    content_type: str
    filename: str

    @property
    def extension(self) -> str:
        """'.png', '.jpg' or '.webp', taken from the filename first, then the content type."""
        suffix = Path(self.filename).suffix.lower()
        if suffix:
            return suffix
        return _CROP_EXTENSIONS.get(self.content_type, ".png")

    @classmethod
    def from_response(cls, resp: httpx.Response) -> "CroppedImage":
        content_type = resp.headers.get("content-type", "").split(";", 1)[0].strip().lower()
        m = _DISPOSITION_NAME.search(resp.headers.get("content-disposition", ""))
        return cls(data=resp.content, content_type=content_type, filename=m.group(1) if m else "")


def _error_message(resp: httpx.Response, fallback: str) -> str:
    try:
        data = resp.json()
    except ValueError:
        return fallback
    if isinstance(data, dict) and isinstance(data.get("message"), str):
        return data["message"]
    return fallback


class CropApiClient:
    """
    Blocking client for the crop server.

    Server contract:
    - POST   /api/upload            multipart "image" -> UploadedImage JSON
    - GET    /api/images/{name}     -> raw bytes
    - POST   /api/crop              JSON CropRequest -> encoded crop bytes
    - DELETE /api/images/{name}     -> {"ok": true}
    - POST   /api/heartbeat         -> {"ok": true}

    Every method raises ApiError on failure; callers show the message and keep their
    state so the user can retry.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout_sec: float = 10.0,
        heartbeat_timeout_sec: float = 2.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        base = str(base_url).strip().rstrip("/")
        if not base:
            raise ValueError("base_url must be provided (e.g. http://127.0.0.1:8740)")
        self._http = httpx.Client(base_url=base, timeout=float(timeout_sec), transport=transport)
        # The heartbeat runs on the UI thread; keep a dead server from stalling it for long.
        self._heartbeat_timeout = min(float(heartbeat_timeout_sec), float(timeout_sec))

    def close(self) -> None:
        self._http.close()

    def _send(self, method: str, url: str, *, fallback: str, **kwargs) -> httpx.Response:
        try:
            resp = self._http.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise ApiError(f"{fallback}: {e}") from e
        if resp.status_code >= 400:
            raise ApiError(_error_message(resp, fallback), resp.status_code)
        return resp

    def upload(self, path: str | Path) -> UploadedImage:
        p = Path(path)
        mime = guess_mime_type(p) or "application/octet-stream"
        with p.open("rb") as fh:
            resp = self._send(
                "POST",
                "/api/upload",
                fallback="Failed to upload image",
                files={"image": (p.name, fh, mime)},
            )
        try:
            return UploadedImage.from_json(resp.json())
        except (ValueError, KeyError, TypeError) as e:
            raise ApiError("Unexpected upload response from server") from e

    def fetch_image(self, filename: str) -> bytes:
        return self._send("GET", f"/api/images/{filename}", fallback="Failed to load image").content

    def crop(self, req: CropRequest) -> CroppedImage:
        resp = self._send("POST", "/api/crop", fallback="Failed to crop image", json=req.to_payload())
        return CroppedImage.from_response(resp)

    def retire(self, filename: str) -> None:
        self._send("DELETE", f"/api/images/{filename}", fallback="Failed to remove image")

    def heartbeat(self) -> bool:
        """Best-effort activity ping; returns False instead of raising."""
        try:
            self._send("POST", "/api/heartbeat", fallback="heartbeat failed", timeout=self._heartbeat_timeout)
        except ApiError:
            return False
        return True
