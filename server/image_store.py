"""Disk-backed store for uploaded source images.

Bytes live as files under the uploads directory; metadata (original name, mime type,
size) is kept in memory. The store is shared by the HTTP routes, the idle sweeper and
the shutdown hook, so every public method takes the store lock.
"""

from __future__ import annotations

from dataclasses import dataclass
import mimetypes
from pathlib import Path
import re
import secrets
import threading
import time
from typing import Any, Dict
import uuid


# Stored names are generated by the store, so anything else is rejected before it can
# reach the filesystem (no separators, no leading dot, no "..").
_SAFE_NAME = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]*(\.[A-Za-z0-9]+)?$")


class UploadRejected(ValueError):
    """Client-visible validation failure for an upload (type or size)."""


class ImageNotFound(LookupError):
    """The filename is unknown or its file has already been cleaned up."""


@dataclass(frozen=True)
class ImageRecord:
    """
    Metadata for one stored upload.

    `size` is the byte length; it is rendered as a string in the JSON contract.
    """
    id: str
    filename: str
    original_name: str
    mime_type: str
    size: int
    uploaded_at: float

    def to_json(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "filename": self.filename,
            "originalName": self.original_name,
            "mimeType": self.mime_type,
            "size": str(self.size),
        }


def _extension_for(mime_type: str) -> str:
    """'image/png' -> 'png', 'image/svg+xml' -> 'svgxml'; unusable subtypes -> 'bin'."""
    _, _, subtype = mime_type.partition("/")
    ext = re.sub(r"[^a-z0-9]", "", subtype.lower())
    return ext or "bin"


class ImageStore:
    """
    Thread-safe store for uploaded images.

    Responsibilities:
      - Validate uploads (mime prefix, byte size) before anything touches disk.
      - Generate collision-resistant filenames: "<epoch_ms>-<random>.<subtype>".
      - Serve bytes back by filename.
      - Delete single files (retire / session replacement) and purge everything on shutdown.
    """

    def __init__(self, root_dir: str | Path, *, max_bytes: int, mime_prefix: str = "image/") -> None:
        self._root = Path(root_dir)
        self._root.mkdir(parents=True, exist_ok=True)
        self._max_bytes = int(max_bytes)
        self._mime_prefix = str(mime_prefix).lower()
        self._lock = threading.Lock()
        self._records: Dict[str, ImageRecord] = {}

    @property
    def root(self) -> Path:
        return self._root

    @property
    def max_bytes(self) -> int:
        return self._max_bytes

    def validate(self, *, mime_type: str, size: int) -> None:
        """
        Raise UploadRejected when an upload breaks the type/size contract.

        Messages are user-facing.
        """
        if not str(mime_type or "").lower().startswith(self._mime_prefix):
            raise UploadRejected("Only image files are allowed")
        if int(size) > self._max_bytes:
            mb = self._max_bytes / (1024 * 1024)
            raise UploadRejected(f"File size must be less than {mb:g}MB")
        if int(size) <= 0:
            raise UploadRejected("Uploaded file is empty")

    def save(self, data: bytes, *, mime_type: str, original_name: str) -> ImageRecord:
        """Validate and persist an upload; returns its metadata record."""
        self.validate(mime_type=mime_type, size=len(data))

        filename = f"{int(time.time() * 1000)}-{secrets.token_hex(5)}.{_extension_for(mime_type)}"
        record = ImageRecord(
            id=str(uuid.uuid4()),
            filename=filename,
            original_name=str(original_name or filename),
            mime_type=str(mime_type).lower(),
            size=len(data),
            uploaded_at=time.time(),
        )

        path = self._root / filename
        with self._lock:
            path.write_bytes(data)
            self._records[filename] = record
        return record

    def _path_for(self, filename: str) -> Path:
        if not isinstance(filename, str) or not _SAFE_NAME.match(filename):
            raise ImageNotFound(filename)
        return self._root / filename

    def read(self, filename: str) -> tuple[bytes, str]:
        """
        Return (bytes, mime_type) for a stored file.

        Raises:
            ImageNotFound: unknown/unsafe name, or the file was already deleted.
        """
        path = self._path_for(filename)
        with self._lock:
            if not path.is_file():
                raise ImageNotFound(filename)
            data = path.read_bytes()
            record = self._records.get(filename)

        if record is not None:
            mime = record.mime_type
        else:
            mime = mimetypes.guess_type(filename)[0] or "application/octet-stream"
        return data, mime

    def delete(self, filename: str) -> bool:
        """
        Remove a stored file and its metadata.

        Returns:
            bool: True if a file was deleted, False if it was already gone.
        """
        try:
            path = self._path_for(filename)
        except ImageNotFound:
            return False
        with self._lock:
            self._records.pop(filename, None)
            if not path.is_file():
                return False
            path.unlink()
            return True

    def purge_all(self) -> int:
        """
        Delete every file in the uploads directory (shutdown cleanup).

        Failures on individual files are reported and skipped so one locked file does not
        keep the rest around.
        """
        removed = 0
        with self._lock:
            self._records.clear()
            for path in list(self._root.iterdir()):
                if not path.is_file():
                    continue
                try:
                    path.unlink()
                    removed += 1
                except OSError as e:
                    print("[cleanup]", "failed to delete", path.name, "during shutdown:", e, flush=True)
        return removed

    def count(self) -> int:
        with self._lock:
            return len(self._records)
