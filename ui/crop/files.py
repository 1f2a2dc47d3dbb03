# ui/crop/files.py
from __future__ import annotations

import mimetypes
from pathlib import Path
from typing import Iterable, Optional


MAX_UPLOAD_BYTES = 10 * 1024 * 1024


def guess_mime_type(path: str | Path) -> str:
    """Mime type from the file extension; empty string when unknown."""
    return mimetypes.guess_type(str(path))[0] or ""


def validate_image_file(path: str | Path, *, max_bytes: int = MAX_UPLOAD_BYTES) -> Optional[str]:
    """
    Client-side pre-check before uploading.

    Returns:
        A user-facing message describing the problem, or None if the file looks fine.
        The server repeats both checks; this only saves a round trip.
    """
    p = Path(path)
    if not p.is_file():
        return "File not found"
    if not guess_mime_type(p).startswith("image/"):
        return "Please select a valid image file"
    if p.stat().st_size > int(max_bytes):
        return f"File size must be less than {max_bytes / (1024 * 1024):g}MB"
    return None


def format_file_size(num_bytes: int) -> str:
    """
    Human-readable size: 0 -> '0 Bytes', 1536 -> '1.5 KB', 10485760 -> '10 MB'.
    """
    if num_bytes <= 0:
        return "0 Bytes"
    units = ("Bytes", "KB", "MB", "GB")
    i = 0
    while i < len(units) - 1 and num_bytes >= 1024 ** (i + 1):
        i += 1
    value = round(num_bytes / (1024 ** i), 2)
    return f"{value:g} {units[i]}"


def save_filter_for(extension: str) -> str:
    """'.jpg' -> 'JPG image (*.jpg)' for the save dialog."""
    ext = "." + extension.lstrip(".").lower()
    return f"{ext[1:].upper()} image (*{ext})"


def first_dropped_file(local_paths: Iterable[str]) -> Optional[str]:
    """
    Pick the file to upload from a drop: the first entry that is a local path.

    Non-local URLs arrive as empty strings from QUrl.toLocalFile() and are skipped. Only
    one image is edited at a time, so any further files are ignored.
    """
    for p in local_paths:
        if p:
            return p
    return None
