"""Pixel extraction for the crop endpoint.

Decoding, slicing and re-encoding are done with OpenCV on a numpy array. The function is
pure (bytes in, bytes out): deleting the source after a crop is a separate step owned by
the route, so a failed crop never loses the original.
"""

from __future__ import annotations

from typing import Any, Dict

import cv2
import numpy as np

from selection.commit import CropRequest
from selection.models import round_half_up


# Output format -> (cv2 extension, HTTP content type).
OUTPUT_TYPES: Dict[str, tuple[str, str]] = {
    "png": (".png", "image/png"),
    "jpg": (".jpg", "image/jpeg"),
    "webp": (".webp", "image/webp"),
}


class CropFailed(RuntimeError):
    """Any failure while decoding, extracting or encoding (reported as a generic 500)."""


def parse_crop_request(body: Any) -> CropRequest:
    """
    Validate a raw JSON crop body.

    Input JSON:
      { "filename": "...", "x": 0, "y": 0, "width": 1, "height": 1 }

    Numbers may be fractional; they are rounded half-up to whole pixels after validation
    (x, y >= 0 and width, height >= 1).

    Raises:
        ValueError: with a client-facing message.
    """
    if not isinstance(body, dict):
        raise ValueError("Request body must be a JSON object")

    filename = body.get("filename")
    if not isinstance(filename, str) or not filename.strip():
        raise ValueError("filename must be a non-empty string")

    values: Dict[str, float] = {}
    for key, lo in (("x", 0.0), ("y", 0.0), ("width", 1.0), ("height", 1.0)):
        v = body.get(key)
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            raise ValueError(f"{key} must be a number")
        if float(v) < lo:
            raise ValueError(f"{key} must be >= {lo:g}")
        values[key] = float(v)

    return CropRequest(
        filename=filename,
        x=round_half_up(values["x"]),
        y=round_half_up(values["y"]),
        width=round_half_up(values["width"]),
        height=round_half_up(values["height"]),
    )


def crop_image_bytes(data: bytes, req: CropRequest, *, output_format: str = "png") -> bytes:
    """
    Extract `req`'s rectangle from an encoded image and return it re-encoded.

    Raises:
        CropFailed: undecodable input, rectangle outside the image, or encoder failure.
    """
    if output_format not in OUTPUT_TYPES:
        raise CropFailed(f"unsupported output format: {output_format}")

    buf = np.frombuffer(data, dtype=np.uint8)
    img = cv2.imdecode(buf, cv2.IMREAD_UNCHANGED)
    if img is None:
        raise CropFailed("unable to decode source image")

    h, w = img.shape[:2]
    x0, y0 = int(req.x), int(req.y)
    x1, y1 = x0 + int(req.width), y0 + int(req.height)
    if x0 < 0 or y0 < 0 or req.width < 1 or req.height < 1 or x1 > w or y1 > h:
        raise CropFailed(
            f"crop rectangle {(x0, y0, req.width, req.height)} exceeds image bounds {w}x{h}"
        )

    region = np.ascontiguousarray(img[y0:y1, x0:x1])

    ext, _ = OUTPUT_TYPES[output_format]
    ok, encoded = cv2.imencode(ext, region)
    if not ok:
        raise CropFailed(f"encoding to {output_format} failed")
    return encoded.tobytes()


def download_name(filename: str, output_format: str) -> str:
    """'1700000000000-ab12.jpg' -> 'cropped-1700000000000-ab12.png'."""
    stem = filename.rsplit(".", 1)[0] if "." in filename else filename
    ext, _ = OUTPUT_TYPES.get(output_format, (".png", "image/png"))
    return f"cropped-{stem}{ext}"
