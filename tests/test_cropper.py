import cv2
import numpy as np
import pytest

from selection.commit import CropRequest
from server.cropper import CropFailed, crop_image_bytes, download_name, parse_crop_request


def _png(width: int = 60, height: int = 40) -> bytes:
    """A BGR gradient image so every pixel position is distinguishable."""
    img = np.zeros((height, width, 3), dtype=np.uint8)
    img[:, :, 0] = np.arange(width, dtype=np.uint8)[None, :]
    img[:, :, 1] = np.arange(height, dtype=np.uint8)[:, None]
    ok, buf = cv2.imencode(".png", img)
    assert ok
    return buf.tobytes()


def _decode(data: bytes) -> np.ndarray:
    img = cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_UNCHANGED)
    assert img is not None
    return img


def test_crop_extracts_exact_region():
    out = crop_image_bytes(_png(), CropRequest("a.png", x=10, y=5, width=20, height=15))
    img = _decode(out)
    assert img.shape[:2] == (15, 20)
    assert img[0, 0, 0] == 10 and img[0, 0, 1] == 5
    assert img[14, 19, 0] == 29 and img[14, 19, 1] == 19


def test_crop_full_image():
    img = _decode(crop_image_bytes(_png(), CropRequest("a.png", 0, 0, 60, 40)))
    assert img.shape[:2] == (40, 60)


def test_crop_to_jpeg():
    out = crop_image_bytes(_png(), CropRequest("a.png", 0, 0, 8, 8), output_format="jpg")
    assert out[:2] == b"\xff\xd8"


@pytest.mark.parametrize(
    "req",
    [
        CropRequest("a.png", 50, 0, 11, 10),
        CropRequest("a.png", 0, 35, 10, 6),
        CropRequest("a.png", 0, 0, 0, 10),
    ],
)
def test_out_of_bounds_rectangle_fails(req):
    with pytest.raises(CropFailed):
        crop_image_bytes(_png(), req)


def test_undecodable_input_fails():
    with pytest.raises(CropFailed):
        crop_image_bytes(b"definitely not an image", CropRequest("a.png", 0, 0, 1, 1))


def test_unknown_output_format_fails():
    with pytest.raises(CropFailed):
        crop_image_bytes(_png(), CropRequest("a.png", 0, 0, 1, 1), output_format="tiff")


def test_parse_crop_request_rounds_half_up():
    req = parse_crop_request({"filename": "a.png", "x": 0.5, "y": 2.4, "width": 10.5, "height": 1})
    assert req == CropRequest("a.png", 1, 2, 11, 1)


@pytest.mark.parametrize(
    "body, message",
    [
        ([], "JSON object"),
        ({"x": 0, "y": 0, "width": 1, "height": 1}, "filename"),
        ({"filename": "a.png", "x": "1", "y": 0, "width": 1, "height": 1}, "x must be a number"),
        ({"filename": "a.png", "x": 0, "y": True, "width": 1, "height": 1}, "y must be a number"),
        ({"filename": "a.png", "x": -1, "y": 0, "width": 1, "height": 1}, "x must be >= 0"),
        ({"filename": "a.png", "x": 0, "y": 0, "width": 0, "height": 1}, "width must be >= 1"),
        ({"filename": "a.png", "x": 0, "y": 0, "width": 1}, "height must be a number"),
    ],
)
def test_parse_crop_request_rejects(body, message):
    with pytest.raises(ValueError, match=message):
        parse_crop_request(body)


def test_download_name():
    assert download_name("1700000000000-ab12.jpeg", "png") == "cropped-1700000000000-ab12.png"
    assert download_name("noext", "webp") == "cropped-noext.webp"
