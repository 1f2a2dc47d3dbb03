import json

import httpx
import pytest

from selection.commit import CropRequest
from ui.crop.api_client import ApiError, CropApiClient


UPLOAD_JSON = {
    "id": "0f1e",
    "filename": "1700000000000-ab12cd34ef.png",
    "originalName": "photo.png",
    "mimeType": "image/png",
    "size": "1234",
}


def _client(handler) -> CropApiClient:
    return CropApiClient("http://cropper.test/", transport=httpx.MockTransport(handler))


def test_upload_sends_multipart_image_field(tmp_path):
    path = tmp_path / "photo.png"
    path.write_bytes(b"\x89PNG fake")
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["path"] = request.url.path
        seen["body"] = request.read()
        return httpx.Response(200, json=UPLOAD_JSON)

    uploaded = _client(handler).upload(path)
    assert seen["method"] == "POST"
    assert seen["path"] == "/api/upload"
    assert b'name="image"' in seen["body"]
    assert b'filename="photo.png"' in seen["body"]
    assert b"image/png" in seen["body"]
    assert uploaded.filename == UPLOAD_JSON["filename"]
    assert uploaded.original_name == "photo.png"
    assert uploaded.size == 1234


def test_upload_rejection_surfaces_server_message(tmp_path):
    path = tmp_path / "photo.png"
    path.write_bytes(b"x")

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"message": "Only image files are allowed"})

    with pytest.raises(ApiError) as e:
        _client(handler).upload(path)
    assert e.value.message == "Only image files are allowed"
    assert e.value.status_code == 400


def test_malformed_upload_response(tmp_path):
    path = tmp_path / "photo.png"
    path.write_bytes(b"x")

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"unexpected": True})

    with pytest.raises(ApiError, match="Unexpected upload response"):
        _client(handler).upload(path)


def test_crop_posts_json_payload():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["json"] = json.loads(request.read())
        return httpx.Response(200, content=b"PNGDATA", headers={"content-type": "image/png"})

    result = _client(handler).crop(CropRequest("a.png", 1, 2, 3, 4))
    assert result.data == b"PNGDATA"
    assert result.extension == ".png"
    assert seen["path"] == "/api/crop"
    assert seen["json"] == {"filename": "a.png", "x": 1, "y": 2, "width": 3, "height": 4}


def test_crop_extension_follows_server_encoding():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            content=b"\xff\xd8JPEG",
            headers={
                "content-type": "image/jpeg",
                "content-disposition": 'attachment; filename="cropped-1700000000000-ab12.jpg"',
            },
        )

    result = _client(handler).crop(CropRequest("a.png", 0, 0, 1, 1))
    assert result.content_type == "image/jpeg"
    assert result.filename == "cropped-1700000000000-ab12.jpg"
    assert result.extension == ".jpg"


@pytest.mark.parametrize(
    "content_type, extension",
    [("image/webp", ".webp"), ("image/jpeg; charset=binary", ".jpg"), ("application/octet-stream", ".png")],
)
def test_crop_extension_from_content_type_alone(content_type, extension):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"data", headers={"content-type": content_type})

    assert _client(handler).crop(CropRequest("a.png", 0, 0, 1, 1)).extension == extension


def test_crop_failure_without_json_body_uses_fallback():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, content=b"<html>bad gateway</html>")

    with pytest.raises(ApiError) as e:
        _client(handler).crop(CropRequest("a.png", 0, 0, 1, 1))
    assert e.value.message == "Failed to crop image"
    assert e.value.status_code == 502


def test_fetch_and_retire():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append((request.method, request.url.path))
        if request.method == "GET":
            return httpx.Response(200, content=b"bytes")
        return httpx.Response(200, json={"ok": True})

    api = _client(handler)
    assert api.fetch_image("a.png") == b"bytes"
    api.retire("a.png")
    assert calls == [("GET", "/api/images/a.png"), ("DELETE", "/api/images/a.png")]


def test_transport_error_becomes_api_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ApiError) as e:
        _client(handler).fetch_image("a.png")
    assert e.value.status_code is None
    assert e.value.message.startswith("Failed to load image")


def test_heartbeat_never_raises():
    def ok(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"ok": True})

    def down(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("down", request=request)

    assert _client(ok).heartbeat() is True
    assert _client(down).heartbeat() is False


def test_heartbeat_uses_short_timeout():
    timeouts = {}

    def handler(request: httpx.Request) -> httpx.Response:
        timeouts[request.url.path] = request.extensions["timeout"]["read"]
        return httpx.Response(200, json={"ok": True})

    api = _client(handler)
    api.heartbeat()
    api.retire("a.png")
    assert timeouts == {"/api/heartbeat": 2.0, "/api/images/a.png": 10.0}

    quick = CropApiClient("http://cropper.test", timeout_sec=1.0, transport=httpx.MockTransport(handler))
    quick.heartbeat()
    assert timeouts["/api/heartbeat"] == 1.0


def test_session_cookie_is_sent_back():
    cookies = []

    def handler(request: httpx.Request) -> httpx.Response:
        cookies.append(request.headers.get("cookie"))
        return httpx.Response(200, json={"ok": True}, headers={"set-cookie": "session_id=abc; Path=/"})

    api = _client(handler)
    api.heartbeat()
    api.heartbeat()
    assert cookies == [None, "session_id=abc"]


def test_blank_base_url_is_rejected():
    with pytest.raises(ValueError):
        CropApiClient("  ")
