"""FastAPI application assembly and server-thread launcher.

This module exposes the HTTP API consumed by the crop window: upload, image serving,
crop, source retirement and a session heartbeat. Endpoints are intentionally thin and
delegate state ownership to `ImageStore` and `SessionRegistry` so HTTP concerns remain
separate from storage and lifecycle logic.
"""

from __future__ import annotations

from dataclasses import dataclass
import threading
from typing import Any, Optional
import uuid

import uvicorn
from fastapi import FastAPI, File, Request, UploadFile
from fastapi.responses import JSONResponse, Response
from starlette.concurrency import run_in_threadpool

from server.cropper import OUTPUT_TYPES, CropFailed, crop_image_bytes, download_name, parse_crop_request
from server.image_store import ImageNotFound, ImageStore, UploadRejected
from server.session_registry import SessionRegistry


@dataclass(frozen=True)
class ServerOptions:
    """
    Route behavior knobs taken from AppConfig.

    - cookie_name: cookie that carries the client session id.
    - output_format: encoding of crop downloads ("png", "jpg", "webp").
    - retire_source_after_crop: delete the source once a crop succeeded.
    """
    cookie_name: str = "session_id"
    output_format: str = "png"
    retire_source_after_crop: bool = True


def _message(text: str, status_code: int) -> JSONResponse:
    return JSONResponse({"message": text}, status_code=status_code)


def create_app(
    *,
    store: ImageStore,
    sessions: SessionRegistry,
    options: ServerOptions = ServerOptions(),
) -> FastAPI:
    """
    Build the FastAPI application.

    Responsibilities:
    - Assign every client a session id cookie (minted on first request).
    - Expose JSON/binary endpoints:
        POST /api/upload, GET|DELETE /api/images/{filename}, POST /api/crop,
        POST /api/heartbeat, GET /api/health
    - Keep all state in the injected store/registry so routes remain thin.

    Error contract:
    - Every failure is a JSON body {"message": "..."} with a 4xx/5xx status.
    """
    app = FastAPI(title="imagecropper")

    @app.middleware("http")
    async def session_cookie(request: Request, call_next):
        """
        Resolve the session id before routing and set the cookie on the way out
        when it was freshly minted.
        """
        sid = request.cookies.get(options.cookie_name)
        minted = not sid
        if minted:
            sid = uuid.uuid4().hex
        request.state.session_id = sid

        response = await call_next(request)
        if minted:
            response.set_cookie(options.cookie_name, sid, httponly=True, samesite="lax")
        return response

    @app.post("/api/upload")
    async def upload(request: Request, image: Optional[UploadFile] = File(default=None)) -> JSONResponse:
        """
        Store an uploaded image (multipart field "image").

        Returns:
          { "id", "filename", "originalName", "mimeType", "size" }

        The session's previous upload is deleted once the new one is stored.
        """
        if image is None:
            return _message("No image file provided", 400)

        # Read one byte past the limit so oversize uploads are detected without
        # buffering arbitrarily large bodies.
        data = await image.read(store.max_bytes + 1)
        mime = str(image.content_type or "")
        try:
            record = await run_in_threadpool(
                store.save, data, mime_type=mime, original_name=str(image.filename or "")
            )
        except UploadRejected as e:
            return _message(str(e), 400)
        except OSError as e:
            print("[upload]", "failed to store upload:", e, flush=True)
            return _message("Failed to upload image", 500)

        sessions.attach(request.state.session_id, record.filename)
        print("[upload]", "stored", record.filename, f"({record.size} bytes)", flush=True)
        return JSONResponse(record.to_json())

    @app.get("/api/images/{filename}")
    def get_image(request: Request, filename: str) -> Response:
        """
        Serve the raw bytes of a stored upload (404 if unknown or cleaned up).

        Plain `def`: FastAPI runs it in its worker pool, off the event loop.
        """
        try:
            data, mime = store.read(filename)
        except ImageNotFound:
            return _message("Image not found", 404)

        sessions.touch(request.state.session_id)
        return Response(content=data, media_type=mime)

    @app.delete("/api/images/{filename}")
    def retire_image(request: Request, filename: str) -> JSONResponse:
        """
        Retire a source image explicitly (second phase of crop-then-retire).

        Only the session that uploaded the file may retire it; anyone else gets 404.
        """
        if sessions.owner_of(filename) != request.state.session_id:
            return _message("Image not found", 404)
        if not store.delete(filename):
            return _message("Image not found", 404)
        sessions.forget_file(filename)
        print("[cleanup]", "retired source:", filename, flush=True)
        return JSONResponse({"ok": True})

    @app.post("/api/crop")
    async def crop(request: Request) -> Response:
        """
        Crop a stored image and return it as a download.

        Input JSON:
          { "filename": "...", "x": 0, "y": 0, "width": 10, "height": 10 }  (source pixels)

        Returns:
          - 200 with the encoded image (Content-Disposition: attachment)
          - 400 invalid body, 404 unknown filename, 500 any extraction failure

        The source is retired only after a successful crop, so a failed attempt can be
        retried against the same filename.
        """
        try:
            body: Any = await request.json()
        except ValueError:
            return _message("Request body must be a JSON object", 400)

        try:
            req = parse_crop_request(body)
        except ValueError as e:
            return _message(str(e), 400)

        try:
            data, _ = await run_in_threadpool(store.read, req.filename)
        except ImageNotFound:
            return _message("Image not found", 404)

        try:
            out = await run_in_threadpool(crop_image_bytes, data, req, output_format=options.output_format)
        except CropFailed as e:
            print("[crop]", "failed for", req.filename, ":", e, flush=True)
            return _message("Failed to crop image", 500)

        sessions.touch(request.state.session_id)

        if options.retire_source_after_crop:
            try:
                store.delete(req.filename)
                sessions.forget_file(req.filename)
                print("[cleanup]", "removed file after cropping:", req.filename, flush=True)
            except OSError as e:
                print("[cleanup]", "failed to delete file after cropping:", req.filename, e, flush=True)

        _, content_type = OUTPUT_TYPES[options.output_format]
        name = download_name(req.filename, options.output_format)
        return Response(
            content=out,
            media_type=content_type,
            headers={"Content-Disposition": f'attachment; filename="{name}"'},
        )

    @app.post("/api/heartbeat")
    async def heartbeat(request: Request) -> JSONResponse:
        """
        Mark the caller's session as active (keeps an open editor from being swept).
        """
        sessions.touch(request.state.session_id)
        return JSONResponse({"ok": True})

    @app.get("/api/health")
    async def health() -> JSONResponse:
        return JSONResponse({"ok": True, "sessions": sessions.session_count(), "images": store.count()})

    return app


def run_server_in_thread(
    *,
    host: str,
    port: int,
    store: ImageStore,
    sessions: SessionRegistry,
    options: ServerOptions = ServerOptions(),
) -> threading.Thread:
    """
    Run the FastAPI server in a background thread.

    Notes:
    - `log_level="error"` keeps console noise low; adjust if debugging routing issues.
    - The returned thread is daemonized; shutdown is coordinated by the caller (main.py),
      which purges uploads before the process exits.
    """
    app = create_app(store=store, sessions=sessions, options=options)

    def _run() -> None:
        # Uvicorn manages its own event loop internally.
        uvicorn.run(app, host=host, port=port, log_level="error")

    t = threading.Thread(target=_run, name="imagecropper-server", daemon=True)
    t.start()
    return t
