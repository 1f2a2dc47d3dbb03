"""Top-level Qt window for uploading an image, selecting a region and downloading the crop.

`CropWindow` composes the crop canvas (selection + painting) with the server client
(upload, fetch, crop, retire, heartbeat). Images can be opened from a file dialog or
dropped onto the window. Network failures are shown as dismissible message
boxes; the selection is left untouched so the user can retry.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Optional

from PySide6.QtCore import Qt, QTimer
from PySide6.QtGui import QPixmap
from PySide6.QtWidgets import (
    QFileDialog,
    QHBoxLayout,
    QLabel,
    QMessageBox,
    QPushButton,
    QVBoxLayout,
    QWidget,
)

from selection.commit import build_crop_request, can_commit
from selection.state import SelectionConfig
from ui.crop.api_client import ApiError, CropApiClient, UploadedImage
from ui.crop.canvas import CropCanvas
from ui.crop.files import first_dropped_file, format_file_size, save_filter_for, validate_image_file
from ui.crop.layout import preview_box


_IMAGE_FILTER = "Images (*.png *.jpg *.jpeg *.gif *.bmp *.webp *.tif *.tiff)"

# Longest edge of the live preview, in logical pixels.
_PREVIEW_PX = 300


class CropWindow(QWidget):
    """
    Upload -> select -> download workflow in a single window.

    Layout:
    - header: file name/size and an "Open / Replace Image" button (files can also be dropped)
    - hint line ("Click and drag to select crop area" / "Drag corners to resize...")
    - CropCanvas
    - footer: selection size, "Clear Selection", "Download Cropped Image"
    - preview of the selected region
    """

    def __init__(
        self,
        *,
        api: CropApiClient,
        selection_cfg: SelectionConfig,
        max_display_width: int,
        max_display_height: int,
        max_upload_bytes: int,
        heartbeat_ms: int,
        on_close: Optional[Callable[[], None]] = None,
    ) -> None:
        super().__init__()
        self._api = api
        self._max_upload_bytes = int(max_upload_bytes)
        self._on_close = on_close
        self._image: Optional[UploadedImage] = None

        self.setWindowTitle("imagecropper")
        self.setAcceptDrops(True)

        self._canvas = CropCanvas(
            selection_cfg=selection_cfg,
            max_display_width=int(max_display_width),
            max_display_height=int(max_display_height),
            parent=self,
        )
        self._canvas.selectionChanged.connect(self._on_selection_changed)  # type: ignore[arg-type]

        self._file_label = QLabel("No image loaded", self)
        self._open_btn = QPushButton("Open Image...", self)
        self._open_btn.clicked.connect(self._choose_and_upload)  # type: ignore[arg-type]

        self._hint_label = QLabel("", self)
        self._hint_label.setAlignment(Qt.AlignmentFlag.AlignCenter)

        self._size_label = QLabel("", self)
        self._clear_btn = QPushButton("Clear Selection", self)
        self._clear_btn.clicked.connect(self._canvas.clear_selection)  # type: ignore[arg-type]
        self._download_btn = QPushButton("Download Cropped Image", self)
        self._download_btn.clicked.connect(self._download)  # type: ignore[arg-type]

        self._preview = QLabel(self)
        self._preview.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self._preview.setMinimumHeight(40)

        header = QHBoxLayout()
        header.addWidget(self._file_label, 1)
        header.addWidget(self._open_btn)

        footer = QHBoxLayout()
        footer.addWidget(self._size_label, 1)
        footer.addWidget(self._clear_btn)
        footer.addWidget(self._download_btn)

        root = QVBoxLayout(self)
        root.addLayout(header)
        root.addWidget(self._hint_label)
        root.addWidget(self._canvas, 1)
        root.addLayout(footer)
        root.addWidget(self._preview)

        # Keep the server-side session alive while the window is open, even when the
        # user is only adjusting the selection (no requests otherwise).
        self._heartbeat = QTimer(self)
        self._heartbeat.setInterval(max(1000, int(heartbeat_ms)))
        self._heartbeat.timeout.connect(self._api.heartbeat)  # type: ignore[arg-type]
        self._heartbeat.start()

        self.resize(1000, 800)
        self._on_selection_changed()

    # ----------------------------
    # Upload / load
    # ----------------------------

    def _choose_and_upload(self) -> None:
        path, _ = QFileDialog.getOpenFileName(self, "Select an image", "", _IMAGE_FILTER)
        if path:
            self.open_path(path)

    def open_path(self, path: str) -> bool:
        """
        Validate, upload and display a local file. Returns True on success.
        """
        problem = validate_image_file(path, max_bytes=self._max_upload_bytes)
        if problem is not None:
            self._notify_error("Invalid file", problem)
            return False

        try:
            uploaded = self._api.upload(path)
            data = self._api.fetch_image(uploaded.filename)
        except ApiError as e:
            self._notify_error("Upload failed", e.message)
            return False

        pixmap = QPixmap()
        if not pixmap.loadFromData(data):
            self._notify_error("Upload failed", "The server returned an image that could not be displayed")
            return False

        self._image = uploaded
        self._file_label.setText(f"{uploaded.original_name} ({format_file_size(uploaded.size)})")
        self._open_btn.setText("Replace Image...")
        self._canvas.set_image(pixmap)
        self._canvas.setFocus()
        return True

    # ----------------------------
    # Selection feedback
    # ----------------------------

    def _on_selection_changed(self) -> None:
        ctl = self._canvas.controller
        rect = ctl.rect

        if self._image is None:
            self._hint_label.setText("Open an image or drag and drop it here to start")
        elif rect is None:
            self._hint_label.setText("Click and drag to select crop area")
        else:
            self._hint_label.setText("Drag corners to resize, click inside to move, Esc to clear")

        if rect is not None:
            self._size_label.setText(f"Selection: {round(rect.width)} × {round(rect.height)} px")
        else:
            self._size_label.setText("")

        self._clear_btn.setEnabled(rect is not None)
        self._download_btn.setEnabled(self._image is not None and can_commit(ctl, self._canvas.frame))
        self._update_preview()

    def _update_preview(self) -> None:
        # Cut from the display-sized pixmap: this runs on every pointer move.
        ctl = self._canvas.controller
        pixmap = self._canvas.display_pixmap
        if pixmap is None or not can_commit(ctl, self._canvas.frame):
            self._preview.clear()
            return

        box = preview_box(ctl.rect, pixmap.width(), pixmap.height())
        if box is None:
            self._preview.clear()
            return
        cropped = pixmap.copy(*box)
        self._preview.setPixmap(
            cropped.scaled(
                _PREVIEW_PX,
                _PREVIEW_PX,
                Qt.AspectRatioMode.KeepAspectRatio,
                Qt.TransformationMode.FastTransformation,
            )
        )

    # ----------------------------
    # Commit
    # ----------------------------

    def _download(self) -> None:
        """
        Map the selection to source pixels, request the crop and save it.

        No-op when commit is disabled (no image, empty selection, layout not ready).
        """
        if self._image is None:
            return
        req = build_crop_request(self._image.filename, self._canvas.controller, self._canvas.frame)
        if req is None:
            return

        self._download_btn.setEnabled(False)
        self._download_btn.setText("Processing...")
        try:
            result = self._api.crop(req)
        except ApiError as e:
            self._notify_error("Crop failed", e.message)
            return
        finally:
            self._download_btn.setText("Download Cropped Image")
            self._on_selection_changed()

        # The server picks the encoding (crop.output_format); name the file after it.
        ext = result.extension
        suggested = f"cropped-{Path(self._image.original_name).stem}{ext}"
        target, _ = QFileDialog.getSaveFileName(self, "Save cropped image", suggested, save_filter_for(ext))
        if not target:
            return
        try:
            Path(target).write_bytes(result.data)
        except OSError as e:
            self._notify_error("Save failed", str(e))
            return
        QMessageBox.information(self, "Success", "Cropped image downloaded successfully!")

    def _notify_error(self, title: str, message: str) -> None:
        QMessageBox.warning(self, title, message or "Something went wrong")

    def _retire_current(self) -> None:
        """
        Ask the server to delete the open upload.

        404 means it is already gone (retired after a crop, or swept); that is fine.
        """
        if self._image is None:
            return
        filename = self._image.filename
        self._image = None
        try:
            self._api.retire(filename)
            print("[client]", "retired upload", filename, flush=True)
        except ApiError as e:
            if e.status_code != 404:
                print("[client]", "failed to retire upload", filename, ":", e.message, flush=True)

    # ----------------------------
    # Qt events
    # ----------------------------

    def dragEnterEvent(self, event) -> None:  # type: ignore[override]
        if event.mimeData().hasUrls():
            event.acceptProposedAction()

    def dropEvent(self, event) -> None:  # type: ignore[override]
        path = first_dropped_file(url.toLocalFile() for url in event.mimeData().urls())
        if path is None:
            return
        event.acceptProposedAction()
        self.open_path(path)

    def closeEvent(self, event) -> None:  # type: ignore[override]
        """
        Stop the heartbeat, delete the open upload on the server, release the HTTP
        client and propagate the close.
        """
        self._heartbeat.stop()
        self._retire_current()
        self._api.close()
        if callable(self._on_close):
            self._on_close()
        event.accept()
