"""Capture flow: grab or pick an image, then upload it and record the submission.

Ordering within ``submit`` is fixed: upload the blob, resolve its download URL,
then append the metadata record. A failed step stops the sequence; an orphaned
blob left by a failed record write is not cleaned up.
"""

from __future__ import annotations

import asyncio
import logging
import mimetypes
import re
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import PurePath
from typing import Callable, Optional

from .camera import Camera, CameraUnavailable, decode_image
from .identifiers import VEHICLE, IdentifierScheme
from .schemas import CaptureState, Notice, NoticeKind
from .stores import BlobStore, RecordStore, StoreError
from .stores.tree import join_path
from .time_utils import epoch_millis, iso_timestamp, utc_now

logger = logging.getLogger("checkpoint.capture")

CAMERA_ERROR = "Unable to access the camera."
NO_PREVIEW = "Please capture a photo first."
UPLOAD_OK = "Upload successful!"
UPLOAD_FAILED = "Upload failed. Please try again."
UPLOAD_BUSY = "Upload already in progress."
NOT_AN_IMAGE = "The selected file is not a readable image."

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass
class Preview:
    data: bytes
    content_type: str = "image/png"
    source: str = "camera"
    filename: Optional[str] = None
    captured_at: datetime = field(default_factory=utc_now)


def safe_filename(name: str) -> str:
    base = PurePath(name.replace("\\", "/")).name
    cleaned = _UNSAFE_NAME_CHARS.sub("_", base).strip("._")
    return cleaned or "upload"


def guess_content_type(filename: Optional[str], declared: Optional[str]) -> str:
    if declared and declared != "application/octet-stream":
        return declared
    guessed, _ = mimetypes.guess_type(filename or "")
    return guessed or "application/octet-stream"


class CaptureFlow:
    """One operator's capture screen.

    Every operation returns a ``Notice`` for the operator instead of raising.
    ``submit`` is gated by ``uploading`` so a second submit while one is in
    flight makes no external calls. After ``close()`` an in-flight submit may
    still finish its external calls, but no longer touches the flow's state.
    """

    def __init__(
        self,
        records: RecordStore,
        blobs: BlobStore,
        *,
        scheme: IdentifierScheme = VEHICLE,
        identifier_required: bool = True,
        submissions_path: str = "data",
        storage_prefix: str = "images",
        camera: Optional[Camera] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.records = records
        self.blobs = blobs
        self.scheme = scheme
        self.identifier_required = identifier_required
        self.submissions_path = submissions_path
        self.storage_prefix = storage_prefix
        self.camera = camera
        self.clock = clock

        self.preview: Optional[Preview] = None
        self.identifier = ""
        self.uploading = False
        self.camera_error: Optional[str] = None
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    # Lifecycle -------------------------------------------------------------

    async def start(self) -> Optional[Notice]:
        """Acquire the camera, if this flow has one. Failures are reported once, here."""
        if self.camera is None:
            return None
        try:
            await asyncio.to_thread(self.camera.open)
        except CameraUnavailable as exc:
            logger.error("Error accessing camera: %s", exc)
            self.camera_error = CAMERA_ERROR
            return Notice(kind=NoticeKind.FAILURE, message=CAMERA_ERROR)
        self.camera_error = None
        return None

    async def close(self) -> None:
        self._active = False
        if self.camera is not None:
            await asyncio.to_thread(self.camera.release)

    async def __aenter__(self) -> "CaptureFlow":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # Image sources ---------------------------------------------------------

    async def capture(self) -> Notice:
        """Grab the current camera frame as a PNG preview, replacing any earlier one."""
        if self.camera is None or not self.camera.is_open:
            return Notice(kind=NoticeKind.FAILURE, message=self.camera_error or CAMERA_ERROR)
        try:
            data = await asyncio.to_thread(self.camera.grab_png)
        except CameraUnavailable as exc:
            logger.error("Error capturing frame: %s", exc)
            return Notice(kind=NoticeKind.FAILURE, message=CAMERA_ERROR)
        if not self._active:
            return Notice(kind=NoticeKind.FAILURE, message=CAMERA_ERROR)
        self.preview = Preview(data=data, captured_at=self.clock())
        return Notice(kind=NoticeKind.SUCCESS, message="Photo captured.")

    def load_file(
        self, filename: Optional[str], data: bytes, content_type: Optional[str] = None
    ) -> Notice:
        """Use a picked file as the preview."""
        if decode_image(data) is None:
            return Notice(kind=NoticeKind.VALIDATION, message=NOT_AN_IMAGE)
        self.preview = Preview(
            data=data,
            content_type=guess_content_type(filename, content_type),
            source="file",
            filename=filename or None,
            captured_at=self.clock(),
        )
        return Notice(kind=NoticeKind.SUCCESS, message="Photo selected.")

    def set_identifier(self, value: str) -> None:
        self.identifier = value

    def cancel(self) -> None:
        self.preview = None
        self.identifier = ""

    # Submission ------------------------------------------------------------

    def object_name(self, preview: Preview) -> str:
        stamp = epoch_millis(self.clock())
        if preview.source == "file" and preview.filename:
            name = f"{stamp}-{safe_filename(preview.filename)}"
        else:
            name = f"photo-{stamp}.png"
        return join_path(self.storage_prefix, name)

    def validate(self) -> Optional[Notice]:
        if self.preview is None:
            return Notice(kind=NoticeKind.VALIDATION, message=NO_PREVIEW)
        value = self.scheme.normalize(self.identifier)
        problem = self.scheme.validate(value, required=self.identifier_required)
        if problem:
            return Notice(kind=NoticeKind.VALIDATION, message=problem)
        return None

    async def submit(self, identifier: Optional[str] = None) -> Notice:
        if identifier is not None:
            self.identifier = identifier
        if self.uploading:
            return Notice(kind=NoticeKind.BUSY, message=UPLOAD_BUSY)
        problem = self.validate()
        if problem is not None:
            return problem

        preview = self.preview
        value = self.scheme.normalize(self.identifier)
        self.uploading = True
        try:
            name = self.object_name(preview)
            try:
                await self.blobs.put(name, preview.data, preview.content_type)
                image_url = await self.blobs.download_url(name)
            except StoreError as exc:
                logger.error("Upload error for %s: %s", name, exc)
                return Notice(kind=NoticeKind.FAILURE, message=UPLOAD_FAILED)

            record = {"imageUrl": image_url, "timestamp": iso_timestamp(self.clock())}
            if value:
                record[self.scheme.field] = value
            try:
                key = await self.records.push(self.submissions_path, record)
            except StoreError as exc:
                logger.error("Record write failed; blob %s has no record: %s", name, exc)
                return Notice(kind=NoticeKind.FAILURE, message=UPLOAD_FAILED)
        finally:
            if self._active:
                self.uploading = False

        logger.info("Submission %s stored with image %s", key, name)
        if self._active:
            self.cancel()
        return Notice(
            kind=NoticeKind.SUCCESS, message=UPLOAD_OK, submission_id=key, image_url=image_url
        )

    def state(self) -> CaptureState:
        preview = self.preview
        return CaptureState(
            has_preview=preview is not None,
            preview_source=preview.source if preview else None,
            preview_bytes=len(preview.data) if preview else 0,
            identifier=self.identifier,
            uploading=self.uploading,
            camera_ready=bool(self.camera and self.camera.is_open),
            camera_error=self.camera_error,
        )
