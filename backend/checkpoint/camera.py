"""Local camera access through OpenCV.

A ``Camera`` owns the device between ``open()`` and ``release()``; use it as a
context manager to guarantee the device is handed back on every exit path.
"""

from __future__ import annotations

import logging
import os
import time
from typing import Callable, List, Optional, Tuple

import cv2
import numpy as np

logger = logging.getLogger("checkpoint.camera")


class CameraUnavailable(RuntimeError):
    """The camera could not be opened or stopped delivering frames."""


def encode_png(frame: np.ndarray) -> bytes:
    success, buffer = cv2.imencode(".png", frame)
    if not success:
        raise CameraUnavailable("Failed to encode frame as PNG.")
    return buffer.tobytes()


def decode_image(data: bytes) -> Optional[np.ndarray]:
    """Decode encoded image bytes; returns None when they are not a readable image."""
    if not data:
        return None
    array = np.frombuffer(data, dtype=np.uint8)
    return cv2.imdecode(array, cv2.IMREAD_COLOR)


class Camera:
    def __init__(
        self,
        index: int = 0,
        *,
        warmup_seconds: float = 1.5,
        capture_factory: Optional[Callable[..., "cv2.VideoCapture"]] = None,
    ) -> None:
        self.index = index
        self.warmup_seconds = warmup_seconds
        self._factory = capture_factory or cv2.VideoCapture
        self._capture = None

    @property
    def is_open(self) -> bool:
        return self._capture is not None

    def open(self) -> None:
        if self._capture is not None:
            return
        backend = cv2.CAP_DSHOW if os.name == "nt" else 0
        capture = self._factory(self.index, backend)
        if not capture.isOpened():
            capture.release()
            raise CameraUnavailable(f"Camera index {self.index} could not be opened.")
        time.sleep(max(0.0, self.warmup_seconds))
        self._capture = capture
        logger.info("Camera %s opened", self.index)

    def read_frame(self) -> np.ndarray:
        if self._capture is None:
            raise CameraUnavailable("Camera is not open.")
        ok, frame = self._capture.read()
        if not ok or frame is None:
            raise CameraUnavailable("Failed to read frame from camera.")
        return frame

    def grab_png(self) -> bytes:
        return encode_png(self.read_frame())

    def release(self) -> None:
        if self._capture is None:
            return
        try:
            self._capture.release()
        finally:
            self._capture = None
            logger.info("Camera %s released", self.index)

    def __enter__(self) -> "Camera":
        self.open()
        return self

    def __exit__(self, *exc_info) -> None:
        self.release()


def list_camera_devices() -> List[str]:
    try:
        from pygrabber.dshow_graph import FilterGraph
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("pygrabber is required to enumerate camera devices.") from exc
    graph = FilterGraph()
    return graph.get_input_devices()


def resolve_camera_index(index: int, name_hint: str = "") -> Tuple[int, bool]:
    """Return ``(index, auto_resolved)``, preferring a device whose name contains ``name_hint``."""
    if not name_hint:
        return index, False
    try:
        devices = list_camera_devices()
    except RuntimeError as exc:
        logger.warning("Unable to list camera devices: %s", exc)
        return index, False
    for idx, device_name in enumerate(devices):
        if name_hint.lower() in device_name.lower():
            return idx, True
    logger.warning(
        "Could not find a camera containing %r; falling back to index %s", name_hint, index
    )
    return index, False
