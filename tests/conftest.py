"""Shared pytest fixtures for the checkpoint test suite."""

from __future__ import annotations

from datetime import datetime, timezone

import cv2
import numpy as np
import pytest

from checkpoint.config import Settings
from checkpoint.stores import MemoryBlobStore, MemoryRecordStore

FIXED_NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


class FakeVideoCapture:
    """Stands in for cv2.VideoCapture."""

    def __init__(self, opened: bool = True, frames=None):
        self.opened = opened
        self.frames = list(frames if frames is not None else [np.zeros((8, 8, 3), dtype=np.uint8)])
        self.released = False

    def isOpened(self):
        return self.opened

    def read(self):
        if not self.frames:
            return False, None
        return True, self.frames.pop(0)

    def release(self):
        self.released = True


@pytest.fixture
def png_bytes() -> bytes:
    ok, buffer = cv2.imencode(".png", np.full((4, 4, 3), 255, dtype=np.uint8))
    assert ok
    return buffer.tobytes()


@pytest.fixture
def records() -> MemoryRecordStore:
    return MemoryRecordStore()


@pytest.fixture
def blobs() -> MemoryBlobStore:
    return MemoryBlobStore("test-bucket")


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def settings() -> Settings:
    return Settings(
        store_mode="memory",
        identifier_scheme="vehicle",
        identifier_required=True,
        camera_enabled=False,
        cors_origins=[],
        log_level="INFO",
    )
