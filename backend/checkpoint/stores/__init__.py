from __future__ import annotations

from pathlib import Path

from .base import BlobStore, RecordStore, StoreError
from .memory import MemoryBlobStore, MemoryRecordStore
from .rest import RestBlobStore, RestRecordStore

__all__ = [
    "BlobStore",
    "MemoryBlobStore",
    "MemoryRecordStore",
    "RecordStore",
    "RestBlobStore",
    "RestRecordStore",
    "StoreError",
    "build_stores",
]


def build_stores(settings) -> tuple[RecordStore, BlobStore]:
    """Create the record and blob stores selected by ``settings.store_mode``."""
    mode = settings.store_mode
    if mode == "memory":
        return MemoryRecordStore(), MemoryBlobStore(settings.storage_bucket or "local")
    if mode == "rest":
        return (
            RestRecordStore(
                settings.database_url,
                auth_token=settings.rest_auth_token,
                timeout=settings.store_timeout,
            ),
            RestBlobStore(
                settings.storage_bucket,
                auth_token=settings.rest_auth_token,
                timeout=settings.store_timeout,
            ),
        )
    if mode == "admin":
        from .firebase import FirebaseBlobStore, FirebaseRecordStore, init_firebase

        if not settings.firebase_credentials:
            raise ValueError("admin mode requires FIREBASE_CREDENTIALS.")
        app = init_firebase(
            Path(settings.firebase_credentials).expanduser(),
            settings.database_url,
            settings.storage_bucket,
        )
        return FirebaseRecordStore(app), FirebaseBlobStore(settings.storage_bucket, app)
    raise ValueError(f"Unknown STORE_MODE {mode!r}; expected memory, rest or admin.")
