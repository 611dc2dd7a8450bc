"""Record and blob stores backed by the firebase-admin SDK.

The SDK is blocking, so every call runs in a worker thread.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, AsyncIterator, Mapping, Optional
from uuid import uuid4

import firebase_admin
import requests
from firebase_admin import credentials, db, exceptions, storage as fb_storage
from google.api_core.exceptions import GoogleAPIError
from google.auth.exceptions import GoogleAuthError

from .base import BlobStore, RecordStore, StoreError, download_url_for
from .tree import SnapshotTree, join_path

logger = logging.getLogger("checkpoint.stores.firebase")

DOWNLOAD_TOKEN_KEY = "firebaseStorageDownloadTokens"

# google-cloud-storage surfaces transport and credential failures unwrapped.
_FAILURES = (
    exceptions.FirebaseError,
    GoogleAPIError,
    GoogleAuthError,
    requests.RequestException,
    ValueError,
)


def init_firebase(
    credentials_path: Path, database_url: str | None, storage_bucket: str | None
) -> firebase_admin.App:
    if not credentials_path.exists():
        raise FileNotFoundError(f"Service-account file not found: {credentials_path}")
    if firebase_admin._apps:  # type: ignore[attr-defined]
        return firebase_admin.get_app()
    cred = credentials.Certificate(credentials_path)
    options: dict[str, str] = {}
    if database_url:
        options["databaseURL"] = database_url
    if storage_bucket:
        options["storageBucket"] = storage_bucket
    return firebase_admin.initialize_app(cred, options or None)


class FirebaseRecordStore(RecordStore):
    def __init__(self, app: Optional[firebase_admin.App] = None) -> None:
        self._app = app

    def _reference(self, path: str) -> db.Reference:
        return db.reference(f"/{join_path(path)}", app=self._app)

    async def _call(self, description: str, func, *args) -> Any:
        try:
            return await asyncio.to_thread(func, *args)
        except _FAILURES as exc:
            raise StoreError(f"{description} failed: {exc}") from exc

    async def push(self, path: str, value: Any) -> str:
        reference = await self._call(f"push {path!r}", self._reference(path).push, value)
        return reference.key

    async def update(self, path: str, values: Mapping[str, Any]) -> None:
        await self._call(f"update {path!r}", self._reference(path).update, dict(values))

    async def set(self, path: str, value: Any) -> None:
        await self._call(f"set {path!r}", self._reference(path).set, value)

    async def get(self, path: str) -> Any:
        return await self._call(f"get {path!r}", self._reference(path).get)

    async def subscribe(self, path: str) -> AsyncIterator[Any]:
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue = asyncio.Queue()
        tree = SnapshotTree()

        def _on_event(event: db.Event) -> None:
            # Runs on the SDK's listener thread.
            snapshot = tree.apply(event.event_type, event.path, event.data)
            loop.call_soon_threadsafe(queue.put_nowait, snapshot)

        registration = await self._call(
            f"listen {path!r}", self._reference(path).listen, _on_event
        )
        logger.info("Listening to %r", path)
        try:
            while True:
                yield await queue.get()
        finally:
            await asyncio.to_thread(registration.close)
            logger.info("Stopped listening to %r", path)


class FirebaseBlobStore(BlobStore):
    def __init__(
        self,
        bucket_name: str | None = None,
        app: Optional[firebase_admin.App] = None,
        *,
        bucket: Any = None,
    ) -> None:
        self._bucket = bucket if bucket is not None else fb_storage.bucket(bucket_name or None, app=app)

    async def put(self, name: str, data: bytes, content_type: str) -> None:
        blob = self._bucket.blob(name)
        blob.metadata = {DOWNLOAD_TOKEN_KEY: str(uuid4())}
        try:
            await asyncio.to_thread(blob.upload_from_string, data, content_type=content_type)
        except _FAILURES as exc:
            raise StoreError(f"upload of {name!r} failed: {exc}") from exc

    async def download_url(self, name: str) -> str:
        try:
            blob = await asyncio.to_thread(self._bucket.get_blob, name)
        except _FAILURES as exc:
            raise StoreError(f"URL resolution for {name!r} failed: {exc}") from exc
        if blob is None:
            raise StoreError(f"object {name!r} not found")
        tokens = (blob.metadata or {}).get(DOWNLOAD_TOKEN_KEY, "")
        token = tokens.split(",")[0].strip()
        if not token:
            return blob.public_url
        return download_url_for(self._bucket.name, name, token)
