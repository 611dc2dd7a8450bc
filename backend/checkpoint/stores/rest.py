"""Record and blob stores speaking the Firebase REST APIs through httpx."""

from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator, Mapping, Optional
from urllib.parse import quote

import httpx

from .base import DOWNLOAD_BASE_URL, BlobStore, RecordStore, StoreError, download_url_for
from .tree import SnapshotTree, join_path

logger = logging.getLogger("checkpoint.stores.rest")


def _raise_for_status(resp: httpx.Response, label: str) -> None:
    if resp.status_code == 401:
        raise StoreError(f"{label} auth failed (401).")
    if resp.status_code == 404:
        raise StoreError(f"{label} path not found.")
    if resp.status_code >= 400:
        raise StoreError(f"{label} error: status {resp.status_code}")


def _json(resp: httpx.Response, label: str) -> Any:
    try:
        return resp.json()
    except ValueError as exc:
        raise StoreError(f"Invalid {label} response.") from exc


class RestRecordStore(RecordStore):
    def __init__(
        self,
        database_url: str,
        *,
        auth_token: str = "",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not database_url:
            raise ValueError("rest mode requires a database URL.")
        self._base = database_url.rstrip("/")
        self._params = {"auth": auth_token} if auth_token else None
        self._timeout = httpx.Timeout(timeout, connect=min(timeout, 4.0))
        self._client = httpx.AsyncClient(
            timeout=self._timeout, transport=transport, follow_redirects=True
        )

    def _url(self, path: str) -> str:
        return f"{self._base}/{join_path(path)}.json"

    async def _request(self, method: str, path: str, payload: Any = None) -> Any:
        kwargs: dict[str, Any] = {"params": self._params}
        if method != "GET":
            kwargs["json"] = payload
        try:
            resp = await self._client.request(method, self._url(path), **kwargs)
        except httpx.HTTPError as exc:
            raise StoreError(f"RTDB request failed: {exc.__class__.__name__}") from exc
        _raise_for_status(resp, "RTDB")
        return _json(resp, "RTDB")

    async def push(self, path: str, value: Any) -> str:
        data = await self._request("POST", path, value)
        if not isinstance(data, dict) or not data.get("name"):
            raise StoreError("Invalid RTDB response.")
        return data["name"]

    async def update(self, path: str, values: Mapping[str, Any]) -> None:
        await self._request("PATCH", path, dict(values))

    async def set(self, path: str, value: Any) -> None:
        await self._request("PUT", path, value)

    async def get(self, path: str) -> Any:
        return await self._request("GET", path)

    async def subscribe(self, path: str) -> AsyncIterator[Any]:
        tree = SnapshotTree()
        headers = {"Accept": "text/event-stream"}
        timeout = httpx.Timeout(self._timeout.connect, read=None)
        try:
            async with self._client.stream(
                "GET", self._url(path), params=self._params, headers=headers, timeout=timeout
            ) as resp:
                _raise_for_status(resp, "RTDB")
                logger.info("Streaming %r", path)
                event_type = ""
                data_lines: list[str] = []
                async for line in resp.aiter_lines():
                    if line.startswith("event:"):
                        event_type = line[len("event:"):].strip()
                    elif line.startswith("data:"):
                        data_lines.append(line[len("data:"):].strip())
                    elif not line:
                        snapshot = self._dispatch(tree, event_type, "\n".join(data_lines))
                        event_type, data_lines = "", []
                        if snapshot is not _SKIP:
                            yield snapshot
        except httpx.HTTPError as exc:
            raise StoreError(f"RTDB stream failed: {exc.__class__.__name__}") from exc
        finally:
            logger.info("Stream for %r closed", path)

    @staticmethod
    def _dispatch(tree: SnapshotTree, event_type: str, raw: str) -> Any:
        if event_type in ("", "keep-alive"):
            return _SKIP
        if event_type == "cancel":
            raise StoreError("RTDB stream cancelled: permission denied.")
        if event_type == "auth_revoked":
            raise StoreError("RTDB stream auth revoked.")
        if event_type not in ("put", "patch"):
            logger.debug("Ignoring RTDB stream event %r", event_type)
            return _SKIP
        try:
            message = json.loads(raw)
        except ValueError as exc:
            raise StoreError("Invalid RTDB stream payload.") from exc
        return tree.apply(event_type, message.get("path", "/"), message.get("data"))

    async def close(self) -> None:
        await self._client.aclose()


_SKIP = object()


class RestBlobStore(BlobStore):
    def __init__(
        self,
        bucket: str,
        *,
        auth_token: str = "",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not bucket:
            raise ValueError("storage bucket name is required for upload.")
        self.bucket = bucket
        self._base = f"{DOWNLOAD_BASE_URL}/{bucket}/o"
        self._headers = {"Authorization": f"Firebase {auth_token}"} if auth_token else {}
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout, connect=min(timeout, 4.0)),
            transport=transport,
            headers=self._headers,
        )

    async def put(self, name: str, data: bytes, content_type: str) -> None:
        try:
            resp = await self._client.post(
                self._base,
                params={"name": name},
                content=data,
                headers={"Content-Type": content_type},
            )
        except httpx.HTTPError as exc:
            raise StoreError(f"Storage upload failed: {exc.__class__.__name__}") from exc
        _raise_for_status(resp, "Storage")

    async def download_url(self, name: str) -> str:
        try:
            resp = await self._client.get(f"{self._base}/{quote(name, safe='')}")
        except httpx.HTTPError as exc:
            raise StoreError(f"Storage request failed: {exc.__class__.__name__}") from exc
        _raise_for_status(resp, "Storage")
        metadata = _json(resp, "Storage")
        tokens = metadata.get("downloadTokens", "") if isinstance(metadata, dict) else ""
        token = tokens.split(",")[0].strip()
        if not token:
            raise StoreError(f"object {name!r} has no download token")
        return download_url_for(self.bucket, name, token)

    async def close(self) -> None:
        await self._client.aclose()
