"""In-process record and blob stores.

They implement the same contracts as the Firebase-backed stores so the capture
and review flows can run (and be tested) without network access.
"""

from __future__ import annotations

import asyncio
import copy
import logging
import secrets
import time
from typing import Any, AsyncIterator, Callable, Mapping, Optional

from .base import BlobStore, RecordStore, StoreError
from .tree import SnapshotTree, get_at, merge_at, set_at, split_path

logger = logging.getLogger("checkpoint.stores.memory")

PUSH_CHARS = "-0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ_abcdefghijklmnopqrstuvwxyz"


class PushIdGenerator:
    """Realtime-database style keys: 8 timestamp chars followed by 12 random chars.

    Keys sort lexicographically in creation order, including keys generated
    within the same millisecond.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._last_millis = -1
        self._last_random: list[int] = []

    def __call__(self) -> str:
        now = int(self._clock() * 1000)
        duplicate = now == self._last_millis
        self._last_millis = now

        stamp = []
        for _ in range(8):
            stamp.append(PUSH_CHARS[now % 64])
            now //= 64
        stamp.reverse()

        if not duplicate:
            self._last_random = [secrets.randbelow(64) for _ in range(12)]
        else:
            index = 11
            while index >= 0 and self._last_random[index] == 63:
                self._last_random[index] = 0
                index -= 1
            if index >= 0:
                self._last_random[index] += 1
        return "".join(stamp) + "".join(PUSH_CHARS[i] for i in self._last_random)


class MemoryRecordStore(RecordStore):
    def __init__(self, initial: Any = None, *, push_ids: Optional[Callable[[], str]] = None) -> None:
        self._root: Any = SnapshotTree().apply("put", "/", initial)
        self._push_ids = push_ids or PushIdGenerator()
        self._watchers: list[tuple[list[str], asyncio.Queue]] = []
        # Operation names ("push", "update", "set", "get") that should fail.
        self.broken: set[str] = set()
        self.writes: list[tuple[str, str, Any]] = []

    def _check(self, operation: str, path: str) -> None:
        if operation in self.broken:
            raise StoreError(f"{operation} {path!r} failed: store unavailable")

    def _notify(self, segments: list[str]) -> None:
        for watched, queue in self._watchers:
            # A change is visible to a watcher when one path is a prefix of the other.
            if watched[: len(segments)] == segments[: len(watched)]:
                queue.put_nowait(self._snapshot(watched))

    def _snapshot(self, segments: list[str]) -> Any:
        return copy.deepcopy(get_at(self._root, segments))

    async def push(self, path: str, value: Any) -> str:
        self._check("push", path)
        key = self._push_ids()
        segments = split_path(path) + [key]
        self._root = set_at(self._root, segments, value)
        self.writes.append(("push", "/".join(segments), value))
        self._notify(segments)
        return key

    async def update(self, path: str, values: Mapping[str, Any]) -> None:
        self._check("update", path)
        segments = split_path(path)
        self._root = merge_at(self._root, segments, values)
        self.writes.append(("update", "/".join(segments), dict(values)))
        self._notify(segments)

    async def set(self, path: str, value: Any) -> None:
        self._check("set", path)
        segments = split_path(path)
        self._root = set_at(self._root, segments, value)
        self.writes.append(("set", "/".join(segments), value))
        self._notify(segments)

    async def get(self, path: str) -> Any:
        self._check("get", path)
        return self._snapshot(split_path(path))

    async def subscribe(self, path: str) -> AsyncIterator[Any]:
        self._check("subscribe", path)
        segments = split_path(path)
        queue: asyncio.Queue = asyncio.Queue()
        entry = (segments, queue)
        self._watchers.append(entry)
        logger.debug("Subscribed to %r", path)
        try:
            yield self._snapshot(segments)
            while True:
                yield await queue.get()
        finally:
            self._watchers.remove(entry)
            logger.debug("Unsubscribed from %r", path)

    @property
    def subscriber_count(self) -> int:
        return len(self._watchers)


class MemoryBlobStore(BlobStore):
    def __init__(self, bucket: str = "local") -> None:
        self.bucket = bucket
        self.objects: dict[str, tuple[bytes, str]] = {}
        self.broken: set[str] = set()

    async def put(self, name: str, data: bytes, content_type: str) -> None:
        if "put" in self.broken:
            raise StoreError(f"upload of {name!r} failed: store unavailable")
        if name in self.objects:
            raise StoreError(f"object {name!r} already exists")
        self.objects[name] = (bytes(data), content_type)

    async def download_url(self, name: str) -> str:
        if "download_url" in self.broken:
            raise StoreError(f"URL resolution for {name!r} failed: store unavailable")
        if name not in self.objects:
            raise StoreError(f"object {name!r} not found")
        return f"memory://{self.bucket}/{name}"
