from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Mapping
from urllib.parse import quote

DOWNLOAD_BASE_URL = "https://firebasestorage.googleapis.com/v0/b"


class StoreError(Exception):
    """Raised when an external record or blob store call fails."""


def download_url_for(bucket: str, name: str, token: str) -> str:
    """Token-bearing download URL in the form Firebase Storage hands out to clients."""
    return f"{DOWNLOAD_BASE_URL}/{bucket}/o/{quote(name, safe='')}?alt=media&token={token}"


class RecordStore(ABC):
    """Tree-structured key-value store addressed by slash-separated paths."""

    @abstractmethod
    async def push(self, path: str, value: Any) -> str:
        """Append ``value`` under ``path`` with a store-generated key and return the key."""

    @abstractmethod
    async def update(self, path: str, values: Mapping[str, Any]) -> None:
        """Merge ``values`` into the children of ``path``."""

    @abstractmethod
    async def set(self, path: str, value: Any) -> None:
        """Overwrite ``path`` with ``value``."""

    @abstractmethod
    async def get(self, path: str) -> Any:
        """Return the value stored at ``path``, or None."""

    @abstractmethod
    def subscribe(self, path: str) -> AsyncIterator[Any]:
        """Stream full snapshots of ``path``: the current value, then one per change.

        Closing the iterator releases the underlying listener.
        """

    async def close(self) -> None:
        return None


class BlobStore(ABC):
    """Flat namespace of immutable objects addressable by a download URL."""

    @abstractmethod
    async def put(self, name: str, data: bytes, content_type: str) -> None:
        ...

    @abstractmethod
    async def download_url(self, name: str) -> str:
        ...

    async def close(self) -> None:
        return None
