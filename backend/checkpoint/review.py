"""Review flow behind the admin screen.

The submissions collection is consumed as a stream of full snapshots; every
snapshot is re-projected in full (no diffing) into a list sorted newest first.
"""

from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Optional

from pydantic import ValidationError

from .identifiers import VEHICLE, IdentifierScheme
from .schemas import Notice, NoticeKind, Submission
from .signal import SignalRelay
from .stores import RecordStore, StoreError
from .time_utils import OLDEST, parse_timestamp

logger = logging.getLogger("checkpoint.review")

SIGNAL_FAILED = "Failed to update LED status"


def _text(value: Any, default: str) -> str:
    # Other clients may write numbers; nested or boolean values are unreadable.
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        return default
    return str(value) if value != "" else default


def materialize(snapshot: Any, scheme: IdentifierScheme = VEHICLE) -> list[Submission]:
    if not isinstance(snapshot, dict):
        return []
    items: list[Submission] = []
    for key, value in snapshot.items():
        if not isinstance(value, dict):
            logger.debug("Skipping non-record child %r", key)
            continue
        try:
            item = Submission(
                id=str(key),
                identifier=_text(value.get(scheme.field), scheme.placeholder),
                timestamp=_text(value.get("timestamp"), ""),
                image_url=_text(value.get("imageUrl"), ""),
            )
        except ValidationError as exc:
            logger.debug("Skipping unreadable record %r: %s", key, exc)
            continue
        items.append(item)
    return items


def _sort_key(item: Submission):
    return parse_timestamp(item.timestamp) or OLDEST


def project_submissions(snapshot: Any, scheme: IdentifierScheme = VEHICLE) -> list[Submission]:
    """Materialize a collection snapshot and order it by timestamp, most recent first."""
    return sorted(materialize(snapshot, scheme), key=_sort_key, reverse=True)


class ReviewFlow:
    def __init__(
        self,
        records: RecordStore,
        relay: Optional[SignalRelay] = None,
        *,
        scheme: IdentifierScheme = VEHICLE,
        submissions_path: str = "data",
    ) -> None:
        self.records = records
        self.relay = relay or SignalRelay(records)
        self.scheme = scheme
        self.submissions_path = submissions_path
        self.submissions: list[Submission] = []
        self.overlay: Optional[str] = None
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    async def projections(self) -> AsyncIterator[list[Submission]]:
        """Yield a fresh projection for the current contents and after every change.

        Each call opens its own subscription, released when the iterator closes.
        Nothing is yielded once the flow has been closed.
        """
        stream = self.records.subscribe(self.submissions_path)
        try:
            async for snapshot in stream:
                if not self._active:
                    break
                yield project_submissions(snapshot, self.scheme)
        finally:
            await stream.aclose()

    async def run(self) -> None:
        """Keep ``submissions`` in step with the store until the flow is closed."""
        try:
            async for items in self.projections():
                self.submissions = items
                logger.debug("Projection refreshed: %d submissions", len(items))
        except StoreError as exc:
            logger.error("Submissions subscription failed: %s", exc)

    def close(self) -> None:
        self._active = False

    def find(self, submission_id: str) -> Optional[Submission]:
        for item in self.submissions:
            if item.id == submission_id:
                return item
        return None

    async def decide(self, approved: bool) -> Notice:
        try:
            value = await self.relay.send(approved)
        except StoreError as exc:
            logger.error("Error updating LED: %s", exc)
            return Notice(kind=NoticeKind.FAILURE, message=SIGNAL_FAILED)
        return Notice(kind=NoticeKind.SUCCESS, message=f"LED turned {value}")

    def select(self, submission_id: str) -> Optional[str]:
        """Open the full-size overlay for a submission; returns the image URL shown."""
        item = self.find(submission_id)
        if item is None or not item.has_image:
            return None
        self.overlay = item.image_url
        return self.overlay

    def close_overlay(self) -> None:
        self.overlay = None
