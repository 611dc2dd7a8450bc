from __future__ import annotations

from fastapi import HTTPException, Request, status

from .capture import CaptureFlow
from .review import ReviewFlow
from .schemas import Notice, NoticeKind

_STATUS_BY_KIND = {
    NoticeKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    NoticeKind.BUSY: status.HTTP_409_CONFLICT,
    NoticeKind.FAILURE: status.HTTP_502_BAD_GATEWAY,
}


def get_capture_flow(request: Request) -> CaptureFlow:
    return request.app.state.capture


def get_review_flow(request: Request) -> ReviewFlow:
    return request.app.state.review


def raise_for_notice(notice: Notice) -> Notice:
    """Turn a non-success notice into the matching HTTP error."""
    if notice.ok:
        return notice
    raise HTTPException(status_code=_STATUS_BY_KIND[notice.kind], detail=notice.message)
