from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import RedirectResponse, StreamingResponse

from ..deps import get_review_flow, raise_for_notice
from ..review import ReviewFlow
from ..schemas import DecisionRequest, Notice, OverlayState, SignalState, Submission, SubmissionList
from ..stores import StoreError

router = APIRouter(prefix="/api/admin", tags=["admin"])


def to_submission_list(flow: ReviewFlow, items: list[Submission]) -> SubmissionList:
    return SubmissionList(identifierField=flow.scheme.field, count=len(items), submissions=items)


@router.get("/submissions", response_model=SubmissionList, summary="Submissions, newest first")
def list_submissions(flow: ReviewFlow = Depends(get_review_flow)) -> SubmissionList:
    return to_submission_list(flow, flow.submissions)


@router.get("/submissions/stream", summary="Live submissions feed (server-sent events)")
async def stream_submissions(
    request: Request,
    flow: ReviewFlow = Depends(get_review_flow),
    limit: Optional[int] = Query(None, ge=1, description="Stop after this many frames"),
) -> StreamingResponse:
    async def _events():
        projections = flow.projections()
        sent = 0
        try:
            async for items in projections:
                if await request.is_disconnected():
                    break
                payload = to_submission_list(flow, items).model_dump_json(by_alias=True)
                yield f"event: submissions\ndata: {payload}\n\n"
                sent += 1
                if limit is not None and sent >= limit:
                    break
        except StoreError as exc:
            yield f"event: error\ndata: {exc}\n\n"
        finally:
            await projections.aclose()

    return StreamingResponse(
        _events(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache"},
    )


@router.get("/submissions/{submission_id}/image", summary="Open the full-size image")
def submission_image(
    submission_id: str,
    flow: ReviewFlow = Depends(get_review_flow),
) -> RedirectResponse:
    url = flow.select(submission_id)
    if url is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No image for this submission.")
    return RedirectResponse(url, status_code=status.HTTP_307_TEMPORARY_REDIRECT)


@router.get("/overlay", response_model=OverlayState, summary="Image shown in the overlay, if open")
def read_overlay(flow: ReviewFlow = Depends(get_review_flow)) -> OverlayState:
    return OverlayState(imageUrl=flow.overlay)


@router.delete("/overlay", status_code=status.HTTP_204_NO_CONTENT, summary="Close the image overlay")
def close_overlay(flow: ReviewFlow = Depends(get_review_flow)) -> None:
    flow.close_overlay()


@router.post("/signal", response_model=Notice, summary="Approve or disapprove (LED on/off)")
async def send_signal(
    payload: DecisionRequest,
    flow: ReviewFlow = Depends(get_review_flow),
) -> Notice:
    return raise_for_notice(await flow.decide(payload.approved))


@router.get("/signal", response_model=SignalState, summary="Last written signal value")
async def read_signal(flow: ReviewFlow = Depends(get_review_flow)) -> SignalState:
    try:
        value = await flow.relay.current()
    except StoreError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    return SignalState(led=value)
