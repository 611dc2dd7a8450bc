from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, Response, UploadFile, status

from ..capture import CAMERA_ERROR, CaptureFlow
from ..deps import get_capture_flow, raise_for_notice
from ..schemas import CaptureState, Notice, SubmitRequest

logger = logging.getLogger("checkpoint.routers.capture")

router = APIRouter(prefix="/api", tags=["capture"])


@router.get("/capture/state", response_model=CaptureState, summary="Capture screen state")
def capture_state(flow: CaptureFlow = Depends(get_capture_flow)) -> CaptureState:
    return flow.state()


@router.post("/capture/snapshot", response_model=Notice, summary="Grab a frame from the camera")
async def capture_snapshot(flow: CaptureFlow = Depends(get_capture_flow)) -> Notice:
    notice = await flow.capture()
    if not notice.ok and notice.message == CAMERA_ERROR:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=notice.message)
    return raise_for_notice(notice)


@router.post("/capture/file", response_model=Notice, summary="Use a picked file as the preview")
async def capture_file(
    image: UploadFile = File(..., description="Image file"),
    flow: CaptureFlow = Depends(get_capture_flow),
) -> Notice:
    try:
        content = await image.read()
    finally:
        await image.close()
    return raise_for_notice(flow.load_file(image.filename, content, image.content_type))


@router.get("/capture/preview", summary="Current preview image")
def capture_preview(flow: CaptureFlow = Depends(get_capture_flow)) -> Response:
    preview = flow.preview
    if preview is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No preview captured.")
    return Response(
        content=preview.data,
        media_type=preview.content_type,
        headers={"Cache-Control": "no-store"},
    )


@router.delete("/capture/preview", response_model=CaptureState, summary="Discard the preview")
def capture_cancel(flow: CaptureFlow = Depends(get_capture_flow)) -> CaptureState:
    flow.cancel()
    return flow.state()


@router.post(
    "/capture/submit",
    response_model=Notice,
    status_code=status.HTTP_201_CREATED,
    summary="Upload the preview and record the submission",
)
async def capture_submit(
    payload: SubmitRequest,
    flow: CaptureFlow = Depends(get_capture_flow),
) -> Notice:
    return raise_for_notice(await flow.submit(payload.identifier))


@router.post(
    "/submissions",
    response_model=Notice,
    status_code=status.HTTP_201_CREATED,
    summary="Submit a picked image and identifier in one request",
)
async def create_submission(
    request: Request,
    image: UploadFile = File(..., description="Captured image"),
    identifier: str = Form(""),
) -> Notice:
    state = request.app.state
    settings = state.settings
    flow = CaptureFlow(
        state.records,
        state.blobs,
        scheme=state.scheme,
        identifier_required=settings.identifier_required,
        submissions_path=settings.submissions_path,
        storage_prefix=settings.storage_prefix,
    )
    async with flow:
        try:
            content = await image.read()
        finally:
            await image.close()
        notice = flow.load_file(image.filename, content, image.content_type)
        if notice.ok:
            notice = await flow.submit(identifier)
    if not notice.ok:
        logger.info("Submission rejected: %s", notice.message)
    return raise_for_notice(notice)
