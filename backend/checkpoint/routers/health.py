from __future__ import annotations

from fastapi import APIRouter, Request

router = APIRouter(tags=["system"])


@router.get("/health", summary="Simple health probe")
def health_check(request: Request) -> dict[str, str]:
    return {"status": "ok", "store": request.app.state.settings.store_mode}
