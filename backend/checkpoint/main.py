from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import routers
from .camera import Camera, resolve_camera_index
from .capture import CaptureFlow
from .config import Settings, get_settings
from .identifiers import get_scheme
from .review import ReviewFlow
from .signal import SignalRelay
from .stores import BlobStore, RecordStore, build_stores


def create_app(
    settings: Optional[Settings] = None,
    *,
    records: Optional[RecordStore] = None,
    blobs: Optional[BlobStore] = None,
    camera: Optional[Camera] = None,
) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger = logging.getLogger("checkpoint")
    scheme = get_scheme(settings.identifier_scheme)

    if records is None or blobs is None:
        built_records, built_blobs = build_stores(settings)
        records = built_records if records is None else records
        blobs = built_blobs if blobs is None else blobs

    if camera is None and settings.camera_enabled:
        index, auto_resolved = resolve_camera_index(settings.camera_index, settings.camera_name)
        if auto_resolved:
            logger.info("Auto-selected camera index %s by name hint %r", index, settings.camera_name)
        camera = Camera(index, warmup_seconds=settings.camera_warmup_seconds)

    app = FastAPI(
        title="Checkpoint Capture Backend",
        version="0.1.0",
    )

    if settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.state.settings = settings
    app.state.scheme = scheme
    app.state.records = records
    app.state.blobs = blobs
    app.state.capture = CaptureFlow(
        records,
        blobs,
        scheme=scheme,
        identifier_required=settings.identifier_required,
        submissions_path=settings.submissions_path,
        storage_prefix=settings.storage_prefix,
        camera=camera,
    )
    app.state.review = ReviewFlow(
        records,
        SignalRelay(records, settings.signal_path),
        scheme=scheme,
        submissions_path=settings.submissions_path,
    )
    app.state.review_task = None

    app.include_router(routers.health.router)
    app.include_router(routers.capture.router)
    app.include_router(routers.admin.router)

    @app.on_event("startup")
    async def _startup() -> None:
        notice = await app.state.capture.start()
        if notice is not None:
            logger.warning("Capture screen running without camera: %s", notice.message)
        app.state.review_task = asyncio.create_task(app.state.review.run())
        logger.info(
            "Checkpoint backend started (store=%s, identifier=%s)",
            settings.store_mode,
            scheme.field,
        )

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        app.state.review.close()
        task = app.state.review_task
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        await app.state.capture.close()
        await records.close()
        await blobs.close()

    return app
