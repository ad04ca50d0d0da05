# filedrop_backend/app/routers/uploads.py
from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import PlainTextResponse
from starlette.requests import ClientDisconnect

from .. import schemas
from ..coordinator import UploadCoordinator
from ..destination import DestinationStore, get_destination_store
from ..errors import MalformedRequestError
from ..formparser import UploadFormParser

logger = logging.getLogger("filedrop.router.uploads")

router = APIRouter(tags=["upload"])

DISCONNECT_POLL_SECONDS = 0.2


async def _watch_disconnect(request: Request, coordinator: UploadCoordinator) -> None:
    while not coordinator.cancel_event.is_set():
        if await request.is_disconnected():
            logger.warning("Client disconnected; abandoning in-flight writes")
            coordinator.cancel()
            return
        await asyncio.sleep(DISCONNECT_POLL_SECONDS)


@router.post("/upload", response_model=schemas.UploadResult)
async def upload_files(
    request: Request,
    destination: DestinationStore = Depends(get_destination_store),
):
    """
    Write every file part of a multipart body under the destination root.

    The filename of each part is its path relative to the root
    ("sub/dir/a.txt"). Existing files are skipped, never overwritten.
    """
    # fail before reading the body if there is nowhere to put it
    destination.require()

    content_type = request.headers.get("content-type", "")
    if not content_type.lower().startswith("multipart/form-data"):
        raise MalformedRequestError("Expected a multipart/form-data body")

    app_settings = request.app.state.settings
    parser = UploadFormParser(
        request.headers,
        request.stream(),
        max_file_size=app_settings.MAX_FILE_SIZE_BYTES,
        max_files=app_settings.MAX_FILES_PER_BATCH,
    )
    try:
        files = await parser.parse()
    except ClientDisconnect:
        logger.warning("Client disconnected while sending the upload; nothing written")
        return PlainTextResponse(
            "Client disconnected before the upload was received",
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    try:
        coordinator = UploadCoordinator.from_settings(destination, app_settings)
        watcher = asyncio.create_task(_watch_disconnect(request, coordinator))
        try:
            return await run_in_threadpool(coordinator.run, files)
        finally:
            watcher.cancel()
    finally:
        parser.close()
