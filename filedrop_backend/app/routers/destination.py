# filedrop_backend/app/routers/destination.py
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import PlainTextResponse

from .. import schemas
from ..destination import DestinationStore, get_destination_store

logger = logging.getLogger("filedrop.router.destination")

router = APIRouter(tags=["destination"])


@router.post("/set-path", response_class=PlainTextResponse)
def set_path(
    body: schemas.SetPathRequest,
    destination: DestinationStore = Depends(get_destination_store),
):
    """Point uploads at an existing directory."""
    try:
        destination.set(body.path or "")
    except ValueError:
        logger.warning("Invalid path: %s", body.path)
        return PlainTextResponse("Invalid path", status_code=status.HTTP_400_BAD_REQUEST)
    return "OK"


@router.get("/api/destination", response_model=schemas.DestinationOut)
def get_destination(destination: DestinationStore = Depends(get_destination_store)):
    root = destination.get()
    return schemas.DestinationOut(path=str(root) if root else None)
