"""
Filesystem browsing endpoints used by the front-end to pick a destination.

- drives: mounted partitions (drive roots on Windows)
- folders: immediate subfolders of a directory
- create-folder: make a new folder under a directory
"""
from __future__ import annotations

import logging
from typing import List, Optional

import psutil
from fastapi import APIRouter, Query, status
from fastapi.responses import PlainTextResponse

from .. import schemas
from ..storage import create_folder, list_subfolders

logger = logging.getLogger("filedrop.router.browse")

router = APIRouter(prefix="/api", tags=["browse"])


@router.get("/drives", response_model=List[str])
def list_drives():
    try:
        partitions = psutil.disk_partitions(all=False)
    except (OSError, psutil.Error) as e:
        logger.exception("Failed to list drives: %s", e)
        return PlainTextResponse("Failed to list drives", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)
    return sorted({p.mountpoint for p in partitions})


@router.get("/folders", response_model=List[str])
def list_folders(path: Optional[str] = Query(None)):
    try:
        return list_subfolders(path)
    except OSError as e:
        logger.warning("Cannot list folders of %s: %s", path, e)
        return []


@router.post("/create-folder", response_class=PlainTextResponse)
def create_folder_endpoint(body: schemas.CreateFolderRequest):
    if not body.path or not body.name:
        return PlainTextResponse("Invalid", status_code=status.HTTP_400_BAD_REQUEST)

    try:
        full = create_folder(body.path, body.name)
    except ValueError:
        return PlainTextResponse("Invalid", status_code=status.HTTP_400_BAD_REQUEST)
    except OSError as e:
        logger.error("Failed to create folder %s/%s: %s", body.path, body.name, e)
        return PlainTextResponse("Failed to create folder", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

    logger.info("Folder created: %s", full)
    return "OK"
