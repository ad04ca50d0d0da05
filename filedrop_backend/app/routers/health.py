# filedrop_backend/app/routers/health.py
from __future__ import annotations

import os

import psutil
from fastapi import APIRouter, Depends

from ..destination import DestinationStore, get_destination_store

router = APIRouter(prefix="/health", tags=["health"])


@router.get("/")
def health(destination: DestinationStore = Depends(get_destination_store)):
    status = {
        "destination": "unset",
        "destination_path": None,
        "writable": False,
        "disk": None,
    }

    root = destination.get()
    if root is None:
        return status

    status["destination_path"] = str(root)
    if not root.is_dir():
        status["destination"] = "missing"
        return status

    status["destination"] = "ok"
    status["writable"] = os.access(root, os.W_OK)
    try:
        usage = psutil.disk_usage(str(root))
        status["disk"] = {"total": usage.total, "used": usage.used, "free": usage.free, "percent": usage.percent}
    except OSError as e:
        status["disk"] = f"error: {e!r}"

    return status
