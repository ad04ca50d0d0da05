"""Holder for the currently configured destination root.

The administrator sets the root once through ``POST /set-path``; every upload
request reads it.  The store lives on ``app.state`` and is handed to routes
through the ``get_destination_store`` dependency instead of a module global.
"""
from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Optional

from fastapi import Request

from .errors import ConfigurationError

logger = logging.getLogger("filedrop.destination")


class DestinationStore:
    def __init__(self, initial: Optional[str] = None):
        self._lock = threading.Lock()
        self._root: Optional[Path] = None
        if initial:
            try:
                self.set(initial)
            except ValueError:
                logger.warning("Ignoring configured destination %r: not a directory", initial)

    def set(self, path: str) -> Path:
        """Validate and store a new destination root.

        Raises ``ValueError`` if ``path`` does not reference an existing directory.
        """
        if not path:
            raise ValueError("destination path is empty")
        candidate = Path(path).expanduser()
        if not candidate.is_dir():
            raise ValueError(f"not an existing directory: {path}")
        resolved = candidate.resolve()
        with self._lock:
            self._root = resolved
        logger.info("Upload path set: %s", resolved)
        return resolved

    def get(self) -> Optional[Path]:
        with self._lock:
            return self._root

    def require(self) -> Path:
        """Return the root, or raise ``ConfigurationError`` if it is unset or gone."""
        root = self.get()
        if root is None:
            raise ConfigurationError("Destination path is not set")
        if not root.is_dir():
            raise ConfigurationError(f"Destination path is no longer a directory: {root}")
        return root


def get_destination_store(request: Request) -> DestinationStore:
    """FastAPI dependency returning the app-wide destination store."""
    return request.app.state.destination
