"""Existence check that keeps uploads from overwriting files."""
from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Dict, List

from .storage import path_exists

logger = logging.getLogger("filedrop.guard")


class SkipSet:
    """Declared paths skipped during one request.

    Safe to update from several worker threads.  A path is kept once, at the
    position of the first part that declared it, so ``paths()`` follows the
    order of the request body rather than the order workers finished in.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._entries: Dict[str, int] = {}

    def add(self, declared_path: str, index: int = 0) -> None:
        with self._lock:
            current = self._entries.get(declared_path)
            if current is None or index < current:
                self._entries[declared_path] = index

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def paths(self) -> List[str]:
        with self._lock:
            return [path for path, _ in sorted(self._entries.items(), key=lambda item: item[1])]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, declared_path: str) -> bool:
        with self._lock:
            return declared_path in self._entries


class ExistenceGuard:
    def __init__(self, skip_set: SkipSet):
        self.skip_set = skip_set

    def admit(self, target_path: Path, declared_path: str, index: int = 0) -> bool:
        """Return False (and record a skip) if ``target_path`` already exists."""
        if path_exists(target_path):
            self.record_skip(declared_path, index)
            return False
        return True

    def record_skip(self, declared_path: str, index: int = 0) -> None:
        self.skip_set.add(declared_path, index)
        logger.info("Skipped: %s", declared_path)
