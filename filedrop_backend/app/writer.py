"""Streams admitted uploads to disk.

Files are opened with exclusive create, so an existing file is never
truncated even when another request wins the race between the existence
check and the write.  Anything that does not finish cleanly (storage error,
size limit, client disconnect) is removed again; a partial file is never left
behind under its final name.
"""
from __future__ import annotations

import errno
import logging
import os
import threading
from dataclasses import dataclass
from enum import Enum
from typing import BinaryIO, Optional

from .errors import FileTooLarge, UploadCancelled, WriteFailure
from .storage import PathResolver, ResolvedTarget

logger = logging.getLogger("filedrop.writer")

_ERRNO_REASONS = {
    errno.ENOSPC: "disk full",
    errno.EACCES: "permission denied",
    errno.EPERM: "permission denied",
    errno.ENAMETOOLONG: "path too long",
    errno.EROFS: "read-only file system",
}


class FileStatus(str, Enum):
    UPLOADED = "uploaded"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class WriteOutcome:
    status: FileStatus
    bytes_written: int = 0


def describe_os_error(exc: OSError) -> str:
    return _ERRNO_REASONS.get(exc.errno) or exc.strerror or exc.__class__.__name__


class BatchWriter:
    def __init__(self, resolver: PathResolver, chunk_size: int = 1024 * 1024, max_file_size: int = 0):
        self.resolver = resolver
        self.chunk_size = chunk_size
        self.max_file_size = max_file_size

    def write(
        self,
        target: ResolvedTarget,
        stream: BinaryIO,
        cancel_event: Optional[threading.Event] = None,
    ) -> WriteOutcome:
        """Copy ``stream`` into a new file at ``target``.

        Returns ``SKIPPED`` if the file appeared before it could be created,
        raises ``WriteFailure`` on any storage error.
        """
        try:
            self.resolver.ensure_directory(target)
        except OSError as exc:
            raise WriteFailure(f"cannot create directory: {describe_os_error(exc)}") from exc

        try:
            out = open(target.path, "xb")
        except FileExistsError:
            return WriteOutcome(FileStatus.SKIPPED)
        except OSError as exc:
            raise WriteFailure(describe_os_error(exc)) from exc

        written = 0
        completed = False
        try:
            with out:
                while True:
                    if cancel_event is not None and cancel_event.is_set():
                        raise UploadCancelled()
                    chunk = stream.read(self.chunk_size)
                    if not chunk:
                        break
                    written += len(chunk)
                    if self.max_file_size and written > self.max_file_size:
                        raise FileTooLarge(self.max_file_size)
                    out.write(chunk)
            completed = True
        except OSError as exc:
            raise WriteFailure(describe_os_error(exc)) from exc
        finally:
            if not completed:
                self._discard(target)

        return WriteOutcome(FileStatus.UPLOADED, written)

    def _discard(self, target: ResolvedTarget) -> None:
        try:
            os.remove(target.path)
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning("Could not remove partial file %s: %s", target.path, exc)
        else:
            logger.info("Removed partial file %s", target.path)
