"""Drives one upload request from parsed parts to the summary response.

resolve -> admit -> write runs for every part on a thread pool; outcomes are
collected once all of them have settled.  A coordinator instance serves a
single request and owns that request's skip set.
"""
from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import BinaryIO, List, Optional, Sequence

from .core.config import Settings
from .destination import DestinationStore
from .errors import FileTooLarge, InvalidRelativePath, WriteFailure
from .guard import ExistenceGuard, SkipSet
from .schemas import FailedFile, UploadResult
from .storage import PathResolver
from .writer import BatchWriter, FileStatus

logger = logging.getLogger("filedrop.uploads")


class UploadState(str, Enum):
    IDLE = "idle"
    RECEIVING = "receiving"
    AGGREGATING = "aggregating"
    RESPONDED = "responded"


@dataclass
class IncomingFile:
    index: int
    declared_path: str
    stream: BinaryIO
    # set when the body reader dropped the content for exceeding the size limit
    too_large: bool = False


@dataclass(frozen=True)
class FileOutcome:
    index: int
    declared_path: str
    status: FileStatus
    reason: Optional[str] = None


class UploadCoordinator:
    def __init__(
        self,
        destination: DestinationStore,
        resolver: PathResolver,
        writer: BatchWriter,
        max_workers: int = 8,
    ):
        self.destination = destination
        self.resolver = resolver
        self.writer = writer
        self.max_workers = max(1, max_workers)

        self.skip_set = SkipSet()
        self.guard = ExistenceGuard(self.skip_set)
        self.cancel_event = threading.Event()
        self.state = UploadState.IDLE

    @classmethod
    def from_settings(cls, destination: DestinationStore, app_settings: Settings) -> "UploadCoordinator":
        resolver = PathResolver()
        writer = BatchWriter(
            resolver,
            chunk_size=app_settings.CHUNK_SIZE,
            max_file_size=app_settings.MAX_FILE_SIZE_BYTES,
        )
        return cls(destination, resolver, writer, max_workers=app_settings.UPLOAD_WORKERS)

    def cancel(self) -> None:
        """Abandon in-flight writes; their partial files are removed."""
        self.cancel_event.set()

    def run(self, files: Sequence[IncomingFile]) -> UploadResult:
        if self.state is not UploadState.IDLE:
            raise RuntimeError(f"coordinator already used (state={self.state.value})")

        self.skip_set.clear()
        # raises ConfigurationError before any file is touched
        root = self.destination.require()
        self.state = UploadState.RECEIVING
        logger.info("Upload started: %d file(s) into %s", len(files), root)

        outcomes: List[FileOutcome] = []
        if files:
            workers = min(self.max_workers, len(files))
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="filedrop-upload") as pool:
                futures = [pool.submit(self._process_one, root, incoming) for incoming in files]
                try:
                    for future in as_completed(futures):
                        outcomes.append(future.result())
                except Exception:
                    self.cancel()
                    logger.exception("Upload aborted")
                    raise

        self.state = UploadState.AGGREGATING
        result = self._aggregate(outcomes)
        self.state = UploadState.RESPONDED
        logger.info(
            "Upload complete: %d uploaded, %d skipped, %d failed",
            result.uploaded, result.skipped, result.failed,
        )
        return result

    def _process_one(self, root: Path, incoming: IncomingFile) -> FileOutcome:
        declared = incoming.declared_path
        try:
            target = self.resolver.resolve(root, declared)
            if not self.guard.admit(target.path, declared, incoming.index):
                return FileOutcome(incoming.index, declared, FileStatus.SKIPPED)
            if incoming.too_large:
                raise FileTooLarge(self.writer.max_file_size)

            logger.info("Uploading: %s", declared)
            written = self.writer.write(target, incoming.stream, self.cancel_event)
            if written.status is FileStatus.SKIPPED:
                # lost the race against another writer of the same path
                self.guard.record_skip(declared, incoming.index)
                return FileOutcome(incoming.index, declared, FileStatus.SKIPPED)
            return FileOutcome(incoming.index, declared, FileStatus.UPLOADED)
        except InvalidRelativePath as exc:
            logger.warning("Rejected %s: %s", declared, exc.reason)
            return FileOutcome(incoming.index, declared, FileStatus.FAILED, exc.reason)
        except WriteFailure as exc:
            logger.error("Failed to write %s: %s", declared, exc.reason)
            return FileOutcome(incoming.index, declared, FileStatus.FAILED, exc.reason)
        finally:
            incoming.stream.close()

    def _aggregate(self, outcomes: List[FileOutcome]) -> UploadResult:
        uploaded = sum(1 for outcome in outcomes if outcome.status is FileStatus.UPLOADED)
        failures = sorted(
            (outcome for outcome in outcomes if outcome.status is FileStatus.FAILED),
            key=lambda outcome: outcome.index,
        )
        skipped_paths = self.skip_set.paths()
        return UploadResult(
            uploaded=uploaded,
            skipped=len(skipped_paths),
            skippedFiles=skipped_paths,
            failed=len(failures),
            failedFiles=[FailedFile(file=f.declared_path, reason=f.reason or "") for f in failures],
        )
