"""Streaming multipart reader for upload requests.

The request body is pushed chunk by chunk through python-multipart's
``MultipartParser``.  File parts are spooled to temporary files; once a part
grows past the per-file limit its bytes stop being stored and it is handed on
flagged as too large.  The body as a whole is capped at
``max_files * (max_file_size + PART_OVERHEAD_BYTES)``: a declared
``Content-Length`` above the cap is refused before anything is read, and an
undeclared body is cut off as soon as it crosses it.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from tempfile import SpooledTemporaryFile
from typing import AsyncIterator, List, Optional, Tuple

from python_multipart.exceptions import FormParserError
from python_multipart.multipart import MultipartParser, parse_options_header
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import Headers

from .coordinator import IncomingFile
from .errors import MalformedRequestError, UploadTooLarge

logger = logging.getLogger("filedrop.formparser")

SPOOL_MAX_SIZE = 1024 * 1024  # 1MB in memory before rolling over to disk
# boundary and part headers allowed per file on top of its content
PART_OVERHEAD_BYTES = 16 * 1024


def max_body_size(max_file_size: int, max_files: int) -> Optional[int]:
    """Upper bound for a whole upload body, or None when either limit is off."""
    if not max_file_size or not max_files:
        return None
    return max_files * (max_file_size + PART_OVERHEAD_BYTES)


def _decode(value: bytes) -> str:
    try:
        return value.decode("utf-8")
    except UnicodeDecodeError:
        return value.decode("latin-1")


@dataclass
class _FilePart:
    filename: str
    file: SpooledTemporaryFile
    size: int = 0
    too_large: bool = False


class UploadFormParser:
    def __init__(
        self,
        headers: Headers,
        stream: AsyncIterator[bytes],
        *,
        max_file_size: int = 0,
        max_files: int = 0,
    ):
        self.headers = headers
        self.stream = stream
        self.max_file_size = max_file_size
        self.max_files = max_files
        self.max_body_size = max_body_size(max_file_size, max_files)

        self._parts: List[_FilePart] = []
        self._current: Optional[_FilePart] = None
        self._fields = 0
        self._disposition = b""
        self._header_name = b""
        self._header_value = b""
        self._to_write: List[Tuple[_FilePart, bytes]] = []
        self._to_release: List[_FilePart] = []
        self._finished = False

    # -- python-multipart callbacks (synchronous, no I/O) --

    def on_part_begin(self) -> None:
        self._current = None
        self._disposition = b""

    def on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._header_name += data[start:end]

    def on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._header_value += data[start:end]

    def on_header_end(self) -> None:
        if self._header_name.lower() == b"content-disposition":
            self._disposition = self._header_value
        self._header_name = b""
        self._header_value = b""

    def on_headers_finished(self) -> None:
        _, options = parse_options_header(self._disposition)
        if b"name" not in options:
            raise MalformedRequestError('The Content-Disposition header field "name" must be provided')

        if b"filename" not in options:
            # plain form fields carry nothing we store
            self._fields += 1
            if self.max_files and self._fields > self.max_files:
                raise MalformedRequestError(f"Too many fields. Maximum number of fields is {self.max_files}")
            return

        if self.max_files and len(self._parts) >= self.max_files:
            raise MalformedRequestError(f"Too many files. Maximum number of files is {self.max_files}")
        part = _FilePart(
            filename=_decode(options[b"filename"]),
            file=SpooledTemporaryFile(max_size=SPOOL_MAX_SIZE),
        )
        self._parts.append(part)
        self._current = part

    def on_part_data(self, data: bytes, start: int, end: int) -> None:
        part = self._current
        if part is None or part.too_large:
            return
        part.size += end - start
        if self.max_file_size and part.size > self.max_file_size:
            part.too_large = True
            self._to_release.append(part)
            return
        self._to_write.append((part, data[start:end]))

    def on_part_end(self) -> None:
        self._current = None

    def on_end(self) -> None:
        self._finished = True

    # -- driver --

    async def parse(self) -> List[IncomingFile]:
        _, params = parse_options_header(self.headers.get("content-type", ""))
        boundary = params.get(b"boundary")
        if not boundary:
            raise MalformedRequestError("Missing boundary in multipart body")
        self._check_declared_length()

        callbacks = {
            "on_part_begin": self.on_part_begin,
            "on_part_data": self.on_part_data,
            "on_part_end": self.on_part_end,
            "on_header_field": self.on_header_field,
            "on_header_value": self.on_header_value,
            "on_header_end": self.on_header_end,
            "on_headers_finished": self.on_headers_finished,
            "on_end": self.on_end,
        }

        received = 0
        try:
            parser = MultipartParser(boundary, callbacks)
            async for chunk in self.stream:
                received += len(chunk)
                if self.max_body_size is not None and received > self.max_body_size:
                    raise UploadTooLarge(self.max_body_size)
                parser.write(chunk)
                await self._flush()
            parser.finalize()
        except FormParserError as exc:
            self.close()
            raise MalformedRequestError("Invalid multipart data") from exc
        except BaseException:
            self.close()
            raise

        if not self._finished:
            self.close()
            raise MalformedRequestError("Multipart body ended before the closing boundary")

        files = []
        for index, part in enumerate(self._parts):
            if part.too_large:
                logger.warning("Dropped %s: larger than %d bytes", part.filename, self.max_file_size)
            else:
                part.file.seek(0)
            files.append(IncomingFile(index, part.filename, part.file, too_large=part.too_large))
        return files

    async def _flush(self) -> None:
        # spooled files may have rolled over to disk; keep writes off the event loop
        for part, data in self._to_write:
            if not part.too_large:
                await run_in_threadpool(part.file.write, data)
        self._to_write.clear()
        for part in self._to_release:
            part.file.close()
        self._to_release.clear()

    def _check_declared_length(self) -> None:
        declared = self.headers.get("content-length")
        if self.max_body_size is None or not declared or not declared.isdigit():
            return
        if int(declared) > self.max_body_size:
            raise UploadTooLarge(self.max_body_size)

    def close(self) -> None:
        for part in self._parts:
            part.file.close()
