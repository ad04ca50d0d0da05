"""Error taxonomy for the upload pipeline and the FastAPI handlers for it.

Request-level errors (``ConfigurationError``, ``MalformedRequestError``,
``UploadTooLarge``) abort the whole batch and are answered with a plain-text
body.  Per-file errors
(``InvalidRelativePath``, ``WriteFailure`` and its subclasses) never leave the
coordinator; they end up in the ``failedFiles`` list of the response.
"""
from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import PlainTextResponse

logger = logging.getLogger("filedrop.errors")


class FileDropError(Exception):
    """Base class for every error raised by the upload pipeline."""


class ConfigurationError(FileDropError):
    """Destination root is unset or no longer a directory."""


class MalformedRequestError(FileDropError):
    """Upload body could not be parsed as multipart form data."""


class UploadTooLarge(FileDropError):
    """Upload body is larger than the batch limits allow."""

    def __init__(self, limit: int):
        super().__init__(f"Upload body exceeds {limit} bytes")
        self.limit = limit


class InvalidRelativePath(FileDropError):
    """Declared relative path is empty, absolute, or escapes the destination root."""

    def __init__(self, declared_path: str, reason: str):
        super().__init__(f"{reason}: {declared_path!r}")
        self.declared_path = declared_path
        self.reason = reason


class WriteFailure(FileDropError):
    """Storage-level failure while writing a single file."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class FileTooLarge(WriteFailure):
    def __init__(self, limit: int):
        super().__init__(f"file exceeds maximum size of {limit} bytes")
        self.limit = limit


class UploadCancelled(WriteFailure):
    def __init__(self):
        super().__init__("upload cancelled: client disconnected")


def register_error_handlers(app: FastAPI) -> None:
    """Register the request-level error handlers on the app."""

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(request: Request, exc: ConfigurationError) -> PlainTextResponse:
        logger.error("Configuration error on %s: %s", request.url.path, exc)
        return PlainTextResponse(str(exc), status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

    @app.exception_handler(MalformedRequestError)
    async def malformed_request_handler(request: Request, exc: MalformedRequestError) -> PlainTextResponse:
        logger.warning("Malformed request on %s: %s", request.url.path, exc)
        return PlainTextResponse(str(exc), status_code=status.HTTP_400_BAD_REQUEST)

    @app.exception_handler(UploadTooLarge)
    async def upload_too_large_handler(request: Request, exc: UploadTooLarge) -> PlainTextResponse:
        logger.warning("Rejected oversized upload on %s: %s", request.url.path, exc)
        return PlainTextResponse(str(exc), status_code=413)
