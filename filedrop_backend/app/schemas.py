from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


# =========================
# Uploads
# =========================
class FailedFile(BaseModel):
    file: str
    reason: str

    class Config:
        frozen = True


class UploadResult(BaseModel):
    uploaded: int = Field(default=0, ge=0)
    skipped: int = Field(default=0, ge=0)
    skipped_files: List[str] = Field(default_factory=list, alias="skippedFiles")

    # not part of the legacy response: write failures used to vanish silently
    failed: int = Field(default=0, ge=0)
    failed_files: List[FailedFile] = Field(default_factory=list, alias="failedFiles")

    class Config:
        frozen = True
        populate_by_name = True

    @property
    def total(self) -> int:
        return self.uploaded + self.skipped + self.failed


# =========================
# Destination / browsing
# =========================
class SetPathRequest(BaseModel):
    # optional so a missing path gets the same 400 as an invalid one
    path: Optional[str] = None


class DestinationOut(BaseModel):
    path: Optional[str] = None


class CreateFolderRequest(BaseModel):
    path: Optional[str] = None
    name: Optional[str] = None
