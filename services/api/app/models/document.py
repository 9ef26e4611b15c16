from __future__ import annotations

from pydantic import BaseModel, Field


class UploadedVendorDocument(BaseModel):
    filename: str
    url: str


class VendorDocumentUploadResponse(BaseModel):
    success: bool = True
    files: list[UploadedVendorDocument] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
