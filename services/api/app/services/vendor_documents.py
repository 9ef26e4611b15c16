"""Vendor files (logos, artwork, specs) uploaded before checkout.

Accepted files go through the document store; the URLs it returns are what the
cart later carries as ``vendor_document_urls``.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

import structlog

from services.api.app.services.document_store import DocumentStore

logger = structlog.get_logger(__name__)

ALLOWED_EXTENSIONS = (".pdf", ".doc", ".docx", ".png", ".jpg", ".jpeg")
MAX_VENDOR_DOCUMENT_BYTES = 10 * 1024 * 1024

_UNSAFE_CHARS_RE = re.compile(r"[^A-Za-z0-9._-]")


@dataclass(frozen=True, slots=True)
class StoredVendorDocument:
    filename: str
    url: str


@dataclass
class VendorUploadResult:
    files: list[StoredVendorDocument] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


def vendor_document_name(original: str, index: int, now: datetime) -> str:
    """e.g. ``20261017153000000000_0_Acme_logo.png``."""
    safe = re.sub(r"\.{2,}", ".", _UNSAFE_CHARS_RE.sub("_", original))
    return f"{now:%Y%m%d%H%M%S%f}_{index}_{safe}"


def check_vendor_document(filename: str, size: int) -> str | None:
    if not filename.lower().endswith(ALLOWED_EXTENSIONS):
        return f"{filename}: unsupported file type. Allowed: PDF, DOC, DOCX, PNG, JPG"
    if size > MAX_VENDOR_DOCUMENT_BYTES:
        return f"{filename}: exceeds 10MB limit"
    return None


def store_vendor_documents(
    store: DocumentStore,
    uploads: Iterable[tuple[str, bytes]],
    *,
    now: datetime,
) -> VendorUploadResult:
    """Store every acceptable upload; a rejected file never stops the others."""
    result = VendorUploadResult()
    for index, (filename, data) in enumerate(uploads):
        error = check_vendor_document(filename, len(data))
        if error is not None:
            result.errors.append(error)
            continue
        stored = store.save(data, vendor_document_name(filename, index, now))
        result.files.append(StoredVendorDocument(filename=filename, url=store.url_for(stored)))

    logger.info(
        "Vendor documents uploaded",
        stored=len(result.files),
        rejected=len(result.errors),
    )
    return result
