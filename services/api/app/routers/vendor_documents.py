from __future__ import annotations

from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from services.api.app.deps import get_document_store
from services.api.app.models.document import UploadedVendorDocument, VendorDocumentUploadResponse
from services.api.app.services import vendor_documents
from services.api.app.services.document_store import LocalDocumentStore

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.post("/v1/vendor-documents", response_model=VendorDocumentUploadResponse)
def upload_vendor_documents(
    files: list[UploadFile] = File(...),
    store: LocalDocumentStore = Depends(get_document_store),
) -> VendorDocumentUploadResponse:
    # One byte past the cap is enough to reject an oversized file.
    limit = vendor_documents.MAX_VENDOR_DOCUMENT_BYTES + 1
    uploads = [(upload.filename or "", upload.file.read(limit)) for upload in files]

    try:
        result = vendor_documents.store_vendor_documents(
            store, uploads, now=datetime.now(timezone.utc)
        )
    except Exception as e:
        logger.error("Vendor document upload failed", error=str(e), error_type=type(e).__name__)
        raise HTTPException(status_code=500, detail="Failed to upload vendor documents") from e

    if not result.files:
        raise HTTPException(status_code=400, detail={"errors": result.errors})

    return VendorDocumentUploadResponse(
        files=[UploadedVendorDocument(filename=f.filename, url=f.url) for f in result.files],
        errors=result.errors,
    )
