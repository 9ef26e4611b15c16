from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse

from services.api.app.deps import get_document_store
from services.api.app.services.document_store import DocumentStoreError, LocalDocumentStore

router = APIRouter()

_MEDIA_TYPES = {
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "pdf": "application/pdf",
    "doc": "application/msword",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
}


@router.get("/v1/documents/{filename}")
def get_document(
    filename: str,
    store: LocalDocumentStore = Depends(get_document_store),
) -> FileResponse:
    try:
        path = store.path_for(filename)
    except DocumentStoreError as e:
        raise HTTPException(status_code=404, detail="Document not found") from e

    if not path.is_file():
        raise HTTPException(status_code=404, detail="Document not found")

    extension = path.suffix.lstrip(".").lower()
    return FileResponse(
        path,
        media_type=_MEDIA_TYPES.get(extension, "application/octet-stream"),
        filename=filename,
    )
