from __future__ import annotations

import os
import re
from datetime import date
from pathlib import Path
from typing import Protocol

import structlog

from services.api.app.config import StorageConfig

logger = structlog.get_logger(__name__)

_SAFE_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


class DocumentStoreError(Exception):
    pass


class DocumentStore(Protocol):
    def save(self, data: bytes, filename: str) -> str: ...

    def url_for(self, stored_name: str) -> str: ...


def document_filename(order_stem: str, kind: str, on: date, extension: str) -> str:
    """e.g. ``Order_D12345_Recipients_2026-10-17.xlsx``."""
    return f"Order_{order_stem}_{kind}_{on.isoformat()}.{extension}"


class LocalDocumentStore:
    """Writes documents under one directory and serves them back through the API.

    Saving the same filename twice replaces the earlier file atomically.
    """

    def __init__(self, base_dir: Path, public_base_url: str) -> None:
        self._base_dir = base_dir
        self._public_base_url = public_base_url.rstrip("/")

    @classmethod
    def from_env(cls) -> "LocalDocumentStore":
        cfg = StorageConfig.from_env()
        return cls(cfg.documents_dir, cfg.public_base_url)

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    def save(self, data: bytes, filename: str) -> str:
        path = self.path_for(filename)
        self._base_dir.mkdir(parents=True, exist_ok=True)

        tmp = path.with_name(f".{path.name}.tmp")
        tmp.write_bytes(data)
        os.replace(tmp, path)

        logger.info("Stored document", filename=filename, size=len(data))
        return filename

    def url_for(self, stored_name: str) -> str:
        return f"{self._public_base_url}/v1/documents/{stored_name}"

    def path_for(self, stored_name: str) -> Path:
        if not _SAFE_NAME_RE.match(stored_name) or ".." in stored_name:
            raise DocumentStoreError(f"Invalid document name: {stored_name!r}")
        return self._base_dir / stored_name
