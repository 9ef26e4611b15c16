from __future__ import annotations

from fastapi import Depends, HTTPException, Request

from services.api.app.services.commerce_base import CommerceAdapter, CommerceNotConfiguredError
from services.api.app.services.commerce_factory import get_commerce_adapter
from services.api.app.services.document_store import LocalDocumentStore
from services.api.app.services.notifications import Notifier
from services.api.app.services.submission import OrderSubmissionOrchestrator
from services.api.app.services.token_cache import TokenCache


def get_token_cache(request: Request) -> TokenCache:
    return request.app.state.token_cache


def get_commerce(token_cache: TokenCache = Depends(get_token_cache)) -> CommerceAdapter:
    try:
        return get_commerce_adapter(token_cache)
    except (ValueError, CommerceNotConfiguredError) as e:
        raise HTTPException(status_code=500, detail=str(e)) from e


def get_document_store() -> LocalDocumentStore:
    return LocalDocumentStore.from_env()


def get_notifier(commerce: CommerceAdapter = Depends(get_commerce)) -> Notifier:
    return Notifier.from_env(commerce)


def get_orchestrator(
    commerce: CommerceAdapter = Depends(get_commerce),
    store: LocalDocumentStore = Depends(get_document_store),
    notifier: Notifier = Depends(get_notifier),
) -> OrderSubmissionOrchestrator:
    return OrderSubmissionOrchestrator(commerce, store, notifier)
