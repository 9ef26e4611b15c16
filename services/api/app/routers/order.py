from __future__ import annotations

from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response

from services.api.app.deps import get_commerce, get_orchestrator
from services.api.app.models.order import (
    CartSnapshot,
    DeliveryMethodsResponse,
    InvoiceRequest,
    PricingBreakdown,
    PricingPreviewRequest,
    SubmissionResult,
)
from services.api.app.services.commerce_base import (
    CommerceAdapter,
    CommerceAdapterError,
    UpstreamOrderError,
)
from services.api.app.services.delivery import load_delivery_catalog
from services.api.app.services.documents import OrderSnapshot, generate_invoice, order_filename_stem
from services.api.app.services.pricing import compute_total, unit_total_cents
from services.api.app.services.submission import (
    CartValidationError,
    OrderSubmissionOrchestrator,
    unknown_delivery_method,
)

logger = structlog.get_logger(__name__)

router = APIRouter()


def _raise_adapter_http_error(e: Exception) -> None:
    if isinstance(e, CartValidationError):
        raise HTTPException(status_code=400, detail={"errors": e.errors}) from e

    if isinstance(e, UpstreamOrderError):
        raise HTTPException(status_code=500, detail=str(e)) from e

    if isinstance(e, CommerceAdapterError):
        raise HTTPException(status_code=500, detail=str(e)) from e

    raise HTTPException(status_code=500, detail="Internal Server Error") from e


@router.post("/v1/orders/submit", response_model=SubmissionResult)
def submit_order(
    payload: CartSnapshot,
    orchestrator: OrderSubmissionOrchestrator = Depends(get_orchestrator),
) -> SubmissionResult:
    try:
        return orchestrator.submit(payload)
    except Exception as e:
        if not isinstance(e, CartValidationError):
            logger.error("Order submission failed", error=str(e), error_type=type(e).__name__)
        _raise_adapter_http_error(e)


@router.get("/v1/delivery-methods", response_model=DeliveryMethodsResponse)
def list_delivery_methods(
    commerce: CommerceAdapter = Depends(get_commerce),
) -> DeliveryMethodsResponse:
    catalog = load_delivery_catalog(commerce)
    return DeliveryMethodsResponse(
        methods=catalog.methods, source=catalog.source, error=catalog.error
    )


@router.post("/v1/pricing/preview", response_model=PricingBreakdown)
def preview_pricing(
    payload: PricingPreviewRequest,
    commerce: CommerceAdapter = Depends(get_commerce),
) -> PricingBreakdown:
    method = load_delivery_catalog(commerce).find(payload.delivery_method.id)
    if method is None:
        raise HTTPException(
            status_code=400,
            detail={"errors": [unknown_delivery_method(payload.delivery_method.id)]},
        )
    return compute_total(
        unit_total_cents(payload.selection),
        payload.recipient_count,
        method,
        discount_cents=payload.discount_cents,
    )


@router.post("/v1/invoice")
def download_invoice(
    payload: InvoiceRequest,
    orchestrator: OrderSubmissionOrchestrator = Depends(get_orchestrator),
) -> Response:
    cart = payload.cart
    if cart.selection is None or cart.effective_recipient_count < 1:
        raise HTTPException(status_code=400, detail={"errors": ["Missing required fields"]})

    try:
        quote = orchestrator.quote(cart)
    except Exception as e:
        _raise_adapter_http_error(e)

    snapshot = OrderSnapshot(
        order_id="",
        order_number=payload.order_number,
        order_date=datetime.now(timezone.utc),
        invoice_url="",
        cart=quote.cart,
        pricing=quote.pricing,
        discount=quote.discount,
    )
    pdf = generate_invoice(snapshot)
    filename = f"Invoice_{order_filename_stem(payload.order_number)}.pdf"
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
