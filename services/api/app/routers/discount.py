from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from services.api.app.deps import get_commerce
from services.api.app.models.discount import DiscountValidateRequest, DiscountValidateResponse
from services.api.app.models.order import AppliedDiscount
from services.api.app.services.commerce_base import CommerceAdapter
from services.api.app.services.discounts import DiscountValidator

logger = structlog.get_logger(__name__)

router = APIRouter()


def _error(status_code: int, message: str) -> JSONResponse:
    body = DiscountValidateResponse(valid=False, error=message)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


@router.post("/v1/discounts/validate", response_model=DiscountValidateResponse)
def validate_discount(
    payload: DiscountValidateRequest,
    commerce: CommerceAdapter = Depends(get_commerce),
):
    if not payload.code.strip():
        return _error(400, "Discount code is required")
    if payload.order_subtotal_cents <= 0:
        return _error(400, "Order subtotal must be greater than zero")

    try:
        result = DiscountValidator(commerce).validate(payload.code, payload.order_subtotal_cents)
    except Exception as e:
        logger.error("Discount lookup failed", code=payload.code, error=str(e))
        return _error(500, "Failed to validate discount code")

    if not isinstance(result, AppliedDiscount):
        return DiscountValidateResponse(valid=False, code=result.code, error=result.reason)

    return DiscountValidateResponse(
        valid=True,
        code=result.code,
        title=result.title,
        value_type=result.value_type,
        value=result.value,
        discount_amount_cents=result.discount_amount_cents,
    )
