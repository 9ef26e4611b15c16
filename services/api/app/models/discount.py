from __future__ import annotations

from pydantic import BaseModel

from services.api.app.models.order import DiscountValueType


class DiscountValidateRequest(BaseModel):
    code: str = ""
    order_subtotal_cents: int = 0


class DiscountValidateResponse(BaseModel):
    valid: bool
    code: str | None = None
    title: str | None = None
    value_type: DiscountValueType | None = None
    value: float | None = None
    discount_amount_cents: int | None = None
    error: str | None = None
