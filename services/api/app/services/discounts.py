from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

import structlog

from services.api.app.models.order import AppliedDiscount, DiscountValueType
from services.api.app.services.commerce_base import CommerceAdapter
from services.api.app.services.pricing import percent_of, round_cents

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class DiscountLookup:
    valid: bool
    code: str
    title: str = ""
    value_type: DiscountValueType | None = None
    value: float = 0.0
    reason: str | None = None


def normalize_code(code: str) -> str:
    return code.strip().upper()


class DiscountValidator:
    def __init__(
        self,
        commerce: CommerceAdapter,
        *,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._commerce = commerce
        self._clock = clock

    def lookup(self, code: str) -> DiscountLookup:
        """Resolve a code against the commerce system's price rules.

        Unknown codes and codes outside their activation window come back as
        ``valid=False`` with a reason. Transport failures propagate.
        """

        normalized = normalize_code(code)
        if not normalized:
            return DiscountLookup(valid=False, code=normalized, reason="Discount code is required")

        record = self._commerce.lookup_discount(normalized)
        if record is None:
            return DiscountLookup(valid=False, code=normalized, reason="Discount code not found")

        now = self._clock()
        if record.starts_at is not None and now < record.starts_at:
            return DiscountLookup(
                valid=False, code=normalized, reason="Discount code is not active yet"
            )
        if record.ends_at is not None and now >= record.ends_at:
            return DiscountLookup(valid=False, code=normalized, reason="Discount code has expired")

        return DiscountLookup(
            valid=True,
            code=normalized,
            title=record.title,
            value_type=record.value_type,
            value=record.value,
        )

    def validate(self, code: str, subtotal_cents: int) -> AppliedDiscount | DiscountLookup:
        """lookup + apply. Returns the invalid lookup when the code is rejected."""
        result = self.lookup(code)
        if not result.valid:
            logger.info("Discount code rejected", code=result.code, reason=result.reason)
            return result

        return AppliedDiscount(
            code=result.code,
            title=result.title,
            value_type=result.value_type,
            value=result.value,
            discount_amount_cents=apply_discount(result, subtotal_cents),
        )


def apply_discount(lookup: DiscountLookup, subtotal_cents: int) -> int:
    if not lookup.valid or subtotal_cents <= 0:
        return 0

    if lookup.value_type == DiscountValueType.PERCENTAGE:
        amount = percent_of(subtotal_cents, lookup.value)
    else:
        amount = round_cents(Decimal(str(lookup.value)) * 100)

    return max(0, min(amount, subtotal_cents))
