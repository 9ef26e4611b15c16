from __future__ import annotations

from datetime import datetime, timedelta, timezone
from uuid import uuid4

from services.api.app.models.order import FALLBACK_DELIVERY_METHODS, DiscountValueType
from services.api.app.services.commerce_base import (
    CommerceAdapterError,
    CreatedOrder,
    DeliveryRate,
    DiscountRecord,
    DraftOrderInput,
    UpstreamOrderError,
)


class MockCommerceAdapter:
    """Deterministic stand-in for the commerce system, used by tests and local dev."""

    vendor = "COMMERCE_MOCK"

    def __init__(self, *, now: datetime | None = None) -> None:
        now = now or datetime.now(timezone.utc)
        self._discounts = {
            "WELCOME10": DiscountRecord(
                code="WELCOME10",
                title="Welcome 10%",
                value_type=DiscountValueType.PERCENTAGE,
                value=10.0,
            ),
            "SAVE50": DiscountRecord(
                code="SAVE50",
                title="$50 off",
                value_type=DiscountValueType.FIXED_AMOUNT,
                value=50.0,
            ),
            "HOLIDAY": DiscountRecord(
                code="HOLIDAY",
                title="Holiday 15%",
                value_type=DiscountValueType.PERCENTAGE,
                value=15.0,
                starts_at=now - timedelta(days=1),
                ends_at=now + timedelta(days=30),
            ),
            "EXPIRED": DiscountRecord(
                code="EXPIRED",
                title="Last year",
                value_type=DiscountValueType.PERCENTAGE,
                value=20.0,
                starts_at=now - timedelta(days=400),
                ends_at=now - timedelta(days=35),
            ),
            "SOON": DiscountRecord(
                code="SOON",
                title="Coming soon",
                value_type=DiscountValueType.FIXED_AMOUNT,
                value=25.0,
                starts_at=now + timedelta(days=7),
            ),
        }
        self.orders: dict[str, DraftOrderInput] = {}
        self.notes: dict[str, str] = {}
        self.invoices_sent: list[dict[str, str]] = []
        self.delivery_rates = [
            DeliveryRate(name=m.name, price_cents=m.price_cents, rate_id=m.id)
            for m in FALLBACK_DELIVERY_METHODS
        ]

    def lookup_discount(self, code: str) -> DiscountRecord | None:
        return self._discounts.get(code.strip().upper())

    def create_draft_order(self, order: DraftOrderInput) -> CreatedOrder:
        for line in order.lines:
            if not line.variant_id.isdigit():
                raise UpstreamOrderError(
                    f"Variant {line.variant_id} does not exist",
                    user_errors=[f"lineItems: variant {line.variant_id} does not exist"],
                )

        order_id = str(int(uuid4().hex[:10], 16))
        order_number = f"#D{int(order_id) % 100000:05d}"
        self.orders[order_id] = order
        self.notes[order_id] = order.note

        return CreatedOrder(
            order_id=order_id,
            order_number=order_number,
            invoice_url=f"https://mock-commerce.local/invoices/{order_id}",
        )

    def update_order_note(self, order_id: str, note: str) -> None:
        if order_id not in self.orders:
            raise CommerceAdapterError(f"Draft order {order_id} not found")
        self.notes[order_id] = note

    def send_invoice(self, order_id: str, *, to: str, subject: str, message: str) -> None:
        if order_id not in self.orders:
            raise CommerceAdapterError(f"Draft order {order_id} not found")
        self.invoices_sent.append(
            {"order_id": order_id, "to": to, "subject": subject, "message": message}
        )

    def list_delivery_rates(self) -> list[DeliveryRate]:
        return list(self.delivery_rates)
