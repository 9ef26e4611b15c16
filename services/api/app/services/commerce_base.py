from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

from services.api.app.models.order import AppliedDiscount, BuyerInfo, DiscountValueType


class CommerceAdapterError(Exception):
    """Base class for upstream commerce system errors."""


class CommerceNotConfiguredError(CommerceAdapterError):
    def __init__(self) -> None:
        super().__init__(
            "Shopify credentials not configured. Set SHOPIFY_STORE_DOMAIN and either "
            "SHOPIFY_ADMIN_API_ACCESS_TOKEN or SHOPIFY_CLIENT_ID/SHOPIFY_CLIENT_SECRET."
        )


class UpstreamOrderError(CommerceAdapterError):
    """The commerce system rejected or never acknowledged an order creation."""

    def __init__(self, message: str, *, user_errors: list[str] | None = None) -> None:
        super().__init__(message)
        self.user_errors = user_errors or []


@dataclass(frozen=True, slots=True)
class DiscountRecord:
    code: str
    title: str
    value_type: DiscountValueType
    # Percent (0-100) for PERCENTAGE, dollars for FIXED_AMOUNT.
    value: float
    starts_at: datetime | None = None
    ends_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class OrderLine:
    variant_id: str
    quantity: int


@dataclass(frozen=True, slots=True)
class CustomLine:
    title: str
    unit_price_cents: int
    quantity: int = 1


@dataclass(frozen=True, slots=True)
class DraftOrderInput:
    lines: list[OrderLine]
    custom_lines: list[CustomLine]
    buyer: BuyerInfo
    note: str
    attributes: dict[str, str] = field(default_factory=dict)
    applied_discount: AppliedDiscount | None = None
    volume_discount_cents: int = 0


@dataclass(frozen=True, slots=True)
class DeliveryRate:
    """An active shipping rate as the commerce system names and prices it."""

    name: str
    price_cents: int
    currency: str = "USD"
    rate_id: str = ""


@dataclass(frozen=True, slots=True)
class CreatedOrder:
    order_id: str
    order_number: str
    invoice_url: str


class CommerceAdapter(Protocol):
    vendor: str

    def lookup_discount(self, code: str) -> DiscountRecord | None: ...

    def create_draft_order(self, order: DraftOrderInput) -> CreatedOrder: ...

    def update_order_note(self, order_id: str, note: str) -> None: ...

    def send_invoice(self, order_id: str, *, to: str, subject: str, message: str) -> None: ...

    def list_delivery_rates(self) -> list[DeliveryRate]: ...
