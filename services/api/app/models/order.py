from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

from services.api.app.models.recipient import Recipient

ONE_LOCATION_METHOD_ID = "one-location"


class LineItem(BaseModel):
    product_id: str
    title: str
    unit_price_cents: int = Field(..., ge=0)
    quantity: int = Field(..., ge=1)
    variant_id: str | None = None


class SelectedPackage(BaseModel):
    id: str
    name: str
    price_cents: int = Field(..., ge=0)
    quantity: int = Field(1, ge=1)
    variant_id: str | None = None
    includes: list[str] = Field(default_factory=list)


class LineItemsSelection(BaseModel):
    kind: Literal["line_items"] = "line_items"
    items: list[LineItem] = Field(default_factory=list)


class PackageSelection(BaseModel):
    kind: Literal["package"] = "package"
    package: SelectedPackage


CartSelection = Annotated[LineItemsSelection | PackageSelection, Field(discriminator="kind")]


class DeliveryMethod(BaseModel):
    id: str = ONE_LOCATION_METHOD_ID
    name: str = "One-Location Delivery"
    price_cents: int = Field(0, ge=0)
    currency: str = "USD"
    estimated_days: str | None = None

    @property
    def is_shipped(self) -> bool:
        return self.id != ONE_LOCATION_METHOD_ID


# Shipped methods are priced per recipient; one-location pays the tiered fee instead.
FALLBACK_DELIVERY_METHODS: tuple[DeliveryMethod, ...] = (
    DeliveryMethod(estimated_days="3-5 business days"),
    DeliveryMethod(id="usps", name="USPS", price_cents=899, estimated_days="5-7 business days"),
    DeliveryMethod(
        id="ups-ground", name="UPS Ground", price_cents=1299, estimated_days="3-5 business days"
    ),
    DeliveryMethod(
        id="ups-2day", name="UPS 2nd Day Air", price_cents=2499, estimated_days="2 business days"
    ),
)

DELIVERY_METHOD_IDS = frozenset(m.id for m in FALLBACK_DELIVERY_METHODS)


class DeliveryMethodsResponse(BaseModel):
    methods: list[DeliveryMethod]
    # "fallback" when the built-in rates are served, otherwise the commerce vendor.
    source: str
    error: str | None = None


class BuyerInfo(BaseModel):
    name: str = ""
    email: str = ""
    phone: str = ""
    company: str = ""
    delivery_date: str = ""
    notes: str | None = None
    notify_by_text: bool = False


class DiscountValueType(str, Enum):
    PERCENTAGE = "PERCENTAGE"
    FIXED_AMOUNT = "FIXED_AMOUNT"


class AppliedDiscount(BaseModel):
    code: str
    title: str
    value_type: DiscountValueType
    value: float
    discount_amount_cents: int = Field(..., ge=0)


class CartSnapshot(BaseModel):
    """Everything the browser session holds at checkout time."""

    model_config = ConfigDict(frozen=True)

    selection: CartSelection | None = None
    recipient_count: int = 0
    recipients: list[Recipient] = Field(default_factory=list)
    delivery_method: DeliveryMethod = Field(default_factory=DeliveryMethod)
    discount_code: str | None = None
    # Accepted for compatibility with older clients; always re-derived from discount_code.
    applied_discount: AppliedDiscount | None = None
    vendor_document_urls: list[str] = Field(default_factory=list)
    vendor_notes: str | None = None
    tier: str | None = None
    buyer: BuyerInfo = Field(default_factory=BuyerInfo)

    @property
    def effective_recipient_count(self) -> int:
        if self.recipients:
            return len(self.recipients)
        return self.recipient_count


class PricingBreakdown(BaseModel):
    unit_total_cents: int
    recipient_count: int
    gift_subtotal_cents: int
    volume_discount_rate: float
    volume_discount_cents: int
    discount_cents: int
    fulfillment_fee_cents: int
    fulfillment_fee_label: str | None = None
    shipping_cost_cents: int
    shipping_per_recipient_cents: int
    total_cents: int

    @property
    def discountable_subtotal_cents(self) -> int:
        return self.gift_subtotal_cents - self.volume_discount_cents


class PricingPreviewRequest(BaseModel):
    selection: CartSelection
    recipient_count: int = Field(..., ge=1)
    delivery_method: DeliveryMethod = Field(default_factory=DeliveryMethod)
    discount_cents: int = Field(0, ge=0)


class StepName(str, Enum):
    DISCOUNT_REVALIDATION = "discount_revalidation"
    MANIFEST_GENERATION = "manifest_generation"
    INVOICE_GENERATION = "invoice_generation"
    MANIFEST_STORAGE = "manifest_storage"
    INVOICE_STORAGE = "invoice_storage"
    ORDER_ANNOTATION = "order_annotation"
    CONFIRMATION_EMAIL = "confirmation_email"
    PAYMENT_INVOICE_EMAIL = "payment_invoice_email"
    INVOICE_SMS = "invoice_sms"


class StepResult(BaseModel):
    name: StepName
    success: bool
    error: str | None = None
    skipped: bool = False


class SubmissionResult(BaseModel):
    order_id: str
    order_number: str
    invoice_url: str
    manifest_url: str | None = None
    manifest_error: str | None = None
    invoice_document_url: str | None = None
    pricing: PricingBreakdown
    applied_discount: AppliedDiscount | None = None
    discount_warning: str | None = None
    steps: list[StepResult] = Field(default_factory=list)

    def step(self, name: StepName) -> StepResult | None:
        for result in self.steps:
            if result.name == name:
                return result
        return None


class InvoiceRequest(BaseModel):
    order_number: str
    cart: CartSnapshot
