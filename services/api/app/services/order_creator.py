from __future__ import annotations

import structlog

from services.api.app.models.order import (
    AppliedDiscount,
    BuyerInfo,
    CartSnapshot,
    LineItemsSelection,
    PackageSelection,
    PricingBreakdown,
)
from services.api.app.services.commerce_base import (
    CommerceAdapter,
    CreatedOrder,
    CustomLine,
    DraftOrderInput,
    OrderLine,
    UpstreamOrderError,
)
from services.api.app.services.documents import breakdown_rows
from services.api.app.services.pricing import format_money

logger = structlog.get_logger(__name__)

MANIFEST_PLACEHOLDER = "Recipient manifest: link will be added once generated"


def order_lines(
    selection: LineItemsSelection | PackageSelection, recipient_count: int
) -> list[OrderLine]:
    """One unit of every selected product per recipient."""
    if isinstance(selection, PackageSelection):
        pkg = selection.package
        return [OrderLine(variant_id=pkg.variant_id or "", quantity=pkg.quantity * recipient_count)]
    return [
        OrderLine(variant_id=item.variant_id or "", quantity=item.quantity * recipient_count)
        for item in selection.items
    ]


def custom_lines(cart: CartSnapshot, pricing: PricingBreakdown) -> list[CustomLine]:
    if cart.delivery_method.is_shipped:
        if not pricing.shipping_cost_cents:
            return []
        return [
            CustomLine(
                title=f"Shipping ({cart.delivery_method.name}, per recipient)",
                unit_price_cents=pricing.shipping_per_recipient_cents,
                quantity=pricing.recipient_count,
            )
        ]
    if not pricing.fulfillment_fee_cents:
        return []
    return [
        CustomLine(
            title=f"Delivery Fee ({pricing.fulfillment_fee_label} recipients)",
            unit_price_cents=pricing.fulfillment_fee_cents,
        )
    ]


def build_order_note(
    cart: CartSnapshot,
    pricing: PricingBreakdown,
    discount: AppliedDiscount | None,
    *,
    manifest_url: str | None = None,
) -> str:
    buyer = cart.buyer
    lines = [
        "Corporate Gifting Order",
        "",
        f"Buyer: {buyer.name}",
        f"Company: {buyer.company}",
        f"Email: {buyer.email}",
        f"Phone: {buyer.phone}",
        f"Delivery Date: {buyer.delivery_date or 'Not specified'}",
        f"Delivery Method: {cart.delivery_method.name}",
    ]
    if buyer.notes:
        lines.append(f"Notes: {buyer.notes}")

    lines += ["", f"Recipients: {pricing.recipient_count}"]
    lines += [
        f"{label}: {format_money(cents)}"
        for label, cents in breakdown_rows(
            pricing, cart.delivery_method, discount, titled_discount=True
        )
    ]

    if cart.vendor_notes:
        lines += ["", f"Vendor Notes: {cart.vendor_notes}"]
    if cart.vendor_document_urls:
        lines += ["", "Vendor Documents:"]
        lines += [f"- {url}" for url in cart.vendor_document_urls]

    lines.append("")
    if manifest_url:
        lines.append(f"Recipient manifest: {manifest_url}")
    else:
        lines.append(MANIFEST_PLACEHOLDER)
    return "\n".join(lines)


class OrderCreator:
    def __init__(self, commerce: CommerceAdapter) -> None:
        self._commerce = commerce

    def create(
        self,
        cart: CartSnapshot,
        pricing: PricingBreakdown,
        buyer: BuyerInfo,
        discount: AppliedDiscount | None = None,
    ) -> CreatedOrder:
        """Create the upstream draft order. Any failure surfaces as UpstreamOrderError."""

        assert cart.selection is not None
        draft = DraftOrderInput(
            lines=order_lines(cart.selection, pricing.recipient_count),
            custom_lines=custom_lines(cart, pricing),
            buyer=buyer,
            note=build_order_note(cart, pricing, discount),
            attributes={
                "recipient_count": str(pricing.recipient_count),
                "order_type": "corporate_gifting",
                "delivery_method": cart.delivery_method.id,
            },
            applied_discount=discount,
            volume_discount_cents=pricing.volume_discount_cents,
        )

        try:
            created = self._commerce.create_draft_order(draft)
        except UpstreamOrderError:
            raise
        except Exception as e:
            raise UpstreamOrderError(str(e) or "Failed to create draft order") from e

        if not created.order_id:
            raise UpstreamOrderError("Commerce system returned no order id")

        logger.info(
            "Draft order created",
            order_id=created.order_id,
            order_number=created.order_number,
            recipient_count=pricing.recipient_count,
            total_cents=pricing.total_cents,
        )
        return created
