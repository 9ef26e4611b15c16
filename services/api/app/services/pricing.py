"""Order pricing: gift subtotal, tiered fees, volume discounts and shipping.

Pure functions only. The same breakdown feeds the review page preview, the
upstream order, the manifest, the invoice and the confirmation email.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from services.api.app.models.order import (
    DeliveryMethod,
    LineItemsSelection,
    PackageSelection,
    PricingBreakdown,
)

# (minimum recipient count, flat fee in cents, label), highest bracket first.
FULFILLMENT_FEE_TIERS: tuple[tuple[int, int, str], ...] = (
    (1500, 12500, "1,500+"),
    (500, 7500, "500-1,499"),
    (0, 4000, "< 500"),
)

# (minimum gift subtotal in cents, rate), highest threshold first.
VOLUME_DISCOUNT_TIERS: tuple[tuple[int, Decimal], ...] = (
    (250_000, Decimal("0.15")),
    (100_000, Decimal("0.10")),
    (50_000, Decimal("0.05")),
)


def round_cents(amount: Decimal) -> int:
    return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def percent_of(amount_cents: int, percent: float | Decimal) -> int:
    """round(amount * percent / 100) to the cent, half-up."""
    return round_cents(Decimal(amount_cents) * Decimal(str(percent)) / Decimal(100))


def unit_total_cents(selection: LineItemsSelection | PackageSelection) -> int:
    """Cost of one recipient's gift."""
    if isinstance(selection, PackageSelection):
        return selection.package.price_cents * selection.package.quantity
    return sum(item.unit_price_cents * item.quantity for item in selection.items)


def fulfillment_fee_tier(recipient_count: int) -> tuple[int, str]:
    for minimum, fee_cents, label in FULFILLMENT_FEE_TIERS:
        if recipient_count >= minimum:
            return fee_cents, label
    raise ValueError(f"recipient_count must be >= 0, got {recipient_count}")


def calculate_fulfillment_fee(recipient_count: int) -> int:
    fee_cents, _ = fulfillment_fee_tier(recipient_count)
    return fee_cents


def volume_discount_rate(gift_subtotal_cents: int) -> Decimal:
    for threshold_cents, rate in VOLUME_DISCOUNT_TIERS:
        if gift_subtotal_cents >= threshold_cents:
            return rate
    return Decimal("0")


def calculate_volume_discount(gift_subtotal_cents: int) -> int:
    rate = volume_discount_rate(gift_subtotal_cents)
    return round_cents(Decimal(gift_subtotal_cents) * rate)


def compute_total(
    unit_price_cents: int,
    recipient_count: int,
    delivery_method: DeliveryMethod | None = None,
    *,
    discount_cents: int = 0,
) -> PricingBreakdown:
    """Price an order of ``recipient_count`` identical gifts.

    A single-location delivery pays the tiered fulfillment fee; any shipped
    method pays its per-recipient rate instead. ``discount_cents`` is a code
    discount and is clamped to the subtotal left after the volume discount.
    """

    if recipient_count < 1:
        raise ValueError(f"recipient_count must be >= 1, got {recipient_count}")

    delivery_method = delivery_method or DeliveryMethod()

    gift_subtotal = unit_price_cents * recipient_count
    rate = volume_discount_rate(gift_subtotal)
    volume_discount = round_cents(Decimal(gift_subtotal) * rate)
    discount = min(max(0, discount_cents), gift_subtotal - volume_discount)

    if delivery_method.is_shipped:
        fee, fee_label = 0, None
        shipping_per_recipient = delivery_method.price_cents
    else:
        fee, fee_label = fulfillment_fee_tier(recipient_count)
        shipping_per_recipient = 0
    shipping = shipping_per_recipient * recipient_count

    return PricingBreakdown(
        unit_total_cents=unit_price_cents,
        recipient_count=recipient_count,
        gift_subtotal_cents=gift_subtotal,
        volume_discount_rate=float(rate),
        volume_discount_cents=volume_discount,
        discount_cents=discount,
        fulfillment_fee_cents=fee,
        fulfillment_fee_label=fee_label,
        shipping_cost_cents=shipping,
        shipping_per_recipient_cents=shipping_per_recipient,
        total_cents=gift_subtotal - volume_discount - discount + fee + shipping,
    )


def format_money(cents: int) -> str:
    sign = "-" if cents < 0 else ""
    dollars, rem = divmod(abs(cents), 100)
    return f"{sign}${dollars:,}.{rem:02d}"
