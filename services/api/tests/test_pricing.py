from __future__ import annotations

import pytest

from services.api.app.models.order import (
    DeliveryMethod,
    LineItem,
    LineItemsSelection,
    PackageSelection,
    SelectedPackage,
)
from services.api.app.services.pricing import (
    calculate_fulfillment_fee,
    calculate_volume_discount,
    compute_total,
    format_money,
    percent_of,
    unit_total_cents,
)

USPS = DeliveryMethod(id="usps", name="USPS Priority", price_cents=899)


@pytest.mark.parametrize(
    ("recipient_count", "fee_cents"),
    [(1, 4000), (499, 4000), (500, 7500), (1499, 7500), (1500, 12500), (10_000, 12500)],
)
def test_fulfillment_fee_tiers(recipient_count: int, fee_cents: int) -> None:
    assert calculate_fulfillment_fee(recipient_count) == fee_cents


@pytest.mark.parametrize(
    ("subtotal_cents", "discount_cents"),
    [
        (49_999, 0),
        (50_000, 2_500),
        (99_999, 5_000),
        (100_000, 10_000),
        (249_999, 25_000),
        (250_000, 37_500),
        (2_100_000, 315_000),
    ],
)
def test_volume_discount_takes_single_highest_tier(subtotal_cents: int, discount_cents: int) -> None:
    assert calculate_volume_discount(subtotal_cents) == discount_cents


def test_scenario_a_line_items_600_recipients() -> None:
    selection = LineItemsSelection(
        items=[
            LineItem(product_id="a", title="A", unit_price_cents=1000, quantity=2),
            LineItem(product_id="b", title="B", unit_price_cents=1500, quantity=1),
        ]
    )

    breakdown = compute_total(unit_total_cents(selection), 600)

    assert breakdown.unit_total_cents == 3500
    assert breakdown.gift_subtotal_cents == 2_100_000
    assert breakdown.volume_discount_rate == pytest.approx(0.15)
    assert breakdown.volume_discount_cents == 315_000
    assert breakdown.fulfillment_fee_cents == 7500
    assert breakdown.fulfillment_fee_label == "500-1,499"
    assert breakdown.shipping_cost_cents == 0
    assert breakdown.total_cents == 2_100_000 - 315_000 + 7500


def test_shipped_method_replaces_fee_with_per_recipient_shipping() -> None:
    breakdown = compute_total(2000, 10, USPS)

    assert breakdown.fulfillment_fee_cents == 0
    assert breakdown.fulfillment_fee_label is None
    assert breakdown.shipping_per_recipient_cents == 899
    assert breakdown.shipping_cost_cents == 8990
    assert breakdown.total_cents == 20_000 + 8990


def test_code_discount_is_clamped_to_subtotal_after_volume_discount() -> None:
    breakdown = compute_total(100, 3, discount_cents=10_000)
    assert breakdown.discount_cents == 300
    assert breakdown.total_cents == 4000

    assert compute_total(100, 3, discount_cents=-50).discount_cents == 0


def test_compute_total_is_pure() -> None:
    assert compute_total(3500, 600, USPS) == compute_total(3500, 600, USPS)


def test_compute_total_rejects_zero_recipients() -> None:
    with pytest.raises(ValueError):
        compute_total(3500, 0)


def test_package_unit_total_uses_package_price() -> None:
    selection = PackageSelection(
        package=SelectedPackage(id="pkg", name="Sweet Box", price_cents=4500, quantity=2)
    )
    assert unit_total_cents(selection) == 9000


def test_percent_of_rounds_half_up() -> None:
    assert percent_of(5, 10) == 1
    assert percent_of(15, 10) == 2
    assert percent_of(1234, 12.5) == 154


def test_format_money() -> None:
    assert format_money(2_100_000) == "$21,000.00"
    assert format_money(-315_000) == "-$3,150.00"
    assert format_money(5) == "$0.05"
