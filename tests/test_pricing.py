from decimal import Decimal

import pytest

from orders.services.pricing import (
    InterstateTaxSplit,
    IntrastateTaxSplit,
    LineItem,
    ModifierSelection,
    compute_total,
    get_tax_split_policy,
    q2,
)


def line(price, quantity=1, modifiers=(), reference_id=1):
    return LineItem(reference_id=reference_id, unit_base_price=Decimal(price), quantity=quantity, modifiers=modifiers)


def test_unit_and_line_price_include_modifiers():
    item = line("120.00", quantity=3, modifiers=(
        ModifierSelection(group_id=1, modifier_id=10, price_delta=Decimal("15.50")),
        ModifierSelection(group_id=2, modifier_id=20, price_delta=Decimal("4.50")),
    ))
    assert item.computed_unit_price == Decimal("140.00")
    assert item.computed_total_price == Decimal("420.00")


def test_modifier_order_does_not_change_configuration():
    a = ModifierSelection(group_id=1, modifier_id=10, price_delta=Decimal("1"))
    b = ModifierSelection(group_id=2, modifier_id=20, price_delta=Decimal("2"))
    assert line("10", modifiers=(a, b)).same_configuration(line("10", modifiers=(b, a)))
    assert not line("10", modifiers=(a,)).same_configuration(line("10", modifiers=(a, b)))
    assert not line("10", reference_id=1).same_configuration(line("10", reference_id=2))


def test_intrastate_tax_is_split_evenly_and_rounded_half_up():
    totals = compute_total([line("199.50")], tax_rate="0.05", delivery_fee_threshold=0, delivery_fee_amount=0)

    assert totals.subtotal == Decimal("199.50")
    assert totals.tax_breakdown.cgst == Decimal("4.99")
    assert totals.tax_breakdown.sgst == Decimal("4.99")
    assert totals.tax_breakdown.igst == Decimal("0.00")
    assert totals.tax == Decimal("9.98")
    assert totals.total == Decimal("209.48")


def test_interstate_tax_goes_to_igst():
    totals = compute_total(
        [line("199.50")], tax_rate="0.05", delivery_fee_threshold=0, delivery_fee_amount=0,
        tax_split=InterstateTaxSplit(),
    )
    assert totals.tax_breakdown.igst == Decimal("9.98")
    assert totals.tax_breakdown.cgst == Decimal("0.00")
    assert totals.total == Decimal("209.48")


@pytest.mark.parametrize("subtotal, expected_fee", [
    ("150.00", Decimal("40.00")),
    ("199.99", Decimal("40.00")),
    ("200.00", Decimal("0.00")),
    ("450.00", Decimal("0.00")),
])
def test_delivery_fee_applies_below_threshold_only(subtotal, expected_fee):
    totals = compute_total([line(subtotal)], tax_rate=0, delivery_fee_threshold="200", delivery_fee_amount="40")
    assert totals.delivery_fee == expected_fee
    assert totals.total == Decimal(subtotal) + expected_fee


def test_discount_is_clamped_to_subtotal():
    totals = compute_total(
        [line("100.00")], tax_rate="0.05", delivery_fee_threshold=0, delivery_fee_amount=0,
        discount=Decimal("150.00"),
    )
    assert totals.discount == Decimal("100.00")
    assert totals.total == Decimal("5.00")
    assert totals.total >= 0


def test_empty_cart_totals_are_zero():
    totals = compute_total([], tax_rate="0.05", delivery_fee_threshold="200", delivery_fee_amount="40")
    assert totals.total == Decimal("0.00")
    assert totals.delivery_fee == Decimal("0.00")
    assert totals.item_count == 0


def test_totals_reconcile_with_components():
    items = [line("99.99", quantity=3), line("12.35", quantity=1, reference_id=2)]
    totals = compute_total(items, tax_rate="0.18", delivery_fee_threshold="500", delivery_fee_amount="35", discount="7.77")

    rebuilt = totals.subtotal + totals.tax + totals.delivery_fee - totals.discount
    assert abs(rebuilt - totals.total) <= Decimal("0.01")
    assert totals.item_count == 4


@pytest.mark.parametrize("kwargs", [
    {"tax_rate": "-0.01"},
    {"tax_rate": "1.01"},
    {"tax_rate": "0.05", "discount": "-1"},
])
def test_invalid_pricing_inputs_raise(kwargs):
    with pytest.raises(ValueError):
        compute_total([line("10")], delivery_fee_threshold=0, delivery_fee_amount=0, **kwargs)


def test_unknown_tax_split_falls_back_to_intrastate():
    assert isinstance(get_tax_split_policy("nonsense"), IntrastateTaxSplit)
    assert isinstance(get_tax_split_policy(None), IntrastateTaxSplit)


def test_q2_rounds_half_up():
    assert q2("2.345") == Decimal("2.35")
    assert q2(Decimal("4.9875")) == Decimal("4.99")
