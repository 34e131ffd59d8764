"""
Price calculator tests.

Pure arithmetic: no app or database needed.
"""

from decimal import Decimal

import pytest

from tokenapp.services.price_calculator import (
    AmountRules,
    DiscountSelection,
    InvalidAmountError,
    NO_DISCOUNT,
    PointsDiscount,
    PriceTuple,
    VoucherDiscount,
    compute_price,
    compute_tax,
    DISCOUNT_POINTS,
    DISCOUNT_VOUCHER,
)


ELECTRICITY_RULES = AmountRules(min_nominal=10_000, max_nominal=1_000_000, granularity=5_000, min_payment=10_000)
PRICE = PriceTuple(base_price=1500, tax_percent=Decimal("11"), admin_fee=2500, other_costs=0)


def test_breakdown_without_discount():
    breakdown = compute_price(50_000, PRICE, NO_DISCOUNT, ELECTRICITY_RULES)

    assert breakdown.product_amount == 50_000
    assert breakdown.tax_amount == 5_500
    assert breakdown.admin_fee == 2_500
    assert breakdown.subtotal == 58_000
    assert breakdown.discount_amount == 0
    assert breakdown.discount_source is None
    assert breakdown.total_payment == 58_000


def test_voucher_discount_keeps_subtotal():
    selection = NO_DISCOUNT.apply_voucher(VoucherDiscount(code="DISKON10K", amount=10_000))
    breakdown = compute_price(50_000, PRICE, selection, ELECTRICITY_RULES)

    assert breakdown.subtotal == 58_000
    assert breakdown.discount_amount == 10_000
    assert breakdown.discount_source == DISCOUNT_VOUCHER
    assert breakdown.voucher_code == "DISKON10K"
    assert breakdown.total_payment == 48_000


def test_points_discount():
    selection = NO_DISCOUNT.redeem_points(PointsDiscount(points=500, amount=500))
    breakdown = compute_price(50_000, PRICE, selection, ELECTRICITY_RULES)

    assert breakdown.discount_source == DISCOUNT_POINTS
    assert breakdown.points_redeemed == 500
    assert breakdown.total_payment == 57_500


def test_unconfigured_price_charges_raw_nominal():
    breakdown = compute_price(20_000, None, NO_DISCOUNT, ELECTRICITY_RULES)

    assert breakdown.admin_fee == 0
    assert breakdown.tax_amount == 0
    assert breakdown.total_payment == 20_000


@pytest.mark.parametrize("nominal", [0, -5_000, 5_000, 52_000, 1_005_000])
def test_invalid_nominals_rejected(nominal):
    with pytest.raises(InvalidAmountError):
        compute_price(nominal, PRICE, NO_DISCOUNT, ELECTRICITY_RULES)


def test_non_integer_nominal_rejected():
    with pytest.raises(InvalidAmountError):
        compute_price(50_000.5, PRICE, NO_DISCOUNT, ELECTRICITY_RULES)


def test_total_below_minimum_payment_rejected():
    selection = NO_DISCOUNT.apply_voucher(VoucherDiscount(code="DISKON10K", amount=10_000))
    with pytest.raises(InvalidAmountError, match="Minimum payment"):
        compute_price(10_000, None, selection, ELECTRICITY_RULES)


def test_total_never_negative():
    rules = AmountRules(min_nominal=10_000, max_nominal=1_000_000, granularity=1_000, min_payment=0)
    selection = NO_DISCOUNT.apply_voucher(VoucherDiscount(code="BIG", amount=1_000_000))
    breakdown = compute_price(10_000, None, selection, rules)

    assert breakdown.total_payment == 0


@pytest.mark.parametrize(
    "product_amount, percent, expected",
    [
        (50_000, Decimal("11"), 5_500),
        (10_050, Decimal("5"), 503),      # 502.5 rounds up
        (12_500, Decimal("11.5"), 1_438),  # 1437.5 rounds up
        (12_000, Decimal("0"), 0),
        (10_000, Decimal("0.1"), 10),
    ],
)
def test_tax_rounds_half_up(product_amount, percent, expected):
    assert compute_tax(product_amount, percent) == expected


def test_compute_price_is_deterministic():
    selection = NO_DISCOUNT.apply_voucher(VoucherDiscount(code="HEMAT5K", amount=5_000))
    first = compute_price(75_000, PRICE, selection, ELECTRICITY_RULES)
    second = compute_price(75_000, PRICE, selection, ELECTRICITY_RULES)

    assert first == second


def test_total_identity_holds():
    price = PriceTuple(base_price=None, tax_percent=Decimal("10"), admin_fee=1_000, other_costs=750)
    selection = NO_DISCOUNT.redeem_points(PointsDiscount(points=300, amount=300))
    b = compute_price(25_000, price, selection, AmountRules(granularity=1_000))

    assert b.total_payment == max(0, b.product_amount + b.admin_fee + b.tax_amount + b.other_costs - b.discount_amount)


def test_voucher_after_points_clears_points():
    selection = (
        NO_DISCOUNT
        .redeem_points(PointsDiscount(points=500, amount=500))
        .apply_voucher(VoucherDiscount(code="HEMAT5K", amount=5_000))
    )

    assert selection.points is None
    assert selection.voucher.code == "HEMAT5K"


def test_points_after_voucher_clears_voucher():
    selection = (
        NO_DISCOUNT
        .apply_voucher(VoucherDiscount(code="HEMAT5K", amount=5_000))
        .redeem_points(PointsDiscount(points=500, amount=500))
    )

    assert selection.voucher is None
    assert selection.points.points == 500


def test_both_sources_supplied_voucher_wins():
    selection = DiscountSelection(
        voucher=VoucherDiscount(code="HEMAT5K", amount=5_000),
        points=PointsDiscount(points=500, amount=500),
    )
    breakdown = compute_price(50_000, PRICE, selection, ELECTRICITY_RULES)

    assert breakdown.discount_source == DISCOUNT_VOUCHER
    assert breakdown.discount_amount == 5_000
    assert breakdown.points_redeemed == 0
    assert breakdown.discount_conflict is True


def test_zero_value_voucher_is_no_discount():
    selection = NO_DISCOUNT.apply_voucher(VoucherDiscount(code="ZERO", amount=0))
    breakdown = compute_price(50_000, PRICE, selection, ELECTRICITY_RULES)

    assert breakdown.discount_source is None
    assert breakdown.total_payment == 58_000
