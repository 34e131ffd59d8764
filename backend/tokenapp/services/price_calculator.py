# Overview: Pure price arithmetic for token purchases; no database or network access.

"""
Price Calculator

Given a nominal, a resolved price tuple and at most one discount, produce the
itemised breakdown the buyer is asked to pay:

    productAmount = nominal
    taxAmount     = round_half_up(productAmount * taxPercent / 100)
    subtotal      = productAmount + adminFee + taxAmount + otherCosts
    totalPayment  = max(0, subtotal - discountAmount)

All money is integer Rupiah. Tax is computed with Decimal so that a
percentage like 11.5 never picks up binary floating point error.

DISCOUNTS: A voucher and loyalty points are mutually exclusive. Choosing one
through DiscountSelection clears the other. If a caller builds a selection
holding both anyway, the voucher wins and the breakdown is flagged with
discount_conflict so the caller can log it.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP


DISCOUNT_VOUCHER = "VOUCHER"
DISCOUNT_POINTS = "POINTS"

_HUNDRED = Decimal(100)


class InvalidAmountError(Exception):
    """Raised when a nominal or the resulting total breaks the purchase rules."""
    pass


@dataclass(frozen=True)
class PriceTuple:
    """
    Numeric price configuration for one hierarchy path.

    base_price is None when the administrator never entered one (Unset).
    It only feeds the unit conversion shown after vending, never the total.
    """
    base_price: int | None = None
    tax_percent: Decimal = Decimal(0)
    admin_fee: int = 0
    other_costs: int = 0


ZERO_PRICE = PriceTuple()


@dataclass(frozen=True)
class AmountRules:
    min_nominal: int = 10_000
    max_nominal: int = 1_000_000
    granularity: int = 1_000
    min_payment: int = 10_000


@dataclass(frozen=True)
class VoucherDiscount:
    code: str
    amount: int


@dataclass(frozen=True)
class PointsDiscount:
    points: int
    amount: int


@dataclass(frozen=True)
class DiscountSelection:
    voucher: VoucherDiscount | None = None
    points: PointsDiscount | None = None

    def apply_voucher(self, voucher: VoucherDiscount | None) -> "DiscountSelection":
        return DiscountSelection(voucher=voucher, points=None)

    def redeem_points(self, points: PointsDiscount | None) -> "DiscountSelection":
        return DiscountSelection(voucher=None, points=points)

    def clear(self) -> "DiscountSelection":
        return DiscountSelection()


NO_DISCOUNT = DiscountSelection()


@dataclass(frozen=True)
class PriceBreakdown:
    product_amount: int
    admin_fee: int
    tax_amount: int
    other_costs: int
    subtotal: int
    discount_amount: int
    discount_source: str | None
    total_payment: int
    voucher_code: str | None = None
    points_redeemed: int = 0
    discount_conflict: bool = False

    def to_dict(self) -> dict:
        return {
            "product_amount": self.product_amount,
            "admin_fee": self.admin_fee,
            "tax_amount": self.tax_amount,
            "other_costs": self.other_costs,
            "subtotal": self.subtotal,
            "discount_amount": self.discount_amount,
            "discount_source": self.discount_source,
            "voucher_code": self.voucher_code,
            "points_redeemed": self.points_redeemed,
            "total_payment": self.total_payment,
        }


def compute_tax(product_amount: int, tax_percent: Decimal) -> int:
    """Half-up rounding to whole Rupiah: 10_050 at 5% is 502.5 -> 503."""
    raw = Decimal(product_amount) * Decimal(tax_percent) / _HUNDRED
    return int(raw.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def validate_nominal(nominal: int, rules: AmountRules) -> None:
    """
    Raises:
        InvalidAmountError: If nominal is not positive, outside the
            [min, max] range, or not a multiple of the granularity.
    """
    if isinstance(nominal, bool) or not isinstance(nominal, int):
        raise InvalidAmountError("Nominal must be a whole number of Rupiah")
    if nominal <= 0:
        raise InvalidAmountError("Nominal must be greater than zero")
    if nominal < rules.min_nominal:
        raise InvalidAmountError(f"Minimum nominal is Rp {rules.min_nominal:,}")
    if nominal > rules.max_nominal:
        raise InvalidAmountError(f"Maximum nominal is Rp {rules.max_nominal:,}")
    if rules.granularity and nominal % rules.granularity != 0:
        raise InvalidAmountError(f"Nominal must be a multiple of Rp {rules.granularity:,}")


def _effective_discount(selection: DiscountSelection) -> tuple[str | None, int, str | None, int, bool]:
    voucher = selection.voucher if selection.voucher and selection.voucher.amount > 0 else None
    points = selection.points if selection.points and selection.points.amount > 0 else None

    if voucher:
        return DISCOUNT_VOUCHER, voucher.amount, voucher.code, 0, points is not None
    if points:
        return DISCOUNT_POINTS, points.amount, None, points.points, False
    return None, 0, None, 0, False


def compute_price(
    nominal: int,
    price: PriceTuple | None,
    discount: DiscountSelection | None = None,
    rules: AmountRules | None = None,
) -> PriceBreakdown:
    """
    Compute the payment breakdown for a purchase.

    A None price (path not configured) is treated as zero fees and zero tax.
    Deterministic: the same inputs always give the same breakdown.

    Raises:
        InvalidAmountError: If the nominal is invalid, or the total falls
            below the minimum payment.
    """
    rules = rules or AmountRules()
    price = price or ZERO_PRICE
    discount = discount or NO_DISCOUNT

    validate_nominal(nominal, rules)

    product_amount = nominal
    tax_amount = compute_tax(product_amount, price.tax_percent)
    subtotal = product_amount + price.admin_fee + tax_amount + price.other_costs

    source, discount_amount, voucher_code, points_redeemed, conflict = _effective_discount(discount)
    total_payment = max(0, subtotal - discount_amount)

    if product_amount > 0 and total_payment < rules.min_payment:
        raise InvalidAmountError(f"Minimum payment is Rp {rules.min_payment:,}")

    return PriceBreakdown(
        product_amount=product_amount,
        admin_fee=price.admin_fee,
        tax_amount=tax_amount,
        other_costs=price.other_costs,
        subtotal=subtotal,
        discount_amount=discount_amount,
        discount_source=source,
        total_payment=total_payment,
        voucher_code=voucher_code,
        points_redeemed=points_redeemed,
        discount_conflict=conflict,
    )
