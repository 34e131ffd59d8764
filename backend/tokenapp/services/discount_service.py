# Overview: Voucher lookup and loyalty point quoting/redemption for the purchase flow.

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from flask import current_app
from sqlalchemy import update

from ..extensions import db
from ..models import Voucher, CustomerRewardAccount, CustomerRewardTransaction
from tokenapp.time_utils import business_now
from .price_calculator import DiscountSelection, VoucherDiscount, PointsDiscount, NO_DISCOUNT


class PointsError(Exception):
    """Raised when points cannot be granted or redeemed."""
    pass


@dataclass(frozen=True)
class VoucherCheck:
    code: str
    accepted: bool
    amount: int
    message: str

    def to_discount(self) -> VoucherDiscount | None:
        if not self.accepted:
            return None
        return VoucherDiscount(code=self.code, amount=self.amount)

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "accepted": self.accepted,
            "amount": self.amount,
            "message": self.message,
        }


@dataclass(frozen=True)
class PointsQuote:
    balance: int
    points: int
    amount: int
    message: str

    def to_discount(self) -> PointsDiscount | None:
        if self.points <= 0:
            return None
        return PointsDiscount(points=self.points, amount=self.amount)

    def to_dict(self) -> dict:
        return {
            "balance": self.balance,
            "points": self.points,
            "amount": self.amount,
            "message": self.message,
        }


def normalize_code(code: str | None) -> str:
    return (code or "").strip().upper()


# =============================================================================
# VOUCHERS
# =============================================================================

def _today() -> date:
    return business_now(current_app.config["BUSINESS_TIMEZONE"]).date()


def check_voucher(code: str | None, *, today: date | None = None) -> VoucherCheck:
    """
    Look up a voucher code.

    Unknown, inactive or out-of-window codes yield a zero discount with a
    reason; this never raises.
    """
    code = normalize_code(code)
    if not code:
        return VoucherCheck(code="", accepted=False, amount=0, message="Voucher code is empty")

    voucher = db.session.query(Voucher).filter_by(code=code).first()
    if not voucher or not voucher.is_active:
        return VoucherCheck(code=code, accepted=False, amount=0, message="Voucher code is not valid")

    today = today or _today()
    if voucher.start_date and today < voucher.start_date:
        return VoucherCheck(code=code, accepted=False, amount=0, message="Voucher is not active yet")
    if voucher.end_date and today > voucher.end_date:
        return VoucherCheck(code=code, accepted=False, amount=0, message="Voucher has expired")

    return VoucherCheck(
        code=code,
        accepted=True,
        amount=voucher.discount_amount,
        message=f"Voucher applied: Rp {voucher.discount_amount:,} discount",
    )


def list_vouchers(active_only: bool = False) -> list[dict]:
    q = db.session.query(Voucher)
    if active_only:
        q = q.filter_by(is_active=True)
    return [v.to_dict() for v in q.order_by(Voucher.code.asc()).all()]


def upsert_voucher(code: str, discount_amount: int, *, description: str | None = None,
                   start_date: date | None = None, end_date: date | None = None,
                   is_active: bool = True) -> Voucher:
    code = normalize_code(code)
    if not code:
        raise ValueError("Voucher code is required")
    if discount_amount < 0:
        raise ValueError("Voucher discount cannot be negative")

    voucher = db.session.query(Voucher).filter_by(code=code).first()
    if not voucher:
        voucher = Voucher(code=code)
        db.session.add(voucher)
    voucher.discount_amount = discount_amount
    voucher.description = description
    voucher.start_date = start_date
    voucher.end_date = end_date
    voucher.is_active = is_active
    db.session.commit()
    return voucher


def seed_default_vouchers() -> int:
    """Insert the configured default vouchers that do not exist yet."""
    created = 0
    for code, amount in current_app.config.get("DEFAULT_VOUCHERS", {}).items():
        if db.session.query(Voucher).filter_by(code=code).first():
            continue
        db.session.add(Voucher(code=code, discount_amount=amount, description=f"Potongan Rp {amount:,}"))
        created += 1
    db.session.commit()
    return created


# =============================================================================
# LOYALTY POINTS
# =============================================================================

def _get_or_create_account(customer_pk: int) -> CustomerRewardAccount:
    account = db.session.query(CustomerRewardAccount).filter_by(customer_pk=customer_pk).first()
    if not account:
        account = CustomerRewardAccount(
            customer_pk=customer_pk,
            points_balance=0,
            lifetime_points_earned=0,
            lifetime_points_redeemed=0,
        )
        db.session.add(account)
        db.session.flush()
    return account


def get_points_balance(customer_pk: int) -> int:
    account = db.session.query(CustomerRewardAccount).filter_by(customer_pk=customer_pk).first()
    return account.points_balance if account else 0


def grant_points(customer_pk: int, points: int, *, reason: str | None = None,
                 transaction_type: str = "EARN") -> CustomerRewardAccount:
    if points <= 0:
        raise PointsError("Points to grant must be positive")

    account = _get_or_create_account(customer_pk)
    account.points_balance += points
    account.lifetime_points_earned += points
    db.session.add(CustomerRewardTransaction(
        reward_account_id=account.id,
        transaction_type=transaction_type,
        points=points,
        reason=reason,
    ))
    db.session.commit()
    return account


def quote_points(customer_pk: int) -> PointsQuote:
    """
    Advisory points discount: min(balance, cap) * conversion rate.

    Nothing is reserved here; the balance is only decremented at settlement.
    """
    balance = get_points_balance(customer_pk)
    cap = current_app.config["POINTS_CAP"]
    rate = current_app.config["POINTS_CONVERSION_RATE"]

    if balance <= 0:
        return PointsQuote(balance=balance, points=0, amount=0, message="No points available")

    points = min(balance, cap)
    amount = points * rate
    return PointsQuote(
        balance=balance,
        points=points,
        amount=amount,
        message=f"Redeeming {points} points for Rp {amount:,}",
    )


def redeem_points_for_order(customer_pk: int, order_id: str, points: int) -> int:
    """
    Decrement the balance for a settled order. Does not commit.

    Idempotent per order_id: a second call returns the already redeemed
    amount without touching the balance.

    Raises:
        PointsError: If the balance no longer covers the quoted points.
    """
    if points <= 0:
        return 0

    existing = (
        db.session.query(CustomerRewardTransaction)
        .filter_by(order_id=order_id, transaction_type="REDEEM")
        .first()
    )
    if existing:
        return -existing.points

    # Guarded decrement: the WHERE clause makes check-and-spend one statement
    stmt = (
        update(CustomerRewardAccount)
        .where(
            CustomerRewardAccount.customer_pk == customer_pk,
            CustomerRewardAccount.points_balance >= points,
        )
        .values(
            points_balance=CustomerRewardAccount.points_balance - points,
            lifetime_points_redeemed=CustomerRewardAccount.lifetime_points_redeemed + points,
        )
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if not result.rowcount:
        raise PointsError(f"Insufficient points to redeem {points} for order {order_id}")

    account = db.session.query(CustomerRewardAccount).filter_by(customer_pk=customer_pk).one()
    db.session.refresh(account)
    db.session.add(CustomerRewardTransaction(
        reward_account_id=account.id,
        transaction_type="REDEEM",
        points=-points,
        order_id=order_id,
        reason=f"Redeemed on order {order_id}",
    ))
    db.session.flush()
    return points


# =============================================================================
# SELECTION
# =============================================================================

def build_selection(
    customer_pk: int | None,
    *,
    voucher_code: str | None = None,
    redeem_points: bool = False,
) -> tuple[DiscountSelection, VoucherCheck | None, PointsQuote | None]:
    """
    Build the discount selection for a quote.

    Points are applied first and an accepted voucher second, so a request
    carrying both ends up with the voucher only. A rejected voucher leaves
    the points discount in place.
    """
    selection = NO_DISCOUNT
    voucher_check = None
    points_quote = None

    if redeem_points and customer_pk is not None:
        points_quote = quote_points(customer_pk)
        selection = selection.redeem_points(points_quote.to_discount())

    if normalize_code(voucher_code):
        voucher_check = check_voucher(voucher_code)
        if voucher_check.accepted:
            selection = selection.apply_voucher(voucher_check.to_discount())
            if points_quote is not None:
                points_quote = PointsQuote(
                    balance=points_quote.balance,
                    points=0,
                    amount=0,
                    message="Points not redeemed because a voucher was applied",
                )

    return selection, voucher_check, points_quote
