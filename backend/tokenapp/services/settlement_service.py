# Overview: Purchase lifecycle from order creation through payment settlement to token vending.

"""
Settlement Service

STATE MACHINE:
    CREATED --(session issued)--> PAYMENT_PENDING --(callback: success)--> PAYMENT_SETTLED
    PAYMENT_SETTLED --(vend ok)--> VENDED                 (terminal)
    PAYMENT_SETTLED --(vend error/timeout)--> VENDING_FAILED  (retry by order_id)
    CREATED | PAYMENT_PENDING --(callback: pending/cancel/error)--> ABANDONED

CALLBACKS: The gateway delivers notifications at least once, possibly out of
order and late. Every handler here can be called repeatedly for the same
order and is a no-op when the order has already moved past that step.

IDEMPOTENT VENDING: order_id is the idempotency key. A VENDED order returns
its stored token without calling the vending API, and GeneratedToken is
unique per order_id. Only the caller that wins the vend claim (a conditional
UPDATE on vending_started_at) calls out, so a callback redelivered while a
vend is in flight does not reach the vending API.

LOCKING: DB transitions are short and committed before any outbound HTTP
call. Row locks (lock_for_update) never span a gateway or vending request.
"""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal, ROUND_HALF_UP

from flask import current_app
from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError

from ..extensions import db, payment_gateway, vending_client
from ..models import Customer, GeneratedToken, Order
from .. import token_types
from ..clients.payment_gateway import (
    Buyer,
    GatewaySessionError,
    ItemDetail,
    RedirectUrls,
    OUTCOME_SUCCESS,
    classify_gateway_status,
)
from ..clients.vending import VendingError
from tokenapp.time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry
from .customer_service import CustomerError, get_customer
from .discount_service import PointsError, redeem_points_for_order
from .identifier_service import generate_order_id
from .pricing_service import STATUS_ERROR, build_quote


STATUS_CREATED = "CREATED"
STATUS_PAYMENT_PENDING = "PAYMENT_PENDING"
STATUS_PAYMENT_SETTLED = "PAYMENT_SETTLED"
STATUS_VENDED = "VENDED"
STATUS_VENDING_FAILED = "VENDING_FAILED"
STATUS_ABANDONED = "ABANDONED"

UNPAID_STATUSES = {STATUS_CREATED, STATUS_PAYMENT_PENDING}
VENDABLE_STATUSES = {STATUS_PAYMENT_SETTLED, STATUS_VENDING_FAILED}


class SettlementError(Exception):
    """Raised when an order cannot make the requested transition."""
    pass


class OrderNotFoundError(SettlementError):
    """Raised when an order is not found."""
    pass


class PurchaseBlockedError(SettlementError):
    """Raised when the customer or service is not allowed to buy."""
    pass


class VendingFailure(SettlementError):
    """
    Payment succeeded but no token could be issued.

    The order is parked in VENDING_FAILED and can be retried by order_id.
    """

    def __init__(self, message: str, order_id: str):
        super().__init__(message)
        self.order_id = order_id


class VendingInProgressError(SettlementError):
    """Raised when another caller holds the vend claim for the order."""
    pass


# =============================================================================
# LOOKUPS
# =============================================================================

def get_order(order_id: str) -> Order:
    order = db.session.query(Order).filter_by(order_id=order_id).first()
    if not order:
        raise OrderNotFoundError(f"Order {order_id} not found")
    return order


def _lock_order(order_id: str) -> Order:
    order = lock_for_update(db.session.query(Order).filter_by(order_id=order_id)).first()
    if not order:
        raise OrderNotFoundError(f"Order {order_id} not found")
    return order


def get_token(order_id: str) -> GeneratedToken | None:
    return db.session.query(GeneratedToken).filter_by(order_id=order_id).first()


def list_orders(*, status: str | None = None, customer_id: str | None = None, limit: int = 100) -> list[Order]:
    q = db.session.query(Order)
    if status:
        q = q.filter(Order.status == status.upper())
    if customer_id:
        q = q.filter(Order.customer_id == customer_id)
    return q.order_by(Order.created_at.desc(), Order.id.desc()).limit(limit).all()


# =============================================================================
# ORDER CREATION
# =============================================================================

def _product_name(token_type: str, nominal: int) -> str:
    label = token_types.LABELS.get(token_type, token_type.title())
    return f"Token {label} Rp {nominal:,}"


def _item_details(order: Order) -> list[ItemDetail]:
    items = [ItemDetail(id=order.service_id, price=order.product_amount, name=order.product_name)]
    if order.admin_fee:
        items.append(ItemDetail(id="ADMIN_FEE", price=order.admin_fee, name="Biaya Admin"))
    if order.tax_amount:
        items.append(ItemDetail(id="TAX", price=order.tax_amount, name="Pajak"))
    if order.other_costs:
        items.append(ItemDetail(id="OTHER_COSTS", price=order.other_costs, name="Biaya Lain"))
    if order.discount_amount:
        items.append(ItemDetail(id="DISCOUNT", price=-order.discount_amount, name=f"Diskon ({order.discount_source})"))
    return items


def _default_redirects() -> RedirectUrls:
    finish = current_app.config["PAYMENT_FINISH_URL"]
    return RedirectUrls(finish=finish, unfinish=finish, error=finish)


def _customer_service(customer_id: str, service_id: str, token_type: str | None = None):
    customer = get_customer(customer_id)
    if token_type:
        token_type = token_types.normalize_token_type(token_type)
    matches = customer.find_services(service_id, token_type)
    if not matches:
        label = f"{service_id} ({token_type})" if token_type else service_id
        raise CustomerError(f"Service {label} not found for customer {customer_id}")
    if len(matches) > 1:
        raise CustomerError(
            f"Service {service_id} is registered for several token types; token_type is required"
        )
    return customer, matches[0]


def quote_purchase(
    customer_id: str,
    service_id: str,
    nominal: int,
    *,
    token_type: str | None = None,
    voucher_code: str | None = None,
    redeem_points: bool = False,
):
    """Price a purchase for a customer service without creating an order."""
    customer, service = _customer_service(customer_id, service_id, token_type)
    return build_quote(customer, service, nominal, voucher_code=voucher_code, redeem_points=redeem_points)


def create_order(
    customer_id: str,
    service_id: str,
    nominal: int,
    *,
    token_type: str | None = None,
    voucher_code: str | None = None,
    redeem_points: bool = False,
    source: str = "U",
    redirect_urls: RedirectUrls | None = None,
) -> Order:
    """
    Price, number and persist an order, then open a gateway payment session.

    Every validation runs before the first network call. The order is
    committed as CREATED before the gateway is contacted so a session
    failure still leaves a record support can find.

    Raises:
        CustomerNotFoundError / CustomerError: Unknown customer or service.
        PurchaseBlockedError: Transactions disabled or service in ERROR.
        InvalidAmountError: Nominal or total breaks the purchase rules.
        GatewaySessionError: Session creation failed; carries order_id.
    """
    customer, service = _customer_service(customer_id, service_id, token_type)

    if not customer.is_transaction_active:
        raise PurchaseBlockedError(f"Transactions are disabled for customer {customer_id}")
    if not service.is_service_transaction_active:
        raise PurchaseBlockedError(f"Transactions are disabled for service {service_id}")

    quote = build_quote(
        customer,
        service,
        nominal,
        voucher_code=voucher_code,
        redeem_points=redeem_points,
    )
    if quote.status.status == STATUS_ERROR:
        raise PurchaseBlockedError(f"Service {service_id} has a configuration error: {quote.status.reason}")

    breakdown = quote.breakdown
    order_id = generate_order_id(service.token_type, source)

    order = Order(
        order_id=order_id,
        customer_pk=customer.id,
        customer_id=customer.customer_id,
        service_id=service.service_id,
        token_type=service.token_type,
        product_name=_product_name(service.token_type, breakdown.product_amount),
        product_amount=breakdown.product_amount,
        admin_fee=breakdown.admin_fee,
        tax_amount=breakdown.tax_amount,
        other_costs=breakdown.other_costs,
        subtotal=breakdown.subtotal,
        discount_amount=breakdown.discount_amount,
        total_payment=breakdown.total_payment,
        discount_source=breakdown.discount_source,
        voucher_code_used=breakdown.voucher_code,
        points_redeemed=breakdown.points_redeemed,
        points_settled=False,
        base_price=quote.base_price,
        buyer_name=customer.name,
        buyer_email=customer.email,
        buyer_phone=customer.phone,
        status=STATUS_CREATED,
        vending_attempts=0,
    )
    db.session.add(order)
    db.session.commit()
    current_app.logger.info(
        "Order %s created for %s/%s: total Rp %s", order_id, customer.customer_id, service_id, order.total_payment
    )

    items = _item_details(order)
    if sum(i.price * i.quantity for i in items) != order.total_payment:
        current_app.logger.warning(
            "Item details for order %s do not add up to total payment %s", order_id, order.total_payment
        )

    try:
        session = payment_gateway.create_session(
            order_id,
            order.total_payment,
            Buyer(name=customer.name, email=customer.email, phone=customer.phone),
            redirect_urls or _default_redirects(),
            item_details=items,
        )
    except GatewaySessionError as exc:
        order.last_gateway_error = str(exc)
        db.session.commit()
        current_app.logger.error("Payment session failed for order %s: %s", order_id, exc)
        raise GatewaySessionError(str(exc), status_code=exc.status_code, order_id=order_id) from exc

    order.session_token = session.session_token
    order.redirect_url = session.redirect_url
    order.last_gateway_error = None
    order.status = STATUS_PAYMENT_PENDING
    db.session.commit()
    return order


# =============================================================================
# GATEWAY CALLBACK
# =============================================================================

def _settle(order: Order) -> None:
    order.status = STATUS_PAYMENT_SETTLED
    order.settled_at = utcnow()

    if order.points_redeemed and not order.points_settled and order.customer_pk:
        try:
            redeem_points_for_order(order.customer_pk, order.order_id, order.points_redeemed)
            order.points_settled = True
        except PointsError as exc:
            current_app.logger.warning("Points shortfall on settled order %s: %s", order.order_id, exc)


def _apply_callback(order_id: str, gateway_status: str | None, status_code: str | None) -> bool:
    """Apply the DB side of a callback. Returns True when vending should run."""
    order = _lock_order(order_id)
    outcome = classify_gateway_status(gateway_status)

    if outcome == OUTCOME_SUCCESS:
        if order.status in UNPAID_STATUSES or order.status == STATUS_ABANDONED:
            if order.status == STATUS_ABANDONED:
                current_app.logger.warning(
                    "Late settlement for abandoned order %s accepted (%s)", order_id, gateway_status
                )
            order.gateway_status = gateway_status
            order.gateway_status_code = status_code
            _settle(order)
            db.session.commit()
            current_app.logger.info("Order %s settled (%s)", order_id, gateway_status)
            return True
        db.session.commit()
        return order.status == STATUS_PAYMENT_SETTLED

    if order.status in UNPAID_STATUSES:
        order.gateway_status = gateway_status
        order.gateway_status_code = status_code
        order.status = STATUS_ABANDONED
        db.session.commit()
        current_app.logger.info("Order %s abandoned (%s)", order_id, gateway_status)
        return False

    db.session.commit()
    if order.status != STATUS_ABANDONED:
        current_app.logger.warning(
            "Ignoring %s callback for order %s in status %s", gateway_status, order_id, order.status
        )
    return False


def handle_gateway_callback(order_id: str, gateway_status: str | None, status_code: str | None = None) -> Order:
    """
    Apply a gateway notification to an order.

    Safe to call any number of times. A success notification on a paid but
    not yet vended order triggers vending. A vending failure is recorded on
    the order (VENDING_FAILED) and does not propagate, since the gateway only
    needs to know the notification was received.
    """
    should_vend = run_with_retry(lambda: _apply_callback(order_id, gateway_status, status_code))

    if should_vend:
        try:
            vend_order(order_id)
        except VendingFailure:
            current_app.logger.info("Order %s parked in %s after callback", order_id, STATUS_VENDING_FAILED)
        except VendingInProgressError:
            current_app.logger.info("Redelivered callback for order %s while its vend is in flight", order_id)

    return get_order(order_id)


# =============================================================================
# VENDING
# =============================================================================

def _unit_value(product_amount: int, base_price: int | None) -> str:
    if not base_price:
        return "0.00"
    value = Decimal(product_amount) / Decimal(base_price)
    return str(value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def _upsert_token(order: Order, token_code: str) -> GeneratedToken:
    token = get_token(order.order_id)
    if token is None:
        customer = db.session.get(Customer, order.customer_pk) if order.customer_pk else None
        token = GeneratedToken(order_id=order.order_id)
        token.customer_id = order.customer_id
        token.customer_name = customer.name if customer else order.buyer_name
        db.session.add(token)

    token.service_id = order.service_id
    token.token_type = order.token_type
    token.product_amount = order.product_amount
    token.admin_fee = order.admin_fee
    token.tax_amount = order.tax_amount
    token.other_costs = order.other_costs
    token.subtotal = order.subtotal
    token.discount_amount = order.discount_amount
    token.total_payment = order.total_payment
    token.voucher_code_used = order.voucher_code_used
    token.points_redeemed = order.points_redeemed
    token.base_price = order.base_price or 0
    token.unit_value = _unit_value(order.product_amount, order.base_price)
    token.generated_token_code = token_code
    return token


def _mark_vended(order: Order, token: GeneratedToken) -> None:
    order.status = STATUS_VENDED
    order.generated_token_code = token.generated_token_code
    order.last_vending_error = None
    order.vending_started_at = None
    order.vended_at = order.vended_at or utcnow()


def _claim_vend(order_id: str) -> bool:
    """
    Take the right to call the vending API for an order.

    Conditional UPDATE: succeeds for exactly one caller while the order is
    vendable and no live claim exists. A claim older than
    VENDING_CLAIM_SECONDS counts as abandoned (worker died mid-call).
    """
    now = utcnow()
    stale_before = now - timedelta(seconds=current_app.config.get("VENDING_CLAIM_SECONDS", 120))
    stmt = (
        update(Order)
        .where(
            Order.order_id == order_id,
            Order.status.in_(VENDABLE_STATUSES),
            or_(Order.vending_started_at.is_(None), Order.vending_started_at < stale_before),
        )
        .values(
            vending_attempts=Order.vending_attempts + 1,
            vending_started_at=now,
            version_id=Order.version_id + 1,
        )
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    db.session.commit()
    return result.rowcount == 1


def vend_order(order_id: str) -> GeneratedToken:
    """
    Obtain the token for a paid order, exactly once per order_id.

    Raises:
        OrderNotFoundError: Unknown order.
        SettlementError: Order has not been paid.
        VendingInProgressError: Another caller is vending this order right now.
        VendingFailure: Vending API failed or timed out; order is now
            VENDING_FAILED.
    """
    order = get_order(order_id)

    existing = get_token(order_id)
    if existing is not None:
        if order.status != STATUS_VENDED:
            _mark_vended(order, existing)
            db.session.commit()
        return existing
    if order.status == STATUS_VENDED:
        raise SettlementError(f"Order {order_id} is vended but its token record is missing")

    if order.status not in VENDABLE_STATUSES:
        raise SettlementError(f"Order {order_id} cannot be vended in status {order.status}")

    service_id, amount = order.service_id, order.product_amount
    if not _claim_vend(order_id):
        token = get_token(order_id)
        if token is not None:
            return token
        current_app.logger.info("Vend for order %s already in progress; not calling the vending API", order_id)
        raise VendingInProgressError(f"Vending for order {order_id} is already in progress")

    try:
        result = vending_client.vend(order_id, service_id, amount)
    except VendingError as exc:
        order = get_order(order_id)
        order.status = STATUS_VENDING_FAILED
        order.last_vending_error = str(exc)
        order.vending_started_at = None
        db.session.commit()
        current_app.logger.error(
            "Vending failed for order %s (attempt %s): %s", order_id, order.vending_attempts, exc
        )
        raise VendingFailure(f"Vending failed for order {order_id}: {exc}", order_id) from exc

    order = get_order(order_id)
    token = _upsert_token(order, result.token_code)
    _mark_vended(order, token)
    try:
        db.session.commit()
    except IntegrityError:
        # A concurrent vend for the same order stored its token first
        db.session.rollback()
        token = get_token(order_id)
        order = get_order(order_id)
        _mark_vended(order, token)
        db.session.commit()

    current_app.logger.info("Order %s vended", order_id)
    return token


def retry_vending(order_id: str) -> GeneratedToken:
    """Re-trigger vending for a paid order, typically one in VENDING_FAILED."""
    order = get_order(order_id)
    if order.status not in VENDABLE_STATUSES and order.status != STATUS_VENDED:
        raise SettlementError(f"Order {order_id} is {order.status}; only paid orders can be vended")
    current_app.logger.info("Retrying vending for order %s (status %s)", order_id, order.status)
    return vend_order(order_id)
