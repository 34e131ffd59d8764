"""
Settlement orchestrator tests.

The gateway and vending clients are replaced by fakes that record every
call, so idempotence is asserted on the number of outbound requests.
"""

import re
from datetime import timedelta

import pytest

from tokenapp.clients.payment_gateway import GatewaySessionError
from tokenapp.clients.vending import VendingError, VendingTimeout
from tokenapp.extensions import vending_client
from tokenapp.models import CustomerRewardTransaction, GeneratedToken, Order
from tokenapp.services import customer_service, discount_service, settlement_service, vendor_service
from tokenapp.services.price_calculator import InvalidAmountError
from tokenapp.time_utils import utcnow
from tokenapp.services.settlement_service import (
    OrderNotFoundError,
    PurchaseBlockedError,
    SettlementError,
    VendingFailure,
    VendingInProgressError,
    STATUS_ABANDONED,
    STATUS_CREATED,
    STATUS_PAYMENT_PENDING,
    STATUS_PAYMENT_SETTLED,
    STATUS_VENDED,
    STATUS_VENDING_FAILED,
)


ORDER_ID = re.compile(r"TRN-U-\d{6}-L-\d{4}")
SERVICE_ID = "14234567890"


def _order(customer, nominal=50_000, **kwargs):
    return settlement_service.create_order(customer.customer_id, SERVICE_ID, nominal, **kwargs)


# =============================================================================
# ORDER CREATION
# =============================================================================

def test_create_order_opens_payment_session(db_session, customer, fake_gateway):
    order = _order(customer)

    assert ORDER_ID.fullmatch(order.order_id)
    assert order.status == STATUS_PAYMENT_PENDING
    assert order.subtotal == 58_000
    assert order.total_payment == 58_000
    assert order.session_token == f"snap-{order.order_id}"
    assert order.base_price == 1500

    call = fake_gateway.calls[0]
    assert call["amount"] == 58_000
    assert sum(i.price for i in call["items"]) == 58_000


def test_create_order_with_voucher(db_session, customer, fake_gateway, vouchers):
    order = _order(customer, voucher_code="DISKON10K")

    assert order.discount_source == "VOUCHER"
    assert order.voucher_code_used == "DISKON10K"
    assert order.total_payment == 48_000
    assert [i.price for i in fake_gateway.calls[0]["items"]][-1] == -10_000


def test_invalid_amount_rejected_before_network(db_session, customer, fake_gateway):
    with pytest.raises(InvalidAmountError):
        _order(customer, nominal=5_000)

    assert fake_gateway.calls == []
    assert db_session.query(Order).count() == 0


def test_gateway_failure_leaves_created_order(db_session, customer, fake_gateway):
    fake_gateway.error = GatewaySessionError("transaction_details.gross_amount is invalid", status_code=400)

    with pytest.raises(GatewaySessionError) as excinfo:
        _order(customer)

    order = settlement_service.get_order(excinfo.value.order_id)
    assert order.status == STATUS_CREATED
    assert "gross_amount" in order.last_gateway_error


def test_error_service_blocks_purchase(db_session, customer, vendor, fake_gateway):
    vendor_service.update_vendor(vendor_id=vendor.id, handled_services=["WATER"])

    with pytest.raises(PurchaseBlockedError):
        _order(customer)
    assert fake_gateway.calls == []


def test_disabled_transactions_block_purchase(db_session, customer, fake_gateway):
    customer_service.set_transaction_active(customer.customer_id, False)

    with pytest.raises(PurchaseBlockedError):
        _order(customer)


def test_unknown_service(db_session, customer, fake_gateway):
    with pytest.raises(customer_service.CustomerError):
        settlement_service.create_order(customer.customer_id, "NOPE", 50_000)


# =============================================================================
# CALLBACK -> VENDING
# =============================================================================

def test_success_callback_vends_and_stores_token(db_session, customer, fake_gateway, fake_vending):
    order = _order(customer)

    order = settlement_service.handle_gateway_callback(order.order_id, "settlement", "200")

    assert order.status == STATUS_VENDED
    assert order.generated_token_code == fake_vending.token_code
    assert fake_vending.calls == [{"order_id": order.order_id, "meter_id": SERVICE_ID, "amount": 50_000}]

    token = settlement_service.get_token(order.order_id)
    assert token.customer_name == "Budi Santoso"
    assert token.total_payment == 58_000
    assert token.base_price == 1500
    assert token.unit_value == "33.33"


def test_repeated_success_callback_is_noop(db_session, customer, fake_gateway, fake_vending):
    order = _order(customer)

    settlement_service.handle_gateway_callback(order.order_id, "settlement", "200")
    settlement_service.handle_gateway_callback(order.order_id, "capture", "200")
    settlement_service.handle_gateway_callback(order.order_id, "settlement", "200")

    assert len(fake_vending.calls) == 1
    assert db_session.query(GeneratedToken).count() == 1


def test_vend_twice_returns_same_token_without_second_call(db_session, customer, fake_gateway, fake_vending):
    order = _order(customer)
    settlement_service.handle_gateway_callback(order.order_id, "settlement", "200")

    fake_vending.token_code = "9999-9999-9999-9999-9999"
    token = settlement_service.vend_order(order.order_id)

    assert token.generated_token_code == "1234-5678-9012-3456-7890"
    assert len(fake_vending.calls) == 1


def test_callback_redelivered_during_vend_calls_vending_once(
    db_session, customer, fake_gateway, fake_vending, monkeypatch
):
    order = _order(customer)
    vend = fake_vending.vend
    redelivered = []

    def vend_with_redelivery(order_id, meter_id, amount):
        # Gateway retries its notification while the vending API is still answering
        if not redelivered:
            redelivered.append(settlement_service.handle_gateway_callback(order_id, "settlement", "200").status)
        return vend(order_id, meter_id, amount)

    monkeypatch.setattr(vending_client, "vend", vend_with_redelivery)

    order = settlement_service.handle_gateway_callback(order.order_id, "settlement", "200")

    assert redelivered == [STATUS_PAYMENT_SETTLED]
    assert [c["order_id"] for c in fake_vending.calls] == [order.order_id]
    assert order.status == STATUS_VENDED
    assert order.vending_attempts == 1
    assert order.vending_started_at is None
    assert db_session.query(GeneratedToken).count() == 1


def test_live_vend_claim_blocks_retry_until_stale(db_session, customer, fake_gateway, fake_vending):
    fake_vending.errors = [VendingError("Service unavailable")]
    order = _order(customer)
    settlement_service.handle_gateway_callback(order.order_id, "settlement", "200")

    row = settlement_service.get_order(order.order_id)
    row.vending_started_at = utcnow()
    db_session.commit()

    with pytest.raises(VendingInProgressError):
        settlement_service.retry_vending(order.order_id)
    assert len(fake_vending.calls) == 1

    row = settlement_service.get_order(order.order_id)
    row.vending_started_at = utcnow() - timedelta(minutes=10)
    db_session.commit()

    token = settlement_service.retry_vending(order.order_id)

    assert token.generated_token_code == fake_vending.token_code
    assert len(fake_vending.calls) == 2
    assert settlement_service.get_order(order.order_id).status == STATUS_VENDED


def test_vending_failure_parks_order_and_retry_recovers(db_session, customer, fake_gateway, fake_vending):
    fake_vending.errors = [VendingError("Meter not found")]
    order = _order(customer)

    order = settlement_service.handle_gateway_callback(order.order_id, "settlement", "200")

    assert order.status == STATUS_VENDING_FAILED
    assert order.vending_attempts == 1
    assert order.last_vending_error == "Meter not found"
    assert settlement_service.get_token(order.order_id) is None

    # Repeated callbacks never retry vending on their own
    settlement_service.handle_gateway_callback(order.order_id, "settlement", "200")
    assert len(fake_vending.calls) == 1

    token = settlement_service.retry_vending(order.order_id)
    order = settlement_service.get_order(order.order_id)

    assert token.generated_token_code == fake_vending.token_code
    assert order.status == STATUS_VENDED
    assert order.vending_attempts == 2
    assert order.last_vending_error is None


def test_vending_timeout_is_failure(db_session, customer, fake_gateway, fake_vending):
    fake_vending.errors = [VendingTimeout("Vending API timed out after 30.0s")]
    order = _order(customer)
    settlement_service.handle_gateway_callback(order.order_id, "settlement", "200")

    fake_vending.errors = [VendingTimeout("Vending API timed out after 30.0s")]
    with pytest.raises(VendingFailure) as excinfo:
        settlement_service.retry_vending(order.order_id)

    assert excinfo.value.order_id == order.order_id
    order = settlement_service.get_order(order.order_id)
    assert order.status == STATUS_VENDING_FAILED
    assert order.vending_attempts == 2


def test_vend_requires_payment(db_session, customer, fake_gateway, fake_vending):
    order = _order(customer)

    with pytest.raises(SettlementError):
        settlement_service.vend_order(order.order_id)
    with pytest.raises(SettlementError):
        settlement_service.retry_vending(order.order_id)
    assert fake_vending.calls == []


# =============================================================================
# ABANDONMENT / OUT OF ORDER
# =============================================================================

@pytest.mark.parametrize("gateway_status", ["pending", "cancel", "expire", "deny"])
def test_non_success_callback_abandons_unpaid_order(db_session, customer, fake_gateway, fake_vending, gateway_status):
    order = _order(customer)

    order = settlement_service.handle_gateway_callback(order.order_id, gateway_status, "201")

    assert order.status == STATUS_ABANDONED
    assert fake_vending.calls == []


def test_failure_after_vending_is_ignored(db_session, customer, fake_gateway, fake_vending):
    order = _order(customer)
    settlement_service.handle_gateway_callback(order.order_id, "settlement", "200")

    order = settlement_service.handle_gateway_callback(order.order_id, "expire", "407")

    assert order.status == STATUS_VENDED
    assert order.gateway_status == "settlement"


def test_late_settlement_of_abandoned_order_is_honoured(db_session, customer, fake_gateway, fake_vending):
    order = _order(customer)
    settlement_service.handle_gateway_callback(order.order_id, "cancel", "202")

    order = settlement_service.handle_gateway_callback(order.order_id, "settlement", "200")

    assert order.status == STATUS_VENDED
    assert len(fake_vending.calls) == 1


def test_settled_order_vends_on_redelivery(db_session, customer, fake_gateway, fake_vending):
    order = _order(customer)
    row = settlement_service.get_order(order.order_id)
    row.status = STATUS_PAYMENT_SETTLED
    db_session.commit()

    order = settlement_service.handle_gateway_callback(order.order_id, "settlement", "200")

    assert order.status == STATUS_VENDED


def test_callback_for_unknown_order(db_session):
    with pytest.raises(OrderNotFoundError):
        settlement_service.handle_gateway_callback("TRN-U-010124-L-9999", "settlement", "200")


# =============================================================================
# LOYALTY POINTS
# =============================================================================

def test_points_are_spent_at_settlement_once(db_session, customer, fake_gateway, fake_vending):
    discount_service.grant_points(customer.id, 300)

    order = _order(customer, redeem_points=True)
    assert order.discount_source == "POINTS"
    assert order.total_payment == 57_700
    assert discount_service.get_points_balance(customer.id) == 300

    settlement_service.handle_gateway_callback(order.order_id, "settlement", "200")
    settlement_service.handle_gateway_callback(order.order_id, "settlement", "200")

    assert discount_service.get_points_balance(customer.id) == 0
    assert db_session.query(CustomerRewardTransaction).filter_by(transaction_type="REDEEM").count() == 1
    assert settlement_service.get_order(order.order_id).points_settled is True


def test_points_shortfall_does_not_block_vending(db_session, customer, fake_gateway, fake_vending):
    discount_service.grant_points(customer.id, 300)
    first = _order(customer, redeem_points=True)
    second = _order(customer, redeem_points=True)

    settlement_service.handle_gateway_callback(first.order_id, "settlement", "200")
    order = settlement_service.handle_gateway_callback(second.order_id, "settlement", "200")

    assert order.status == STATUS_VENDED
    assert order.points_settled is False
    assert discount_service.get_points_balance(customer.id) == 0


def test_list_failed_orders(db_session, customer, fake_gateway, fake_vending):
    fake_vending.errors = [VendingError("Service unavailable")]
    failed = _order(customer)
    settlement_service.handle_gateway_callback(failed.order_id, "settlement", "200")
    _order(customer)

    orders = settlement_service.list_orders(status="vending_failed")
    assert [o.order_id for o in orders] == [failed.order_id]


def test_same_service_id_under_two_token_types(db_session, customer, fake_gateway, make_service):
    customer = customer_service.replace_services(
        customer.customer_id,
        [make_service(), make_service(token_type="WATER")],
    )

    with pytest.raises(customer_service.CustomerError, match="token_type is required"):
        settlement_service.quote_purchase(customer.customer_id, SERVICE_ID, 50_000)

    water = settlement_service.quote_purchase(customer.customer_id, SERVICE_ID, 50_000, token_type="water")
    assert water.service.token_type == "WATER"

    order = settlement_service.create_order(customer.customer_id, SERVICE_ID, 50_000, token_type="ELECTRICITY")
    assert order.token_type == "ELECTRICITY"
    assert order.total_payment == 58_000
