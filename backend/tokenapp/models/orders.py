from __future__ import annotations

from ..extensions import db
from tokenapp.time_utils import to_utc_z


class Order(db.Model):
    """
    Token purchase order.

    LIFECYCLE:
    1. CREATED: Priced and numbered, no payment session yet
    2. PAYMENT_PENDING: Gateway session issued, waiting for the callback
    3. PAYMENT_SETTLED: Gateway confirmed capture
    4. VENDED: Token issued (terminal)
    - ABANDONED: Payer cancelled / payment failed (terminal, no token)
    - VENDING_FAILED: Paid but vending failed (terminal, retryable by order_id)

    order_id is the idempotency key for vending.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.UniqueConstraint("order_id", name="uq_orders_order_id"),
        db.Index("ix_orders_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.String(64), nullable=False, index=True)

    # Business customer id (SAI-...) and the service being topped up.
    # customer_pk survives a re-issued customer_id.
    customer_pk = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    customer_id = db.Column(db.String(64), nullable=True, index=True)
    service_id = db.Column(db.String(64), nullable=False)
    token_type = db.Column(db.String(16), nullable=False)
    product_name = db.Column(db.String(255), nullable=False)

    # Price breakdown (Rupiah)
    product_amount = db.Column(db.Integer, nullable=False)
    admin_fee = db.Column(db.Integer, nullable=False, default=0)
    tax_amount = db.Column(db.Integer, nullable=False, default=0)
    other_costs = db.Column(db.Integer, nullable=False, default=0)
    subtotal = db.Column(db.Integer, nullable=False)
    discount_amount = db.Column(db.Integer, nullable=False, default=0)
    total_payment = db.Column(db.Integer, nullable=False)

    # Discount provenance: VOUCHER, POINTS or NULL
    discount_source = db.Column(db.String(16), nullable=True)
    voucher_code_used = db.Column(db.String(64), nullable=True)
    points_redeemed = db.Column(db.Integer, nullable=False, default=0)
    points_settled = db.Column(db.Boolean, nullable=False, default=False)

    # Base price per unit at order time, for the unit conversion after vending
    base_price = db.Column(db.Integer, nullable=True)

    buyer_name = db.Column(db.String(255), nullable=False)
    buyer_email = db.Column(db.String(255), nullable=False)
    buyer_phone = db.Column(db.String(32), nullable=True)

    status = db.Column(db.String(24), nullable=False, default="CREATED", index=True)

    # Gateway session + last callback
    session_token = db.Column(db.String(255), nullable=True)
    redirect_url = db.Column(db.Text, nullable=True)
    gateway_status = db.Column(db.String(32), nullable=True)
    gateway_status_code = db.Column(db.String(8), nullable=True)
    last_gateway_error = db.Column(db.Text, nullable=True)

    # Vending
    vending_attempts = db.Column(db.Integer, nullable=False, default=0)
    last_vending_error = db.Column(db.Text, nullable=True)
    # Set while a vend call is in flight; only the claim holder calls the vending API
    vending_started_at = db.Column(db.DateTime(timezone=True), nullable=True)
    generated_token_code = db.Column(db.String(128), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    settled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    vended_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "order_id": self.order_id,
            "customer_id": self.customer_id,
            "service_id": self.service_id,
            "token_type": self.token_type,
            "product_name": self.product_name,
            "product_amount": self.product_amount,
            "admin_fee": self.admin_fee,
            "tax_amount": self.tax_amount,
            "other_costs": self.other_costs,
            "subtotal": self.subtotal,
            "discount_amount": self.discount_amount,
            "total_payment": self.total_payment,
            "discount_source": self.discount_source,
            "voucher_code_used": self.voucher_code_used,
            "points_redeemed": self.points_redeemed,
            "buyer_name": self.buyer_name,
            "status": self.status,
            "session_token": self.session_token,
            "redirect_url": self.redirect_url,
            "gateway_status": self.gateway_status,
            "vending_attempts": self.vending_attempts,
            "last_vending_error": self.last_vending_error,
            "generated_token_code": self.generated_token_code,
            "created_at": to_utc_z(self.created_at),
            "settled_at": to_utc_z(self.settled_at) if self.settled_at else None,
            "vended_at": to_utc_z(self.vended_at) if self.vended_at else None,
        }


class GeneratedToken(db.Model):
    """
    Token issued by the vending API for a paid order.

    Exactly one row per order_id; writes are upserts keyed by order_id so a
    retried vend can never produce a second record.
    """
    __tablename__ = "generated_tokens"
    __table_args__ = (
        db.UniqueConstraint("order_id", name="uq_generated_tokens_order_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.String(64), nullable=False, index=True)
    customer_id = db.Column(db.String(64), nullable=False, index=True)
    customer_name = db.Column(db.String(255), nullable=True)
    service_id = db.Column(db.String(64), nullable=False)
    token_type = db.Column(db.String(16), nullable=False)

    product_amount = db.Column(db.Integer, nullable=False)
    admin_fee = db.Column(db.Integer, nullable=False, default=0)
    tax_amount = db.Column(db.Integer, nullable=False, default=0)
    other_costs = db.Column(db.Integer, nullable=False, default=0)
    subtotal = db.Column(db.Integer, nullable=False, default=0)
    discount_amount = db.Column(db.Integer, nullable=False, default=0)
    total_payment = db.Column(db.Integer, nullable=False)
    voucher_code_used = db.Column(db.String(64), nullable=True)
    points_redeemed = db.Column(db.Integer, nullable=False, default=0)

    # Base price per unit at vend time and the resulting units (kWh, m3...)
    base_price = db.Column(db.Integer, nullable=False, default=0)
    unit_value = db.Column(db.String(32), nullable=False, default="0.00")

    generated_token_code = db.Column(db.String(128), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    def to_dict(self) -> dict:
        return {
            "order_id": self.order_id,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "service_id": self.service_id,
            "token_type": self.token_type,
            "product_amount": self.product_amount,
            "admin_fee": self.admin_fee,
            "tax_amount": self.tax_amount,
            "other_costs": self.other_costs,
            "subtotal": self.subtotal,
            "discount_amount": self.discount_amount,
            "total_payment": self.total_payment,
            "voucher_code_used": self.voucher_code_used,
            "points_redeemed": self.points_redeemed,
            "base_price": self.base_price,
            "unit_value": self.unit_value,
            "generated_token_code": self.generated_token_code,
            "created_at": to_utc_z(self.created_at),
        }
