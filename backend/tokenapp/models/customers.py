from __future__ import annotations

from ..extensions import db
from tokenapp.time_utils import to_utc_z


class Customer(db.Model):
    """
    Registered customer buying prepaid tokens.

    customer_id is the human-readable business identifier:
    - SAI-<MMYY>-<code>-<seq> once the customer has at least one service
    - PENDING-<4 chars> while the customer has no services
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.UniqueConstraint("customer_id", name="uq_customers_customer_id"),
        db.UniqueConstraint("ktp", name="uq_customers_ktp"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.String(64), nullable=False, index=True)

    ktp = db.Column(db.String(32), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    username = db.Column(db.String(128), nullable=False)
    email = db.Column(db.String(255), nullable=False, index=True)
    phone = db.Column(db.String(32), nullable=True)
    address = db.Column(db.Text, nullable=True)

    is_transaction_active = db.Column(db.Boolean, nullable=False, default=True)

    registration_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    # Services live and die with their customer
    services = db.relationship(
        "CustomerService",
        backref="customer",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="CustomerService.id",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def find_services(self, service_id: str, token_type: str | None = None) -> list["CustomerService"]:
        """Services with this meter/account id, optionally narrowed to one token type."""
        return [
            s for s in self.services
            if s.service_id == service_id and (token_type is None or s.token_type == token_type)
        ]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "ktp_last4": self.ktp[-4:] if self.ktp else None,
            "name": self.name,
            "username": self.username,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "is_transaction_active": self.is_transaction_active,
            "registration_date": to_utc_z(self.registration_date),
            "services": [s.to_dict() for s in self.services],
        }


class CustomerService(db.Model):
    """
    One metered service (meter id / account) a customer buys tokens for.

    The (area_project, project, vendor_name) triple points into the
    hierarchy of token_type. Validity is derived on every read, never stored.
    """
    __tablename__ = "customer_services"
    __table_args__ = (
        db.UniqueConstraint("customer_pk", "service_id", "token_type", name="uq_customer_services_service"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_pk = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    service_id = db.Column(db.String(64), nullable=False, index=True)  # meter / account number
    token_type = db.Column(db.String(16), nullable=False)
    area_project = db.Column(db.String(255), nullable=True)
    project = db.Column(db.String(255), nullable=True)
    vendor_name = db.Column(db.String(255), nullable=True)
    power_or_volume = db.Column(db.String(64), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    is_service_transaction_active = db.Column(db.Boolean, nullable=False, default=True)

    def to_dict(self) -> dict:
        return {
            "service_id": self.service_id,
            "token_type": self.token_type,
            "area_project": self.area_project,
            "project": self.project,
            "vendor_name": self.vendor_name,
            "power_or_volume": self.power_or_volume,
            "notes": self.notes,
            "is_service_transaction_active": self.is_service_transaction_active,
        }


class CustomerRewardAccount(db.Model):
    """
    Loyalty points balance for a customer.

    WHY: Redemption at quote time is advisory only. The balance is
    decremented with a guarded UPDATE when the order settles.
    """
    __tablename__ = "customer_reward_accounts"
    __table_args__ = (
        db.UniqueConstraint("customer_pk", name="uq_reward_accounts_customer"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_pk = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    points_balance = db.Column(db.Integer, nullable=False, default=0)
    lifetime_points_earned = db.Column(db.Integer, nullable=False, default=0)
    lifetime_points_redeemed = db.Column(db.Integer, nullable=False, default=0)

    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    customer = db.relationship("Customer", backref=db.backref("reward_account", uselist=False, lazy=True))

    def to_dict(self) -> dict:
        return {
            "customer_pk": self.customer_pk,
            "points_balance": self.points_balance,
            "lifetime_points_earned": self.lifetime_points_earned,
            "lifetime_points_redeemed": self.lifetime_points_redeemed,
            "updated_at": to_utc_z(self.updated_at),
        }


class CustomerRewardTransaction(db.Model):
    """
    Append-only ledger of reward point events.

    TRANSACTION TYPES:
    - EARN: Points granted
    - REDEEM: Points spent on a settled order (one per order_id)
    - ADJUST: Manual adjustment

    IMMUTABLE: Records are never updated or deleted.
    """
    __tablename__ = "customer_reward_transactions"
    __table_args__ = (
        db.UniqueConstraint("order_id", "transaction_type", name="uq_reward_txns_order_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    reward_account_id = db.Column(db.Integer, db.ForeignKey("customer_reward_accounts.id"), nullable=False, index=True)

    transaction_type = db.Column(db.String(16), nullable=False, index=True)  # EARN, REDEEM, ADJUST
    points = db.Column(db.Integer, nullable=False)  # Positive for earn, negative for redeem

    order_id = db.Column(db.String(64), nullable=True, index=True)
    reason = db.Column(db.String(255), nullable=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    reward_account = db.relationship("CustomerRewardAccount", backref=db.backref("transactions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "reward_account_id": self.reward_account_id,
            "transaction_type": self.transaction_type,
            "points": self.points,
            "order_id": self.order_id,
            "reason": self.reason,
            "occurred_at": to_utc_z(self.occurred_at),
        }
