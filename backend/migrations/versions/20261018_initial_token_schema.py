"""Initial token store schema

Revision ID: 20261018_initial
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261018_initial"
down_revision = None
branch_labels = None
depends_on = None


NOW = sa.text("(CURRENT_TIMESTAMP)")


def upgrade():
    op.create_table(
        "hierarchy_areas",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("token_type", sa.String(16), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("token_type", "name", name="uq_hierarchy_areas_type_name"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_hierarchy_areas_token_type", "hierarchy_areas", ["token_type"], unique=False)

    op.create_table(
        "hierarchy_projects",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("area_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.ForeignKeyConstraint(["area_id"], ["hierarchy_areas.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("area_id", "name", name="uq_hierarchy_projects_area_name"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_hierarchy_projects_area_id", "hierarchy_projects", ["area_id"], unique=False)

    op.create_table(
        "hierarchy_vendor_refs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("project_id", sa.Integer(), nullable=False),
        sa.Column("vendor_name", sa.String(255), nullable=False),
        sa.ForeignKeyConstraint(["project_id"], ["hierarchy_projects.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("project_id", "vendor_name", name="uq_hierarchy_vendor_refs_project_vendor"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("hierarchy_vendor_refs", schema=None) as batch_op:
        batch_op.create_index("ix_hierarchy_vendor_refs_project_id", ["project_id"], unique=False)
        batch_op.create_index("ix_hierarchy_vendor_refs_vendor_name", ["vendor_name"], unique=False)

    op.create_table(
        "price_settings",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("token_type", sa.String(16), nullable=False),
        sa.Column("area", sa.String(255), nullable=False),
        sa.Column("project", sa.String(255), nullable=False),
        sa.Column("vendor_name", sa.String(255), nullable=False),
        sa.Column("base_price", sa.String(64), nullable=True),
        sa.Column("tax_percent", sa.String(64), nullable=True),
        sa.Column("admin_fee", sa.String(64), nullable=True),
        sa.Column("other_costs", sa.String(64), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("token_type", "area", "project", "vendor_name", name="uq_price_settings_path"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_price_settings_token_type", "price_settings", ["token_type"], unique=False)

    op.create_table(
        "vendors",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("handled_services", sa.JSON(), nullable=False),
        sa.Column("contact_person", sa.String(255), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(64), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("auth_ref", sa.String(128), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("registration_date", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("vendors", schema=None) as batch_op:
        batch_op.create_index("ix_vendors_name", ["name"], unique=True)
        batch_op.create_index("ix_vendors_is_active", ["is_active"], unique=False)

    op.create_table(
        "customers",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("customer_id", sa.String(64), nullable=False),
        sa.Column("ktp", sa.String(32), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("username", sa.String(128), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(32), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("is_transaction_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("registration_date", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("customer_id", name="uq_customers_customer_id"),
        sa.UniqueConstraint("ktp", name="uq_customers_ktp"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("customers", schema=None) as batch_op:
        batch_op.create_index("ix_customers_customer_id", ["customer_id"], unique=False)
        batch_op.create_index("ix_customers_email", ["email"], unique=False)

    op.create_table(
        "customer_services",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("customer_pk", sa.Integer(), nullable=False),
        sa.Column("service_id", sa.String(64), nullable=False),
        sa.Column("token_type", sa.String(16), nullable=False),
        sa.Column("area_project", sa.String(255), nullable=True),
        sa.Column("project", sa.String(255), nullable=True),
        sa.Column("vendor_name", sa.String(255), nullable=True),
        sa.Column("power_or_volume", sa.String(64), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("is_service_transaction_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.ForeignKeyConstraint(["customer_pk"], ["customers.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("customer_pk", "service_id", "token_type", name="uq_customer_services_service"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("customer_services", schema=None) as batch_op:
        batch_op.create_index("ix_customer_services_customer_pk", ["customer_pk"], unique=False)
        batch_op.create_index("ix_customer_services_service_id", ["service_id"], unique=False)

    op.create_table(
        "customer_reward_accounts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("customer_pk", sa.Integer(), nullable=False),
        sa.Column("points_balance", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("lifetime_points_earned", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("lifetime_points_redeemed", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.ForeignKeyConstraint(["customer_pk"], ["customers.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("customer_pk", name="uq_reward_accounts_customer"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_customer_reward_accounts_customer_pk", "customer_reward_accounts", ["customer_pk"], unique=False)

    op.create_table(
        "customer_reward_transactions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("reward_account_id", sa.Integer(), nullable=False),
        sa.Column("transaction_type", sa.String(16), nullable=False),
        sa.Column("points", sa.Integer(), nullable=False),
        sa.Column("order_id", sa.String(64), nullable=True),
        sa.Column("reason", sa.String(255), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.ForeignKeyConstraint(["reward_account_id"], ["customer_reward_accounts.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("order_id", "transaction_type", name="uq_reward_txns_order_type"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("customer_reward_transactions", schema=None) as batch_op:
        batch_op.create_index("ix_customer_reward_transactions_reward_account_id", ["reward_account_id"], unique=False)
        batch_op.create_index("ix_customer_reward_transactions_transaction_type", ["transaction_type"], unique=False)
        batch_op.create_index("ix_customer_reward_transactions_order_id", ["order_id"], unique=False)
        batch_op.create_index("ix_customer_reward_transactions_occurred_at", ["occurred_at"], unique=False)

    op.create_table(
        "sequence_counters",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("scope", sa.String(32), nullable=False),
        sa.Column("period", sa.String(16), nullable=False),
        sa.Column("type_code", sa.String(4), nullable=False),
        sa.Column("last_sequence", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("scope", "period", "type_code", name="uq_sequence_counters_key"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "vouchers",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("code", sa.String(64), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("discount_amount", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("vouchers", schema=None) as batch_op:
        batch_op.create_index("ix_vouchers_code", ["code"], unique=True)
        batch_op.create_index("ix_vouchers_is_active", ["is_active"], unique=False)

    op.create_table(
        "orders",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("order_id", sa.String(64), nullable=False),
        sa.Column("customer_pk", sa.Integer(), nullable=True),
        sa.Column("customer_id", sa.String(64), nullable=True),
        sa.Column("service_id", sa.String(64), nullable=False),
        sa.Column("token_type", sa.String(16), nullable=False),
        sa.Column("product_name", sa.String(255), nullable=False),
        sa.Column("product_amount", sa.Integer(), nullable=False),
        sa.Column("admin_fee", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("tax_amount", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("other_costs", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("subtotal", sa.Integer(), nullable=False),
        sa.Column("discount_amount", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_payment", sa.Integer(), nullable=False),
        sa.Column("discount_source", sa.String(16), nullable=True),
        sa.Column("voucher_code_used", sa.String(64), nullable=True),
        sa.Column("points_redeemed", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("points_settled", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("base_price", sa.Integer(), nullable=True),
        sa.Column("buyer_name", sa.String(255), nullable=False),
        sa.Column("buyer_email", sa.String(255), nullable=False),
        sa.Column("buyer_phone", sa.String(32), nullable=True),
        sa.Column("status", sa.String(24), nullable=False, server_default="CREATED"),
        sa.Column("session_token", sa.String(255), nullable=True),
        sa.Column("redirect_url", sa.Text(), nullable=True),
        sa.Column("gateway_status", sa.String(32), nullable=True),
        sa.Column("gateway_status_code", sa.String(8), nullable=True),
        sa.Column("last_gateway_error", sa.Text(), nullable=True),
        sa.Column("vending_attempts", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("last_vending_error", sa.Text(), nullable=True),
        sa.Column("vending_started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("generated_token_code", sa.String(128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column("settled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("vended_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.ForeignKeyConstraint(["customer_pk"], ["customers.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("order_id", name="uq_orders_order_id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("orders", schema=None) as batch_op:
        batch_op.create_index("ix_orders_order_id", ["order_id"], unique=False)
        batch_op.create_index("ix_orders_customer_pk", ["customer_pk"], unique=False)
        batch_op.create_index("ix_orders_customer_id", ["customer_id"], unique=False)
        batch_op.create_index("ix_orders_status", ["status"], unique=False)
        batch_op.create_index("ix_orders_created_at", ["created_at"], unique=False)
        batch_op.create_index("ix_orders_status_created", ["status", "created_at"], unique=False)

    op.create_table(
        "generated_tokens",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("order_id", sa.String(64), nullable=False),
        sa.Column("customer_id", sa.String(64), nullable=False),
        sa.Column("customer_name", sa.String(255), nullable=True),
        sa.Column("service_id", sa.String(64), nullable=False),
        sa.Column("token_type", sa.String(16), nullable=False),
        sa.Column("product_amount", sa.Integer(), nullable=False),
        sa.Column("admin_fee", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("tax_amount", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("other_costs", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("subtotal", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("discount_amount", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_payment", sa.Integer(), nullable=False),
        sa.Column("voucher_code_used", sa.String(64), nullable=True),
        sa.Column("points_redeemed", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("base_price", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("unit_value", sa.String(32), nullable=False, server_default="0.00"),
        sa.Column("generated_token_code", sa.String(128), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("order_id", name="uq_generated_tokens_order_id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("generated_tokens", schema=None) as batch_op:
        batch_op.create_index("ix_generated_tokens_order_id", ["order_id"], unique=False)
        batch_op.create_index("ix_generated_tokens_customer_id", ["customer_id"], unique=False)
        batch_op.create_index("ix_generated_tokens_created_at", ["created_at"], unique=False)


def downgrade():
    op.drop_table("generated_tokens")
    op.drop_table("orders")
    op.drop_table("vouchers")
    op.drop_table("sequence_counters")
    op.drop_table("customer_reward_transactions")
    op.drop_table("customer_reward_accounts")
    op.drop_table("customer_services")
    op.drop_table("customers")
    op.drop_table("vendors")
    op.drop_table("price_settings")
    op.drop_table("hierarchy_vendor_refs")
    op.drop_table("hierarchy_projects")
    op.drop_table("hierarchy_areas")
