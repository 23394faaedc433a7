"""Initial till schema

Revision ID: 20261019_initial
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("location_id", sa.Integer(), nullable=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("barcode", sa.String(64), nullable=True),
        sa.Column("selling_price_cents", sa.Integer(), nullable=False),
        sa.Column("stock_quantity", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("products", schema=None) as batch_op:
        batch_op.create_index("ix_products_location_id", ["location_id"], unique=False)
        batch_op.create_index("ix_products_barcode", ["barcode"], unique=False)
        batch_op.create_index("ix_products_location_active", ["location_id", "is_active"], unique=False)

    op.create_table(
        "customers",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("location_id", sa.Integer(), nullable=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(32), nullable=True),
        sa.Column("credit_limit_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("outstanding_balance_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("customers", schema=None) as batch_op:
        batch_op.create_index("ix_customers_location_id", ["location_id"], unique=False)
        batch_op.create_index("ix_customers_location_name", ["location_id", "name"], unique=False)

    op.create_table(
        "customer_payments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=False),
        sa.Column("location_id", sa.Integer(), nullable=True),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("customer_payments", schema=None) as batch_op:
        batch_op.create_index("ix_customer_payments_customer_id", ["customer_id"], unique=False)

    op.create_table(
        "sales",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("location_id", sa.Integer(), nullable=True),
        sa.Column("cashier_id", sa.Integer(), nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=True),
        sa.Column("subtotal_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("discount_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("tax_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("payment_method", sa.String(16), nullable=False),
        sa.Column("amount_paid_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("change_given_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("sales", schema=None) as batch_op:
        batch_op.create_index("ix_sales_location_id", ["location_id"], unique=False)
        batch_op.create_index("ix_sales_customer_id", ["customer_id"], unique=False)
        batch_op.create_index("ix_sales_payment_method", ["payment_method"], unique=False)
        batch_op.create_index("ix_sales_cashier_created", ["cashier_id", "created_at"], unique=False)
        batch_op.create_index("ix_sales_location_created", ["location_id", "created_at"], unique=False)

    op.create_table(
        "sale_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("sale_id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("product_name", sa.String(255), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price_cents", sa.Integer(), nullable=False),
        sa.Column("total_price_cents", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["sale_id"], ["sales.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("sale_items", schema=None) as batch_op:
        batch_op.create_index("ix_sale_items_sale_id", ["sale_id"], unique=False)

    op.create_table(
        "sale_payments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("sale_id", sa.Integer(), nullable=False),
        sa.Column("method", sa.String(16), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["sale_id"], ["sales.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("sale_payments", schema=None) as batch_op:
        batch_op.create_index("ix_sale_payments_sale_id", ["sale_id"], unique=False)
        batch_op.create_index("ix_sale_payments_method", ["method"], unique=False)

    op.create_table(
        "cash_registers",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("location_id", sa.Integer(), nullable=True),
        sa.Column("cashier_id", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="open"),
        sa.Column("opening_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("closing_cents", sa.Integer(), nullable=True),
        sa.Column("expected_cents", sa.Integer(), nullable=True),
        sa.Column("variance_cents", sa.Integer(), nullable=True),
        sa.Column("cash_sales_cents", sa.Integer(), nullable=True),
        sa.Column("card_sales_cents", sa.Integer(), nullable=True),
        sa.Column("mobile_money_sales_cents", sa.Integer(), nullable=True),
        sa.Column("credit_sales_cents", sa.Integer(), nullable=True),
        sa.Column("total_sales_cents", sa.Integer(), nullable=True),
        sa.Column("transaction_count", sa.Integer(), nullable=True),
        sa.Column("opened_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("cash_registers", schema=None) as batch_op:
        batch_op.create_index("ix_cash_registers_location_id", ["location_id"], unique=False)
        batch_op.create_index("ix_cash_registers_status", ["status"], unique=False)
        batch_op.create_index("ix_cash_registers_opened_at", ["opened_at"], unique=False)
        batch_op.create_index("ix_cash_registers_cashier_status", ["cashier_id", "status"], unique=False)

    op.create_table(
        "suspended_orders",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("location_id", sa.Integer(), nullable=True),
        sa.Column("cashier_id", sa.Integer(), nullable=False),
        sa.Column("label", sa.String(128), nullable=True),
        sa.Column("cart_data", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("suspended_orders", schema=None) as batch_op:
        batch_op.create_index("ix_suspended_orders_cashier_created", ["cashier_id", "created_at"], unique=False)

    op.create_table(
        "store_settings",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("location_id", sa.Integer(), nullable=True),
        sa.Column("store_name", sa.String(255), nullable=False),
        sa.Column("store_address", sa.String(255), nullable=True),
        sa.Column("store_phone", sa.String(32), nullable=True),
        sa.Column("currency", sa.String(8), nullable=False, server_default="KES"),
        sa.Column("tax_rate", sa.Numeric(5, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("discount_cap_percent", sa.Integer(), nullable=True),
        sa.Column("low_stock_threshold", sa.Integer(), nullable=False, server_default=sa.text("5")),
        sa.Column("receipt_footer", sa.String(255), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("location_id", name="uq_store_settings_location"),
        sqlite_autoincrement=True,
    )


def downgrade():
    op.drop_table("store_settings")

    with op.batch_alter_table("suspended_orders", schema=None) as batch_op:
        batch_op.drop_index("ix_suspended_orders_cashier_created")
    op.drop_table("suspended_orders")

    with op.batch_alter_table("cash_registers", schema=None) as batch_op:
        batch_op.drop_index("ix_cash_registers_cashier_status")
        batch_op.drop_index("ix_cash_registers_opened_at")
        batch_op.drop_index("ix_cash_registers_status")
        batch_op.drop_index("ix_cash_registers_location_id")
    op.drop_table("cash_registers")

    with op.batch_alter_table("sale_payments", schema=None) as batch_op:
        batch_op.drop_index("ix_sale_payments_method")
        batch_op.drop_index("ix_sale_payments_sale_id")
    op.drop_table("sale_payments")

    with op.batch_alter_table("sale_items", schema=None) as batch_op:
        batch_op.drop_index("ix_sale_items_sale_id")
    op.drop_table("sale_items")

    with op.batch_alter_table("sales", schema=None) as batch_op:
        batch_op.drop_index("ix_sales_location_created")
        batch_op.drop_index("ix_sales_cashier_created")
        batch_op.drop_index("ix_sales_payment_method")
        batch_op.drop_index("ix_sales_customer_id")
        batch_op.drop_index("ix_sales_location_id")
    op.drop_table("sales")

    with op.batch_alter_table("customer_payments", schema=None) as batch_op:
        batch_op.drop_index("ix_customer_payments_customer_id")
    op.drop_table("customer_payments")

    with op.batch_alter_table("customers", schema=None) as batch_op:
        batch_op.drop_index("ix_customers_location_name")
        batch_op.drop_index("ix_customers_location_id")
    op.drop_table("customers")

    with op.batch_alter_table("products", schema=None) as batch_op:
        batch_op.drop_index("ix_products_location_active")
        batch_op.drop_index("ix_products_barcode")
        batch_op.drop_index("ix_products_location_id")
    op.drop_table("products")
