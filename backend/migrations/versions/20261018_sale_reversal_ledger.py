"""Products, stock, sales and the append-only stock adjustment ledger

Revision ID: 20261018_reversal_ledger
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261018_reversal_ledger"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "products",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("sku", sa.String(64), nullable=True),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("cost", sa.Numeric(10, 2), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("sku", name="uq_products_sku"),
    )

    op.create_table(
        "stocks",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("product_id", sa.String(32), sa.ForeignKey("products.id"), nullable=False, unique=True),
        sa.Column("quantity", sa.Numeric(10, 2), nullable=False),
        sa.Column("last_updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "sales",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("receipt_number", sa.String(96), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("subtotal", sa.Numeric(10, 2), nullable=False),
        sa.Column("discount", sa.Numeric(10, 2), nullable=True),
        sa.Column("total_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("payment_method", sa.String(16), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("reverses_sale_id", sa.String(32), sa.ForeignKey("sales.id"), nullable=True),
        sa.UniqueConstraint("receipt_number", name="uq_sales_receipt_number"),
    )
    op.create_index("ix_sales_created_at", "sales", ["created_at"])
    op.create_index("ix_sales_user_id", "sales", ["user_id"])
    op.create_index("ix_sales_reverses_sale_id", "sales", ["reverses_sale_id"])

    op.create_table(
        "sale_items",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("sale_id", sa.String(32), sa.ForeignKey("sales.id"), nullable=False),
        sa.Column("product_id", sa.String(32), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("quantity", sa.Numeric(10, 2), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("total", sa.Numeric(10, 2), nullable=False),
    )
    op.create_index("ix_sale_items_sale_id", "sale_items", ["sale_id"])
    op.create_index("ix_sale_items_product_id", "sale_items", ["product_id"])

    op.create_table(
        "stock_adjustments",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("product_id", sa.String(32), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("type", sa.String(32), nullable=False),
        sa.Column("quantity_before", sa.Numeric(10, 2), nullable=False),
        sa.Column("quantity_after", sa.Numeric(10, 2), nullable=False),
        sa.Column("quantity_change", sa.Numeric(10, 2), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("user_id", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_stock_adjustments_product_id", "stock_adjustments", ["product_id"])
    op.create_index("ix_stock_adjustments_type", "stock_adjustments", ["type"])
    op.create_index("ix_stock_adjustments_product_created", "stock_adjustments", ["product_id", "created_at"])


def downgrade():
    op.drop_index("ix_stock_adjustments_product_created", table_name="stock_adjustments")
    op.drop_index("ix_stock_adjustments_type", table_name="stock_adjustments")
    op.drop_index("ix_stock_adjustments_product_id", table_name="stock_adjustments")
    op.drop_table("stock_adjustments")

    op.drop_index("ix_sale_items_product_id", table_name="sale_items")
    op.drop_index("ix_sale_items_sale_id", table_name="sale_items")
    op.drop_table("sale_items")

    op.drop_index("ix_sales_reverses_sale_id", table_name="sales")
    op.drop_index("ix_sales_user_id", table_name="sales")
    op.drop_index("ix_sales_created_at", table_name="sales")
    op.drop_table("sales")

    op.drop_table("stocks")
    op.drop_table("products")
