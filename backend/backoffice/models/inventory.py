from __future__ import annotations

from uuid import uuid4

from sqlalchemy import event

from ..extensions import db
from ..money import to_number
from backoffice.time_utils import to_utc_z, utcnow


STOCK_ADJUSTMENT_TYPES = (
    "INITIAL_STOCK",
    "SUPPLIER_ADD",
    "DAMAGE_EXPIRED_REMOVE",
    "BULK_TO_SINGLES",
    "SINGLES_TO_BULK",
    "CORRECT_ENTRY_ERROR",
    "SALE",
    "SALE_REVERSAL",
)

# Types an operator may pick when editing stock directly
MANUAL_ADJUSTMENT_TYPES = (
    "SUPPLIER_ADD",
    "DAMAGE_EXPIRED_REMOVE",
    "BULK_TO_SINGLES",
    "SINGLES_TO_BULK",
    "INITIAL_STOCK",
    "CORRECT_ENTRY_ERROR",
)


def _new_id() -> str:
    return uuid4().hex


class Product(db.Model):
    """
    Product master data. Catalog CRUD lives outside this service; the ledger
    only needs identity plus name/sku for display.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("sku", name="uq_products_sku"),
    )

    id = db.Column(db.String(32), primary_key=True, default=_new_id)
    name = db.Column(db.String(255), nullable=False)
    sku = db.Column(db.String(64), nullable=True)

    price = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    cost = db.Column(db.Numeric(10, 2), nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    stock = db.relationship("Stock", back_populates="product", uselist=False)

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r}>"

    def to_summary_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "sku": self.sku or ""}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "sku": self.sku or "",
            "costPrice": to_number(self.cost),
            "sellingPrice": to_number(self.price),
            "stockQuantity": to_number(self.stock.quantity) if self.stock else 0,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }


class Stock(db.Model):
    """
    Current quantity on hand, one row per product.

    Only the stock adjustment recorder writes `quantity`, and every write is
    paired with a StockAdjustment row, so quantity == SUM(quantity_change).
    """
    __tablename__ = "stocks"

    id = db.Column(db.String(32), primary_key=True, default=_new_id)
    product_id = db.Column(db.String(32), db.ForeignKey("products.id"), nullable=False, unique=True)
    quantity = db.Column(db.Numeric(10, 2), nullable=False, default=0)

    last_updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    product = db.relationship("Product", back_populates="stock")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "productId": self.product_id,
            "quantity": to_number(self.quantity),
            "lastUpdatedAt": to_utc_z(self.last_updated_at),
        }


class StockAdjustment(db.Model):
    """
    Immutable stock ledger row.

    Invariants:
    - quantity_after == quantity_before + quantity_change
    - rows are never updated or deleted
    - reason is only required for CORRECT_ENTRY_ERROR (enforced by callers)
    - user_id is null for system-originated rows
    """
    __tablename__ = "stock_adjustments"
    __table_args__ = (
        db.Index("ix_stock_adjustments_product_created", "product_id", "created_at"),
    )

    id = db.Column(db.String(32), primary_key=True, default=_new_id)
    product_id = db.Column(db.String(32), db.ForeignKey("products.id"), nullable=False, index=True)
    type = db.Column(db.String(32), nullable=False, index=True)

    quantity_before = db.Column(db.Numeric(10, 2), nullable=False)
    quantity_after = db.Column(db.Numeric(10, 2), nullable=False)
    quantity_change = db.Column(db.Numeric(10, 2), nullable=False)

    reason = db.Column(db.Text, nullable=True)
    user_id = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "productId": self.product_id,
            "type": self.type,
            "quantityBefore": to_number(self.quantity_before),
            "quantityAfter": to_number(self.quantity_after),
            "quantityChange": to_number(self.quantity_change),
            "reason": self.reason,
            "userId": self.user_id,
            "createdAt": to_utc_z(self.created_at),
        }


@event.listens_for(StockAdjustment, "before_insert")
def _check_adjustment_arithmetic(mapper, connection, target):
    if target.type not in STOCK_ADJUSTMENT_TYPES:
        raise ValueError(f"unknown stock adjustment type: {target.type}")
    if target.quantity_before + target.quantity_change != target.quantity_after:
        raise ValueError("stock adjustment must satisfy after = before + change")


@event.listens_for(StockAdjustment, "before_update")
def _reject_adjustment_update(mapper, connection, target):
    raise ValueError("stock adjustments are append-only")


@event.listens_for(StockAdjustment, "before_delete")
def _reject_adjustment_delete(mapper, connection, target):
    raise ValueError("stock adjustments are append-only")
