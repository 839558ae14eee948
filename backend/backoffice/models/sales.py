from __future__ import annotations

from uuid import uuid4

from ..extensions import db
from ..money import to_number
from backoffice.time_utils import to_utc_z, utcnow


PAYMENT_METHODS = ("CASH", "MOBILE_MONEY", "CARD", "TRANSFER")

REVERSAL_RECEIPT_PREFIX = "REV-"


def _new_id() -> str:
    return uuid4().hex


def format_reversal_receipt_number(original_sale_id: str, epoch_millis: int, suffix: int) -> str:
    """REV-<originalSaleId>-<epochMillis>-<suffix>"""
    return f"{REVERSAL_RECEIPT_PREFIX}{original_sale_id}-{epoch_millis}-{suffix}"


def parse_reversed_sale_id(receipt_number: str | None) -> str | None:
    """
    Original sale id embedded in a reversal receipt number, else None.

    The last two dash-separated fields are the timestamp and suffix, so ids
    that themselves contain dashes still round-trip. Receipts that do not end
    in two numeric fields fall back to the first field.
    """
    if not receipt_number or not receipt_number.startswith(REVERSAL_RECEIPT_PREFIX):
        return None

    rest = receipt_number[len(REVERSAL_RECEIPT_PREFIX):]
    parts = rest.rsplit("-", 2)
    if len(parts) == 3 and parts[1].isdigit() and parts[2].isdigit():
        return parts[0] or None

    return rest.split("-", 1)[0] or None


class Sale(db.Model):
    """
    Sale document. Append-only: created at sale time, and again (as a
    reversal sale) when a prior sale is reversed. Never mutated afterwards.

    A reversal sale mirrors the value it undoes: negative subtotal, discount
    and total, negative item quantities. It points back at its original via
    `reverses_sale_id`; legacy reversals only carry that link inside the
    receipt number (`REV-<originalSaleId>-<epochMillis>-<n>`).
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("receipt_number", name="uq_sales_receipt_number"),
        db.Index("ix_sales_created_at", "created_at"),
    )

    id = db.Column(db.String(32), primary_key=True, default=_new_id)

    # Human-readable receipt number; reversal sales carry the REV- marker
    receipt_number = db.Column(db.String(96), nullable=False)

    user_id = db.Column(db.String(64), nullable=False, index=True)

    # Signed amounts (reversals are negative)
    subtotal = db.Column(db.Numeric(10, 2), nullable=False)
    discount = db.Column(db.Numeric(10, 2), nullable=True)
    total_amount = db.Column(db.Numeric(10, 2), nullable=False)

    payment_method = db.Column(db.String(16), nullable=False)

    # Reversals copy the original's created_at (business time, not now)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    reverses_sale_id = db.Column(db.String(32), db.ForeignKey("sales.id"), nullable=True, index=True)

    items = db.relationship(
        "SaleItem",
        back_populates="sale",
        order_by="[SaleItem.position, SaleItem.id]",
        lazy=True,
    )

    @property
    def is_reversal(self) -> bool:
        if self.reverses_sale_id is not None:
            return True
        return (self.receipt_number or "").startswith(REVERSAL_RECEIPT_PREFIX)

    def __repr__(self) -> str:
        return f"<Sale id={self.id} receipt={self.receipt_number!r} total={self.total_amount}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "receiptNumber": self.receipt_number,
            "userId": self.user_id,
            "paymentMethod": self.payment_method,
            "subtotal": to_number(self.subtotal),
            "discount": to_number(self.discount or 0),
            "totalAmount": to_number(self.total_amount),
            "createdAt": to_utc_z(self.created_at),
            "reversesSaleId": self.reverses_sale_id or parse_reversed_sale_id(self.receipt_number),
            "items": [item.to_dict() for item in self.items],
        }


class SaleItem(db.Model):
    """Line item on a sale. Quantity is negative on reversal sales."""
    __tablename__ = "sale_items"

    id = db.Column(db.String(32), primary_key=True, default=_new_id)
    sale_id = db.Column(db.String(32), db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.String(32), db.ForeignKey("products.id"), nullable=False, index=True)

    # Persisted line order; allocation walks lines in (position, id) order
    position = db.Column(db.Integer, nullable=False, default=0)

    quantity = db.Column(db.Numeric(10, 2), nullable=False)
    price = db.Column(db.Numeric(10, 2), nullable=False)
    total = db.Column(db.Numeric(10, 2), nullable=False)

    sale = db.relationship("Sale", back_populates="items")
    product = db.relationship("Product")

    def to_dict(self, *, include_product: bool = True) -> dict:
        data = {
            "id": self.id,
            "productId": self.product_id,
            "quantity": to_number(self.quantity),
            "price": to_number(self.price),
            "total": to_number(self.total),
        }
        if include_product:
            data["product"] = self.product.to_summary_dict() if self.product else None
        return data
