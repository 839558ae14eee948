# Overview: Service-layer operations for the stock ledger; the single writer of Stock.quantity.
"""
Stock Ledger Invariants (authoritative)

- Every change to Stock.quantity is paired with exactly one StockAdjustment
  row written in the same DB transaction; record_stock_adjustment() is the
  only code path that does both.
- StockAdjustment rows are append-only: quantity_after = quantity_before +
  quantity_change, all rounded to 2 decimals.
- Therefore Stock.quantity == SUM(StockAdjustment.quantity_change) per product.
- The recorder never commits; the caller owns the transaction.
- Reason is mandatory for CORRECT_ENTRY_ERROR; that rule is checked by the
  request parser for direct edits, not here.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from flask import current_app

from ..extensions import db
from ..models import Product, Stock, StockAdjustment
from ..money import quantize_quantity
from ..validation import StockEditRequest
from .concurrency import begin_write_transaction, lock_for_update


logger = logging.getLogger(__name__)


class StockAdjustmentError(Exception):
    """Raised for stock ledger operation errors."""
    pass


class ProductNotFoundError(StockAdjustmentError):
    def __init__(self, product_id: str):
        super().__init__("Product not found.")
        self.product_id = product_id


class MissingStockRecordError(StockAdjustmentError):
    """A product on a sale has no Stock row; prior writes went wrong."""

    MESSAGE = "Stock record is missing for a product in this sale."

    def __init__(self, product_id: str):
        super().__init__(self.MESSAGE)
        self.product_id = product_id


def get_stock(product_id: str, *, lock: bool = False) -> Stock | None:
    query = db.session.query(Stock).filter_by(product_id=product_id)
    if lock:
        query = lock_for_update(query)
    return query.first()


def record_stock_adjustment(
    *,
    product_id: str,
    adjustment_type: str,
    quantity_before,
    quantity_after,
    reason: str | None = None,
    user_id: str | None = None,
    stock: Stock | None = None,
) -> StockAdjustment:
    """
    Append one ledger row and apply its change to the product's Stock row.

    `stock` may be passed when the caller already holds the (locked) row.
    Flushes but does not commit.
    """
    if stock is None:
        stock = get_stock(product_id, lock=True)
        if stock is None:
            raise MissingStockRecordError(product_id)

    before = quantize_quantity(quantity_before)
    after = quantize_quantity(quantity_after)
    change = after - before

    current = quantize_quantity(stock.quantity)
    if current != before:
        raise StockAdjustmentError(
            f"stock for product {product_id} is {current}, expected {before}"
        )

    adjustment = StockAdjustment(
        product_id=product_id,
        type=adjustment_type,
        quantity_before=before,
        quantity_after=after,
        quantity_change=change,
        reason=reason,
        user_id=user_id,
    )
    db.session.add(adjustment)

    stock.quantity = quantize_quantity(current + change)
    db.session.flush()

    logger.info(
        "stock adjustment %s product=%s %s -> %s (change %s) user=%s",
        adjustment_type, product_id, before, after, change, user_id,
    )
    return adjustment


def set_stock_level(edit: StockEditRequest) -> tuple[Product, StockAdjustment | None]:
    """
    Direct operator edit: set on-hand quantity to edit.quantity.

    Creates the Stock row on first use (before = 0). A zero change writes no
    ledger row. Commits.
    """
    try:
        begin_write_transaction(current_app.config.get("LEDGER_TRANSACTION_TIMEOUT", 60))
        product = lock_for_update(db.session.query(Product).filter_by(id=edit.product_id)).first()
        if product is None:
            raise ProductNotFoundError(edit.product_id)

        stock = get_stock(edit.product_id, lock=True)
        if stock is None:
            stock = Stock(product_id=edit.product_id, quantity=Decimal("0.00"))
            db.session.add(stock)
            db.session.flush()

        before = quantize_quantity(stock.quantity)
        after = quantize_quantity(edit.quantity)

        adjustment = None
        if after != before:
            adjustment = record_stock_adjustment(
                product_id=edit.product_id,
                adjustment_type=edit.adjustment_type,
                quantity_before=before,
                quantity_after=after,
                reason=edit.reason,
                user_id=edit.user_id,
                stock=stock,
            )

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    return product, adjustment


def list_stock_adjustments(product_id: str, limit: int | None = None) -> tuple[Product, list[StockAdjustment]]:
    """Ledger rows for a product, newest first. limit is clamped to 1..500."""
    product = db.session.query(Product).filter_by(id=product_id).first()
    if product is None:
        raise ProductNotFoundError(product_id)

    if limit is None:
        limit = current_app.config.get("STOCK_ADJUSTMENT_LIST_LIMIT", 150)
    limit = max(1, min(int(limit), 500))

    rows = (
        db.session.query(StockAdjustment)
        .filter_by(product_id=product_id)
        .order_by(StockAdjustment.created_at.desc(), StockAdjustment.id.desc())
        .limit(limit)
        .all()
    )
    return product, rows
