# Overview: Service-layer operations for sale reversals; one atomic unit per request.
"""
Sale Reversal Service

Reversing a sale writes, in ONE transaction:
- a new reversal Sale (negative amounts, dated at the original's created_at)
  with negative SaleItems,
- one SALE_REVERSAL StockAdjustment per product, restoring stock.

DESIGN:
- The original sale row is locked first, so concurrent reversals of the same
  sale queue behind each other and each sees the previous one's lines.
- All Stock rows are locked (in product id order) and read before anything
  is written.
- Allocation is delegated to reversal_allocator (pure); its ReversalError
  messages propagate unchanged.
- Any failure rolls the whole transaction back. Nothing is retried here; a
  caller that hits a conflict re-reads remaining quantities and resubmits.
"""

from __future__ import annotations

import logging

from flask import current_app
from sqlalchemy import or_

from ..extensions import db
from ..models import REVERSAL_RECEIPT_PREFIX, Sale, SaleItem
from ..money import cents_to_amount
from ..validation import ReversalRequest
from .concurrency import TransactionDeadline, begin_write_transaction, lock_for_update
from .document_service import next_reversal_receipt_number
from .reversal_allocator import ReversalError, SaleSnapshot, allocate_reversal, summarize_remaining
from .stock_adjustment_service import MissingStockRecordError, get_stock, record_stock_adjustment


logger = logging.getLogger(__name__)


class SaleNotFoundError(ReversalError):
    def __init__(self, sale_id: str):
        super().__init__(ReversalError.SALE_NOT_FOUND)
        self.sale_id = sale_id


def find_prior_reversals(sale_id: str) -> list[Sale]:
    """
    Every reversal already recorded against `sale_id`.

    Matches the explicit reverses_sale_id link and, for legacy rows, the
    REV-<saleId>- receipt prefix.
    """
    prefix = f"{REVERSAL_RECEIPT_PREFIX}{sale_id}-"
    return (
        db.session.query(Sale)
        .filter(
            or_(
                Sale.reverses_sale_id == sale_id,
                Sale.receipt_number.startswith(prefix, autoescape=True),
            )
        )
        .order_by(Sale.receipt_number)
        .all()
    )


def _load_sale(sale_id: str, *, lock: bool = False) -> Sale:
    query = db.session.query(Sale).filter_by(id=sale_id)
    if lock:
        query = lock_for_update(query)
    sale = query.first()
    if sale is None:
        raise SaleNotFoundError(sale_id)
    return sale


def reverse_sale(sale_id: str, reversal_request: ReversalRequest) -> Sale:
    """
    Reverse all (no items) or part of a sale and restore stock.

    Returns the committed reversal Sale.

    Raises:
        SaleNotFoundError / ReversalError: business-rule rejection
        MissingStockRecordError: a product on the sale has no Stock row
        TransactionTimeoutError: the transaction outlived its budget
    """
    timeout = current_app.config.get("LEDGER_TRANSACTION_TIMEOUT", 60)
    deadline = TransactionDeadline(timeout)

    try:
        begin_write_transaction(timeout)

        sale = _load_sale(sale_id, lock=True)
        prior_reversals = find_prior_reversals(sale.id)
        deadline.check("loading the sale and its reversals")

        plan = allocate_reversal(
            SaleSnapshot.from_model(sale),
            [SaleSnapshot.from_model(reversal) for reversal in prior_reversals],
            reversal_request.items,
        )
        restock = plan.restock_by_product()

        # Read every stock row before the first write, locking in product id order
        stocks = {}
        for product_id in sorted(restock):
            stock = get_stock(product_id, lock=True)
            if stock is None:
                raise MissingStockRecordError(product_id)
            stocks[product_id] = stock
        deadline.check("reading stock")

        reversal = Sale(
            receipt_number=next_reversal_receipt_number(sale.id),
            user_id=reversal_request.user_id,
            subtotal=plan.subtotal,
            discount=plan.discount,
            total_amount=plan.total_amount,
            payment_method=reversal_request.payment_method or sale.payment_method,
            created_at=sale.created_at,
            reverses_sale_id=sale.id,
        )
        db.session.add(reversal)

        for position, line in enumerate(plan.lines):
            db.session.add(
                SaleItem(
                    sale=reversal,
                    product_id=line.product_id,
                    position=position,
                    quantity=-line.quantity,
                    price=cents_to_amount(line.unit_price_cents),
                    total=cents_to_amount(-line.subtotal_cents),
                )
            )
        db.session.flush()

        for product_id, quantity in restock.items():
            stock = stocks[product_id]
            record_stock_adjustment(
                product_id=product_id,
                adjustment_type="SALE_REVERSAL",
                quantity_before=stock.quantity,
                quantity_after=stock.quantity + quantity,
                user_id=reversal_request.user_id,
                stock=stock,
            )
        deadline.check("writing the stock ledger")

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info(
        "sale %s reversed by %s: receipt=%s lines=%d total=%s",
        sale_id, reversal_request.user_id, reversal.receipt_number, len(plan.lines), plan.total_amount,
    )
    return reversal


def get_reversal_summary(sale_id: str) -> dict:
    """
    Per-line sold / reversed / remaining quantities for a sale, plus the
    reversals recorded against it.
    """
    sale = _load_sale(sale_id)
    prior_reversals = [] if sale.is_reversal else find_prior_reversals(sale.id)

    lines = summarize_remaining(
        SaleSnapshot.from_model(sale),
        [SaleSnapshot.from_model(reversal) for reversal in prior_reversals],
    )

    return {
        "saleId": sale.id,
        "receiptNumber": sale.receipt_number,
        "isReversal": sale.is_reversal,
        "fullyReversed": not sale.is_reversal and bool(lines) and all(
            line.remaining_quantity <= 0 for line in lines
        ),
        "lines": [line.to_dict() for line in lines],
        "reversals": [reversal.to_dict() for reversal in prior_reversals],
    }
