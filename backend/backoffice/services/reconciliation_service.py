# Overview: Read-only check that every Stock row equals the sum of its ledger rows.

from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..models import Stock, StockAdjustment
from ..money import ZERO, quantize_quantity, to_number


def ledger_totals(product_id: str | None = None) -> dict[str, object]:
    """SUM(quantity_change) per product over the stock ledger."""
    q = db.session.query(
        StockAdjustment.product_id,
        func.sum(StockAdjustment.quantity_change),
    ).group_by(StockAdjustment.product_id)
    if product_id is not None:
        q = q.filter(StockAdjustment.product_id == product_id)
    return {pid: quantize_quantity(total or ZERO) for pid, total in q.all()}


def reconcile_stock_ledger(product_id: str | None = None) -> list[dict]:
    """
    Compare Stock.quantity against the ledger for every product (or one).

    Returns one entry per mismatch, including products that have ledger rows
    but no Stock row. An empty list means the ledger and stock agree.
    """
    totals = ledger_totals(product_id)

    q = db.session.query(Stock)
    if product_id is not None:
        q = q.filter(Stock.product_id == product_id)
    stocks = {stock.product_id: quantize_quantity(stock.quantity) for stock in q.all()}

    mismatches = []
    for pid in sorted(set(stocks) | set(totals)):
        stock_quantity = stocks.get(pid)
        ledger_quantity = totals.get(pid, ZERO)
        if stock_quantity is not None and stock_quantity == ledger_quantity:
            continue
        mismatches.append({
            "productId": pid,
            "stockQuantity": to_number(stock_quantity),
            "ledgerQuantity": to_number(ledger_quantity),
            "difference": to_number((stock_quantity or ZERO) - ledger_quantity),
        })
    return mismatches
