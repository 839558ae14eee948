# Overview: Service-layer operations for document numbers; encapsulates receipt numbering.

from __future__ import annotations

import random

from ..extensions import db
from ..models import Sale, format_reversal_receipt_number
from ..time_utils import epoch_millis


class DocumentSequenceError(Exception):
    """Raised when a unique document number cannot be allocated."""
    pass


def reversal_receipt_exists(receipt_number: str) -> bool:
    return db.session.query(Sale.id).filter_by(receipt_number=receipt_number).first() is not None


def next_reversal_receipt_number(original_sale_id: str, *, attempts: int = 5) -> str:
    """
    Allocate a receipt number for a new reversal of `original_sale_id`.

    Format: REV-<originalSaleId>-<epochMillis>-<0..999>. The unique constraint
    on sales.receipt_number is the final guard; collisions seen here just
    draw another suffix.
    """
    if not original_sale_id:
        raise DocumentSequenceError("original_sale_id is required")

    for _ in range(attempts):
        candidate = format_reversal_receipt_number(
            original_sale_id,
            epoch_millis(),
            random.randint(0, 999),
        )
        if not reversal_receipt_exists(candidate):
            return candidate

    raise DocumentSequenceError(f"could not allocate a reversal receipt number for sale {original_sale_id}")
