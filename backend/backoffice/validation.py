"""
Request parsing for the back-office API.

Each operation gets its own typed request variant with a validated field set,
built from the raw JSON body before any store access. Routes turn
ValidationError into a 400.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from .models import MANUAL_ADJUSTMENT_TYPES, PAYMENT_METHODS
from .money import quantize_quantity, to_decimal


class ValidationError(ValueError):
    """400-level input problem."""


@dataclass(frozen=True)
class ReversalItemRequest:
    """One requested reversal entry. sale_item_id pins it to a single line."""
    product_id: str
    quantity: Decimal
    sale_item_id: str | None = None


@dataclass(frozen=True)
class ReversalRequest:
    """
    Reverse a sale, fully (no items) or partially (explicit items).

    payment_method None means "keep the original sale's method".
    """
    user_id: str
    payment_method: str | None = None
    items: tuple[ReversalItemRequest, ...] = ()

    @property
    def is_full(self) -> bool:
        return not self.items


@dataclass(frozen=True)
class StockEditRequest:
    """Set a product's on-hand quantity directly (operator edit)."""
    product_id: str
    quantity: Decimal
    adjustment_type: str
    user_id: str | None = None
    reason: str | None = None


def _clean_str(value) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _positive_quantity(value) -> Decimal | None:
    """Quantity on the stored 2-place scale, or None when it rounds to <= 0."""
    try:
        quantity = quantize_quantity(value)
    except (ValueError, ArithmeticError):
        return None
    if quantity <= 0:
        return None
    return quantity


def parse_payment_method(value) -> str | None:
    """Blank/absent -> None; otherwise case-insensitive match against PAYMENT_METHODS."""
    raw = _clean_str(value)
    if not raw:
        return None
    candidate = raw.upper()
    if candidate not in PAYMENT_METHODS:
        raise ValidationError("paymentMethod is invalid.")
    return candidate


def parse_reversal_items(raw_items) -> tuple[ReversalItemRequest, ...]:
    """
    Keep entries that are objects with a productId and a finite quantity that
    is still > 0 once rounded (half-up) to the 2-place quantity scale.

    Absent or empty means a full reversal. A non-empty list in which no entry
    survives filtering is rejected rather than silently widened to "reverse
    everything".
    """
    if raw_items is None:
        return ()
    if not isinstance(raw_items, list):
        raise ValidationError("items must be a list.")
    if not raw_items:
        return ()

    parsed = []
    for entry in raw_items:
        if not isinstance(entry, dict):
            continue
        product_id = _clean_str(entry.get("productId"))
        quantity = _positive_quantity(entry.get("quantity"))
        if not product_id or quantity is None:
            continue
        sale_item_id = _clean_str(entry.get("saleItemId")) or None
        parsed.append(ReversalItemRequest(product_id=product_id, quantity=quantity, sale_item_id=sale_item_id))

    if not parsed:
        raise ValidationError("Select at least one item to reverse.")
    return tuple(parsed)


def parse_reversal_request(payload) -> ReversalRequest:
    payload = payload if isinstance(payload, dict) else {}

    user_id = _clean_str(payload.get("userId"))
    if not user_id:
        raise ValidationError("userId is required.")

    return ReversalRequest(
        user_id=user_id,
        payment_method=parse_payment_method(payload.get("paymentMethod")),
        items=parse_reversal_items(payload.get("items")),
    )


def parse_stock_edit_request(product_id: str, payload) -> StockEditRequest:
    payload = payload if isinstance(payload, dict) else {}

    if payload.get("stock") is None:
        raise ValidationError("stock is required.")
    try:
        quantity = to_decimal(payload.get("stock"))
    except ValueError:
        raise ValidationError("Stock must be a valid number.") from None

    adjustment_type = _clean_str(payload.get("stockAdjustmentType")).upper()
    if adjustment_type not in MANUAL_ADJUSTMENT_TYPES:
        raise ValidationError("A valid stock adjustment type is required.")

    reason = _clean_str(payload.get("reason")) or None
    if adjustment_type == "CORRECT_ENTRY_ERROR" and not reason:
        raise ValidationError("Reason is required for correction adjustments.")

    return StockEditRequest(
        product_id=product_id,
        quantity=quantity,
        adjustment_type=adjustment_type,
        user_id=_clean_str(payload.get("userId")) or None,
        # Reason is only kept on correction rows
        reason=reason if adjustment_type == "CORRECT_ENTRY_ERROR" else None,
    )
