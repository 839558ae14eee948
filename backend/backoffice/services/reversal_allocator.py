# Overview: Pure allocation of a reversal request against a sale and its prior reversals.
"""
Reversal allocation (authoritative)

Inputs: a snapshot of the original sale, snapshots of every reversal already
recorded against it, and the requested items (empty = full reversal).
Output: a ReversalPlan. No database access happens here.

Remaining quantity is tracked per price tier, (product_id, unit price in
cents), because one sale can hold the same product at different prices.
Quantity already reversed for a tier is absorbed by that tier's original lines
in sale-line order, each line taking at most its sold quantity.

Request precedence per line:
1. an entry naming the line's sale_item_id takes its quantity verbatim;
2. otherwise product-only demand takes min(outstanding demand, remaining);
3. otherwise a full reversal takes the whole remaining.

Over-asking is an error, never clamped. Money is split in integer cents: each
reversed line gets round(line_subtotal * discount / subtotal) of the original
sale's discount, so the discount follows reversed value, not line count.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, Sequence

from ..money import ZERO, cents_to_amount, prorate_cents, quantize_quantity, round_cents, to_cents, to_decimal, to_number
from ..validation import ReversalItemRequest


class ReversalError(Exception):
    """Raised when a reversal request breaks a business rule (client error)."""

    CANNOT_REVERSE_REVERSAL = "Cannot reverse a reversal sale."
    EXCEEDS_REMAINING = "Requested reversal quantity exceeds remaining sold quantity."
    NOT_PART_OF_SALE = "Requested reversal item is not part of the sale."
    NOTHING_LEFT = "There is nothing left to reverse for this sale."
    SALE_NOT_FOUND = "Sale not found."


@dataclass(frozen=True)
class SaleLineSnapshot:
    id: str
    product_id: str
    quantity: Decimal
    unit_price_cents: int

    @property
    def tier(self) -> tuple[str, int]:
        return (self.product_id, self.unit_price_cents)


@dataclass(frozen=True)
class SaleSnapshot:
    """Read-only view of a Sale with money already in cents."""
    id: str
    receipt_number: str
    is_reversal: bool
    subtotal_cents: int
    discount_cents: int
    lines: tuple[SaleLineSnapshot, ...] = ()

    @classmethod
    def from_model(cls, sale) -> "SaleSnapshot":
        return cls(
            id=sale.id,
            receipt_number=sale.receipt_number,
            is_reversal=sale.is_reversal,
            subtotal_cents=to_cents(sale.subtotal),
            discount_cents=to_cents(sale.discount or 0),
            lines=tuple(
                SaleLineSnapshot(
                    id=item.id,
                    product_id=item.product_id,
                    quantity=to_decimal(item.quantity),
                    # Same cent rounding as the line math below, so tiers match
                    unit_price_cents=to_cents(item.price),
                )
                for item in sale.items
            ),
        )


@dataclass(frozen=True)
class LineRemaining:
    sale_item_id: str
    product_id: str
    unit_price_cents: int
    sold_quantity: Decimal
    reversed_quantity: Decimal

    @property
    def remaining_quantity(self) -> Decimal:
        return self.sold_quantity - self.reversed_quantity

    def to_dict(self) -> dict:
        return {
            "saleItemId": self.sale_item_id,
            "productId": self.product_id,
            "price": to_number(cents_to_amount(self.unit_price_cents)),
            "soldQuantity": to_number(self.sold_quantity),
            "reversedQuantity": to_number(self.reversed_quantity),
            "remainingQuantity": to_number(self.remaining_quantity),
        }


@dataclass(frozen=True)
class ReversalLine:
    """One line of the reversal to be written. Quantities here are positive."""
    product_id: str
    sale_item_id: str
    quantity: Decimal
    unit_price_cents: int
    subtotal_cents: int
    discount_cents: int


@dataclass
class ReversalPlan:
    sale_id: str
    lines: list[ReversalLine] = field(default_factory=list)

    @property
    def reversed_subtotal_cents(self) -> int:
        return sum(line.subtotal_cents for line in self.lines)

    @property
    def reversed_discount_cents(self) -> int:
        return sum(line.discount_cents for line in self.lines)

    # Signed aggregates of the reversal sale (never positive)
    @property
    def subtotal_cents(self) -> int:
        return -self.reversed_subtotal_cents

    @property
    def discount_cents(self) -> int:
        return -self.reversed_discount_cents

    @property
    def total_cents(self) -> int:
        return -(self.reversed_subtotal_cents - self.reversed_discount_cents)

    @property
    def subtotal(self) -> Decimal:
        return cents_to_amount(self.subtotal_cents)

    @property
    def discount(self) -> Decimal:
        return cents_to_amount(self.discount_cents)

    @property
    def total_amount(self) -> Decimal:
        return cents_to_amount(self.total_cents)

    def restock_by_product(self) -> dict[str, Decimal]:
        """Quantity to put back on the shelf per product, in first-seen order."""
        totals: dict[str, Decimal] = {}
        for line in self.lines:
            totals[line.product_id] = totals.get(line.product_id, ZERO) + line.quantity
        return totals


def reversed_quantity_by_tier(prior_reversals: Iterable[SaleSnapshot]) -> dict[tuple[str, int], Decimal]:
    """Sum of already-reversed quantity per (product_id, unit_price_cents)."""
    reversed_by_tier: dict[tuple[str, int], Decimal] = defaultdict(lambda: ZERO)
    for reversal in prior_reversals:
        for line in reversal.lines:
            # Reversal lines are stored negative; anything else is not a reversal
            if line.quantity >= 0:
                continue
            reversed_by_tier[line.tier] += -line.quantity
    return dict(reversed_by_tier)


def summarize_remaining(
    sale: SaleSnapshot,
    prior_reversals: Iterable[SaleSnapshot],
) -> list[LineRemaining]:
    """Sold / already reversed / remaining for each original line, in line order."""
    unabsorbed = reversed_quantity_by_tier(prior_reversals)

    summary = []
    for line in sale.lines:
        pool = unabsorbed.get(line.tier, ZERO)
        absorbed = min(max(pool, ZERO), max(line.quantity, ZERO))
        unabsorbed[line.tier] = pool - absorbed
        summary.append(
            LineRemaining(
                sale_item_id=line.id,
                product_id=line.product_id,
                unit_price_cents=line.unit_price_cents,
                sold_quantity=line.quantity,
                reversed_quantity=absorbed,
            )
        )
    return summary


def _aggregate_requests(
    items: Sequence[ReversalItemRequest],
) -> tuple[dict[str, Decimal], dict[str, Decimal]]:
    by_line: dict[str, Decimal] = {}
    by_product: dict[str, Decimal] = {}
    for item in items:
        # Price exactly the quantity that will be persisted
        quantity = quantize_quantity(item.quantity)
        if item.sale_item_id:
            by_line[item.sale_item_id] = by_line.get(item.sale_item_id, ZERO) + quantity
        else:
            by_product[item.product_id] = by_product.get(item.product_id, ZERO) + quantity
    return by_line, by_product


def _ensure_items_on_sale(sale: SaleSnapshot, items: Sequence[ReversalItemRequest]) -> None:
    line_ids = {line.id for line in sale.lines}
    product_ids = {line.product_id for line in sale.lines}
    for item in items:
        if item.sale_item_id:
            if item.sale_item_id not in line_ids:
                raise ReversalError(ReversalError.NOT_PART_OF_SALE)
        elif item.product_id not in product_ids:
            raise ReversalError(ReversalError.NOT_PART_OF_SALE)


def allocate_reversal(
    sale: SaleSnapshot,
    prior_reversals: Iterable[SaleSnapshot],
    items: Sequence[ReversalItemRequest] = (),
) -> ReversalPlan:
    """
    Work out exactly what a reversal request reverses.

    Raises ReversalError with one of its fixed messages when the request
    cannot be honoured as asked.
    """
    if sale.is_reversal:
        raise ReversalError(ReversalError.CANNOT_REVERSE_REVERSAL)

    remaining_lines = summarize_remaining(sale, prior_reversals)

    # A fully reversed sale reports "nothing left" whatever is asked of it
    if all(entry.remaining_quantity <= 0 for entry in remaining_lines):
        raise ReversalError(ReversalError.NOTHING_LEFT)

    full_reversal = not items
    requested_by_line, requested_by_product = _aggregate_requests(items)
    outstanding_by_product = dict(requested_by_product)

    plan = ReversalPlan(sale_id=sale.id)
    for line, entry in zip(sale.lines, remaining_lines):
        remaining = entry.remaining_quantity

        if line.id in requested_by_line:
            quantity = requested_by_line[line.id]
        elif line.product_id in outstanding_by_product:
            quantity = min(outstanding_by_product[line.product_id], remaining)
        elif full_reversal:
            quantity = remaining
        else:
            quantity = ZERO

        if quantity <= 0:
            continue

        if quantity > remaining:
            raise ReversalError(ReversalError.EXCEEDS_REMAINING)

        if line.id not in requested_by_line and line.product_id in outstanding_by_product:
            outstanding_by_product[line.product_id] -= quantity

        line_subtotal_cents = round_cents(Decimal(line.unit_price_cents) * quantity)
        plan.lines.append(
            ReversalLine(
                product_id=line.product_id,
                sale_item_id=line.id,
                quantity=quantity,
                unit_price_cents=line.unit_price_cents,
                subtotal_cents=line_subtotal_cents,
                discount_cents=prorate_cents(line_subtotal_cents, sale.discount_cents, sale.subtotal_cents),
            )
        )

    if items:
        _ensure_items_on_sale(sale, items)
        if any(outstanding > 0 for outstanding in outstanding_by_product.values()):
            raise ReversalError(ReversalError.EXCEEDS_REMAINING)

    if not plan.lines:
        raise ReversalError(ReversalError.NOTHING_LEFT)

    return plan
