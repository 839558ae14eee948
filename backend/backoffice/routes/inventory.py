# backend/backoffice/routes/inventory.py
"""
Inventory routes: direct stock edits and the stock adjustment ledger.

Every stock change goes through the adjustment recorder, so the ledger
listing here always sums to the product's current quantity.
"""
from flask import Blueprint, request, current_app

from ..validation import ValidationError, parse_stock_edit_request
from ..services.stock_adjustment_service import (
    ProductNotFoundError,
    list_stock_adjustments,
    set_stock_level,
)
from ..money import to_number


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/products")


@inventory_bp.patch("/<product_id>/stock")
def update_stock_route(product_id: str):
    """
    Set a product's on-hand quantity.

    Body: {"stock": 12, "stockAdjustmentType": "SUPPLIER_ADD", "userId"?, "reason"?}
    "reason" is required for CORRECT_ENTRY_ERROR.
    """
    payload = request.get_json(silent=True) or {}

    try:
        edit = parse_stock_edit_request(product_id, payload)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        product, adjustment = set_stock_level(edit)
    except ProductNotFoundError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to update stock for product %s", product_id)
        return {"error": "Unable to update stock."}, 500

    return {
        "product": product.to_dict(),
        "adjustment": adjustment.to_dict() if adjustment else None,
    }, 200


@inventory_bp.get("/<product_id>/stock-adjustments")
def list_stock_adjustments_route(product_id: str):
    """Ledger rows for a product, newest first. Optional ?limit=N (1..500)."""
    limit = request.args.get("limit", type=int)

    try:
        product, rows = list_stock_adjustments(product_id, limit=limit)
    except ProductNotFoundError as e:
        return {"error": str(e)}, 404

    return {
        "productId": product.id,
        "stockQuantity": to_number(product.stock.quantity) if product.stock else 0,
        "adjustments": [row.to_dict() for row in rows],
    }, 200
