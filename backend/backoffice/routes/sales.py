# Overview: Flask API routes for sale reversals; parses input and returns JSON responses.

# backend/backoffice/routes/sales.py
"""
Sale Reversal API Routes

DESIGN:
- Reverse a sale fully (no items) or partially (explicit items)
- Every reversal is a new sale document with negative amounts; the original
  is never modified
- Remaining-quantity summary so callers can re-read before resubmitting

Errors:
- Validation and business-rule failures return 400 with the exact message
- Anything unexpected is logged and returns a generic 500
"""

from flask import Blueprint, request, jsonify, current_app

from ..services import reversal_service
from ..services.reversal_allocator import ReversalError
from ..services.reversal_service import SaleNotFoundError
from ..services.stock_adjustment_service import MissingStockRecordError
from ..validation import ValidationError, parse_reversal_request


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


# =============================================================================
# SALE REVERSAL
# =============================================================================

@sales_bp.post("/<sale_id>/reverse")
def reverse_sale_route(sale_id: str):
    """
    Reverse a sale and restore stock.

    Request body:
    {
        "userId": "u-1",
        "paymentMethod": "CASH",  (optional, defaults to the original's)
        "items": [  (optional, absent or empty = full reversal)
            {"productId": "p-1", "quantity": 2, "saleItemId": "li-1"}
        ]
    }

    Returns:
        201: {"reversal": {...}}
        400: Invalid input or business-rule rejection
        500: Unexpected failure
    """
    try:
        reversal_request = parse_reversal_request(request.get_json(silent=True))
        reversal = reversal_service.reverse_sale(sale_id, reversal_request)
        return jsonify({"reversal": reversal.to_dict()}), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ReversalError as e:
        current_app.logger.warning("Reversal of sale %s rejected: %s", sale_id, e)
        return jsonify({"error": str(e)}), 400
    except MissingStockRecordError as e:
        current_app.logger.error(
            "Reversal of sale %s aborted: no stock row for product %s", sale_id, e.product_id
        )
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to reverse sale %s", sale_id)
        return jsonify({"error": "Unable to reverse sale."}), 500


@sales_bp.get("/<sale_id>/reversals")
def get_reversals_route(sale_id: str):
    """
    Sold, reversed and remaining quantities per line, plus prior reversals.

    Returns:
        200: Reversal summary
        404: Sale not found
    """
    try:
        return jsonify(reversal_service.get_reversal_summary(sale_id)), 200

    except SaleNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to load reversals for sale %s", sale_id)
        return jsonify({"error": "Internal server error"}), 500
