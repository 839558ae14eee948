"""
Sale reversal HTTP API.

Verifies:
- Request validation returns 400 before touching the store
- Business-rule rejections return 400 with their exact message
- Unexpected failures return a generic 500
"""

from decimal import Decimal

import pytest

from backoffice.extensions import db
from backoffice.models import Sale, StockAdjustment
from backoffice.services import reversal_service
from backoffice.services.concurrency import TransactionDeadline, TransactionTimeoutError


@pytest.fixture
def widget(make_product):
    return make_product(name="Widget", price="2.00", stock="100")


@pytest.fixture
def sale(make_sale, widget):
    return make_sale([(widget, 10, "2.00")], discount="1.00")


def _reverse(client, sale_id, **body):
    body.setdefault("userId", "manager-1")
    return client.post(f"/api/sales/{sale_id}/reverse", json=body)


# =============================================================================
# SUCCESS
# =============================================================================


class TestReverse:

    def test_partial_reversal(self, client, sale, widget):
        resp = _reverse(client, sale.id, items=[{"productId": widget.id, "quantity": 4}])

        assert resp.status_code == 201
        reversal = resp.get_json()["reversal"]
        assert reversal["totalAmount"] == -7.6
        assert reversal["subtotal"] == -8
        assert reversal["discount"] == -0.4
        assert reversal["reversesSaleId"] == sale.id
        assert reversal["receiptNumber"].startswith(f"REV-{sale.id}-")
        assert reversal["items"][0]["quantity"] == -4
        assert reversal["items"][0]["total"] == -8
        assert reversal["items"][0]["product"]["name"] == "Widget"

    def test_empty_items_reverses_everything(self, client, sale):
        resp = _reverse(client, sale.id, items=[])

        assert resp.status_code == 201
        assert resp.get_json()["reversal"]["totalAmount"] == -19

    def test_payment_method_is_case_insensitive(self, client, sale):
        resp = _reverse(client, sale.id, paymentMethod="mobile_money")

        assert resp.status_code == 201
        assert resp.get_json()["reversal"]["paymentMethod"] == "MOBILE_MONEY"

    def test_invalid_entries_are_dropped(self, client, sale, widget):
        resp = _reverse(client, sale.id, items=[
            {"productId": widget.id, "quantity": 2},
            {"productId": widget.id, "quantity": -1},
            {"productId": "", "quantity": 3},
            "junk",
        ])

        assert resp.status_code == 201
        assert resp.get_json()["reversal"]["items"][0]["quantity"] == -2


# =============================================================================
# VALIDATION (400)
# =============================================================================


class TestValidation:

    def test_user_id_required(self, client, sale):
        resp = client.post(f"/api/sales/{sale.id}/reverse", json={})
        assert resp.status_code == 400
        assert resp.get_json() == {"error": "userId is required."}

    def test_invalid_payment_method(self, client, sale):
        resp = _reverse(client, sale.id, paymentMethod="CHEQUE")
        assert resp.status_code == 400
        assert resp.get_json() == {"error": "paymentMethod is invalid."}

    def test_items_without_valid_entries(self, client, sale, widget):
        resp = _reverse(client, sale.id, items=[{"productId": widget.id, "quantity": 0}])
        assert resp.status_code == 400
        assert resp.get_json() == {"error": "Select at least one item to reverse."}
        assert db.session.query(Sale).count() == 1


# =============================================================================
# BUSINESS RULES (400)
# =============================================================================


class TestBusinessRules:

    def test_sale_not_found(self, client):
        resp = _reverse(client, "missing")
        assert resp.status_code == 400
        assert resp.get_json() == {"error": "Sale not found."}

    def test_exceeds_remaining(self, client, sale, widget):
        _reverse(client, sale.id, items=[{"productId": widget.id, "quantity": 4}])

        resp = _reverse(client, sale.id, items=[{"productId": widget.id, "quantity": 7}])
        assert resp.status_code == 400
        assert resp.get_json() == {"error": "Requested reversal quantity exceeds remaining sold quantity."}

    def test_nothing_left(self, client, sale):
        _reverse(client, sale.id)

        resp = _reverse(client, sale.id)
        assert resp.status_code == 400
        assert resp.get_json() == {"error": "There is nothing left to reverse for this sale."}

    def test_cannot_reverse_reversal(self, client, sale):
        reversal_id = _reverse(client, sale.id).get_json()["reversal"]["id"]

        resp = _reverse(client, reversal_id)
        assert resp.status_code == 400
        assert resp.get_json() == {"error": "Cannot reverse a reversal sale."}

    def test_item_not_part_of_sale(self, client, sale, make_product):
        other = make_product(name="Other")

        resp = _reverse(client, sale.id, items=[{"productId": other.id, "quantity": 1}])
        assert resp.status_code == 400
        assert resp.get_json() == {"error": "Requested reversal item is not part of the sale."}

    def test_missing_stock_record(self, client, make_product, make_sale):
        unstocked = make_product(name="Unstocked", stock=None)
        sale = make_sale([(unstocked, 1, "5.00")])

        resp = _reverse(client, sale.id)
        assert resp.status_code == 400
        assert resp.get_json() == {"error": "Stock record is missing for a product in this sale."}
        assert db.session.query(Sale).count() == 1
        assert db.session.query(StockAdjustment).count() == 0


def test_unexpected_failure_is_500(client, sale, monkeypatch):
    def boom(*args, **kwargs):
        raise RuntimeError("disk on fire")

    monkeypatch.setattr(reversal_service, "reverse_sale", boom)

    resp = _reverse(client, sale.id)
    assert resp.status_code == 500
    assert resp.get_json() == {"error": "Unable to reverse sale."}


def test_timeout_rolls_back_and_returns_500(client, sale, widget, monkeypatch, stock_of):
    def expire_after_ledger_writes(self, step):
        if step == "writing the stock ledger":
            raise TransactionTimeoutError(f"transaction exceeded its {self.seconds:g}s budget while {step}")

    monkeypatch.setattr(TransactionDeadline, "check", expire_after_ledger_writes)

    resp = _reverse(client, sale.id)
    assert resp.status_code == 500
    assert resp.get_json() == {"error": "Unable to reverse sale."}
    assert db.session.query(Sale).count() == 1
    assert db.session.query(StockAdjustment).filter_by(type="SALE_REVERSAL").count() == 0
    assert stock_of(widget) == Decimal("90")


# =============================================================================
# QUANTITIES FINER THAN THE STORED SCALE
# =============================================================================


class TestSubCentQuantities:

    @pytest.fixture
    def single_unit_sale(self, make_sale, widget):
        return make_sale([(widget, 1, "2.00")])

    def test_quantity_rounds_to_two_places(self, client, single_unit_sale, widget):
        resp = _reverse(client, single_unit_sale.id, items=[{"productId": widget.id, "quantity": 0.333}])

        assert resp.status_code == 201
        reversal = resp.get_json()["reversal"]
        assert reversal["items"][0]["quantity"] == -0.33
        assert reversal["items"][0]["total"] == -0.66
        assert reversal["totalAmount"] == -0.66

        item = db.session.query(Sale).filter_by(id=reversal["id"]).one().items[0]
        assert item.quantity * item.price == item.total

    def test_repeated_fractions_stay_consistent(self, client, single_unit_sale, widget, stock_of):
        for _ in range(3):
            resp = _reverse(client, single_unit_sale.id, items=[{"productId": widget.id, "quantity": 0.333}])
            assert resp.status_code == 201

        resp = _reverse(client, single_unit_sale.id, items=[{"productId": widget.id, "quantity": 0.333}])
        assert resp.status_code == 400
        assert resp.get_json() == {"error": "Requested reversal quantity exceeds remaining sold quantity."}

        summary = client.get(f"/api/sales/{single_unit_sale.id}/reversals").get_json()
        assert summary["lines"][0]["reversedQuantity"] == 0.99
        assert sum(r["totalAmount"] for r in summary["reversals"]) == pytest.approx(-1.98)
        assert stock_of(widget) == Decimal("99.99")

    def test_quantity_rounding_to_zero_is_dropped(self, client, single_unit_sale, widget):
        resp = _reverse(client, single_unit_sale.id, items=[{"productId": widget.id, "quantity": 0.004}])

        assert resp.status_code == 400
        assert resp.get_json() == {"error": "Select at least one item to reverse."}
        assert db.session.query(StockAdjustment).filter_by(type="SALE_REVERSAL").count() == 0


# =============================================================================
# SUMMARY
# =============================================================================


class TestReversalSummary:

    def test_summary_after_partial_reversal(self, client, sale, widget):
        _reverse(client, sale.id, items=[{"productId": widget.id, "quantity": 4}])

        resp = client.get(f"/api/sales/{sale.id}/reversals")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["fullyReversed"] is False
        assert body["lines"][0]["remainingQuantity"] == 6
        assert len(body["reversals"]) == 1

    def test_summary_for_unknown_sale(self, client):
        resp = client.get("/api/sales/missing/reversals")
        assert resp.status_code == 404
