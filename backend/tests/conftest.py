"""
Pytest fixtures for back-office ledger tests.

Provides an in-memory database, per-test table wipe, the test client and
factories for products (with opening stock) and sales.
"""

from decimal import Decimal, ROUND_HALF_UP

import pytest

from backoffice import create_app
from backoffice.extensions import db
from backoffice.models import Product, Sale, SaleItem, Stock
from backoffice.money import CENT, to_decimal
from backoffice.services.stock_adjustment_service import get_stock, record_stock_adjustment


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LEDGER_TRANSACTION_TIMEOUT': 5,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function', autouse=True)
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Core deletes skip the ledger's append-only mapper guard
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def make_product(db_session):
    """
    Factory: product with an INITIAL_STOCK ledger row.

    stock=None creates the product without a Stock row.
    """
    counter = {"n": 0}

    def _make(name="Widget", price="2.00", stock="100"):
        counter["n"] += 1
        product = Product(
            name=name,
            sku=f"SKU-{counter['n']:03d}",
            price=to_decimal(price),
            cost=Decimal("1.00"),
        )
        db_session.add(product)
        db_session.flush()

        if stock is not None:
            stock_row = Stock(product_id=product.id, quantity=Decimal("0.00"))
            db_session.add(stock_row)
            db_session.flush()
            record_stock_adjustment(
                product_id=product.id,
                adjustment_type="INITIAL_STOCK",
                quantity_before=0,
                quantity_after=stock,
                stock=stock_row,
            )

        db_session.commit()
        return product

    return _make


@pytest.fixture(scope='function')
def make_sale(db_session):
    """
    Factory: committed sale plus its SALE ledger rows.

    lines: [(product, quantity, unit_price), ...] in sale-line order.
    """
    counter = {"n": 0}

    def _make(lines, discount="0", payment_method="CASH", user_id="cashier-1"):
        counter["n"] += 1
        subtotal = sum(
            (to_decimal(quantity) * to_decimal(price) for _, quantity, price in lines),
            Decimal("0"),
        ).quantize(CENT, rounding=ROUND_HALF_UP)
        discount = to_decimal(discount).quantize(CENT, rounding=ROUND_HALF_UP)

        sale = Sale(
            receipt_number=f"S-{counter['n']:05d}",
            user_id=user_id,
            subtotal=subtotal,
            discount=discount,
            total_amount=subtotal - discount,
            payment_method=payment_method,
        )
        db_session.add(sale)

        for position, (product, quantity, price) in enumerate(lines):
            quantity = to_decimal(quantity)
            price = to_decimal(price)
            db_session.add(SaleItem(
                sale=sale,
                product_id=product.id,
                position=position,
                quantity=quantity,
                price=price,
                total=(quantity * price).quantize(CENT, rounding=ROUND_HALF_UP),
            ))
        db_session.flush()

        for product, quantity, _ in lines:
            stock = get_stock(product.id)
            if stock is None:
                continue
            record_stock_adjustment(
                product_id=product.id,
                adjustment_type="SALE",
                quantity_before=stock.quantity,
                quantity_after=stock.quantity - to_decimal(quantity),
                user_id=user_id,
                stock=stock,
            )

        db_session.commit()
        return sale

    return _make


@pytest.fixture(scope='function')
def stock_of(db_session):
    """Current on-hand quantity as stored, bypassing the identity map."""
    def _stock_of(product):
        db_session.expire_all()
        return get_stock(product.id).quantity

    return _stock_of
