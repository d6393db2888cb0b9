"""
Concurrent postings against a file-backed SQLite database.

Each test runs two postings on separate threads, each with its own app
context and connection. The first is held open right after it reads the
state its bound depends on; the second must not commit a stale decision
in that window.
"""

import threading
from decimal import Decimal

import pytest

from storepos import create_app
from storepos.extensions import db
from storepos.models import InventoryRecord, Product, Register, Store, Transaction
from storepos.services import inventory_service, ledger_service
from storepos.services.transaction_service import (
    CashierIdentity,
    InsufficientStock,
    QuantityExceeded,
    post_refund,
    post_sale,
)

CASHIER = CashierIdentity(id=None, name="cashier")

# How long the first posting holds its unit open waiting for the second
HOLD_SECONDS = 1.0


@pytest.fixture
def file_app(tmp_path):
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'storepos.sqlite3'}",
        'PRINT_AGENT_BASE': None,
        'PRINT_AGENT_DISPATCH': 'inline',
        'ALLOW_NEGATIVE_INVENTORY': True,
        'ENFORCE_CUMULATIVE_REFUND_LIMIT': True,
    })
    with app.app_context():
        db.create_all()
        store = Store(code="001", name="Demo Superstore", timezone="UTC")
        db.session.add(store)
        db.session.flush()
        db.session.add(Register(store_id=store.id, code="R1", name="Front Register 1"))
        product = Product(sku="1001", name="Whole Milk 1L", price=Decimal("2.99"),
                          tax_rate=Decimal("5"), active=True)
        product.inventory_records.append(InventoryRecord(store_id=store.id, quantity=Decimal("3")))
        db.session.add(product)
        db.session.commit()

    yield app

    with app.app_context():
        db.session.remove()
        db.engine.dispose()


def _ids(app):
    with app.app_context():
        store = db.session.query(Store).one()
        register = db.session.query(Register).one()
        product = db.session.query(Product).one()
        return store.id, register.id, product.id


def _race(app, first, second, hold_point):
    """
    Run first() on a thread and pause it at hold_point; start second() once
    first is paused. Returns {"first": outcome, "second": outcome}.
    """
    first_paused = threading.Event()
    second_done = threading.Event()
    outcomes = {}

    def hold():
        if threading.current_thread().name == "first":
            first_paused.set()
            second_done.wait(timeout=HOLD_SECONDS)

    def run(label, op):
        with app.app_context():
            try:
                op()
                outcomes[label] = "posted"
            except (QuantityExceeded, InsufficientStock) as exc:
                outcomes[label] = exc.kind
            finally:
                db.session.remove()
                if label == "second":
                    second_done.set()

    hold_point(hold)

    t1 = threading.Thread(target=run, args=("first", first), name="first")
    t1.start()
    assert first_paused.wait(timeout=5)

    t2 = threading.Thread(target=run, args=("second", second), name="second")
    t2.start()

    t1.join(timeout=15)
    t2.join(timeout=15)
    assert not t1.is_alive() and not t2.is_alive()
    return outcomes


def test_concurrent_refunds_cannot_over_refund(file_app, monkeypatch):
    store_id, register_id, product_id = _ids(file_app)
    with file_app.app_context():
        sale = post_sale(store_id=store_id, register_id=register_id, cashier=CASHIER,
                         payment_method="CASH", items=[{"product_id": product_id, "quantity": 2}])
        sale_id, line_id = sale.transaction.id, sale.lines[0].id

    def refund_all():
        post_refund(original_transaction_id=sale_id,
                    items=[{"original_line_id": line_id, "quantity": 2}],
                    cashier=CASHIER)

    def hold_after_reading_refunds(hold):
        real = ledger_service.refunded_quantities

        def refunded_then_hold(sale_line_ids):
            result = real(sale_line_ids)
            hold()
            return result

        monkeypatch.setattr(ledger_service, "refunded_quantities", refunded_then_hold)

    outcomes = _race(file_app, refund_all, refund_all, hold_after_reading_refunds)

    assert sorted(outcomes.values()) == ["QuantityExceeded", "posted"]
    with file_app.app_context():
        assert db.session.query(Transaction).filter_by(kind="REFUND").count() == 1
        assert ledger_service.refunded_quantities([line_id]) == {line_id: Decimal("2")}
        assert inventory_service.get_quantity(store_id, product_id) == Decimal("3")


def test_concurrent_sales_respect_stock_when_oversell_is_off(file_app, monkeypatch):
    file_app.config["ALLOW_NEGATIVE_INVENTORY"] = False
    store_id, register_id, product_id = _ids(file_app)

    def sell_two():
        post_sale(store_id=store_id, register_id=register_id, cashier=CASHIER,
                  payment_method="CASH", items=[{"product_id": product_id, "quantity": 2}])

    def hold_after_reading_stock(hold):
        real = inventory_service.get_quantity

        def quantity_then_hold(store_id, product_id):
            result = real(store_id, product_id)
            hold()
            return result

        monkeypatch.setattr(inventory_service, "get_quantity", quantity_then_hold)

    outcomes = _race(file_app, sell_two, sell_two, hold_after_reading_stock)

    assert sorted(outcomes.values()) == ["InsufficientStock", "posted"]
    with file_app.app_context():
        assert db.session.query(Transaction).filter_by(kind="SALE").count() == 1
        assert inventory_service.get_quantity(store_id, product_id) == Decimal("1")
