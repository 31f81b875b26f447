"""
Sale recording at the service level: totals, stock, movements, rollback,
invoice numbering, cancellation and two tills racing for the same units.
"""
import threading
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from models.product import Product
from models.sale import PaymentMethod, Sale, SaleItem
from models.stock import StockMovement, StockMovementType
from models.users import User
from schemas.sale import SaleCreate
from services import sales as sale_service
from services.errors import (
    Conflict, InactiveEntity, InsufficientStock, NotFound, ServiceError, ValidationFailed
)


def _sale(customer, *lines, **extra):
    return SaleCreate(
        customer_id=customer.id,
        items=[{"product_id": p.id, "quantity": q, **kw} for p, q, kw in lines],
        **extra,
    )


def _stock(db, product):
    db.expire_all()
    return db.get(Product, product.id).stock_quantity


# =============================================================================
# TOTALS
# =============================================================================

def test_subtotal_equals_sum_of_line_totals(db, cashier, customer, mouse, keyboard):
    payload = _sale(
        customer,
        (mouse, 2, {"discount_percentage": "10"}),
        (keyboard, 1, {}),
        discount_amount="4.99",
        tax_amount="7.20",
        paid_amount="100.00",
    )
    sale = sale_service.create_sale(db, payload, cashier)

    assert [item.total_price for item in sale.items] == [Decimal("45.00"), Decimal("49.99")]
    assert sale.subtotal == sum(item.total_price for item in sale.items)
    assert sale.subtotal == Decimal("94.99")
    assert sale.total_amount == Decimal("97.20")
    assert sale.change_due == Decimal("2.80")
    assert sale.user_id == cashier.id
    assert sale.is_completed is True


def test_unit_price_defaults_to_list_price_and_can_be_overridden(db, cashier, customer, mouse, keyboard):
    payload = _sale(customer, (mouse, 1, {}), (keyboard, 1, {"unit_price": "45.00"}))
    sale = sale_service.create_sale(db, payload, cashier)

    prices = {item.product_id: item.unit_price for item in sale.items}
    assert prices[mouse.id] == Decimal("25.00")
    assert prices[keyboard.id] == Decimal("45.00")


def test_discount_larger_than_subtotal_is_rejected(db, cashier, customer, mouse):
    payload = _sale(customer, (mouse, 1, {}), discount_amount="30.00")
    with pytest.raises(ValidationFailed) as exc:
        sale_service.create_sale(db, payload, cashier)
    assert exc.value.code == "invalid_discount"
    assert _stock(db, mouse) == 5


# =============================================================================
# STOCK
# =============================================================================

def test_sale_decrements_stock_and_records_movement(db, cashier, customer, mouse):
    sale = sale_service.create_sale(db, _sale(customer, (mouse, 3, {})), cashier)

    assert _stock(db, mouse) == 2
    movements = db.query(StockMovement).filter(StockMovement.product_id == mouse.id).all()
    assert len(movements) == 1
    assert movements[0].movement_type == StockMovementType.SALE
    assert movements[0].quantity == -3
    assert movements[0].reference == sale.invoice_number
    assert movements[0].created_by == cashier.id


def test_sale_updates_customer_last_purchase_date(db, cashier, customer, mouse):
    assert customer.last_purchase_date is None
    sale_service.create_sale(db, _sale(customer, (mouse, 1, {})), cashier)
    db.refresh(customer)
    assert customer.last_purchase_date is not None


def test_insufficient_stock_leaves_everything_untouched(db, cashier, customer, make_product):
    product = make_product(stock_quantity=2)

    with pytest.raises(InsufficientStock) as exc:
        sale_service.create_sale(db, _sale(customer, (product, 3, {})), cashier)

    assert exc.value.code == "insufficient_stock"
    assert _stock(db, product) == 2
    assert db.query(Sale).count() == 0
    assert db.query(SaleItem).count() == 0
    assert db.query(StockMovement).count() == 0


def test_quantities_for_same_product_are_summed(db, cashier, customer, make_product):
    product = make_product(stock_quantity=4)
    with pytest.raises(InsufficientStock):
        sale_service.create_sale(db, _sale(customer, (product, 3, {}), (product, 2, {})), cashier)
    assert _stock(db, product) == 4


def test_failure_on_second_line_rolls_back_first_line(db, cashier, customer, mouse, keyboard, monkeypatch):
    # The keyboard passes the pre-check but loses the race for its units
    original = sale_service.take_stock

    def take_stock(session, product, quantity):
        if product.id == keyboard.id:
            raise InsufficientStock("Insufficient stock", product_id=product.id)
        original(session, product, quantity)

    monkeypatch.setattr(sale_service, "take_stock", take_stock)

    with pytest.raises(InsufficientStock):
        sale_service.create_sale(db, _sale(customer, (mouse, 2, {}), (keyboard, 5, {})), cashier)

    assert _stock(db, mouse) == 5
    assert _stock(db, keyboard) == 10
    assert db.query(Sale).count() == 0
    assert db.query(StockMovement).count() == 0


# =============================================================================
# REFERENCES
# =============================================================================

def test_unknown_customer(db, cashier, mouse):
    payload = SaleCreate(customer_id=999, items=[{"product_id": mouse.id, "quantity": 1}])
    with pytest.raises(NotFound) as exc:
        sale_service.create_sale(db, payload, cashier)
    assert exc.value.code == "customer_not_found"


def test_inactive_customer(db, cashier, customer, mouse):
    customer.is_active = False
    db.commit()
    with pytest.raises(InactiveEntity) as exc:
        sale_service.create_sale(db, _sale(customer, (mouse, 1, {})), cashier)
    assert exc.value.code == "inactive_customer"


def test_unknown_product(db, cashier, customer):
    payload = SaleCreate(customer_id=customer.id, items=[{"product_id": 999, "quantity": 1}])
    with pytest.raises(NotFound) as exc:
        sale_service.create_sale(db, payload, cashier)
    assert exc.value.code == "product_not_found"


def test_inactive_product(db, cashier, customer, mouse):
    mouse.is_active = False
    db.commit()
    with pytest.raises(InactiveEntity) as exc:
        sale_service.create_sale(db, _sale(customer, (mouse, 1, {})), cashier)
    assert exc.value.code == "inactive_product"
    assert _stock(db, mouse) == 5


# =============================================================================
# INVOICE NUMBERS
# =============================================================================

def test_invoice_numbers_are_sequential_within_month(db, cashier, customer, mouse):
    first = sale_service.create_sale(db, _sale(customer, (mouse, 1, {})), cashier)
    second = sale_service.create_sale(db, _sale(customer, (mouse, 1, {})), cashier)

    prefix = f"INV{datetime.now(timezone.utc):%Y%m}"
    assert first.invoice_number == f"{prefix}0001"
    assert second.invoice_number == f"{prefix}0002"


def test_invoice_sequence_restarts_each_month(db, cashier, customer, mouse):
    sale_service.create_sale(db, _sale(customer, (mouse, 1, {})), cashier)
    assert sale_service.next_invoice_number(db, datetime(2031, 2, 1, tzinfo=timezone.utc)) == "INV2031020001"


def test_invoice_collision_is_reported_as_conflict(db, cashier, customer, mouse, monkeypatch):
    first = sale_service.create_sale(db, _sale(customer, (mouse, 1, {})), cashier)
    taken = first.invoice_number
    monkeypatch.setattr(sale_service, "next_invoice_number", lambda session, when: taken)

    with pytest.raises(Conflict) as exc:
        sale_service.create_sale(db, _sale(customer, (mouse, 1, {})), cashier)

    assert exc.value.code == "duplicate_invoice_number"
    assert _stock(db, mouse) == 4
    assert db.query(Sale).count() == 1


def test_invoice_sequence_grows_past_four_digits(db, cashier, customer, make_product):
    product = make_product(stock_quantity=10)
    first = sale_service.create_sale(db, _sale(customer, (product, 1, {})), cashier)
    prefix = first.invoice_number[:-4]
    first.invoice_number = f"{prefix}9999"
    db.commit()

    second = sale_service.create_sale(db, _sale(customer, (product, 1, {})), cashier)
    third = sale_service.create_sale(db, _sale(customer, (product, 1, {})), cashier)

    assert second.invoice_number == f"{prefix}10000"
    assert third.invoice_number == f"{prefix}10001"


def test_invoice_collision_is_retried_with_a_fresh_number(db, cashier, customer, mouse, monkeypatch):
    first = sale_service.create_sale(db, _sale(customer, (mouse, 1, {})), cashier)
    taken = first.invoice_number
    original = sale_service.next_invoice_number
    calls = []

    # Another till grabbed the number between our read and our commit
    def next_number(session, when):
        calls.append(when)
        return taken if len(calls) == 1 else original(session, when)

    monkeypatch.setattr(sale_service, "next_invoice_number", next_number)

    second = sale_service.create_sale(db, _sale(customer, (mouse, 2, {})), cashier)

    assert len(calls) == 2
    assert second.invoice_number != taken
    assert _stock(db, mouse) == 2
    assert db.query(Sale).count() == 2
    assert db.query(StockMovement).count() == 2


# =============================================================================
# CANCELLATION
# =============================================================================

def test_cancel_sale_restores_stock(db, manager, cashier, customer, mouse):
    sale = sale_service.create_sale(db, _sale(customer, (mouse, 3, {})), cashier)
    cancelled = sale_service.cancel_sale(db, sale.id, manager)

    assert cancelled.is_completed is False
    assert cancelled.notes.endswith("[CANCELLED]")
    assert _stock(db, mouse) == 5

    returns = db.query(StockMovement).filter(StockMovement.movement_type == StockMovementType.RETURN).all()
    assert len(returns) == 1
    assert returns[0].quantity == 3
    assert returns[0].reference == f"Sale cancellation - {sale.invoice_number}"


def test_cancel_twice_is_rejected(db, manager, cashier, customer, mouse):
    sale = sale_service.create_sale(db, _sale(customer, (mouse, 1, {})), cashier)
    sale_service.cancel_sale(db, sale.id, manager)
    with pytest.raises(ValidationFailed) as exc:
        sale_service.cancel_sale(db, sale.id, manager)
    assert exc.value.code == "sale_already_cancelled"
    assert _stock(db, mouse) == 5


def test_cancelled_sales_do_not_count_toward_total(db, manager, cashier, customer, mouse, keyboard):
    kept = sale_service.create_sale(db, _sale(customer, (keyboard, 1, {})), cashier)
    dropped = sale_service.create_sale(db, _sale(customer, (mouse, 1, {})), cashier)
    sale_service.cancel_sale(db, dropped.id, manager)

    assert sale_service.total_sales_amount(db) == kept.total_amount


# =============================================================================
# QUERIES
# =============================================================================

def test_list_sales_filters_and_pages(db, cashier, manager, customer, mouse):
    for _ in range(3):
        sale_service.create_sale(db, _sale(customer, (mouse, 1, {}), payment_method=PaymentMethod.CARD), cashier)
    sale_service.create_sale(db, _sale(customer, (mouse, 1, {})), manager)

    items, total = sale_service.list_sales(db, user_id=cashier.id, page=1, page_size=2)
    assert total == 3
    assert len(items) == 2
    assert all(s.user_id == cashier.id for s in items)

    _, everyone = sale_service.list_sales(db)
    assert everyone == 4


def test_date_range_must_be_ordered(db):
    with pytest.raises(ValidationFailed):
        sale_service.sales_by_date_range(
            db, datetime(2030, 2, 1, tzinfo=timezone.utc), datetime(2030, 1, 1, tzinfo=timezone.utc)
        )


# =============================================================================
# CONCURRENCY
# =============================================================================

def test_concurrent_sales_cannot_oversell(session_factory, db, cashier, customer, make_product):
    product = make_product(stock_quantity=5)
    product_id, customer_id, cashier_id = product.id, customer.id, cashier.id

    barrier = threading.Barrier(2, timeout=10)
    outcomes = []
    lock = threading.Lock()

    def till():
        session = session_factory()
        try:
            user = session.get(User, cashier_id)
            payload = SaleCreate(customer_id=customer_id, items=[{"product_id": product_id, "quantity": 3}])
            barrier.wait()
            try:
                sale_service.create_sale(session, payload, user)
                result = "ok"
            except ServiceError as exc:
                result = exc.code
        finally:
            session.close()
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=till) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    assert sorted(outcomes) == ["insufficient_stock", "ok"]
    assert _stock(db, product) == 2
    assert db.query(Sale).count() == 1
    assert db.query(StockMovement).count() == 1
