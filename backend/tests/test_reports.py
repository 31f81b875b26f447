from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from models.sale import PaymentMethod
from schemas.sale import SaleCreate
from services import reports as report_service
from services import sales as sale_service
from services.errors import ValidationFailed


@pytest.fixture
def sales(db, cashier, manager, customer, mouse, keyboard):
    """Two completed sales and one cancelled one."""
    cash = sale_service.create_sale(
        db,
        SaleCreate(customer_id=customer.id, items=[{"product_id": mouse.id, "quantity": 2}], tax_amount="5.00"),
        cashier,
    )
    card = sale_service.create_sale(
        db,
        SaleCreate(
            customer_id=customer.id,
            payment_method=PaymentMethod.CARD,
            items=[{"product_id": keyboard.id, "quantity": 1}, {"product_id": mouse.id, "quantity": 1}],
            discount_amount="4.99",
        ),
        cashier,
    )
    cancelled = sale_service.create_sale(
        db, SaleCreate(customer_id=customer.id, items=[{"product_id": keyboard.id, "quantity": 3}]), cashier
    )
    sale_service.cancel_sale(db, cancelled.id, manager)
    return cash, card


def _window():
    now = datetime.now(timezone.utc)
    return now - timedelta(days=1), now + timedelta(minutes=1)


# =============================================================================
# SALES
# =============================================================================

def test_sales_report_counts_completed_sales_only(db, sales):
    report = report_service.sales_report(db, *_window())

    # 55.00 cash + 70.00 card
    assert report["total_transactions"] == 2
    assert report["total_sales"] == Decimal("125.00")
    assert report["total_discounts"] == Decimal("4.99")
    assert report["total_tax"] == Decimal("5.00")
    assert report["average_transaction_value"] == Decimal("62.50")

    breakdown = {row["payment_method"]: row for row in report["payment_method_breakdown"]}
    assert breakdown[PaymentMethod.CARD]["total_amount"] == Decimal("70.00")
    assert breakdown[PaymentMethod.CARD]["percentage"] == Decimal("56.00")
    assert breakdown[PaymentMethod.CASH]["percentage"] == Decimal("44.00")


def test_daily_sales_fill_empty_days(db, sales):
    date_from, date_to = _window()
    rows = report_service.daily_sales(db, date_from - timedelta(days=2), date_to)
    assert len(rows) >= 4
    assert sum(r["transaction_count"] for r in rows) == 2
    assert rows[0]["total_sales"] == Decimal("0.00")


def test_top_selling_products(db, sales, mouse):
    top = report_service.top_selling_products(db, *_window())
    assert top[0]["product_id"] == mouse.id
    assert top[0]["quantity_sold"] == 3
    assert top[0]["total_revenue"] == Decimal("75.00")
    assert top[0]["average_unit_price"] == Decimal("25.00")


def test_top_customers(db, sales, customer):
    top = report_service.top_customers(db, *_window())
    assert len(top) == 1
    assert top[0]["customer_id"] == customer.id
    assert top[0]["total_transactions"] == 2
    assert top[0]["total_spent"] == Decimal("125.00")


def test_profitability_uses_current_cost_price(db, sales):
    report = report_service.profitability_report(db, *_window())
    # revenue is line totals before sale-level discount and tax: 50.00 + 49.99 + 25.00
    assert report["total_revenue"] == Decimal("124.99")
    # 3 mice at 15.00 plus one keyboard at 30.00
    assert report["total_cost_of_goods_sold"] == Decimal("75.00")
    assert report["gross_profit"] == Decimal("49.99")
    assert report["gross_profit_margin"] == Decimal("40.00")


def test_reversed_range_is_rejected(db):
    date_from, date_to = _window()
    with pytest.raises(ValidationFailed) as exc:
        report_service.sales_report(db, date_to, date_from)
    assert exc.value.code == "invalid_date_range"


# =============================================================================
# STOCK
# =============================================================================

def test_inventory_report_values_stock_at_cost(db, mouse, keyboard):
    report = report_service.inventory_report(db)
    assert report["total_products"] == 2
    # 5 x 15.00 + 10 x 30.00
    assert report["total_inventory_value"] == Decimal("375.00")
    assert report["low_stock_products_count"] == 0


def test_stock_alert_levels(db, make_product):
    make_product(name="Webcam", sku="CAM-001", barcode="111", stock_quantity=1, min_stock_level=2)
    make_product(name="Headset", sku="HEA-001", barcode="222", stock_quantity=0, min_stock_level=1)
    make_product(name="Monitor", sku="MON-001", barcode="333", stock_quantity=9, min_stock_level=2)

    alerts = report_service.stock_alerts(db)
    assert [(a["product_name"], a["alert_level"]) for a in alerts] == [("Headset", "Critical"), ("Webcam", "Low")]


# =============================================================================
# HTTP
# =============================================================================

def test_reports_are_manager_only(client, cashier_headers, manager_headers):
    assert client.get("/reports/sales", headers=cashier_headers).status_code == 403
    assert client.get("/reports/inventory", headers=cashier_headers).status_code == 403
    assert client.get("/reports/sales", headers=manager_headers).status_code == 200


def test_stock_alerts_open_to_cashiers(client, cashier_headers, make_product):
    make_product(stock_quantity=0)
    resp = client.get("/reports/stock-alerts", headers=cashier_headers)
    assert resp.status_code == 200
    assert resp.json()[0]["alert_level"] == "Critical"


def test_dashboard(client, cashier_headers, sales):
    resp = client.get("/dashboard", headers=cashier_headers)
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert Decimal(body["today_sales"]) == Decimal("125.00")
    assert body["today_transactions"] == 2
    assert body["total_products"] == 2
    assert body["total_customers"] == 1
    assert len(body["weekly_sales"]) == 7
    assert len(body["recent_sales"]) == 2


def test_report_range_in_query(client, manager_headers, sales):
    date_from, date_to = _window()
    resp = client.get(
        "/reports/profitability",
        params={"date_from": date_from.isoformat(), "date_to": date_to.isoformat()},
        headers=manager_headers,
    )
    assert resp.status_code == 200
    assert Decimal(resp.json()["gross_profit"]) == Decimal("49.99")


# =============================================================================
# ACTIVITY LOG
# =============================================================================

def test_logs_are_admin_only(client, manager_headers):
    assert client.get("/logs", headers=manager_headers).status_code == 403


def test_mutations_show_up_in_logs(client, admin_headers, manager_headers, customer, mouse):
    client.post(
        "/sales", json={"customer_id": customer.id, "items": [{"product_id": mouse.id, "quantity": 1}]},
        headers=manager_headers,
    )
    body = client.get("/logs", params={"resource": "sales"}, headers=admin_headers).json()
    assert body["total"] == 1
    assert body["items"][0]["action"] == "SALE_CREATE"
    assert body["items"][0]["status"] == "SUCCESS"
    assert body["items"][0]["username"] == "manager"
