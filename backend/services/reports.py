# services/reports.py
"""
Read-only aggregation over sales and stock.

Only completed sales count toward revenue; cancelled sales stay in the
history but drop out of every figure here. Amounts come back from the
database as Numeric sums and are re-quantized with ``to_money`` so SQLite's
float arithmetic never leaks into a response.
"""
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from models.category import Category
from models.customer import Customer
from models.product import Product
from models.sale import Sale, SaleItem
from services.errors import ValidationFailed
from services.sales import list_sales
from utils.dates import as_utc, utcnow
from utils.money import ZERO, HUNDRED, to_money

LOW_STOCK_ALERT_LIMIT = 10
TOP_LIMIT = 5


def _start_of_day(d: date) -> datetime:
    return datetime.combine(d, time.min, tzinfo=timezone.utc)


def _check_range(date_from: datetime, date_to: datetime):
    date_from, date_to = as_utc(date_from), as_utc(date_to)
    if date_from > date_to:
        raise ValidationFailed("date_from must not be after date_to", code="invalid_date_range")
    return date_from, date_to


def _percent(part: Decimal, whole: Decimal) -> Decimal:
    if not whole:
        return ZERO
    return to_money(part / whole * HUNDRED)


def _completed(query, date_from: Optional[datetime], date_to: Optional[datetime]):
    query = query.filter(Sale.is_completed.is_(True))
    if date_from is not None:
        query = query.filter(Sale.sale_date >= date_from)
    if date_to is not None:
        query = query.filter(Sale.sale_date <= date_to)
    return query


# === Sales ===

def daily_sales(db: Session, date_from: datetime, date_to: datetime) -> List[dict]:
    """One row per calendar day in the range, days without sales included as zero."""
    day = func.date(Sale.sale_date)
    rows = (
        _completed(db.query(day.label("d"), func.count(Sale.id), func.sum(Sale.total_amount)), date_from, date_to)
        .group_by(day)
        .all()
    )
    by_day = {str(d)[:10]: (count, to_money(amount)) for d, count, amount in rows}

    out = []
    current = date_from.date()
    while current <= date_to.date():
        count, amount = by_day.get(current.isoformat(), (0, ZERO))
        out.append({"date": current, "total_sales": amount, "transaction_count": count})
        current += timedelta(days=1)
    return out


def top_selling_products(
    db: Session, date_from: Optional[datetime] = None, date_to: Optional[datetime] = None, limit: int = TOP_LIMIT
) -> List[dict]:
    qty = func.sum(SaleItem.quantity)
    query = (
        db.query(Product.id, Product.name, Category.name, qty, func.sum(SaleItem.total_price))
        .join(SaleItem, SaleItem.product_id == Product.id)
        .join(Sale, Sale.id == SaleItem.sale_id)
        .outerjoin(Category, Category.id == Product.category_id)
    )
    rows = (
        _completed(query, date_from, date_to)
        .group_by(Product.id, Product.name, Category.name)
        .order_by(qty.desc(), Product.name.asc())
        .limit(limit)
        .all()
    )
    out = []
    for product_id, name, category_name, quantity, revenue in rows:
        revenue = to_money(revenue)
        out.append({
            "product_id": product_id,
            "product_name": name,
            "category_name": category_name,
            "quantity_sold": int(quantity or 0),
            "total_revenue": revenue,
            "average_unit_price": to_money(revenue / quantity) if quantity else ZERO,
        })
    return out


def top_customers(
    db: Session, date_from: Optional[datetime] = None, date_to: Optional[datetime] = None, limit: int = TOP_LIMIT
) -> List[dict]:
    spent = func.sum(Sale.total_amount)
    query = db.query(
        Customer.id, Customer.name, Customer.email, func.count(Sale.id), spent, func.max(Sale.sale_date)
    ).join(Sale, Sale.customer_id == Customer.id)
    rows = (
        _completed(query, date_from, date_to)
        .group_by(Customer.id, Customer.name, Customer.email)
        .order_by(spent.desc())
        .limit(limit)
        .all()
    )
    return [
        {
            "customer_id": cid,
            "customer_name": name,
            "email": email,
            "total_transactions": count,
            "total_spent": to_money(amount),
            "last_purchase_date": last,
        }
        for cid, name, email, count, amount, last in rows
    ]


def sales_report(db: Session, date_from: datetime, date_to: datetime) -> dict:
    date_from, date_to = _check_range(date_from, date_to)

    count, total, discounts, tax = _completed(
        db.query(
            func.count(Sale.id),
            func.sum(Sale.total_amount),
            func.sum(Sale.discount_amount),
            func.sum(Sale.tax_amount),
        ),
        date_from,
        date_to,
    ).one()
    total = to_money(total)

    breakdown = []
    rows = (
        _completed(db.query(Sale.payment_method, func.count(Sale.id), func.sum(Sale.total_amount)), date_from, date_to)
        .group_by(Sale.payment_method)
        .all()
    )
    for method, method_count, amount in rows:
        amount = to_money(amount)
        breakdown.append({
            "payment_method": method,
            "transaction_count": method_count,
            "total_amount": amount,
            "percentage": _percent(amount, total),
        })
    breakdown.sort(key=lambda r: r["total_amount"], reverse=True)

    return {
        "report_date": utcnow(),
        "date_from": date_from,
        "date_to": date_to,
        "total_sales": total,
        "total_transactions": count,
        "total_discounts": to_money(discounts),
        "total_tax": to_money(tax),
        "average_transaction_value": to_money(total / count) if count else ZERO,
        "payment_method_breakdown": breakdown,
        "daily_sales": daily_sales(db, date_from, date_to),
        "top_selling_products": top_selling_products(db, date_from, date_to),
    }


def profitability_report(db: Session, date_from: datetime, date_to: datetime) -> dict:
    date_from, date_to = _check_range(date_from, date_to)
    rows = _completed(
        db.query(SaleItem.quantity, SaleItem.total_price, Product.cost_price)
        .join(Sale, Sale.id == SaleItem.sale_id)
        .join(Product, Product.id == SaleItem.product_id),
        date_from,
        date_to,
    ).all()

    revenue = ZERO
    cogs = ZERO
    for quantity, line_total, cost_price in rows:
        revenue += to_money(line_total)
        cogs += to_money(Decimal(quantity) * to_money(cost_price))
    profit = revenue - cogs

    return {
        "report_date": utcnow(),
        "date_from": date_from,
        "date_to": date_to,
        "total_revenue": revenue,
        "total_cost_of_goods_sold": cogs,
        "gross_profit": profit,
        "gross_profit_margin": _percent(profit, revenue),
    }


# === Stock ===

def inventory_report(db: Session) -> dict:
    products = (
        db.query(Product)
        .options(joinedload(Product.category))
        .filter(Product.is_active.is_(True))
        .order_by(Product.name.asc())
        .all()
    )
    levels = []
    value = ZERO
    for p in products:
        stock_value = to_money(Decimal(p.stock_quantity) * to_money(p.cost_price))
        value += stock_value
        levels.append({
            "product_id": p.id,
            "product_name": p.name,
            "sku": p.sku,
            "category_name": p.category_name,
            "current_stock": p.stock_quantity,
            "min_stock_level": p.min_stock_level,
            "is_low_stock": p.is_low_stock,
            "is_out_of_stock": p.stock_quantity == 0,
            "unit_price": to_money(p.price),
            "stock_value": stock_value,
        })
    return {
        "report_date": utcnow(),
        "total_products": len(products),
        "total_inventory_value": value,
        "low_stock_products_count": sum(1 for row in levels if row["is_low_stock"]),
        "out_of_stock_products_count": sum(1 for row in levels if row["is_out_of_stock"]),
        "product_stock_levels": levels,
    }


def stock_alerts(db: Session, limit: Optional[int] = None) -> List[dict]:
    query = (
        db.query(Product)
        .filter(Product.is_active.is_(True), Product.stock_quantity <= Product.min_stock_level)
        .order_by(Product.stock_quantity.asc(), Product.name.asc())
    )
    if limit:
        query = query.limit(limit)
    return [
        {
            "product_id": p.id,
            "product_name": p.name,
            "sku": p.sku,
            "current_stock": p.stock_quantity,
            "min_stock_level": p.min_stock_level,
            "is_out_of_stock": p.stock_quantity == 0,
            "alert_level": "Critical" if p.stock_quantity == 0 else "Low",
        }
        for p in query.all()
    ]


# === Dashboard ===

def dashboard(db: Session, now: Optional[datetime] = None) -> dict:
    now = now or utcnow()
    today = _start_of_day(now.date())
    month_start = _start_of_day(now.date().replace(day=1))

    today_count, today_total = _completed(
        db.query(func.count(Sale.id), func.sum(Sale.total_amount)), today, now
    ).one()
    month_total = _completed(db.query(func.sum(Sale.total_amount)), month_start, now).scalar()

    active_products = db.query(Product).filter(Product.is_active.is_(True))
    recent, _ = list_sales(db, is_completed=True, page=1, page_size=5)

    return {
        "today_sales": to_money(today_total),
        "month_sales": to_money(month_total),
        "today_transactions": today_count,
        "total_products": active_products.count(),
        "low_stock_products": active_products.filter(Product.stock_quantity <= Product.min_stock_level).count(),
        "total_customers": db.query(Customer).filter(Customer.is_active.is_(True)).count(),
        "weekly_sales": daily_sales(db, today - timedelta(days=6), now),
        "stock_alerts": stock_alerts(db, limit=LOW_STOCK_ALERT_LIMIT),
        "recent_sales": recent,
    }
