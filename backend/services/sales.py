# services/sales.py
"""
Sale recording and the read side of sales.

``create_sale`` is the one multi-table write in the system: a Sale row, one
SaleItem and one outbound StockMovement per line, the stock decrement for
every product and the customer's last purchase date either all land in a
single commit or none of them do.

Stock is taken with a conditional UPDATE (``... WHERE stock_quantity >= q``)
so the availability check and the decrement are one statement; two sales
racing for the same units cannot both pass.
"""
import logging
from collections import OrderedDict
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload, selectinload

from models.customer import Customer
from models.product import Product
from models.sale import Sale, SaleItem
from models.stock import StockMovement, StockMovementType
from models.users import User
from schemas.sale import SaleCreate
from services.errors import (
    Conflict, InactiveEntity, InsufficientStock, NotFound, ServiceError, ValidationFailed
)
from utils.dates import as_utc, utcnow
from utils.money import ZERO, line_total, money_sum, to_money

logger = logging.getLogger(__name__)

INVOICE_PREFIX = "INV"
INVOICE_ATTEMPTS = 3


def _sale_query(db: Session):
    return db.query(Sale).options(
        joinedload(Sale.customer),
        joinedload(Sale.user),
        selectinload(Sale.items).joinedload(SaleItem.product),
    )


def next_invoice_number(db: Session, when: datetime) -> str:
    """INV + YYYYMM + sequence (at least 4 digits) restarting every month."""
    prefix = f"{INVOICE_PREFIX}{when:%Y%m}"
    # Longest first: past 9999 the sequence widens and "...10000" sorts below "...9999" as text
    last = (
        db.query(Sale.invoice_number)
        .filter(Sale.invoice_number.like(f"{prefix}%"))
        .order_by(func.length(Sale.invoice_number).desc(), Sale.invoice_number.desc())
        .limit(1)
        .scalar()
    )
    seq = 1
    if last:
        try:
            seq = int(last[len(prefix):]) + 1
        except ValueError:
            seq = db.query(Sale).filter(Sale.invoice_number.like(f"{prefix}%")).count() + 1
    return f"{prefix}{seq:04d}"


def take_stock(db: Session, product: Product, quantity: int) -> None:
    """Atomically decrement stock; raises InsufficientStock when not enough is left."""
    result = db.execute(
        update(Product)
        .where(Product.id == product.id, Product.stock_quantity >= quantity)
        .values(stock_quantity=Product.stock_quantity - quantity, updated_at=func.now())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise InsufficientStock(
            f"Insufficient stock for product: {product.name}",
            product_id=product.id,
            requested=quantity,
        )


def return_stock(db: Session, product_id: int, quantity: int) -> None:
    db.execute(
        update(Product)
        .where(Product.id == product_id)
        .values(stock_quantity=Product.stock_quantity + quantity, updated_at=func.now())
        .execution_options(synchronize_session=False)
    )


def _load_customer(db: Session, customer_id: int) -> Customer:
    customer = db.get(Customer, customer_id)
    if customer is None:
        raise NotFound(f"Customer {customer_id} not found", code="customer_not_found")
    if not customer.is_active:
        raise InactiveEntity(f"Customer '{customer.name}' is inactive", code="inactive_customer")
    return customer


def _load_products(db: Session, payload: SaleCreate) -> "OrderedDict[int, Product]":
    products: "OrderedDict[int, Product]" = OrderedDict()
    requested = {}
    for line in payload.items:
        product = products.get(line.product_id)
        if product is None:
            product = db.get(Product, line.product_id)
            if product is None:
                raise NotFound(f"Product {line.product_id} not found", code="product_not_found")
            if not product.is_active:
                raise InactiveEntity(f"Product '{product.name}' is inactive", code="inactive_product")
            products[product.id] = product
        requested[product.id] = requested.get(product.id, 0) + line.quantity

    # Early, friendlier rejection; take_stock re-checks under the write lock
    for product_id, quantity in requested.items():
        product = products[product_id]
        if product.stock_quantity < quantity:
            raise InsufficientStock(
                f"Insufficient stock for product: {product.name}",
                product_id=product_id,
                requested=quantity,
                available=product.stock_quantity,
            )
    return products


def _build_items(payload: SaleCreate, products) -> List[dict]:
    lines = []
    for line in payload.items:
        product = products[line.product_id]
        unit_price = to_money(line.unit_price if line.unit_price is not None else product.price)
        discount = to_money(line.discount_percentage)
        lines.append({
            "product_id": product.id,
            "quantity": line.quantity,
            "unit_price": unit_price,
            "discount_percentage": discount,
            "total_price": line_total(line.quantity, unit_price, discount),
        })
    return lines


def create_sale(db: Session, payload: SaleCreate, cashier: User) -> Sale:
    customer = _load_customer(db, payload.customer_id)
    products = _load_products(db, payload)
    lines = _build_items(payload, products)

    subtotal = money_sum(line["total_price"] for line in lines)
    discount_amount = to_money(payload.discount_amount)
    tax_amount = to_money(payload.tax_amount)
    if discount_amount > subtotal:
        raise ValidationFailed("Sale discount cannot exceed the subtotal", code="invalid_discount")
    total_amount = subtotal - discount_amount + tax_amount

    customer_id, cashier_id = customer.id, cashier.id
    for attempt in range(1, INVOICE_ATTEMPTS + 1):
        now = utcnow()
        try:
            for line in lines:
                take_stock(db, products[line["product_id"]], line["quantity"])

            # Numbered only after the stock rows are locked so concurrent sales queue up here
            invoice_number = next_invoice_number(db, now)
            sale = Sale(
                invoice_number=invoice_number,
                customer_id=customer_id,
                user_id=cashier_id,
                sale_date=now,
                subtotal=subtotal,
                discount_amount=discount_amount,
                tax_amount=tax_amount,
                total_amount=total_amount,
                paid_amount=to_money(payload.paid_amount),
                payment_method=payload.payment_method,
                notes=payload.notes,
                is_completed=True,
                items=[SaleItem(**line) for line in lines],
            )
            db.add(sale)

            for line in lines:
                db.add(
                    StockMovement(
                        product_id=line["product_id"],
                        created_by=cashier_id,
                        movement_type=StockMovementType.SALE,
                        quantity=-line["quantity"],
                        reference=invoice_number,
                    )
                )

            customer.last_purchase_date = now
            db.commit()
            break
        except ServiceError as exc:
            db.rollback()
            logger.warning("Sale rejected for customer %s: %s", customer_id, exc.message)
            raise
        except IntegrityError as exc:
            db.rollback()
            if "invoice_number" not in str(exc.orig):
                logger.exception("Integrity error while recording sale")
                raise
            # Another till took the number; the rollback returned our stock, so start over
            logger.warning("Invoice number %s taken (attempt %s): %s", invoice_number, attempt, exc.orig)
            if attempt == INVOICE_ATTEMPTS:
                raise Conflict("Invoice number already taken, resubmit the sale", code="duplicate_invoice_number")
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Error creating sale")
            raise

    logger.info("Sale %s recorded: %s items, total %s", invoice_number, len(lines), total_amount)
    return get_sale(db, sale.id)


def cancel_sale(db: Session, sale_id: int, user: User) -> Sale:
    """Put the sold units back on the shelf and mark the sale as not completed."""
    sale = db.query(Sale).options(selectinload(Sale.items)).filter(Sale.id == sale_id).first()
    if sale is None:
        raise NotFound("Sale not found", code="sale_not_found")
    if not sale.is_completed:
        raise ValidationFailed("Sale is already cancelled", code="sale_already_cancelled")

    try:
        for item in sale.items:
            return_stock(db, item.product_id, item.quantity)
            db.add(
                StockMovement(
                    product_id=item.product_id,
                    created_by=user.id,
                    movement_type=StockMovementType.RETURN,
                    quantity=item.quantity,
                    reference=f"Sale cancellation - {sale.invoice_number}",
                )
            )
        sale.is_completed = False
        sale.notes = f"{sale.notes or ''} [CANCELLED]".strip()
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error cancelling sale: %s", sale_id)
        raise

    logger.info("Sale %s cancelled by user %s", sale.invoice_number, user.id)
    return get_sale(db, sale_id)


def get_sale(db: Session, sale_id: int) -> Sale:
    sale = _sale_query(db).filter(Sale.id == sale_id).first()
    if sale is None:
        raise NotFound("Sale not found", code="sale_not_found")
    return sale


def list_sales(
    db: Session,
    *,
    customer_id: Optional[int] = None,
    user_id: Optional[int] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    is_completed: Optional[bool] = None,
    page: int = 1,
    page_size: int = 20,
):
    query = db.query(Sale)
    if customer_id is not None:
        query = query.filter(Sale.customer_id == customer_id)
    if user_id is not None:
        query = query.filter(Sale.user_id == user_id)
    if date_from:
        query = query.filter(Sale.sale_date >= date_from)
    if date_to:
        query = query.filter(Sale.sale_date <= date_to)
    if is_completed is not None:
        query = query.filter(Sale.is_completed == is_completed)

    total = query.count()
    ids = [
        row.id for row in query.with_entities(Sale.id)
        .order_by(Sale.sale_date.desc(), Sale.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    ]
    items = []
    if ids:
        by_id = {s.id: s for s in _sale_query(db).filter(Sale.id.in_(ids)).all()}
        items = [by_id[i] for i in ids]
    return items, total


def sales_by_date_range(db: Session, date_from: datetime, date_to: datetime) -> List[Sale]:
    date_from, date_to = as_utc(date_from), as_utc(date_to)
    if date_from > date_to:
        raise ValidationFailed("date_from must not be after date_to", code="invalid_date_range")
    return (
        _sale_query(db)
        .filter(Sale.sale_date >= date_from, Sale.sale_date <= date_to)
        .order_by(Sale.sale_date.desc())
        .all()
    )


def total_sales_amount(db: Session, date_from: Optional[datetime] = None, date_to: Optional[datetime] = None):
    query = db.query(func.coalesce(func.sum(Sale.total_amount), 0)).filter(Sale.is_completed.is_(True))
    if date_from:
        query = query.filter(Sale.sale_date >= date_from)
    if date_to:
        query = query.filter(Sale.sale_date <= date_to)
    return to_money(query.scalar() or ZERO)
