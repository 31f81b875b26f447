# services/customers.py
import logging
from typing import List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, joinedload, selectinload

from models.customer import Customer
from models.sale import Sale, SaleItem
from schemas.customer import CustomerCreate, CustomerUpdate
from services.errors import Conflict, NotFound
from utils.money import to_money

logger = logging.getLogger(__name__)

FIELDS = (
    "id", "name", "email", "phone", "address", "loyalty_points", "credit_balance",
    "is_active", "created_at", "last_purchase_date",
)


def _purchase_totals(db: Session, customer_ids: List[int]) -> dict:
    if not customer_ids:
        return {}
    rows = (
        db.query(Sale.customer_id, func.count(Sale.id), func.coalesce(func.sum(Sale.total_amount), 0))
        .filter(Sale.customer_id.in_(customer_ids), Sale.is_completed.is_(True))
        .group_by(Sale.customer_id)
        .all()
    )
    return {cid: (count, to_money(spent)) for cid, count, spent in rows}


def with_totals(db: Session, customers: List[Customer]) -> List[dict]:
    """Customer rows plus completed-sale count and amount spent."""
    totals = _purchase_totals(db, [c.id for c in customers])
    out = []
    for c in customers:
        data = {f: getattr(c, f) for f in FIELDS}
        count, spent = totals.get(c.id, (0, to_money(0)))
        data.update(total_purchases=count, total_spent=spent)
        out.append(data)
    return out


def _email_taken(db: Session, email: str, exclude_id: Optional[int] = None) -> bool:
    q = db.query(Customer.id).filter(func.lower(Customer.email) == email)
    if exclude_id is not None:
        q = q.filter(Customer.id != exclude_id)
    return q.first() is not None


def list_customers(
    db: Session, *, q: Optional[str] = None, active: Optional[bool] = True, page: int = 1, page_size: int = 20
):
    query = db.query(Customer)
    if q:
        like = f"%{q}%"
        query = query.filter(or_(Customer.name.ilike(like), Customer.email.ilike(like), Customer.phone.ilike(like)))
    if active is not None:
        query = query.filter(Customer.is_active == active)
    total = query.count()
    items = query.order_by(Customer.name.asc()).offset((page - 1) * page_size).limit(page_size).all()
    return items, total


def get_customer(db: Session, customer_id: int) -> Customer:
    customer = db.get(Customer, customer_id)
    if customer is None:
        raise NotFound("Customer not found", code="customer_not_found")
    return customer


def create_customer(db: Session, payload: CustomerCreate) -> Customer:
    data = payload.model_dump()
    if data.get("email"):
        data["email"] = data["email"].strip().lower()
        if _email_taken(db, data["email"]):
            raise Conflict("Customer email already exists", code="duplicate_email")
    customer = Customer(**data)
    db.add(customer)
    db.commit()
    db.refresh(customer)
    return customer


def update_customer(db: Session, customer_id: int, payload: CustomerUpdate) -> Customer:
    customer = get_customer(db, customer_id)
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("email"):
        changes["email"] = changes["email"].strip().lower()
        if _email_taken(db, changes["email"], exclude_id=customer.id):
            raise Conflict("Customer email already exists", code="duplicate_email")
    for key, value in changes.items():
        if value is None and key in ("name", "is_active", "loyalty_points", "credit_balance"):
            continue
        setattr(customer, key, value)
    db.commit()
    db.refresh(customer)
    return customer


def delete_customer(db: Session, customer_id: int) -> Customer:
    customer = get_customer(db, customer_id)
    customer.is_active = False
    db.commit()
    logger.info("Customer %s deactivated", customer_id)
    return customer


def purchase_history(db: Session, customer_id: int) -> List[Sale]:
    get_customer(db, customer_id)
    return (
        db.query(Sale)
        .options(
            joinedload(Sale.customer),
            joinedload(Sale.user),
            selectinload(Sale.items).joinedload(SaleItem.product),
        )
        .filter(Sale.customer_id == customer_id)
        .order_by(Sale.sale_date.desc(), Sale.id.desc())
        .all()
    )
