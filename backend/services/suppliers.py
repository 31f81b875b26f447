# services/suppliers.py
import logging
from typing import List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, joinedload

from models.product import Product
from models.supplier import Supplier
from schemas.supplier import SupplierCreate, SupplierUpdate
from services.errors import Conflict, NotFound

logger = logging.getLogger(__name__)

FIELDS = ("id", "name", "contact_person", "email", "phone", "address", "is_active", "created_at")


def _product_counts(db: Session, supplier_ids: List[int]) -> dict:
    if not supplier_ids:
        return {}
    rows = (
        db.query(Product.supplier_id, func.count(Product.id))
        .filter(Product.supplier_id.in_(supplier_ids), Product.is_active.is_(True))
        .group_by(Product.supplier_id)
        .all()
    )
    return dict(rows)


def with_counts(db: Session, suppliers: List[Supplier]) -> List[dict]:
    counts = _product_counts(db, [s.id for s in suppliers])
    out = []
    for s in suppliers:
        data = {f: getattr(s, f) for f in FIELDS}
        data["product_count"] = counts.get(s.id, 0)
        out.append(data)
    return out


def list_suppliers(
    db: Session, *, q: Optional[str] = None, active: Optional[bool] = True, page: int = 1, page_size: int = 50
):
    query = db.query(Supplier)
    if q:
        like = f"%{q}%"
        query = query.filter(
            or_(Supplier.name.ilike(like), Supplier.contact_person.ilike(like), Supplier.email.ilike(like))
        )
    if active is not None:
        query = query.filter(Supplier.is_active == active)
    total = query.count()
    items = query.order_by(Supplier.name.asc()).offset((page - 1) * page_size).limit(page_size).all()
    return items, total


def get_supplier(db: Session, supplier_id: int) -> Supplier:
    supplier = db.get(Supplier, supplier_id)
    if supplier is None:
        raise NotFound("Supplier not found", code="supplier_not_found")
    return supplier


def create_supplier(db: Session, payload: SupplierCreate) -> Supplier:
    data = payload.model_dump()
    if data.get("email"):
        data["email"] = data["email"].strip().lower()
    supplier = Supplier(**data)
    db.add(supplier)
    db.commit()
    db.refresh(supplier)
    return supplier


def update_supplier(db: Session, supplier_id: int, payload: SupplierUpdate) -> Supplier:
    supplier = get_supplier(db, supplier_id)
    for key, value in payload.model_dump(exclude_unset=True).items():
        if key in ("name", "is_active") and value is None:
            continue
        if key == "email" and value:
            value = value.strip().lower()
        setattr(supplier, key, value)
    db.commit()
    db.refresh(supplier)
    return supplier


def delete_supplier(db: Session, supplier_id: int) -> Supplier:
    """Deactivate a supplier that no active product still uses."""
    supplier = get_supplier(db, supplier_id)
    if _product_counts(db, [supplier.id]).get(supplier.id, 0):
        raise Conflict("Supplier has active products", code="supplier_in_use")
    supplier.is_active = False
    db.commit()
    logger.info("Supplier %s deactivated", supplier_id)
    return supplier


def supplier_products(db: Session, supplier_id: int) -> List[Product]:
    get_supplier(db, supplier_id)
    return (
        db.query(Product)
        .options(joinedload(Product.category), joinedload(Product.supplier))
        .filter(Product.supplier_id == supplier_id, Product.is_active.is_(True))
        .order_by(Product.name.asc())
        .all()
    )
