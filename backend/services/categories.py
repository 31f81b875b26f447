# services/categories.py
import logging
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from models.category import Category
from models.product import Product
from schemas.category import CategoryCreate, CategoryUpdate
from services.errors import Conflict, NotFound

logger = logging.getLogger(__name__)


def _product_counts(db: Session, category_ids: List[int]) -> dict:
    if not category_ids:
        return {}
    rows = (
        db.query(Product.category_id, func.count(Product.id))
        .filter(Product.category_id.in_(category_ids), Product.is_active.is_(True))
        .group_by(Product.category_id)
        .all()
    )
    return {cid: count for cid, count in rows}


def with_counts(db: Session, categories: List[Category]) -> List[dict]:
    """Attach the number of active products to each category for the response."""
    counts = _product_counts(db, [c.id for c in categories])
    return [
        {
            "id": c.id,
            "name": c.name,
            "description": c.description,
            "is_active": c.is_active,
            "created_at": c.created_at,
            "product_count": counts.get(c.id, 0),
        }
        for c in categories
    ]


def list_categories(
    db: Session, *, q: Optional[str] = None, active: Optional[bool] = True, page: int = 1, page_size: int = 50
):
    query = db.query(Category)
    if q:
        query = query.filter(Category.name.ilike(f"%{q}%"))
    if active is not None:
        query = query.filter(Category.is_active == active)
    total = query.count()
    items = query.order_by(Category.name.asc()).offset((page - 1) * page_size).limit(page_size).all()
    return items, total


def get_category(db: Session, category_id: int) -> Category:
    category = db.get(Category, category_id)
    if category is None:
        raise NotFound("Category not found", code="category_not_found")
    return category


def _name_taken(db: Session, name: str, exclude_id: Optional[int] = None) -> bool:
    q = db.query(Category.id).filter(func.lower(Category.name) == name.strip().lower())
    if exclude_id is not None:
        q = q.filter(Category.id != exclude_id)
    return q.first() is not None


def create_category(db: Session, payload: CategoryCreate) -> Category:
    if _name_taken(db, payload.name):
        raise Conflict("Category name already exists", code="duplicate_category")
    category = Category(name=payload.name.strip(), description=payload.description)
    db.add(category)
    db.commit()
    db.refresh(category)
    return category


def update_category(db: Session, category_id: int, payload: CategoryUpdate) -> Category:
    category = get_category(db, category_id)
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("name") and _name_taken(db, changes["name"], exclude_id=category.id):
        raise Conflict("Category name already exists", code="duplicate_category")
    for key, value in changes.items():
        if value is None and key != "description":
            continue
        setattr(category, key, value.strip() if key == "name" else value)
    db.commit()
    db.refresh(category)
    return category


def delete_category(db: Session, category_id: int) -> Category:
    """Deactivate a category that no active product still uses."""
    category = get_category(db, category_id)
    if _product_counts(db, [category.id]).get(category.id, 0):
        raise Conflict("Category has active products", code="category_in_use")
    category.is_active = False
    db.commit()
    logger.info("Category %s deactivated", category_id)
    return category


def category_products(db: Session, category_id: int) -> List[Product]:
    get_category(db, category_id)
    return (
        db.query(Product)
        .options(joinedload(Product.category), joinedload(Product.supplier))
        .filter(Product.category_id == category_id, Product.is_active.is_(True))
        .order_by(Product.name.asc())
        .all()
    )
