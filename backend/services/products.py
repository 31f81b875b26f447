# services/products.py
import logging
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from models.category import Category
from models.product import Product
from models.sale import SaleItem
from models.stock import StockMovement, StockMovementType, INBOUND_TYPES, OUTBOUND_TYPES
from models.supplier import Supplier
from models.users import User
from schemas.product import ProductCreate, ProductUpdate, StockUpdate
from services.errors import Conflict, InactiveEntity, InsufficientStock, NotFound

logger = logging.getLogger(__name__)

SORTABLE = {
    "id": Product.id,
    "name": Product.name,
    "sku": Product.sku,
    "price": Product.price,
    "stock_quantity": Product.stock_quantity,
    "created_at": Product.created_at,
}


def _norm_code(code: Optional[str]) -> Optional[str]:
    if code is None:
        return None
    c = code.strip().upper()
    return c if c else None


def _product_query(db: Session):
    return db.query(Product).options(joinedload(Product.category), joinedload(Product.supplier))


def _check_links(db: Session, category_id: Optional[int], supplier_id: Optional[int]) -> None:
    if category_id is not None:
        category = db.get(Category, category_id)
        if category is None:
            raise NotFound(f"Category {category_id} not found", code="category_not_found")
        if not category.is_active:
            raise InactiveEntity(f"Category '{category.name}' is inactive", code="inactive_category")
    if supplier_id is not None:
        supplier = db.get(Supplier, supplier_id)
        if supplier is None:
            raise NotFound(f"Supplier {supplier_id} not found", code="supplier_not_found")
        if not supplier.is_active:
            raise InactiveEntity(f"Supplier '{supplier.name}' is inactive", code="inactive_supplier")


def _check_unique(db: Session, sku: Optional[str], barcode: Optional[str], exclude_id: Optional[int] = None):
    if sku is not None:
        q = db.query(Product.id).filter(Product.sku == sku)
        if exclude_id is not None:
            q = q.filter(Product.id != exclude_id)
        if q.first():
            raise Conflict("SKU already exists", code="duplicate_sku")
    if barcode is not None:
        q = db.query(Product.id).filter(Product.barcode == barcode)
        if exclude_id is not None:
            q = q.filter(Product.id != exclude_id)
        if q.first():
            raise Conflict("Barcode already exists", code="duplicate_barcode")


def list_products(
    db: Session,
    *,
    q: Optional[str] = None,
    category_id: Optional[int] = None,
    supplier_id: Optional[int] = None,
    active: Optional[bool] = True,
    sort_by: str = "id",
    order: str = "asc",
    page: int = 1,
    page_size: int = 20,
):
    query = _product_query(db)
    if q:
        like = f"%{q}%"
        query = query.filter(or_(Product.name.ilike(like), Product.sku.ilike(like), Product.barcode.ilike(like)))
    if category_id is not None:
        query = query.filter(Product.category_id == category_id)
    if supplier_id is not None:
        query = query.filter(Product.supplier_id == supplier_id)
    if active is not None:
        query = query.filter(Product.is_active == active)

    sort_col = SORTABLE.get(sort_by.lower(), Product.id)
    query = query.order_by(sort_col.asc() if order == "asc" else sort_col.desc())

    total = query.count()
    items = query.offset((page - 1) * page_size).limit(page_size).all()
    return items, total


def get_product(db: Session, product_id: int) -> Product:
    product = _product_query(db).filter(Product.id == product_id).first()
    if product is None:
        raise NotFound("Product not found", code="product_not_found")
    return product


def get_product_by_sku(db: Session, sku: str) -> Product:
    product = _product_query(db).filter(Product.sku == _norm_code(sku), Product.is_active.is_(True)).first()
    if product is None:
        raise NotFound("Product not found", code="product_not_found")
    return product


def get_product_by_barcode(db: Session, barcode: str) -> Product:
    product = _product_query(db).filter(Product.barcode == barcode.strip(), Product.is_active.is_(True)).first()
    if product is None:
        raise NotFound("Product not found", code="product_not_found")
    return product


def create_product(db: Session, payload: ProductCreate) -> Product:
    sku = _norm_code(payload.sku)
    barcode = payload.barcode.strip()
    _check_unique(db, sku, barcode)
    _check_links(db, payload.category_id, payload.supplier_id)

    data = payload.model_dump()
    data.update(sku=sku, barcode=barcode)
    product = Product(**data)
    db.add(product)
    db.commit()
    logger.info("Product %s created (sku=%s)", product.id, product.sku)
    return get_product(db, product.id)


def update_product(db: Session, product_id: int, payload: ProductUpdate) -> Product:
    product = db.get(Product, product_id)
    if product is None:
        raise NotFound("Product not found", code="product_not_found")

    changes = payload.model_dump(exclude_unset=True)
    if "sku" in changes:
        changes["sku"] = _norm_code(changes["sku"])
    if "barcode" in changes and changes["barcode"] is not None:
        changes["barcode"] = changes["barcode"].strip()

    _check_unique(
        db,
        changes.get("sku") if changes.get("sku") != product.sku else None,
        changes.get("barcode") if changes.get("barcode") != product.barcode else None,
        exclude_id=product.id,
    )
    _check_links(
        db,
        changes.get("category_id") if changes.get("category_id") != product.category_id else None,
        changes.get("supplier_id") if changes.get("supplier_id") != product.supplier_id else None,
    )

    for key, value in changes.items():
        if value is None and key not in ("description", "image_url"):
            continue
        setattr(product, key, value)
    db.commit()
    return get_product(db, product.id)


def delete_product(db: Session, product_id: int, hard: bool = False) -> Product:
    """Deactivate a product; ``hard`` removes it only when no sale or stock movement references it."""
    product = db.get(Product, product_id)
    if product is None:
        raise NotFound("Product not found", code="product_not_found")

    if not hard:
        product.is_active = False
        db.commit()
        return product

    sold = db.query(SaleItem.id).filter(SaleItem.product_id == product.id).first()
    moved = db.query(StockMovement.id).filter(StockMovement.product_id == product.id).first()
    if sold or moved:
        raise Conflict(
            "Product has sales or stock history and cannot be deleted; deactivate it instead",
            code="product_in_use",
        )
    db.delete(product)
    db.commit()
    logger.info("Product %s hard-deleted", product_id)
    return product


def low_stock_products(db: Session) -> List[Product]:
    return (
        _product_query(db)
        .filter(Product.is_active.is_(True), Product.stock_quantity <= Product.min_stock_level)
        .order_by(Product.stock_quantity.asc(), Product.name.asc())
        .all()
    )


def out_of_stock_products(db: Session) -> List[Product]:
    return (
        _product_query(db)
        .filter(Product.is_active.is_(True), Product.stock_quantity == 0)
        .order_by(Product.name.asc())
        .all()
    )


def update_stock(db: Session, product_id: int, payload: StockUpdate, user: User) -> StockMovement:
    """
    Record a manual stock change.

    PURCHASE and RETURN add ``quantity``; SALE, TRANSFER and DAMAGE remove it;
    ADJUSTMENT sets the on-hand level to ``quantity`` (a stock count). The
    movement row always stores the signed delta that was applied.
    """
    product = db.query(Product).filter(Product.id == product_id).with_for_update().first()
    if product is None:
        raise NotFound("Product not found", code="product_not_found")

    previous = product.stock_quantity
    if payload.movement_type in INBOUND_TYPES:
        new_level = previous + payload.quantity
    elif payload.movement_type in OUTBOUND_TYPES:
        new_level = previous - payload.quantity
    else:
        new_level = payload.quantity

    if new_level < 0:
        raise InsufficientStock(f"Insufficient stock for product: {product.name}", product_id=product.id)

    movement = StockMovement(
        product_id=product.id,
        created_by=user.id,
        movement_type=payload.movement_type,
        quantity=new_level - previous,
        reference=payload.reference,
        notes=payload.notes,
    )
    product.stock_quantity = new_level
    db.add(movement)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error updating stock for product: %s", product_id)
        raise
    db.refresh(movement)
    return movement


def receive_delivery(db: Session, items, user: User, reference: Optional[str] = None, notes: Optional[str] = None):
    """Book a supplier delivery: one PURCHASE movement per line, one commit."""
    movements = []
    for item in items:
        product = db.query(Product).filter(Product.id == item.product_id).with_for_update().first()
        if product is None:
            db.rollback()
            raise NotFound(f"Product {item.product_id} not found", code="product_not_found")
        product.stock_quantity += item.quantity
        movement = StockMovement(
            product_id=product.id,
            created_by=user.id,
            movement_type=StockMovementType.PURCHASE,
            quantity=item.quantity,
            reference=reference,
            notes=notes,
        )
        db.add(movement)
        movements.append(movement)
    db.commit()
    for m in movements:
        db.refresh(m)
    return movements


def stock_movements(
    db: Session,
    *,
    product_id: Optional[int] = None,
    movement_type: Optional[StockMovementType] = None,
    q: Optional[str] = None,
    page: int = 1,
    page_size: int = 20,
):
    query = db.query(StockMovement).options(joinedload(StockMovement.product), joinedload(StockMovement.user))
    if product_id is not None:
        query = query.filter(StockMovement.product_id == product_id)
    if movement_type is not None:
        query = query.filter(StockMovement.movement_type == movement_type)
    if q:
        like = f"%{q}%"
        query = query.join(Product, StockMovement.product_id == Product.id).filter(
            or_(Product.name.ilike(like), Product.sku.ilike(like))
        )
    query = query.order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
    total = query.count()
    items = query.offset((page - 1) * page_size).limit(page_size).all()
    return items, total
