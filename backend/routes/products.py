# backend/routes/products.py
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from database import get_db
from models.users import User
import schemas.product as product_schemas
from schemas.stock import StockMovementPage, StockMovementResponse
from services import products as product_service
from utils.audit import client_ip, write_log
from utils.tokenJWT import get_current_user, is_manager

router = APIRouter(prefix="/products", tags=["Products"])


def _can_edit(user: User) -> bool:
    return is_manager(user)


# =========================
# PRODUCT LIST
# =========================
@router.get("", response_model=product_schemas.ProductListPage)
def list_products(
    q: Optional[str] = Query(None, description="Search by name, SKU or barcode"),
    category_id: Optional[int] = Query(None),
    supplier_id: Optional[int] = Query(None),
    active: Optional[bool] = Query(True),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=500),
    sort_by: str = Query("id"),
    order: str = Query("asc", pattern="^(asc|desc)$"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    items, total = product_service.list_products(
        db, q=q, category_id=category_id, supplier_id=supplier_id, active=active,
        sort_by=sort_by, order=order, page=page, page_size=page_size,
    )
    return {"items": items, "total": total, "page": page, "page_size": page_size}


@router.get("/low-stock", response_model=List[product_schemas.ProductResponse])
def low_stock(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return product_service.low_stock_products(db)


@router.get("/out-of-stock", response_model=List[product_schemas.ProductResponse])
def out_of_stock(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return product_service.out_of_stock_products(db)


# Scanner lookups used at the till
@router.get("/sku/{sku}", response_model=product_schemas.ProductResponse)
def get_by_sku(sku: str, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return product_service.get_product_by_sku(db, sku)


@router.get("/barcode/{barcode}", response_model=product_schemas.ProductResponse)
def get_by_barcode(barcode: str, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return product_service.get_product_by_barcode(db, barcode)


# =========================
# SINGLE PRODUCT
# =========================
@router.get("/{product_id}", response_model=product_schemas.ProductResponse)
def get_product(product_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return product_service.get_product(db, product_id)


@router.post("", response_model=product_schemas.ProductResponse, status_code=201)
def create_product(
    payload: product_schemas.ProductCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if not _can_edit(current_user):
        raise HTTPException(status_code=403, detail="Not authorized to add products")

    product = product_service.create_product(db, payload)
    write_log(
        db, user_id=current_user.id, action="PRODUCT_CREATE", resource="products",
        status="SUCCESS", ip=client_ip(request), meta={"id": product.id, "sku": product.sku},
    )
    return product


@router.put("/{product_id}", response_model=product_schemas.ProductResponse)
def update_product(
    product_id: int,
    payload: product_schemas.ProductUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if not _can_edit(current_user):
        raise HTTPException(status_code=403, detail="Not authorized")

    product = product_service.update_product(db, product_id, payload)
    write_log(
        db, user_id=current_user.id, action="PRODUCT_UPDATE", resource="products",
        status="SUCCESS", ip=client_ip(request),
        meta={"id": product.id, "fields": sorted(payload.model_dump(exclude_unset=True))},
    )
    return product


@router.delete("/{product_id}")
def delete_product(
    product_id: int,
    request: Request,
    hard: bool = Query(False, description="Remove the row instead of deactivating it"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if not _can_edit(current_user):
        raise HTTPException(403, "Not authorized")

    name = product_service.get_product(db, product_id).name
    product_service.delete_product(db, product_id, hard=hard)
    write_log(
        db, user_id=current_user.id, action="PRODUCT_DELETE" if hard else "PRODUCT_DEACTIVATE",
        resource="products", status="SUCCESS", ip=client_ip(request), meta={"id": product_id},
    )
    if hard:
        return {"detail": f"Product '{name}' deleted"}
    return {"detail": f"Product '{name}' deactivated"}


# =========================
# STOCK
# =========================
@router.post("/{product_id}/stock", response_model=StockMovementResponse)
def update_stock(
    product_id: int,
    payload: product_schemas.StockUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if not _can_edit(current_user):
        raise HTTPException(status_code=403, detail="Not authorized to change stock")

    movement = product_service.update_stock(db, product_id, payload, current_user)
    write_log(
        db, user_id=current_user.id, action="STOCK_UPDATE", resource="products",
        status="SUCCESS", ip=client_ip(request),
        meta={"id": product_id, "type": payload.movement_type.value, "delta": movement.quantity},
    )
    return movement


@router.get("/{product_id}/movements", response_model=StockMovementPage)
def product_movements(
    product_id: int,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    product_service.get_product(db, product_id)
    items, total = product_service.stock_movements(db, product_id=product_id, page=page, page_size=page_size)
    return {"items": items, "total": total, "page": page, "page_size": page_size}
