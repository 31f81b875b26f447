# backend/routes/suppliers.py
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from database import get_db
from models.users import User, UserRole
from schemas.product import ProductResponse
from schemas.supplier import SupplierCreate, SupplierPage, SupplierResponse, SupplierUpdate
from services import suppliers as supplier_service
from utils.audit import client_ip, write_log
from utils.tokenJWT import get_current_user, is_manager

router = APIRouter(prefix="/suppliers", tags=["Suppliers"])


@router.get("", response_model=SupplierPage)
def list_suppliers(
    q: Optional[str] = Query(None, description="Search by name, contact or email"),
    active: Optional[bool] = Query(True),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    items, total = supplier_service.list_suppliers(db, q=q, active=active, page=page, page_size=page_size)
    return {"items": supplier_service.with_counts(db, items), "total": total, "page": page, "page_size": page_size}


@router.get("/{supplier_id}", response_model=SupplierResponse)
def get_supplier(supplier_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return supplier_service.with_counts(db, [supplier_service.get_supplier(db, supplier_id)])[0]


@router.get("/{supplier_id}/products", response_model=List[ProductResponse])
def supplier_products(
    supplier_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)
):
    return supplier_service.supplier_products(db, supplier_id)


@router.post("", response_model=SupplierResponse, status_code=status.HTTP_201_CREATED)
def create_supplier(
    payload: SupplierCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if not is_manager(current_user):
        raise HTTPException(status_code=403, detail="Not authorized")

    supplier = supplier_service.create_supplier(db, payload)
    write_log(db, user_id=current_user.id, action="SUPPLIER_CREATE", resource="suppliers",
              status="SUCCESS", ip=client_ip(request), meta={"id": supplier.id, "name": supplier.name})
    return supplier_service.with_counts(db, [supplier])[0]


@router.put("/{supplier_id}", response_model=SupplierResponse)
def update_supplier(
    supplier_id: int,
    payload: SupplierUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if not is_manager(current_user):
        raise HTTPException(status_code=403, detail="Not authorized")

    supplier = supplier_service.update_supplier(db, supplier_id, payload)
    write_log(db, user_id=current_user.id, action="SUPPLIER_UPDATE", resource="suppliers",
              status="SUCCESS", ip=client_ip(request), meta={"id": supplier.id})
    return supplier_service.with_counts(db, [supplier])[0]


@router.delete("/{supplier_id}")
def delete_supplier(
    supplier_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if current_user.role != UserRole.ADMIN:
        raise HTTPException(status_code=403, detail="Admin access required")

    supplier = supplier_service.delete_supplier(db, supplier_id)
    write_log(db, user_id=current_user.id, action="SUPPLIER_DEACTIVATE", resource="suppliers",
              status="SUCCESS", ip=client_ip(request), meta={"id": supplier_id})
    return {"detail": f"Supplier '{supplier.name}' deactivated"}
