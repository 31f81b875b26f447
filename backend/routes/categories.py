# backend/routes/categories.py
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from database import get_db
from models.users import User, UserRole
from schemas.category import CategoryCreate, CategoryPage, CategoryResponse, CategoryUpdate
from schemas.product import ProductResponse
from services import categories as category_service
from utils.audit import client_ip, write_log
from utils.tokenJWT import get_current_user, is_manager

router = APIRouter(prefix="/categories", tags=["Categories"])


@router.get("", response_model=CategoryPage)
def list_categories(
    q: Optional[str] = Query(None, description="Search by name"),
    active: Optional[bool] = Query(True),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    items, total = category_service.list_categories(db, q=q, active=active, page=page, page_size=page_size)
    return {
        "items": category_service.with_counts(db, items),
        "total": total,
        "page": page,
        "page_size": page_size,
    }


@router.get("/{category_id}", response_model=CategoryResponse)
def get_category(category_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    category = category_service.get_category(db, category_id)
    return category_service.with_counts(db, [category])[0]


@router.get("/{category_id}/products", response_model=List[ProductResponse])
def category_products(
    category_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)
):
    return category_service.category_products(db, category_id)


@router.post("", response_model=CategoryResponse, status_code=status.HTTP_201_CREATED)
def create_category(
    payload: CategoryCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if not is_manager(current_user):
        raise HTTPException(status_code=403, detail="Not authorized")

    category = category_service.create_category(db, payload)
    write_log(db, user_id=current_user.id, action="CATEGORY_CREATE", resource="categories",
              status="SUCCESS", ip=client_ip(request), meta={"id": category.id, "name": category.name})
    return category_service.with_counts(db, [category])[0]


@router.put("/{category_id}", response_model=CategoryResponse)
def update_category(
    category_id: int,
    payload: CategoryUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if not is_manager(current_user):
        raise HTTPException(status_code=403, detail="Not authorized")

    category = category_service.update_category(db, category_id, payload)
    write_log(db, user_id=current_user.id, action="CATEGORY_UPDATE", resource="categories",
              status="SUCCESS", ip=client_ip(request), meta={"id": category.id})
    return category_service.with_counts(db, [category])[0]


# Deactivation is admin-only
@router.delete("/{category_id}")
def delete_category(
    category_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if current_user.role != UserRole.ADMIN:
        raise HTTPException(status_code=403, detail="Admin access required")

    category = category_service.delete_category(db, category_id)
    write_log(db, user_id=current_user.id, action="CATEGORY_DEACTIVATE", resource="categories",
              status="SUCCESS", ip=client_ip(request), meta={"id": category_id})
    return {"detail": f"Category '{category.name}' deactivated"}
