# backend/routes/stock.py
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from database import get_db
from models.stock import StockMovementType
from models.users import User
import schemas.stock as stock_schemas
from services import products as product_service
from utils.audit import client_ip, write_log
from utils.tokenJWT import get_current_user, is_manager

router = APIRouter(prefix="/stock", tags=["Stock"])


# Movement history across all products, newest first
@router.get("", response_model=stock_schemas.StockMovementPage)
def list_movements(
    q: Optional[str] = Query(None, description="Product name or SKU"),
    product_id: Optional[int] = Query(None),
    movement_type: Optional[StockMovementType] = Query(None, alias="type"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if not is_manager(current_user):
        raise HTTPException(status_code=403, detail="Not authorized")

    items, total = product_service.stock_movements(
        db, product_id=product_id, movement_type=movement_type, q=q, page=page, page_size=page_size
    )
    return {"items": items, "total": total, "page": page, "page_size": page_size}


# Receive a supplier delivery in one go
@router.post("/delivery", response_model=stock_schemas.DeliveryResult, status_code=status.HTTP_201_CREATED)
def receive_delivery(
    payload: stock_schemas.DeliveryCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if not is_manager(current_user):
        raise HTTPException(status_code=403, detail="Not authorized")

    movements = product_service.receive_delivery(
        db, payload.items, current_user, reference=payload.reference, notes=payload.notes
    )
    write_log(
        db, user_id=current_user.id, action="STOCK_DELIVERY", resource="stock", status="SUCCESS",
        ip=client_ip(request),
        meta={"reference": payload.reference, "lines": len(movements), "units": sum(i.quantity for i in payload.items)},
    )
    return {"received": sum(i.quantity for i in payload.items), "movements": movements}
