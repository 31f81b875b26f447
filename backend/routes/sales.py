# backend/routes/sales.py
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from sqlalchemy.orm import Session

from database import get_db
from models.users import User
from schemas.sale import InvoiceResponse, SaleCreate, SaleListPage, SaleResponse, SalesTotal
from services import sales as sale_service
from services.errors import ServiceError
from utils.audit import client_ip, write_log
from utils.pdf import render_sale_invoice
from utils.tokenJWT import get_current_user, is_manager

router = APIRouter(prefix="/sales", tags=["Sales"])


# =========================
# RECORD A SALE
# =========================
@router.post("", response_model=SaleResponse, status_code=status.HTTP_201_CREATED)
def create_sale(
    payload: SaleCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    try:
        sale = sale_service.create_sale(db, payload, current_user)
    except ServiceError as exc:
        write_log(
            db, user_id=current_user.id, action="SALE_CREATE", resource="sales", status="FAIL",
            ip=client_ip(request), meta={"customer_id": payload.customer_id, "reason": exc.code},
        )
        raise

    write_log(
        db, user_id=current_user.id, action="SALE_CREATE", resource="sales", status="SUCCESS",
        ip=client_ip(request),
        meta={"id": sale.id, "invoice": sale.invoice_number, "total": str(sale.total_amount)},
    )
    return sale_service.get_sale(db, sale.id)


# =========================
# LISTS
# =========================
@router.get("", response_model=SaleListPage)
def list_sales(
    customer_id: Optional[int] = Query(None),
    user_id: Optional[int] = Query(None, description="Filter by cashier"),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    is_completed: Optional[bool] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=200),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    # Till staff only see their own sales
    if not is_manager(current_user):
        user_id = current_user.id

    items, total = sale_service.list_sales(
        db, customer_id=customer_id, user_id=user_id, date_from=date_from, date_to=date_to,
        is_completed=is_completed, page=page, page_size=page_size,
    )
    return {"items": items, "total": total, "page": page, "page_size": page_size}


@router.get("/date-range", response_model=List[SaleResponse])
def sales_by_date_range(
    date_from: datetime = Query(...),
    date_to: datetime = Query(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if not is_manager(current_user):
        raise HTTPException(status_code=403, detail="Not authorized")
    return sale_service.sales_by_date_range(db, date_from, date_to)


@router.get("/total-amount", response_model=SalesTotal)
def total_sales_amount(
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if not is_manager(current_user):
        raise HTTPException(status_code=403, detail="Not authorized")
    return {
        "total_amount": sale_service.total_sales_amount(db, date_from, date_to),
        "date_from": date_from,
        "date_to": date_to,
    }


# =========================
# SINGLE SALE
# =========================
def _visible_sale(db: Session, sale_id: int, user: User):
    sale = sale_service.get_sale(db, sale_id)
    if not is_manager(user) and sale.user_id != user.id:
        raise HTTPException(status_code=403, detail="Not authorized to view this sale")
    return sale


@router.get("/{sale_id}", response_model=SaleResponse)
def get_sale(sale_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return _visible_sale(db, sale_id, current_user)


@router.get("/{sale_id}/invoice", response_model=InvoiceResponse)
def get_invoice(sale_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return _visible_sale(db, sale_id, current_user)


@router.get("/{sale_id}/invoice/pdf")
def download_invoice_pdf(
    sale_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    sale = _visible_sale(db, sale_id, current_user)
    pdf_bytes = render_sale_invoice(sale)
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="Invoice_{sale.invoice_number}.pdf"'},
    )


@router.post("/{sale_id}/cancel", response_model=SaleResponse)
def cancel_sale(
    sale_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if not is_manager(current_user):
        raise HTTPException(status_code=403, detail="Only managers can cancel sales")

    sale = sale_service.cancel_sale(db, sale_id, current_user)
    write_log(
        db, user_id=current_user.id, action="SALE_CANCEL", resource="sales", status="SUCCESS",
        ip=client_ip(request), meta={"id": sale.id, "invoice": sale.invoice_number},
    )
    return sale_service.get_sale(db, sale_id)
