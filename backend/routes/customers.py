# backend/routes/customers.py
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from database import get_db
from models.users import User
from schemas.customer import CustomerCreate, CustomerPage, CustomerResponse, CustomerUpdate
from schemas.sale import SaleResponse
from services import customers as customer_service
from utils.audit import client_ip, write_log
from utils.tokenJWT import get_current_user, is_manager

router = APIRouter(prefix="/customers", tags=["Customers"])


@router.get("", response_model=CustomerPage)
def list_customers(
    q: Optional[str] = Query(None, description="Search by name, email or phone"),
    active: Optional[bool] = Query(True),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=200),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    items, total = customer_service.list_customers(db, q=q, active=active, page=page, page_size=page_size)
    return {"items": customer_service.with_totals(db, items), "total": total, "page": page, "page_size": page_size}


@router.get("/{customer_id}", response_model=CustomerResponse)
def get_customer(customer_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return customer_service.with_totals(db, [customer_service.get_customer(db, customer_id)])[0]


@router.get("/{customer_id}/purchases", response_model=List[SaleResponse])
def purchase_history(
    customer_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)
):
    return customer_service.purchase_history(db, customer_id)


# Till staff register new customers at checkout
@router.post("", response_model=CustomerResponse, status_code=status.HTTP_201_CREATED)
def create_customer(
    payload: CustomerCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    customer = customer_service.create_customer(db, payload)
    write_log(db, user_id=current_user.id, action="CUSTOMER_CREATE", resource="customers",
              status="SUCCESS", ip=client_ip(request), meta={"id": customer.id})
    return customer_service.with_totals(db, [customer])[0]


@router.put("/{customer_id}", response_model=CustomerResponse)
def update_customer(
    customer_id: int,
    payload: CustomerUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    customer = customer_service.update_customer(db, customer_id, payload)
    write_log(db, user_id=current_user.id, action="CUSTOMER_UPDATE", resource="customers",
              status="SUCCESS", ip=client_ip(request), meta={"id": customer.id})
    return customer_service.with_totals(db, [customer])[0]


@router.delete("/{customer_id}")
def delete_customer(
    customer_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if not is_manager(current_user):
        raise HTTPException(status_code=403, detail="Not authorized")

    customer = customer_service.delete_customer(db, customer_id)
    write_log(db, user_id=current_user.id, action="CUSTOMER_DEACTIVATE", resource="customers",
              status="SUCCESS", ip=client_ip(request), meta={"id": customer_id})
    return {"detail": f"Customer '{customer.name}' deactivated"}
