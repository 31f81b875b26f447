# routes/reports.py
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from database import get_db
from models.users import User
from schemas.reports import (
    DashboardStats, InventoryReport, ProfitabilityReport, SalesReport,
    StockAlert, TopCustomer, TopSellingProduct,
)
from services import reports as report_service
from utils.tokenJWT import get_current_user, is_manager

router = APIRouter(prefix="/reports", tags=["Reports"])

DEFAULT_RANGE_DAYS = 30


def _role_ok(user: User) -> bool:
    return is_manager(user)


def _range(date_from: Optional[datetime], date_to: Optional[datetime]):
    """Missing bounds default to the last 30 days ending now."""
    date_to = date_to or datetime.now(timezone.utc)
    date_from = date_from or (date_to - timedelta(days=DEFAULT_RANGE_DAYS))
    return date_from, date_to


# -----------------------------
# 1) Sales
# -----------------------------
@router.get("/sales", response_model=SalesReport)
def sales_report(
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if not _role_ok(current_user):
        raise HTTPException(status_code=403, detail="Forbidden")
    return report_service.sales_report(db, *_range(date_from, date_to))


@router.get("/profitability", response_model=ProfitabilityReport)
def profitability_report(
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if not _role_ok(current_user):
        raise HTTPException(status_code=403, detail="Forbidden")
    return report_service.profitability_report(db, *_range(date_from, date_to))


@router.get("/top-products", response_model=List[TopSellingProduct])
def top_products(
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if not _role_ok(current_user):
        raise HTTPException(status_code=403, detail="Forbidden")
    return report_service.top_selling_products(db, *_range(date_from, date_to), limit=limit)


@router.get("/top-customers", response_model=List[TopCustomer])
def top_customers(
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if not _role_ok(current_user):
        raise HTTPException(status_code=403, detail="Forbidden")
    return report_service.top_customers(db, *_range(date_from, date_to), limit=limit)


# -----------------------------
# 2) Stock
# -----------------------------
@router.get("/inventory", response_model=InventoryReport)
def inventory_report(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    if not _role_ok(current_user):
        raise HTTPException(status_code=403, detail="Forbidden")
    return report_service.inventory_report(db)


# Any signed-in user may see what is running out
@router.get("/stock-alerts", response_model=List[StockAlert])
def stock_alerts(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return report_service.stock_alerts(db)


# -----------------------------
# 3) Dashboard
# -----------------------------
dashboard_router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


@dashboard_router.get("", response_model=DashboardStats)
def dashboard(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return report_service.dashboard(db)
