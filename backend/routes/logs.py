# backend/routes/logs.py
from datetime import datetime
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session

from database import get_db
from models.log import ActivityLog
from models.users import User, UserRole
from utils.tokenJWT import get_current_user

router = APIRouter(prefix="/logs", tags=["Logs"])


# --- SCHEMAS ---
class LogResponse(BaseModel):
    id: int
    user_id: Optional[int] = None
    username: Optional[str] = None
    action: str
    resource: str
    status: str
    ip: Optional[str] = None
    ts: datetime
    meta: Optional[Any] = None

    model_config = ConfigDict(from_attributes=True)


class LogPage(BaseModel):
    items: List[LogResponse]
    total: int
    page: int
    page_size: int


# --- ENDPOINT ---
@router.get("", response_model=LogPage)
def get_logs(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    action: Optional[str] = Query(None, description="Filter by action"),
    user_id: Optional[int] = Query(None, description="Filter by user ID"),
    resource: Optional[str] = Query(None, description="Filter by resource"),
    status: Optional[str] = Query(None, description="Filter by status (SUCCESS/FAIL)"),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if current_user.role != UserRole.ADMIN:
        raise HTTPException(status_code=403, detail="Only administrators can view logs")

    query = db.query(ActivityLog)

    if action:
        query = query.filter(ActivityLog.action.ilike(f"%{action}%"))
    if user_id is not None:
        query = query.filter(ActivityLog.user_id == user_id)
    if resource:
        query = query.filter(ActivityLog.resource.ilike(f"%{resource}%"))
    if status:
        query = query.filter(ActivityLog.status == status.upper())
    if date_from:
        query = query.filter(ActivityLog.ts >= date_from)
    if date_to:
        query = query.filter(ActivityLog.ts <= date_to)

    query = query.order_by(ActivityLog.ts.desc(), ActivityLog.id.desc())

    total = query.count()
    logs = query.offset((page - 1) * page_size).limit(page_size).all()

    return {
        "items": logs,
        "total": total,
        "page": page,
        "page_size": page_size,
    }
