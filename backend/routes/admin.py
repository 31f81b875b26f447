# backend/routes/admin.py
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from database import get_db
from models.users import User, UserRole
from schemas.user import RoleUpdate, StatusUpdate, UserPage, UserResponse
from utils.audit import client_ip, write_log
from utils.tokenJWT import role_required

router = APIRouter(prefix="/users", tags=["Admin"])

admin_only = role_required(UserRole.ADMIN)


def _get_user(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


# Retrieve a list of users with filtering, sorting, and pagination (Admin only)
@router.get("", response_model=UserPage)
def get_all_users(
    q: Optional[str] = Query(None, description="Search by username, email or name"),
    role: Optional[UserRole] = Query(None, description="Filter by role"),
    active: Optional[bool] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    sort_by: Literal["id", "username", "email", "role", "full_name"] = "id",
    order: Literal["asc", "desc"] = "asc",
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_only),
):
    query = db.query(User)

    if q:
        like = f"%{q.lower()}%"
        query = query.filter(or_(User.username.ilike(like), User.email.ilike(like), User.full_name.ilike(like)))
    if role:
        query = query.filter(User.role == role)
    if active is not None:
        query = query.filter(User.is_active == active)

    sort_map = {
        "id": User.id,
        "username": User.username,
        "email": User.email,
        "role": User.role,
        "full_name": User.full_name,
    }
    col = sort_map.get(sort_by, User.id)
    query = query.order_by(col.asc() if order == "asc" else col.desc())

    total = query.count()
    users = query.offset((page - 1) * page_size).limit(page_size).all()

    return {"items": users, "total": total, "page": page, "page_size": page_size}


# Update user role (Admin only)
@router.put("/{user_id}/role", response_model=UserResponse)
def update_user_role(
    user_id: int,
    new_role: RoleUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_only),
):
    user = _get_user(db, user_id)
    if user.id == current_user.id and new_role.role != UserRole.ADMIN:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot demote your own account")

    user.role = new_role.role
    db.commit()
    db.refresh(user)

    write_log(db, user_id=current_user.id, action="USER_ROLE", resource="users", status="SUCCESS",
              ip=client_ip(request), meta={"id": user.id, "role": new_role.role.value})
    return user


# Enable or disable an account; disabled users cannot log in or use tokens
@router.put("/{user_id}/status", response_model=UserResponse)
def update_user_status(
    user_id: int,
    payload: StatusUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_only),
):
    user = _get_user(db, user_id)
    if user.id == current_user.id and not payload.is_active:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot disable your own account")

    user.is_active = payload.is_active
    if not payload.is_active:
        user.refresh_token = None
        user.refresh_token_expiry = None
    db.commit()
    db.refresh(user)

    write_log(db, user_id=current_user.id, action="USER_STATUS", resource="users", status="SUCCESS",
              ip=client_ip(request), meta={"id": user.id, "is_active": user.is_active})
    return user
