# backend/routes/auth.py
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from database import get_db
from models.users import User
from schemas import user as schemas
from services import auth as auth_service
from services.errors import ServiceError
from utils.audit import client_ip, write_log
from utils.tokenJWT import get_current_user

router = APIRouter(prefix="/auth", tags=["Auth"])


# Register a new staff account
@router.post("/register", response_model=schemas.AuthResponse, status_code=status.HTTP_201_CREATED)
def register(payload: schemas.UserCreate, request: Request, db: Session = Depends(get_db)):
    try:
        result = auth_service.register(db, payload)
    except ServiceError as exc:
        write_log(db, user_id=None, action="REGISTER", resource="auth", status="FAIL",
                  ip=client_ip(request), meta={"username": payload.username, "reason": exc.code})
        raise

    write_log(db, user_id=result["user"].id, action="REGISTER", resource="auth",
              status="SUCCESS", ip=client_ip(request), meta={"username": result["user"].username})
    return result


# Authenticate user and issue access + refresh tokens
@router.post("/login", response_model=schemas.AuthResponse)
def login(payload: schemas.UserLogin, request: Request, db: Session = Depends(get_db)):
    try:
        result = auth_service.login(db, payload.username, payload.password)
    except ServiceError as exc:
        write_log(db, user_id=None, action="LOGIN", resource="auth", status="FAIL",
                  ip=client_ip(request), meta={"username": payload.username, "reason": exc.code})
        raise

    write_log(db, user_id=result["user"].id, action="LOGIN", resource="auth",
              status="SUCCESS", ip=client_ip(request), meta={"username": payload.username})
    return result


@router.post("/refresh-token", response_model=schemas.AuthResponse)
def refresh_token(payload: schemas.RefreshTokenRequest, db: Session = Depends(get_db)):
    return auth_service.refresh(db, payload.refresh_token)


# Log out everywhere: the stored refresh token stops working
@router.post("/revoke-token")
def revoke_token(
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    auth_service.revoke(db, current_user)
    write_log(db, user_id=current_user.id, action="LOGOUT", resource="auth",
              status="SUCCESS", ip=client_ip(request))
    return {"detail": "Refresh token revoked"}


# Retrieve current authenticated user details
@router.get("/me", response_model=schemas.UserResponse)
def me(current_user: User = Depends(get_current_user)):
    return current_user
