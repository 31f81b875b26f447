# services/auth.py
import logging

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from models.users import User
from schemas.user import UserCreate
from services.errors import Conflict, Unauthorized
from utils.hashing import get_password_hash, verify_password
from utils.dates import as_utc, utcnow
from utils.tokenJWT import create_refresh_token, refresh_token_expiry, token_for_user

logger = logging.getLogger(__name__)


def _issue_tokens(db: Session, user: User) -> dict:
    user.refresh_token = create_refresh_token()
    user.refresh_token_expiry = refresh_token_expiry()
    db.commit()
    db.refresh(user)
    return {
        "access_token": token_for_user(user),
        "refresh_token": user.refresh_token,
        "token_type": "bearer",
        "user": user,
    }


def register(db: Session, payload: UserCreate) -> dict:
    username = payload.username.strip()
    email = payload.email.strip().lower()

    existing = (
        db.query(User)
        .filter(or_(func.lower(User.username) == username.lower(), func.lower(User.email) == email))
        .first()
    )
    if existing:
        if existing.username.lower() == username.lower():
            raise Conflict("Username already exists", code="duplicate_username")
        raise Conflict("Email already registered", code="duplicate_email")

    user = User(
        username=username,
        email=email,
        password_hash=get_password_hash(payload.password),
        full_name=payload.full_name,
        role=payload.role,
        is_active=True,
    )
    db.add(user)
    db.flush()
    logger.info("User %s registered with role %s", username, payload.role.value)
    return _issue_tokens(db, user)


def authenticate(db: Session, username: str, password: str) -> User:
    user = db.query(User).filter(User.username == username).first()
    if not user or not verify_password(password, user.password_hash):
        raise Unauthorized("Invalid username or password", code="invalid_credentials")
    if not user.is_active:
        raise Unauthorized("Account is disabled", code="inactive_user")
    return user


def login(db: Session, username: str, password: str) -> dict:
    user = authenticate(db, username, password)
    user.last_login = utcnow()
    return _issue_tokens(db, user)


def refresh(db: Session, refresh_token: str) -> dict:
    """Swap a live refresh token for a new access/refresh pair."""
    user = db.query(User).filter(User.refresh_token == refresh_token).first()
    if (
        user is None
        or not user.is_active
        or user.refresh_token_expiry is None
        or as_utc(user.refresh_token_expiry) <= utcnow()
    ):
        raise Unauthorized("Invalid or expired refresh token", code="invalid_refresh_token")
    return _issue_tokens(db, user)


def revoke(db: Session, user: User) -> None:
    user.refresh_token = None
    user.refresh_token_expiry = None
    db.commit()
