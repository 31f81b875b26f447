# backend/models/users.py
import enum
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum, func
from database import Base


# Roles ordered from most to least privileged
class UserRole(str, enum.Enum):
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    SALES_STAFF = "SALES_STAFF"


# Represents a user account with authentication details and system role
class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, nullable=False, index=True)
    email = Column(String, unique=True, nullable=False, index=True)
    password_hash = Column(String, nullable=False)
    full_name = Column(String(100), nullable=False)
    role = Column(Enum(UserRole), nullable=False, default=UserRole.SALES_STAFF)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    last_login = Column(DateTime(timezone=True), nullable=True)

    # Opaque refresh token issued at login, rotated on every refresh
    refresh_token = Column(String, nullable=True, index=True)
    refresh_token_expiry = Column(DateTime(timezone=True), nullable=True)
