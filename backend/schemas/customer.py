from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class CustomerCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    loyalty_points: Decimal = Field(default=Decimal("0"), ge=0, decimal_places=2)
    credit_balance: Decimal = Field(default=Decimal("0"), ge=0, decimal_places=2)


class CustomerUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    loyalty_points: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    credit_balance: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    is_active: Optional[bool] = None


class CustomerResponse(BaseModel):
    id: int
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    loyalty_points: Decimal
    credit_balance: Decimal
    is_active: bool
    created_at: Optional[datetime] = None
    last_purchase_date: Optional[datetime] = None
    total_purchases: int = 0
    total_spent: Decimal = Decimal("0.00")

    model_config = ConfigDict(from_attributes=True)


class CustomerPage(BaseModel):
    items: List[CustomerResponse]
    total: int
    page: int
    page_size: int
