# backend/schemas/product.py
from datetime import datetime
from decimal import Decimal
from typing import Optional, List

from pydantic import BaseModel, Field, ConfigDict

from models.stock import StockMovementType


# Base configuration for ORM compatibility
class ORMBase(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# Schema for creating a new product
class ProductCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    sku: str = Field(min_length=1, max_length=50)
    barcode: str = Field(min_length=1)
    price: Decimal = Field(gt=0, max_digits=12, decimal_places=2)
    cost_price: Decimal = Field(gt=0, max_digits=12, decimal_places=2)
    stock_quantity: int = Field(default=0, ge=0)
    min_stock_level: int = Field(default=0, ge=0)
    category_id: int
    supplier_id: int
    image_url: Optional[str] = None


# Schema for product updates; stock is changed only through stock movements
class ProductUpdate(BaseModel):
    """PATCH semantics - every field optional, only sent fields are applied."""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    sku: Optional[str] = Field(None, min_length=1, max_length=50)
    barcode: Optional[str] = Field(None, min_length=1)
    price: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)
    cost_price: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)
    min_stock_level: Optional[int] = Field(None, ge=0)
    category_id: Optional[int] = None
    supplier_id: Optional[int] = None
    image_url: Optional[str] = None
    is_active: Optional[bool] = None


class ProductResponse(ORMBase):
    id: int
    name: str
    description: Optional[str] = None
    sku: str
    barcode: str
    price: Decimal
    cost_price: Decimal
    stock_quantity: int
    min_stock_level: int
    category_id: int
    category_name: Optional[str] = None
    supplier_id: int
    supplier_name: Optional[str] = None
    image_url: Optional[str] = None
    is_active: bool
    is_low_stock: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# Paginated response for product listings
class ProductListPage(ORMBase):
    items: List[ProductResponse]
    total: int
    page: int
    page_size: int


# Manual stock change; ADJUSTMENT sets the absolute level, other types move by quantity
class StockUpdate(BaseModel):
    quantity: int = Field(ge=0)
    movement_type: StockMovementType
    reference: Optional[str] = None
    notes: Optional[str] = None
