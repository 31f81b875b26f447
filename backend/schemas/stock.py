# backend/schemas/stock.py
from pydantic import BaseModel, Field, ConfigDict
from datetime import datetime
from typing import List, Optional

from models.stock import StockMovementType


# Schema for returning stock movement details
class StockMovementResponse(BaseModel):
    id: int
    product_id: int
    product_name: Optional[str] = None
    movement_type: StockMovementType
    quantity: int
    reference: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
    created_by: int
    created_by_name: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


# Paginated response for stock movement history
class StockMovementPage(BaseModel):
    items: List[StockMovementResponse]
    total: int
    page: int
    page_size: int


# Schema for a single item within a bulk delivery
class DeliveryItem(BaseModel):
    product_id: int
    quantity: int = Field(gt=0)


# Schema for registering a bulk stock delivery
class DeliveryCreate(BaseModel):
    items: List[DeliveryItem] = Field(min_length=1)
    reference: Optional[str] = "Delivery"
    notes: Optional[str] = None


class DeliveryResult(BaseModel):
    received: int
    movements: List[StockMovementResponse]
