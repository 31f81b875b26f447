# schemas/sale.py
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from models.sale import PaymentMethod
from schemas.customer import CustomerResponse
from schemas.user import UserResponse


# Input schema for a single line of a sale
class SaleItemCreate(BaseModel):
    product_id: int
    quantity: int = Field(gt=0)
    # Falls back to the product's list price when omitted
    unit_price: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)
    discount_percentage: Decimal = Field(default=Decimal("0"), ge=0, le=100, decimal_places=2)


# Input schema for recording a sale
class SaleCreate(BaseModel):
    customer_id: int
    payment_method: PaymentMethod = PaymentMethod.CASH
    items: List[SaleItemCreate] = Field(min_length=1)
    discount_amount: Decimal = Field(default=Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    tax_amount: Decimal = Field(default=Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    paid_amount: Decimal = Field(default=Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    notes: Optional[str] = None


# Output schema for a sale line
class SaleItemResponse(BaseModel):
    id: int
    sale_id: int
    product_id: int
    product_name: Optional[str] = None
    quantity: int
    unit_price: Decimal
    discount_percentage: Decimal
    total_price: Decimal

    model_config = ConfigDict(from_attributes=True)


class SaleResponse(BaseModel):
    id: int
    invoice_number: str
    customer_id: int
    customer_name: Optional[str] = None
    user_id: int
    sales_person_name: Optional[str] = None
    sale_date: datetime
    subtotal: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    paid_amount: Decimal
    change_due: Optional[Decimal] = None
    payment_method: PaymentMethod
    notes: Optional[str] = None
    is_completed: bool
    items: List[SaleItemResponse]

    model_config = ConfigDict(from_attributes=True)


class SaleListPage(BaseModel):
    items: List[SaleResponse]
    total: int
    page: int
    page_size: int


# Printable invoice view of a sale
class InvoiceResponse(BaseModel):
    id: int
    invoice_number: str
    sale_date: datetime
    customer: CustomerResponse
    sales_person: UserResponse
    subtotal: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    paid_amount: Decimal
    payment_method: PaymentMethod
    notes: Optional[str] = None
    items: List[SaleItemResponse]

    model_config = ConfigDict(from_attributes=True)


class SalesTotal(BaseModel):
    total_amount: Decimal
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
