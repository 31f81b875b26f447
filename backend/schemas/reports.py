# schemas/reports.py
from datetime import datetime, date as Date
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel

from models.sale import PaymentMethod
from schemas.sale import SaleResponse


class PaymentMethodSummary(BaseModel):
    payment_method: PaymentMethod
    transaction_count: int
    total_amount: Decimal
    percentage: Decimal


class DailySales(BaseModel):
    date: Date
    total_sales: Decimal
    transaction_count: int


class TopSellingProduct(BaseModel):
    product_id: int
    product_name: str
    category_name: Optional[str] = None
    quantity_sold: int
    total_revenue: Decimal
    average_unit_price: Decimal


class TopCustomer(BaseModel):
    customer_id: int
    customer_name: str
    email: Optional[str] = None
    total_transactions: int
    total_spent: Decimal
    last_purchase_date: Optional[datetime] = None


# Schemas for sales performance summaries
class SalesReport(BaseModel):
    report_date: datetime
    date_from: datetime
    date_to: datetime
    total_sales: Decimal
    total_transactions: int
    total_discounts: Decimal
    total_tax: Decimal
    average_transaction_value: Decimal
    payment_method_breakdown: List[PaymentMethodSummary]
    daily_sales: List[DailySales]
    top_selling_products: List[TopSellingProduct]


class ProductStock(BaseModel):
    product_id: int
    product_name: str
    sku: str
    category_name: Optional[str] = None
    current_stock: int
    min_stock_level: int
    is_low_stock: bool
    is_out_of_stock: bool
    unit_price: Decimal
    stock_value: Decimal


class InventoryReport(BaseModel):
    report_date: datetime
    total_products: int
    total_inventory_value: Decimal
    low_stock_products_count: int
    out_of_stock_products_count: int
    product_stock_levels: List[ProductStock]


class ProfitabilityReport(BaseModel):
    report_date: datetime
    date_from: datetime
    date_to: datetime
    total_revenue: Decimal
    total_cost_of_goods_sold: Decimal
    gross_profit: Decimal
    gross_profit_margin: Decimal


# Schemas for low stock alerting
class StockAlert(BaseModel):
    product_id: int
    product_name: str
    sku: str
    current_stock: int
    min_stock_level: int
    is_out_of_stock: bool
    alert_level: str


class DashboardStats(BaseModel):
    today_sales: Decimal
    month_sales: Decimal
    today_transactions: int
    total_products: int
    low_stock_products: int
    total_customers: int
    weekly_sales: List[DailySales]
    stock_alerts: List[StockAlert]
    recent_sales: List[SaleResponse] = []
