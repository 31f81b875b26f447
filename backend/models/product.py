# backend/models/product.py
from sqlalchemy import (
    Column, Integer, String, Numeric, Boolean, DateTime, ForeignKey, CheckConstraint, func
)
from sqlalchemy.orm import relationship
from database import Base


# Product
# A single sellable catalog item. Prices are fixed-point currency,
# stock_quantity is the on-hand count and can never drop below zero.
class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False, index=True)
    description = Column(String, nullable=True)
    sku = Column(String(50), unique=True, nullable=False, index=True)
    barcode = Column(String, unique=True, nullable=False, index=True)

    price = Column(Numeric(12, 2), CheckConstraint("price >= 0"), nullable=False)
    cost_price = Column(Numeric(12, 2), CheckConstraint("cost_price >= 0"), nullable=False)

    # Stock levels
    stock_quantity = Column(Integer, CheckConstraint("stock_quantity >= 0"), nullable=False, default=0)
    min_stock_level = Column(Integer, CheckConstraint("min_stock_level >= 0"), nullable=False, default=0)

    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False, index=True)
    supplier_id = Column(Integer, ForeignKey("suppliers.id"), nullable=False, index=True)

    image_url = Column(String, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    category = relationship("Category", back_populates="products")
    supplier = relationship("Supplier", back_populates="products")
    # Movements are the stock audit trail; a product that has any is never removed
    stock_movements = relationship("StockMovement", back_populates="product", passive_deletes="all")

    @property
    def is_low_stock(self) -> bool:
        return (self.stock_quantity or 0) <= (self.min_stock_level or 0)

    @property
    def category_name(self):
        return self.category.name if self.category else None

    @property
    def supplier_name(self):
        return self.supplier.name if self.supplier else None
