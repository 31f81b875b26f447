from datetime import datetime, timezone
import enum

from sqlalchemy import (
    Column, Integer, String, Numeric, Boolean, DateTime, ForeignKey, Enum, CheckConstraint
)
from sqlalchemy.orm import relationship
from database import Base


# Enum for accepted tender types
class PaymentMethod(str, enum.Enum):
    CASH = "CASH"
    CARD = "CARD"
    BANK_TRANSFER = "BANK_TRANSFER"
    CHECK = "CHECK"
    CREDIT = "CREDIT"


def _utcnow():
    return datetime.now(timezone.utc)


# Represents a completed point-of-sale transaction
class Sale(Base):
    __tablename__ = "sales"

    id = Column(Integer, primary_key=True, index=True)
    invoice_number = Column(String(32), unique=True, nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    sale_date = Column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)

    # Amounts; total_amount = subtotal - discount_amount + tax_amount, fixed at creation
    subtotal = Column(Numeric(12, 2), nullable=False)
    discount_amount = Column(Numeric(12, 2), nullable=False, default=0)
    tax_amount = Column(Numeric(12, 2), nullable=False, default=0)
    total_amount = Column(Numeric(12, 2), nullable=False)
    paid_amount = Column(Numeric(12, 2), nullable=False, default=0)

    payment_method = Column(Enum(PaymentMethod), nullable=False, default=PaymentMethod.CASH)
    notes = Column(String, nullable=True)
    is_completed = Column(Boolean, nullable=False, default=True)

    # Relationships
    customer = relationship("Customer", back_populates="sales")
    user = relationship("User")
    items = relationship(
        "SaleItem", back_populates="sale", cascade="all, delete-orphan", order_by="SaleItem.id"
    )

    @property
    def customer_name(self):
        return self.customer.name if self.customer else None

    @property
    def sales_person(self):
        return self.user

    @property
    def sales_person_name(self):
        return self.user.full_name if self.user else None

    @property
    def change_due(self):
        if self.paid_amount is None or self.total_amount is None:
            return None
        return max(self.paid_amount - self.total_amount, 0)


# Represents a line of a sale; unit_price is a snapshot taken at sale time
class SaleItem(Base):
    __tablename__ = "sale_items"

    id = Column(Integer, primary_key=True, index=True)
    sale_id = Column(Integer, ForeignKey("sales.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="RESTRICT"), nullable=False, index=True)
    quantity = Column(Integer, CheckConstraint("quantity > 0"), nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)
    discount_percentage = Column(
        Numeric(5, 2),
        CheckConstraint("discount_percentage >= 0 AND discount_percentage <= 100"),
        nullable=False,
        default=0,
    )
    total_price = Column(Numeric(12, 2), nullable=False)

    sale = relationship("Sale", back_populates="items")
    product = relationship("Product")

    @property
    def product_name(self):
        return self.product.name if self.product else None
