from sqlalchemy import Column, Integer, String, Numeric, Boolean, DateTime, func
from sqlalchemy.orm import relationship
from database import Base


# Represents a buyer; the "Walk-in Customer" row covers anonymous sales
class Customer(Base):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False, index=True)
    email = Column(String, unique=True, nullable=True, index=True)
    phone = Column(String, nullable=True)
    address = Column(String, nullable=True)

    # Account balances
    loyalty_points = Column(Numeric(12, 2), nullable=False, default=0)
    credit_balance = Column(Numeric(12, 2), nullable=False, default=0)

    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    last_purchase_date = Column(DateTime(timezone=True), nullable=True)

    sales = relationship("Sale", back_populates="customer")
