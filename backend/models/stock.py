# backend/models/stock.py
import enum
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Enum, func
from sqlalchemy.orm import relationship
from database import Base


class StockMovementType(str, enum.Enum):
    PURCHASE = "PURCHASE"
    SALE = "SALE"
    RETURN = "RETURN"
    ADJUSTMENT = "ADJUSTMENT"
    TRANSFER = "TRANSFER"
    DAMAGE = "DAMAGE"


INBOUND_TYPES = {StockMovementType.PURCHASE, StockMovementType.RETURN}
OUTBOUND_TYPES = {StockMovementType.SALE, StockMovementType.TRANSFER, StockMovementType.DAMAGE}


class StockMovement(Base):
    __tablename__ = "stock_movements"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="RESTRICT"), nullable=False, index=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=False)

    movement_type = Column(Enum(StockMovementType), nullable=False, index=True)

    # Signed change of on-hand quantity (negative for outbound)
    quantity = Column(Integer, nullable=False)

    # Free-form link to the cause, e.g. an invoice number
    reference = Column(String, nullable=True)
    notes = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    product = relationship("Product", back_populates="stock_movements")
    user = relationship("User")

    @property
    def product_name(self):
        return self.product.name if self.product else None

    @property
    def created_by_name(self):
        return self.user.full_name if self.user else None
