from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON, Index, func
from sqlalchemy.orm import relationship
from database import Base

LOG_SUCCESS = "SUCCESS"
LOG_FAIL = "FAIL"


# One row per mutating API call: who did what to which resource, and whether it went through
class ActivityLog(Base):
    __tablename__ = "activity_logs"
    __table_args__ = (
        Index("ix_activity_logs_resource_ts", "resource", "ts"),
    )

    id = Column(Integer, primary_key=True, index=True)
    ts = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    # Null for anonymous calls such as a failed login
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)

    action = Column(String(50), nullable=False, index=True)      # e.g. SALE_CREATE, PRODUCT_UPDATE
    resource = Column(String(50), nullable=False, index=True)    # router the call went through
    status = Column(String(20), nullable=False, default=LOG_SUCCESS, index=True)
    ip = Column(String(64), nullable=True)

    # Ids, invoice numbers, rejection codes
    meta = Column(JSON, nullable=True)

    user = relationship("User", lazy="joined", uselist=False)

    @property
    def username(self):
        return self.user.username if self.user else None
