from sqlalchemy import Column, Integer, String, DateTime

from oos_autopilot.core.clock import utcnow
from oos_autopilot.database.connection import Base


class ActivityLog(Base):
    __tablename__ = "activity_logs"

    id = Column(Integer, primary_key=True, index=True)
    shop = Column(String, nullable=False, index=True)
    product_id = Column(String, nullable=False)  # gid://shopify/Product/...
    product_title = Column(String, nullable=False)
    product_sku = Column(String, nullable=True)
    action = Column(String, nullable=False, index=True)  # DEACTIVATE / REACTIVATE
    method = Column(String, nullable=False)  # MANUAL / AUTO / WEBHOOK
    created_at = Column(DateTime, default=utcnow, index=True)
