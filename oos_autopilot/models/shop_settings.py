from sqlalchemy import Column, Integer, String, Boolean, DateTime, JSON

from oos_autopilot.core.clock import utcnow
from oos_autopilot.database.connection import Base


class ShopSettings(Base):
    __tablename__ = "shop_settings"

    shop = Column(String, primary_key=True, index=True)  # e.g. my-shop.myshopify.com
    automation_enabled = Column(Boolean, nullable=False, default=False, index=True)
    auto_reactivate_enabled = Column(Boolean, nullable=False, default=True)

    run_interval_value = Column(Integer, nullable=False, default=1)
    run_interval_unit = Column(String, nullable=False, default="days")  # minutes / days
    inactivity_threshold_days = Column(Integer, nullable=False, default=90)

    last_run_at = Column(DateTime, nullable=True)
    last_run_kind = Column(String, nullable=True)  # MANUAL / AUTO
    # list of ProductSnapshot dicts from the most recent scan
    last_run_result_set = Column(JSON, default=[])
    current_run_state = Column(String, nullable=False, default="IDLE")

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
