from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from oos_autopilot.enums.automation import LogAction, LogMethod
from oos_autopilot.schemas.catalog import ProductSummary


class ActivityLogEntry(BaseModel):
    id: int
    shop: str
    product_id: str
    product_title: str
    product_sku: Optional[str] = None
    action: LogAction
    method: LogMethod
    created_at: datetime

    class Config:
        from_attributes = True


class ActivityLogItem(ActivityLogEntry):
    product_details: Optional[ProductSummary] = None


class ActivityLogPage(BaseModel):
    logs: List[ActivityLogItem]
    page: int
    total_pages: int
    total_count: int


class ClearLogsResponse(BaseModel):
    cleared: int
