from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from oos_autopilot.enums.automation import RunIntervalUnit, RunKind
from oos_autopilot.schemas.settings import ProductSnapshot


class ScanRequest(BaseModel):
    days: Optional[int] = Field(default=None, gt=0)


class ScanResponse(BaseModel):
    candidates: List[ProductSnapshot]
    count: int
    products_checked: int
    partial: bool = False


class DeactivateRequest(BaseModel):
    products: List[ProductSnapshot] = Field(min_length=1)


class DeactivateResponse(BaseModel):
    deactivated_count: int
    ids: List[str]


class RunStatusResponse(BaseModel):
    current_run_state: str
    automation_enabled: bool
    last_run_at: Optional[datetime] = None
    last_run_kind: Optional[RunKind] = None
    last_run_result_set: List[ProductSnapshot] = []
    run_interval_value: int
    run_interval_unit: RunIntervalUnit
    latest_log_id: Optional[int] = None
