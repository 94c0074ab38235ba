from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from oos_autopilot.enums.automation import RunIntervalUnit, RunKind


# ---------- Snapshot of a deactivation candidate ----------

class ProductSnapshot(BaseModel):
    id: str
    title: str
    sku: Optional[str] = None
    image_url: Optional[str] = None
    inactivity_days: int = 0


# ---------- Tenant settings ----------

class TenantSettings(BaseModel):
    shop: str
    automation_enabled: bool = False
    auto_reactivate_enabled: bool = True
    run_interval_value: int = 1
    run_interval_unit: RunIntervalUnit = RunIntervalUnit.days
    inactivity_threshold_days: int = 90
    last_run_at: Optional[datetime] = None
    last_run_kind: Optional[RunKind] = None
    last_run_result_set: List[ProductSnapshot] = []
    current_run_state: str = "IDLE"

    @field_validator("last_run_result_set", mode="before")
    @classmethod
    def _none_as_empty(cls, value):
        return value or []

    class Config:
        from_attributes = True


class SettingsUpdate(BaseModel):
    """Partial settings save; omitted fields keep their stored value."""
    automation_enabled: Optional[bool] = None
    auto_reactivate_enabled: Optional[bool] = None
    run_interval_value: Optional[int] = Field(default=None, gt=0)
    run_interval_unit: Optional[RunIntervalUnit] = None
    inactivity_threshold_days: Optional[int] = Field(default=None, gt=0)
