from pydantic import BaseModel
from typing import Optional, Dict, Any
from datetime import datetime


class HealthCheckResponse(BaseModel):
    status: str
    now: datetime
    uptime_seconds: float
    db_ok: bool
    scheduler_running: bool = False
    extra: Optional[Dict[str, Any]] = None


class SystemMetricsResponse(BaseModel):
    uptime_seconds: float
    now: datetime

    # middleware counters
    requests_count: int
    avg_response_ms: Optional[float] = None

    # scheduler counters (ticks, ticks_skipped, cycles_run, cycles_failed)
    scheduler: Dict[str, int] = {}

    # DB metrics
    shops_total: int
    shops_automated: int
    shops_busy: int
    activity_log_entries: int
