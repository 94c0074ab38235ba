from datetime import datetime

from fastapi import APIRouter, Depends, Request
from sqlalchemy import text
from sqlalchemy.orm import Session

from oos_autopilot.core.clock import utcnow
from oos_autopilot.database.connection import get_db
from oos_autopilot.schemas.system import HealthCheckResponse, SystemMetricsResponse
from oos_autopilot.models.shop_settings import ShopSettings
from oos_autopilot.models.activity_log import ActivityLog

router = APIRouter(tags=["System"])


def _uptime(request: Request, now: datetime) -> float:
    start_time = getattr(request.app.state, "start_time", now)
    return (now - start_time).total_seconds()


@router.get("/health", response_model=HealthCheckResponse)
def health_check(request: Request, db: Session = Depends(get_db)):
    """
    Lightweight public health check.
    Returns ok + DB connectivity check (SELECT 1) + scheduler liveness.
    """
    now = utcnow()

    db_ok = True
    extra = {}
    try:
        db.execute(text("SELECT 1"))
    except Exception as e:
        db_ok = False
        extra["db_error"] = str(e)

    scheduler = getattr(request.app.state, "scheduler", None)
    scheduler_running = bool(scheduler and scheduler.is_running)

    return HealthCheckResponse(
        status="ok" if db_ok else "degraded",
        now=now,
        uptime_seconds=_uptime(request, now),
        db_ok=db_ok,
        scheduler_running=scheduler_running,
        extra=extra or None,
    )


@router.get("/metrics", response_model=SystemMetricsResponse)
def system_metrics(request: Request, db: Session = Depends(get_db)):
    """
    In-process counters (requests, scheduler ticks/cycles) plus a few
    DB-derived numbers.
    """
    now = utcnow()

    metrics = getattr(request.app.state, "metrics", None) or {}
    requests_count = int(metrics.get("requests", 0))
    total_response_ms = float(metrics.get("total_response_ms", 0.0))
    avg_response_ms = (total_response_ms / requests_count) if requests_count > 0 else None

    scheduler = getattr(request.app.state, "scheduler", None)
    scheduler_stats = dict(scheduler.stats) if scheduler else {}

    shops_total = db.query(ShopSettings).count()
    shops_automated = db.query(ShopSettings).filter(ShopSettings.automation_enabled.is_(True)).count()
    shops_busy = db.query(ShopSettings).filter(ShopSettings.current_run_state != "IDLE").count()
    activity_total = db.query(ActivityLog).count()

    return SystemMetricsResponse(
        uptime_seconds=_uptime(request, now),
        now=now,
        requests_count=requests_count,
        avg_response_ms=avg_response_ms,
        scheduler=scheduler_stats,
        shops_total=shops_total,
        shops_automated=shops_automated,
        shops_busy=shops_busy,
        activity_log_entries=activity_total,
    )
