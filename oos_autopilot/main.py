import logging

from fastapi import FastAPI

from oos_autopilot.core.clock import utcnow
from oos_autopilot.core.config import settings
from oos_autopilot.database.connection import Base, engine
from oos_autopilot.dependencies.auth import get_store
from oos_autopilot.middleware.metrics import MetricsMiddleware
from oos_autopilot.models import activity_log, shop_settings  # noqa: F401  (register tables)
from oos_autopilot.routes import system
from oos_autopilot.routes.activity import router as activity_router
from oos_autopilot.routes.scan import router as scan_router
from oos_autopilot.routes.settings import router as settings_router
from oos_autopilot.routes.webhooks import router as webhooks_router
from oos_autopilot.services.scheduler_service import TenantScheduler

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

Base.metadata.create_all(bind=engine)

app = FastAPI(title="Out-of-Stock Autopilot")

app.add_middleware(MetricsMiddleware)


app.include_router(settings_router)
app.include_router(scan_router)
app.include_router(activity_router)
app.include_router(webhooks_router)
app.include_router(system.router)

@app.on_event("startup")
async def startup_event():
    app.state.start_time = utcnow()
    app.state.metrics = {"requests": 0, "total_response_ms": 0.0}
    app.state.scheduler = TenantScheduler(get_store())
    if settings.SCHEDULER_ENABLED:
        app.state.scheduler.start()
    else:
        logger.info("Scheduler disabled by configuration")


@app.on_event("shutdown")
async def shutdown_event():
    app.state.scheduler.stop()
