import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Dict, List, Optional
from zoneinfo import ZoneInfo

from oos_autopilot.core.clock import utcnow
from oos_autopilot.core.config import settings
from oos_autopilot.enums.automation import IDLE, SCANNING, LogMethod, RunIntervalUnit, RunKind
from oos_autopilot.schemas.settings import TenantSettings
from oos_autopilot.services.catalog_gateway import build_gateway
from oos_autopilot.services.deactivation import BatchDeactivator
from oos_autopilot.services.scanner import scan_for_candidates
from oos_autopilot.services.store import RunStateStore

logger = logging.getLogger(__name__)


# ---------- DUE-TIME ARITHMETIC ----------

def next_run_at(last_run_at: datetime, value: int, unit: RunIntervalUnit, tz: ZoneInfo) -> datetime:
    """
    minutes: exact wall-clock minutes.
    days: the calendar date advances in ``tz`` and the local time of day is
    kept, so a run at 09:00 stays at 09:00 across DST changes.
    """
    if unit == RunIntervalUnit.minutes:
        return last_run_at + timedelta(minutes=value)

    local = last_run_at.replace(tzinfo=timezone.utc).astimezone(tz)
    advanced = (local.replace(tzinfo=None) + timedelta(days=value)).replace(tzinfo=tz)
    return advanced.astimezone(timezone.utc).replace(tzinfo=None)


def is_due(tenant: TenantSettings, now: datetime, tz: ZoneInfo) -> bool:
    if not tenant.automation_enabled:
        return False
    if tenant.last_run_at is None:
        return True
    return now >= next_run_at(
        tenant.last_run_at,
        tenant.run_interval_value,
        tenant.run_interval_unit,
        tz,
    )


# ---------- TENANT SCHEDULER ----------

class TenantScheduler:
    """
    Process-wide loop that runs scan-and-deactivate cycles for due shops.

    One tick every ``tick_seconds``; a tick that arrives while a cycle is
    still running is skipped, so at most one cycle runs per process.
    """

    def __init__(
        self,
        store: RunStateStore,
        gateway_factory: Callable = build_gateway,
        *,
        tick_seconds: Optional[float] = None,
        clock: Callable[[], datetime] = utcnow,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        tz_name: Optional[str] = None,
        tag: Optional[str] = None,
        max_candidates: Optional[int] = None,
    ):
        self.store = store
        self.gateway_factory = gateway_factory
        self.tick_seconds = tick_seconds or settings.SCHEDULER_TICK_SECONDS
        self.clock = clock
        self.sleep = sleep
        self.tz = ZoneInfo(tz_name or settings.SCHEDULER_TIMEZONE)
        self.tag = tag or settings.DEACTIVATION_TAG
        self.max_candidates = max_candidates
        self._busy = False
        self._task: Optional[asyncio.Task] = None
        self.stats: Dict[str, int] = {
            "ticks": 0,
            "ticks_skipped": 0,
            "cycles_run": 0,
            "cycles_failed": 0,
        }

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def busy(self) -> bool:
        return self._busy

    def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.create_task(self.run_forever())
        logger.info("[Scheduler] Initialized background scanner (tick=%ss)", self.tick_seconds)

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def run_forever(self) -> None:
        while True:
            try:
                await self.tick()
            except Exception:
                logger.exception("[Scheduler] Error in tick")
            await self.sleep(self.tick_seconds)

    async def tick(self) -> List[str]:
        """Run every due shop once; returns the shops that were processed."""
        self.stats["ticks"] += 1
        if self._busy:
            self.stats["ticks_skipped"] += 1
            logger.debug("[Scheduler] Previous cycle still running; skipping tick")
            return []

        self._busy = True
        processed: List[str] = []
        try:
            now = self.clock()
            for tenant in self.store.list_settings(automation_enabled=True):
                if not is_due(tenant, now, self.tz):
                    continue
                logger.info("[Scheduler] Running auto-scan for %s", tenant.shop)
                await self.run_cycle(tenant)
                processed.append(tenant.shop)
        finally:
            self._busy = False
        return processed

    async def run_cycle(self, tenant: TenantSettings) -> None:
        shop = tenant.shop
        try:
            self.store.upsert_settings(shop, current_run_state=SCANNING)
            async with self.gateway_factory(shop) as gateway:
                now = self.clock()
                scan = await scan_for_candidates(
                    gateway,
                    tenant.inactivity_threshold_days,
                    now,
                    max_candidates=self.max_candidates,
                )
                executor = BatchDeactivator(self.store, gateway, tag=self.tag)
                deactivated = await executor.deactivate_batch(shop, scan.candidates, LogMethod.AUTO)

            self.store.upsert_settings(
                shop,
                last_run_at=now,
                last_run_kind=RunKind.AUTO,
                last_run_result_set=deactivated,
                current_run_state=IDLE,
            )
            self.stats["cycles_run"] += 1
            logger.info("[Scheduler] %s: deactivated %d product(s)", shop, len(deactivated))
        except Exception:
            self.stats["cycles_failed"] += 1
            logger.exception("[Scheduler] Error executing scan for %s", shop)
            try:
                self.store.upsert_settings(shop, current_run_state=IDLE)
            except Exception:
                logger.exception("[Scheduler] Could not reset run state for %s", shop)
