import asyncio
import logging
from typing import List, Optional

from oos_autopilot.core.clock import utcnow
from oos_autopilot.enums.automation import LogMethod, RunKind
from oos_autopilot.schemas.catalog import StoreStats
from oos_autopilot.schemas.settings import ProductSnapshot
from oos_autopilot.services.deactivation import BatchDeactivator
from oos_autopilot.services.scanner import ScanResult, scan_for_candidates
from oos_autopilot.services.store import RunStateStore

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD_DAYS = 90

STATS_QUERIES = {
    "active": "status:active",
    "draft": "status:draft",
    "archived": "status:archived",
    "active_no_stock": "status:active AND inventory_total:<=0",
    "inactive_with_stock": "(status:draft OR status:archived) AND inventory_total:>0",
}


class ScanFailedError(Exception):
    """The catalog could not be read at all."""


# ---------- MANUAL SCAN ----------

async def run_manual_scan(
    store: RunStateStore,
    gateway,
    shop: str,
    threshold_days: Optional[int] = None,
) -> ScanResult:
    """
    Scan without mutating anything and remember the candidates as the
    shop's latest result set.
    """
    if threshold_days is None:
        current = store.get_settings(shop)
        threshold_days = current.inactivity_threshold_days if current else DEFAULT_THRESHOLD_DAYS

    now = utcnow()
    result = await scan_for_candidates(gateway, threshold_days, now)
    if result.failed:
        raise ScanFailedError(result.error)

    store.upsert_settings(
        shop,
        last_run_at=now,
        last_run_kind=RunKind.MANUAL,
        last_run_result_set=result.candidates,
    )
    return result


# ---------- MANUAL DEACTIVATION ----------

async def run_manual_deactivation(
    store: RunStateStore,
    gateway,
    shop: str,
    products: List[ProductSnapshot],
) -> List[ProductSnapshot]:
    executor = BatchDeactivator(store, gateway)
    return await executor.deactivate_batch(shop, products, LogMethod.MANUAL)


# ---------- STORE STATS ----------

async def load_store_stats(gateway) -> StoreStats:
    labels = list(STATS_QUERIES)
    counts = await asyncio.gather(*(gateway.count_products(STATS_QUERIES[label]) for label in labels))
    return StoreStats(**dict(zip(labels, counts)))
