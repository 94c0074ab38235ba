from fastapi import APIRouter, Depends, HTTPException

from oos_autopilot.dependencies.auth import get_gateway, get_store, require_shop
from oos_autopilot.schemas.catalog import StoreStats
from oos_autopilot.schemas.scan import (
    DeactivateRequest,
    DeactivateResponse,
    RunStatusResponse,
    ScanRequest,
    ScanResponse,
)
from oos_autopilot.schemas.settings import TenantSettings
from oos_autopilot.services.catalog_gateway import CatalogQueryError
from oos_autopilot.services.scan_service import (
    ScanFailedError,
    load_store_stats,
    run_manual_deactivation,
    run_manual_scan,
)
from oos_autopilot.services.store import RunStateStore

router = APIRouter(tags=["Scan & Deactivation"])


# ---------- MANUAL SCAN ----------

@router.post("/scan", response_model=ScanResponse)
async def manual_scan_route(
    body: ScanRequest,
    shop: str = Depends(require_shop),
    store: RunStateStore = Depends(get_store),
    gateway=Depends(get_gateway),
):
    try:
        result = await run_manual_scan(store, gateway, shop, threshold_days=body.days)
    except ScanFailedError as e:
        raise HTTPException(status_code=502, detail=f"Catalog scan failed: {e}")

    return ScanResponse(
        candidates=result.candidates,
        count=len(result.candidates),
        products_checked=result.products_checked,
        partial=result.partial,
    )


# ---------- MANUAL DEACTIVATION ----------

@router.post("/scan/deactivate", response_model=DeactivateResponse)
async def manual_deactivate_route(
    body: DeactivateRequest,
    shop: str = Depends(require_shop),
    store: RunStateStore = Depends(get_store),
    gateway=Depends(get_gateway),
):
    deactivated = await run_manual_deactivation(store, gateway, shop, body.products)
    return DeactivateResponse(
        deactivated_count=len(deactivated),
        ids=[p.id for p in deactivated],
    )


# ---------- LIVE STATUS ----------

@router.get("/scan/status", response_model=RunStatusResponse)
def run_status_route(
    shop: str = Depends(require_shop),
    store: RunStateStore = Depends(get_store),
):
    current = store.get_settings(shop) or TenantSettings(shop=shop)
    return RunStatusResponse(
        current_run_state=current.current_run_state,
        automation_enabled=current.automation_enabled,
        last_run_at=current.last_run_at,
        last_run_kind=current.last_run_kind,
        last_run_result_set=current.last_run_result_set,
        run_interval_value=current.run_interval_value,
        run_interval_unit=current.run_interval_unit,
        latest_log_id=store.latest_activity_log_id(shop),
    )


# ---------- STORE STATS ----------

@router.get("/stats", response_model=StoreStats)
async def store_stats_route(gateway=Depends(get_gateway)):
    try:
        return await load_store_stats(gateway)
    except CatalogQueryError as e:
        raise HTTPException(status_code=502, detail=str(e))
