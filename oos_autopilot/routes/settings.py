from fastapi import APIRouter, Depends

from oos_autopilot.dependencies.auth import get_store, require_shop
from oos_autopilot.schemas.settings import SettingsUpdate, TenantSettings
from oos_autopilot.services.store import RunStateStore

router = APIRouter(prefix="/settings", tags=["Settings"])


@router.get("", response_model=TenantSettings)
def get_settings_route(
    shop: str = Depends(require_shop),
    store: RunStateStore = Depends(get_store),
):
    return store.get_settings(shop) or TenantSettings(shop=shop)


@router.put("", response_model=TenantSettings)
def save_settings_route(
    data: SettingsUpdate,
    shop: str = Depends(require_shop),
    store: RunStateStore = Depends(get_store),
):
    return store.upsert_settings(shop, **data.model_dump(exclude_none=True))
