import logging
import math
from typing import Literal

from fastapi import APIRouter, Depends

from oos_autopilot.dependencies.auth import get_gateway, get_store, require_shop
from oos_autopilot.enums.automation import LogAction
from oos_autopilot.schemas.activity_log import ActivityLogItem, ActivityLogPage, ClearLogsResponse
from oos_autopilot.services.catalog_gateway import CatalogQueryError
from oos_autopilot.services.store import RunStateStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/activity", tags=["Activity Log"])

PAGE_SIZE = 50

_FILTERS = {
    "all": None,
    "deactivated": LogAction.DEACTIVATE,
    "reactivated": LogAction.REACTIVATE,
}


@router.get("", response_model=ActivityLogPage)
def list_activity_route(
    filter: Literal["all", "deactivated", "reactivated"] = "all",
    page: int = 1,
    shop: str = Depends(require_shop),
    store: RunStateStore = Depends(get_store),
):
    entries, total = store.list_activity_log(shop, action=_FILTERS[filter], page=page, page_size=PAGE_SIZE)
    return ActivityLogPage(
        logs=[ActivityLogItem(**e.model_dump()) for e in entries],
        page=max(page, 1),
        total_pages=math.ceil(total / PAGE_SIZE),
        total_count=total,
    )


@router.get("/enriched", response_model=ActivityLogPage)
async def list_enriched_activity_route(
    filter: Literal["all", "deactivated", "reactivated"] = "all",
    page: int = 1,
    shop: str = Depends(require_shop),
    store: RunStateStore = Depends(get_store),
    gateway=Depends(get_gateway),
):
    """
    Same as the plain listing, with each product's current title, status,
    image and SKU looked up in the store. Lookup failures leave details empty.
    """
    result = list_activity_route(filter=filter, page=page, shop=shop, store=store)

    ids = list(dict.fromkeys(item.product_id for item in result.logs))
    details = {}
    if ids:
        try:
            details = await gateway.fetch_products_by_ids(ids)
        except CatalogQueryError as e:
            logger.error("Failed to fetch details for log products: %s", e)

    for item in result.logs:
        item.product_details = details.get(item.product_id)
    return result


@router.delete("", response_model=ClearLogsResponse)
def clear_activity_route(
    shop: str = Depends(require_shop),
    store: RunStateStore = Depends(get_store),
):
    return ClearLogsResponse(cleared=store.clear_activity_log(shop))
