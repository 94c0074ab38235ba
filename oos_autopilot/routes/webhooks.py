import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException

from oos_autopilot.dependencies.auth import get_store, verified_webhook_body, webhook_gateway
from oos_autopilot.services.catalog_gateway import CatalogQueryError
from oos_autopilot.services.reactivation import ReactivationHandler
from oos_autopilot.services.store import RunStateStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


def _payload(body: bytes) -> dict:
    try:
        payload = json.loads(body or b"{}")
    except ValueError:
        raise HTTPException(status_code=400, detail="Webhook body is not JSON")
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Webhook body must be an object")
    return payload


def _available(raw) -> Optional[int]:
    # Shopify sends an int; tolerate "3" and "3.0"
    if raw is None:
        return None
    try:
        return int(float(raw))
    except (TypeError, ValueError, OverflowError):
        raise HTTPException(status_code=400, detail=f"Invalid available quantity: {raw!r}")


# ---------- INVENTORY LEVEL UPDATE ----------

@router.post("/inventory-levels/update")
async def inventory_levels_update_route(
    body: bytes = Depends(verified_webhook_body),
    x_shopify_shop_domain: str = Header(...),
    x_shopify_topic: str = Header(default="inventory_levels/update"),
    store: RunStateStore = Depends(get_store),
):
    payload = _payload(body)
    inventory_item_id = payload.get("inventory_item_id")
    available = _available(payload.get("available"))
    logger.info(
        "[Webhook] Received %s for %s: item %s, available %s",
        x_shopify_topic, x_shopify_shop_domain, inventory_item_id, available,
    )

    if inventory_item_id is None or available is None or available <= 0:
        return {"ok": True, "reactivated": False}

    try:
        async with webhook_gateway(x_shopify_shop_domain) as gateway:
            handler = ReactivationHandler(store, gateway)
            reactivated = await handler.on_inventory_available(
                x_shopify_shop_domain, inventory_item_id, available
            )
    except CatalogQueryError as e:
        # non-2xx makes Shopify redeliver; the handler is idempotent
        raise HTTPException(status_code=502, detail=str(e))

    return {"ok": True, "reactivated": reactivated}


# ---------- PRIVACY (mandatory compliance topics) ----------

@router.post("/privacy")
async def privacy_webhook_route(
    body: bytes = Depends(verified_webhook_body),
    x_shopify_shop_domain: str = Header(default=None),
    x_shopify_topic: str = Header(default=None),
):
    # no customer data is stored; acknowledge only
    logger.info("[Privacy Webhook] Received %s for shop %s", x_shopify_topic, x_shopify_shop_domain)
    return {"ok": True}
