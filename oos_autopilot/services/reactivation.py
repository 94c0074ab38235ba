import logging
from typing import Any, Optional

from oos_autopilot.core.config import settings
from oos_autopilot.enums.automation import LogAction, LogMethod
from oos_autopilot.services.catalog_gateway import CatalogMutationError
from oos_autopilot.services.store import RunStateStore

logger = logging.getLogger(__name__)


class ReactivationHandler:
    """
    Restores products this app drafted once their stock comes back.
    Safe under duplicate webhook delivery: the marker tag is removed on the
    first success, so later deliveries find nothing to do.
    """

    def __init__(self, store: RunStateStore, gateway, *, tag: Optional[str] = None):
        self.store = store
        self.gateway = gateway
        self.tag = tag or settings.DEACTIVATION_TAG

    async def on_inventory_available(self, shop: str, inventory_item_id: Any, available: Optional[int]) -> bool:
        """Returns True when a product was reactivated."""
        if available is None or available <= 0:
            logger.debug("[Webhook] %s: item %s has no stock, ignoring", shop, inventory_item_id)
            return False

        tenant = self.store.get_settings(shop)
        if tenant is not None and not tenant.auto_reactivate_enabled:
            logger.info("[Webhook] %s: auto-reactivation disabled, ignoring item %s", shop, inventory_item_id)
            return False

        product = await self.gateway.fetch_product_by_inventory_item(inventory_item_id)
        if product is None:
            logger.info("[Webhook] %s: no product for inventory item %s", shop, inventory_item_id)
            return False

        if self.tag not in product.tags:
            logger.debug("[Webhook] %s: %s not deactivated by us (tags=%s)", shop, product.id, product.tags)
            return False

        try:
            await self.gateway.reactivate(product.id, self.tag)
        except CatalogMutationError as e:
            logger.error("[Webhook] %s: failed to reactivate %s: %s", shop, product.id, e)
            if e.operation == "productUpdate":
                await self._restore_marker(shop, product.id)
            return False

        self.store.append_activity_log(
            shop=shop,
            product_id=product.id,
            product_title=product.title,
            product_sku=product.sku,
            action=LogAction.REACTIVATE,
            method=LogMethod.WEBHOOK,
        )
        logger.info("[Webhook] %s: reactivated %s (%s)", shop, product.id, product.title)
        return True

    async def _restore_marker(self, shop: str, product_id: str) -> None:
        # still DRAFT but untagged; put the tag back so a later delivery can retry
        try:
            await self.gateway.add_tags(product_id, [self.tag])
        except CatalogMutationError as e:
            logger.error("[Webhook] %s: could not restore marker on %s: %s", shop, product_id, e)
            return
        logger.info("[Webhook] %s: restored marker on %s", shop, product_id)
