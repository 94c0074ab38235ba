import logging
from typing import List, Optional

from oos_autopilot.core.config import settings
from oos_autopilot.enums.automation import IDLE, LogAction, LogMethod, ProductStatus
from oos_autopilot.schemas.settings import ProductSnapshot
from oos_autopilot.services.catalog_gateway import CatalogQueryError
from oos_autopilot.services.store import RunStateStore

logger = logging.getLogger(__name__)


def progress_message(done: int, total: int) -> str:
    return f"Deactivating: {done}/{total} items..."


class BatchDeactivator:
    """
    Tags and drafts candidates one at a time.

    Stops before the next item once automation is off. AUTO batches always
    check; other batches only when automation was on when they started.
    Processed items stay deactivated.
    """

    def __init__(
        self,
        store: RunStateStore,
        gateway,
        *,
        tag: Optional[str] = None,
        progress_every: Optional[int] = None,
    ):
        self.store = store
        self.gateway = gateway
        self.tag = tag or settings.DEACTIVATION_TAG
        self.progress_every = progress_every or settings.PROGRESS_EVERY

    def _stop_requested(self, shop: str, honour_stop: bool) -> bool:
        if not honour_stop:
            return False
        current = self.store.get_settings(shop)
        return current is None or not current.automation_enabled

    async def _deactivate_one(self, shop: str, product: ProductSnapshot, method: LogMethod) -> bool:
        try:
            await self.gateway.add_tags(product.id, [self.tag])
        except CatalogQueryError as e:
            # status change still goes ahead; the product just won't auto-reactivate
            logger.error("[%s] Error adding tag to %s: %s", shop, product.id, e)

        try:
            await self.gateway.set_status(product.id, ProductStatus.DRAFT.value)
        except CatalogQueryError as e:
            logger.error("[%s] Error setting %s to DRAFT: %s", shop, product.id, e)
            return False

        self.store.append_activity_log(
            shop=shop,
            product_id=product.id,
            product_title=product.title,
            product_sku=product.sku,
            action=LogAction.DEACTIVATE,
            method=method,
        )
        logger.info("[%s] Deactivated %s (%s)", shop, product.id, product.title)
        return True

    async def deactivate_batch(
        self,
        shop: str,
        candidates: List[ProductSnapshot],
        method: LogMethod = LogMethod.AUTO,
    ) -> List[ProductSnapshot]:
        deactivated: List[ProductSnapshot] = []
        total = len(candidates)
        if total == 0:
            return deactivated

        initial = self.store.get_settings(shop)
        started_enabled = bool(initial and initial.automation_enabled)
        honour_stop = method == LogMethod.AUTO or started_enabled

        try:
            for index, product in enumerate(candidates, start=1):
                if self._stop_requested(shop, honour_stop):
                    logger.info(
                        "[%s] Automation switched off; stopping batch at %d/%d",
                        shop, index - 1, total,
                    )
                    break

                if await self._deactivate_one(shop, product, method):
                    deactivated.append(product)

                if index % self.progress_every == 0 or index == total:
                    self.store.upsert_settings(shop, current_run_state=progress_message(index, total))
        finally:
            self.store.upsert_settings(shop, current_run_state=IDLE)

        return deactivated
