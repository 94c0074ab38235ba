import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from oos_autopilot.core.config import settings
from oos_autopilot.schemas.settings import ProductSnapshot
from oos_autopilot.services.catalog_gateway import CatalogQueryError
from oos_autopilot.services.classifier import classify_page

logger = logging.getLogger(__name__)


@dataclass
class ScanResult:
    candidates: List[ProductSnapshot] = field(default_factory=list)
    products_checked: int = 0
    pages_fetched: int = 0
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        """No page could be read at all; not the same as an empty catalog."""
        return self.error is not None and self.pages_fetched == 0

    @property
    def partial(self) -> bool:
        return self.error is not None and self.pages_fetched > 0


async def scan_for_candidates(
    gateway,
    threshold_days: int,
    now: datetime,
    max_candidates: Optional[int] = None,
) -> ScanResult:
    """
    Page through active zero-stock products and classify each page.
    A failed page ends paging; what was gathered so far is kept.
    """
    limit = max_candidates or settings.MAX_SCAN_CANDIDATES
    result = ScanResult()
    cursor = None

    while True:
        try:
            page = await gateway.fetch_zero_stock_active_page(cursor)
        except CatalogQueryError as e:
            logger.warning(
                "Scan of %s stopped after %d page(s): %s",
                gateway.shop, result.pages_fetched, e,
            )
            result.error = str(e)
            break

        result.pages_fetched += 1
        result.products_checked += len(page.products)
        result.candidates.extend(classify_page(page.products, threshold_days, now))

        if len(result.candidates) >= limit:
            logger.info("Scan of %s reached the %d candidate cap", gateway.shop, limit)
            result.candidates = result.candidates[:limit]
            break
        if not page.has_next_page or not page.end_cursor:
            break
        cursor = page.end_cursor

    logger.info(
        "Scan complete for %s. Checked %d products, found %d to deactivate.",
        gateway.shop, result.products_checked, len(result.candidates),
    )
    return result
