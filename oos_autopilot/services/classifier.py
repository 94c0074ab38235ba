from datetime import datetime
from typing import Iterable, List, Optional

from oos_autopilot.core.clock import to_naive_utc
from oos_autopilot.schemas.catalog import ProductRecord
from oos_autopilot.schemas.settings import ProductSnapshot

SECONDS_PER_DAY = 86400


def is_gift_card(product_type: Optional[str]) -> bool:
    # "Gift Card", "Gift Cards", "giftcard"
    if not product_type:
        return False
    normalized = product_type.strip().lower()
    return "gift card" in normalized or normalized == "giftcard"


def last_inventory_touch(product: ProductRecord) -> Optional[datetime]:
    """
    Most recent inventory-level update across the product's variants,
    or None when the product does not qualify as idle:
    an untracked variant, a variant with stock, or no timestamp at all.
    """
    most_recent: Optional[datetime] = None

    for variant in product.variants:
        if variant.tracked is False:
            return None

        level = variant.inventory_level
        if level is None:
            continue

        if (level.available or 0) > 0:
            return None

        if level.updated_at is None:
            continue
        updated_at = to_naive_utc(level.updated_at)
        if most_recent is None or updated_at > most_recent:
            most_recent = updated_at

    return most_recent


def classify_product(product: ProductRecord, threshold_days: int, now: datetime) -> Optional[ProductSnapshot]:
    if is_gift_card(product.product_type):
        return None

    touched_at = last_inventory_touch(product)
    if touched_at is None:
        return None

    elapsed = (to_naive_utc(now) - touched_at).total_seconds()
    if elapsed <= threshold_days * SECONDS_PER_DAY:
        return None

    return ProductSnapshot(
        id=product.id,
        title=product.title,
        sku=product.variants[0].sku if product.variants else None,
        image_url=product.image_url,
        inactivity_days=int(elapsed // SECONDS_PER_DAY),
    )


def classify_page(products: Iterable[ProductRecord], threshold_days: int, now: datetime) -> List[ProductSnapshot]:
    candidates = []
    for product in products:
        snapshot = classify_product(product, threshold_days, now)
        if snapshot is not None:
            candidates.append(snapshot)
    return candidates
