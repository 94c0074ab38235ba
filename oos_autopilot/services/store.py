from typing import Any, Callable, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from oos_autopilot.database.connection import SessionLocal
from oos_autopilot.enums.automation import LogAction, LogMethod
from oos_autopilot.models.activity_log import ActivityLog
from oos_autopilot.models.shop_settings import ShopSettings
from oos_autopilot.schemas.activity_log import ActivityLogEntry
from oos_autopilot.schemas.settings import ProductSnapshot, TenantSettings

MAX_PAGE_SIZE = 200

_SETTINGS_FIELDS = {
    "automation_enabled",
    "auto_reactivate_enabled",
    "run_interval_value",
    "run_interval_unit",
    "inactivity_threshold_days",
    "last_run_at",
    "last_run_kind",
    "last_run_result_set",
    "current_run_state",
}


def _plain(value: Any) -> Any:
    # enums and snapshots are stored as their plain values
    if hasattr(value, "value"):
        return value.value
    if isinstance(value, list):
        return [v.model_dump() if isinstance(v, ProductSnapshot) else v for v in value]
    return value


class RunStateStore:
    """
    Settings / last-run state / activity log for every shop.
    Each call runs in its own short session so the scheduler, manual
    routes and webhooks can share one store.
    """

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self._session_factory = session_factory

    # ---------- SETTINGS ----------

    def get_settings(self, shop: str) -> Optional[TenantSettings]:
        with self._session_factory() as db:
            row = db.get(ShopSettings, shop)
            return TenantSettings.model_validate(row) if row else None

    def upsert_settings(self, shop: str, **fields: Any) -> TenantSettings:
        unknown = set(fields) - _SETTINGS_FIELDS
        if unknown:
            raise ValueError(f"Unknown settings fields: {sorted(unknown)}")

        with self._session_factory() as db:
            row = db.get(ShopSettings, shop)
            if row is None:
                row = ShopSettings(shop=shop)
                db.add(row)
            for key, value in fields.items():
                setattr(row, key, _plain(value))
            db.commit()
            db.refresh(row)
            return TenantSettings.model_validate(row)

    def list_settings(self, automation_enabled: Optional[bool] = None) -> List[TenantSettings]:
        with self._session_factory() as db:
            query = db.query(ShopSettings)
            if automation_enabled is not None:
                query = query.filter(ShopSettings.automation_enabled == automation_enabled)
            rows = query.order_by(ShopSettings.shop.asc()).all()
            return [TenantSettings.model_validate(r) for r in rows]

    # ---------- ACTIVITY LOG ----------

    def append_activity_log(
        self,
        shop: str,
        product_id: str,
        product_title: str,
        product_sku: Optional[str],
        action: LogAction,
        method: LogMethod,
    ) -> ActivityLogEntry:
        with self._session_factory() as db:
            entry = ActivityLog(
                shop=shop,
                product_id=product_id,
                product_title=product_title,
                product_sku=product_sku,
                action=action.value,
                method=method.value,
            )
            db.add(entry)
            db.commit()
            db.refresh(entry)
            return ActivityLogEntry.model_validate(entry)

    def list_activity_log(
        self,
        shop: str,
        action: Optional[LogAction] = None,
        page: int = 1,
        page_size: int = 50,
    ) -> Tuple[List[ActivityLogEntry], int]:
        """
        Returns (entries, total_count), newest first.
        page is 1-based.
        """
        if page < 1:
            page = 1
        if page_size < 1:
            page_size = 1
        if page_size > MAX_PAGE_SIZE:
            page_size = MAX_PAGE_SIZE

        with self._session_factory() as db:
            query = db.query(ActivityLog).filter(ActivityLog.shop == shop)
            if action is not None:
                query = query.filter(ActivityLog.action == action.value)

            total = query.with_entities(func.count()).scalar() or 0

            rows = (
                query
                .order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())
                .offset((page - 1) * page_size)
                .limit(page_size)
                .all()
            )
            return [ActivityLogEntry.model_validate(r) for r in rows], total

    def latest_activity_log_id(self, shop: str) -> Optional[int]:
        with self._session_factory() as db:
            return (
                db.query(func.max(ActivityLog.id))
                .filter(ActivityLog.shop == shop)
                .scalar()
            )

    def clear_activity_log(self, shop: str) -> int:
        with self._session_factory() as db:
            deleted = (
                db.query(ActivityLog)
                .filter(ActivityLog.shop == shop)
                .delete(synchronize_session=False)
            )
            db.commit()
            return deleted
