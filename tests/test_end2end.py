import json
from datetime import timedelta

import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import sessionmaker

from oos_autopilot.core.clock import utcnow
from oos_autopilot.dependencies.auth import require_shop
from oos_autopilot.enums.automation import RunIntervalUnit, RunKind
from oos_autopilot.routes import webhooks
from oos_autopilot.routes.activity import clear_activity_route, list_activity_route, list_enriched_activity_route
from oos_autopilot.routes.scan import manual_deactivate_route, manual_scan_route, run_status_route, store_stats_route
from oos_autopilot.routes.settings import get_settings_route, save_settings_route
from oos_autopilot.schemas.catalog import InventoryLevelRecord, ProductRef, VariantRecord
from oos_autopilot.schemas.scan import DeactivateRequest, ScanRequest
from oos_autopilot.schemas.settings import SettingsUpdate
from oos_autopilot.services.store import RunStateStore

from conftest import engine
from fakes import SHOP, FakeCatalogGateway, product

TAG = "auto-archived-oos"


def _stock_variant(days_ago, available=0, sku="SKU-1"):
    return VariantRecord(
        sku=sku,
        tracked=True,
        inventory_level=InventoryLevelRecord(updated_at=utcnow() - timedelta(days=days_ago), available=available),
    )


@pytest.fixture(scope="module")
def e2e_store():
    connection = engine.connect()
    trans = connection.begin()
    session_factory = sessionmaker(
        autocommit=False, autoflush=False, bind=connection, join_transaction_mode="create_savepoint"
    )
    try:
        yield RunStateStore(session_factory)
    finally:
        trans.rollback()
        connection.close()


@pytest.fixture(scope="module")
def e2e_gateway():
    return FakeCatalogGateway(pages=[
        [
            product("1", _stock_variant(200), title="Faded Tee"),
            product("2", _stock_variant(5), title="New Arrival"),
            product("3", _stock_variant(150), product_type="Gift Card", title="Gift Card"),
        ],
        [
            product("4", _stock_variant(400, sku="OLD-4"), title="Old Boots"),
            product("5", _stock_variant(300, available=3), title="Restocked"),
        ],
    ])


def test_missing_session_token_is_rejected():
    with pytest.raises(HTTPException) as excinfo:
        require_shop(None)
    assert excinfo.value.status_code == 401


def test_garbage_session_token_is_rejected():
    with pytest.raises(HTTPException) as excinfo:
        require_shop(HTTPAuthorizationCredentials(scheme="Bearer", credentials="not-a-jwt"))
    assert excinfo.value.status_code == 401


@pytest.mark.order(1)
def test_settings_default_then_save(e2e_store):
    defaults = get_settings_route(shop=SHOP, store=e2e_store)
    assert defaults.automation_enabled is False
    assert defaults.inactivity_threshold_days == 90

    saved = save_settings_route(
        SettingsUpdate(run_interval_value=12, run_interval_unit=RunIntervalUnit.minutes, inactivity_threshold_days=100),
        shop=SHOP,
        store=e2e_store,
    )
    assert saved.run_interval_value == 12
    assert saved.automation_enabled is False

    again = save_settings_route(SettingsUpdate(automation_enabled=True), shop=SHOP, store=e2e_store)
    assert again.automation_enabled is True
    assert again.run_interval_unit == RunIntervalUnit.minutes
    assert again.inactivity_threshold_days == 100


@pytest.mark.order(2)
@pytest.mark.asyncio
async def test_manual_scan_lists_candidates_without_mutating(e2e_store, e2e_gateway):
    result = await manual_scan_route(ScanRequest(), shop=SHOP, store=e2e_store, gateway=e2e_gateway)

    assert [c.id for c in result.candidates] == ["gid://shopify/Product/1", "gid://shopify/Product/4"]
    assert result.count == 2
    assert result.products_checked == 5
    assert result.partial is False
    assert e2e_gateway.status_calls == []

    status = run_status_route(shop=SHOP, store=e2e_store)
    assert status.last_run_kind == RunKind.MANUAL
    assert [c.id for c in status.last_run_result_set] == ["gid://shopify/Product/1", "gid://shopify/Product/4"]
    assert status.current_run_state == "IDLE"


@pytest.mark.order(3)
@pytest.mark.asyncio
async def test_manual_scan_with_explicit_days(e2e_store, e2e_gateway):
    result = await manual_scan_route(ScanRequest(days=250), shop=SHOP, store=e2e_store, gateway=e2e_gateway)
    assert [c.id for c in result.candidates] == ["gid://shopify/Product/4"]


@pytest.mark.order(4)
@pytest.mark.asyncio
async def test_manual_deactivate(e2e_store, e2e_gateway):
    status = run_status_route(shop=SHOP, store=e2e_store)
    result = await manual_deactivate_route(
        DeactivateRequest(products=status.last_run_result_set),
        shop=SHOP,
        store=e2e_store,
        gateway=e2e_gateway,
    )

    assert result.deactivated_count == 1
    assert result.ids == ["gid://shopify/Product/4"]
    assert e2e_gateway.statuses["gid://shopify/Product/4"] == "DRAFT"
    assert TAG in e2e_gateway.tags["gid://shopify/Product/4"]

    status = run_status_route(shop=SHOP, store=e2e_store)
    assert status.current_run_state == "IDLE"
    assert status.latest_log_id is not None


@pytest.mark.order(5)
@pytest.mark.asyncio
async def test_activity_listing(e2e_store, e2e_gateway):
    page = list_activity_route(filter="deactivated", page=1, shop=SHOP, store=e2e_store)
    assert page.total_count == 1
    assert page.total_pages == 1
    assert page.logs[0].product_title == "Old Boots"
    assert page.logs[0].product_sku == "OLD-4"

    e2e_gateway.add_inventory_item(
        "4004",
        ProductRef(id="gid://shopify/Product/4", title="Old Boots (renamed)", status="DRAFT", tags=[TAG], sku="OLD-4"),
    )
    enriched = await list_enriched_activity_route(filter="all", page=1, shop=SHOP, store=e2e_store, gateway=e2e_gateway)
    assert enriched.logs[0].product_details.title == "Old Boots (renamed)"
    assert enriched.logs[0].product_details.status == "DRAFT"


@pytest.mark.order(6)
@pytest.mark.asyncio
async def test_inventory_webhook_reactivates(e2e_store, e2e_gateway, monkeypatch):
    monkeypatch.setattr(webhooks, "webhook_gateway", lambda shop: e2e_gateway)
    body = json.dumps({"inventory_item_id": 4004, "location_id": 1, "available": 6}).encode()

    response = await webhooks.inventory_levels_update_route(
        body=body, x_shopify_shop_domain=SHOP, x_shopify_topic="inventory_levels/update", store=e2e_store
    )
    assert response == {"ok": True, "reactivated": True}
    assert e2e_gateway.statuses["gid://shopify/Product/4"] == "ACTIVE"

    duplicate = await webhooks.inventory_levels_update_route(
        body=body, x_shopify_shop_domain=SHOP, x_shopify_topic="inventory_levels/update", store=e2e_store
    )
    assert duplicate == {"ok": True, "reactivated": False}

    page = list_activity_route(filter="reactivated", page=1, shop=SHOP, store=e2e_store)
    assert page.total_count == 1


@pytest.mark.order(7)
@pytest.mark.asyncio
async def test_webhook_without_stock_is_acknowledged(e2e_store):
    body = json.dumps({"inventory_item_id": 4004, "available": 0}).encode()
    response = await webhooks.inventory_levels_update_route(
        body=body, x_shopify_shop_domain=SHOP, x_shopify_topic="inventory_levels/update", store=e2e_store
    )
    assert response == {"ok": True, "reactivated": False}


@pytest.mark.order(8)
@pytest.mark.asyncio
async def test_store_stats(e2e_gateway):
    e2e_gateway.counts = {"status:active": 12, "status:draft": 3, "status:active AND inventory_total:<=0": 2}
    stats = await store_stats_route(gateway=e2e_gateway)
    assert stats.active == 12
    assert stats.draft == 3
    assert stats.archived == 0
    assert stats.active_no_stock == 2


@pytest.mark.order(9)
def test_clear_activity(e2e_store):
    assert clear_activity_route(shop=SHOP, store=e2e_store).cleared == 2
    assert list_activity_route(filter="all", page=1, shop=SHOP, store=e2e_store).total_count == 0


@pytest.mark.order(8)
@pytest.mark.asyncio
@pytest.mark.parametrize("available", ["0", "-2.0", 0.0])
async def test_webhook_quantity_as_string_or_float(e2e_store, available):
    body = json.dumps({"inventory_item_id": 4004, "available": available}).encode()
    response = await webhooks.inventory_levels_update_route(
        body=body, x_shopify_shop_domain=SHOP, x_shopify_topic="inventory_levels/update", store=e2e_store
    )
    assert response == {"ok": True, "reactivated": False}


@pytest.mark.order(8)
@pytest.mark.asyncio
@pytest.mark.parametrize("available", ["lots", [3], {"n": 1}])
async def test_webhook_unreadable_quantity_is_a_bad_request(e2e_store, available):
    body = json.dumps({"inventory_item_id": 4004, "available": available}).encode()
    with pytest.raises(HTTPException) as excinfo:
        await webhooks.inventory_levels_update_route(
            body=body, x_shopify_shop_domain=SHOP, x_shopify_topic="inventory_levels/update", store=e2e_store
        )
    assert excinfo.value.status_code == 400
