import json
from datetime import datetime, timezone

import httpx
import pytest

from oos_autopilot.services.catalog_gateway import (
    CatalogMutationError,
    CatalogQueryError,
    ShopifyCatalogGateway,
    build_gateway,
    inventory_item_gid,
    parse_product_node,
)

SHOP = "gateway-test.myshopify.com"


def _gateway(handler, **kwargs):
    return ShopifyCatalogGateway(SHOP, "shpat_test", transport=httpx.MockTransport(handler), **kwargs)


def _respond(data=None, errors=None, status_code=200):
    def handler(request: httpx.Request) -> httpx.Response:
        body = {}
        if data is not None:
            body["data"] = data
        if errors is not None:
            body["errors"] = errors
        return httpx.Response(status_code, json=body)
    return handler


PRODUCT_NODE = {
    "id": "gid://shopify/Product/1",
    "title": "Wool Socks",
    "productType": "",
    "featuredImage": None,
    "variants": {
        "nodes": [
            {
                "sku": "",
                "inventoryItem": {
                    "tracked": True,
                    "inventoryLevels": {
                        "edges": [
                            {
                                "node": {
                                    "updatedAt": "2026-01-02T03:04:05Z",
                                    "quantities": [{"name": "available", "quantity": 0}],
                                }
                            }
                        ]
                    },
                },
            },
            {"sku": None, "inventoryItem": {"tracked": False, "inventoryLevels": {"edges": []}}},
            {"sku": "NO-ITEM"},
        ]
    },
}


def test_parse_product_node_keeps_absent_and_empty_apart():
    record = parse_product_node(PRODUCT_NODE)

    assert record.product_type == ""
    assert record.image_url is None
    first, second, third = record.variants
    assert first.sku == ""
    assert first.tracked is True
    assert first.inventory_level.available == 0
    assert first.inventory_level.updated_at == datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    assert second.inventory_level is None
    assert second.tracked is False
    assert third.tracked is None
    assert third.inventory_level is None


@pytest.mark.parametrize(
    "raw, expected_micros",
    [
        ("2026-01-02T03:04:05.5Z", 500000),
        ("2026-01-02T03:04:05.12Z", 120000),
        ("2026-01-02T03:04:05.1234Z", 123400),
        ("2026-01-02T03:04:05.123456789Z", 123456),
        ("2026-01-02T03:04:05.250-05:00", 250000),
    ],
)
def test_inventory_timestamps_with_any_fraction_length(raw, expected_micros):
    node = {
        "id": "gid://shopify/Product/9",
        "title": "Fractional",
        "variants": {"nodes": [{"sku": "F", "inventoryItem": {"tracked": True, "inventoryLevels": {"edges": [
            {"node": {"updatedAt": raw, "quantities": [{"name": "available", "quantity": 0}]}}
        ]}}}]},
    }

    updated_at = parse_product_node(node).variants[0].inventory_level.updated_at

    assert updated_at is not None
    assert updated_at.microsecond == expected_micros
    assert updated_at.second == 5


def test_inventory_item_gid():
    assert inventory_item_gid(12345) == "gid://shopify/InventoryItem/12345"
    assert inventory_item_gid("gid://shopify/InventoryItem/9") == "gid://shopify/InventoryItem/9"


@pytest.mark.asyncio
async def test_page_request_and_parse():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["token"] = request.headers["X-Shopify-Access-Token"]
        seen["variables"] = json.loads(request.content)["variables"]
        return httpx.Response(200, json={"data": {"products": {
            "pageInfo": {"hasNextPage": True, "endCursor": "abc"},
            "nodes": [PRODUCT_NODE],
        }}})

    async with _gateway(handler, api_version="2024-10", page_size=25) as gateway:
        page = await gateway.fetch_zero_stock_active_page("prev")

    assert seen["url"] == f"https://{SHOP}/admin/api/2024-10/graphql.json"
    assert seen["token"] == "shpat_test"
    assert seen["variables"]["first"] == 25
    assert seen["variables"]["cursor"] == "prev"
    assert "inventory_total:<=0" in seen["variables"]["query"]
    assert page.has_next_page is True
    assert page.end_cursor == "abc"
    assert [p.id for p in page.products] == ["gid://shopify/Product/1"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "handler",
    [
        _respond(status_code=503),
        _respond(errors=[{"message": "Throttled"}]),
        _respond(data={"somethingElse": {}}),
        _respond(),
    ],
)
async def test_page_failures_raise_query_error(handler):
    async with _gateway(handler) as gateway:
        with pytest.raises(CatalogQueryError):
            await gateway.fetch_zero_stock_active_page()


@pytest.mark.asyncio
async def test_transport_error_raises_query_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with _gateway(handler) as gateway:
        with pytest.raises(CatalogQueryError):
            await gateway.count_products("status:active")


@pytest.mark.asyncio
async def test_product_by_inventory_item():
    handler = _respond(data={"inventoryItem": {"variant": {
        "sku": "LIN-01",
        "product": {"id": "gid://shopify/Product/7", "title": "Linen", "status": "DRAFT", "tags": ["auto-archived-oos"]},
    }}})

    async with _gateway(handler) as gateway:
        ref = await gateway.fetch_product_by_inventory_item(555)

    assert ref.id == "gid://shopify/Product/7"
    assert ref.tags == ["auto-archived-oos"]
    assert ref.sku == "LIN-01"


@pytest.mark.asyncio
async def test_product_by_unknown_inventory_item_is_none():
    async with _gateway(_respond(data={"inventoryItem": None})) as gateway:
        assert await gateway.fetch_product_by_inventory_item("1") is None


@pytest.mark.asyncio
async def test_user_errors_raise_mutation_error():
    handler = _respond(data={"productUpdate": {
        "product": None,
        "userErrors": [{"field": ["status"], "message": "Product is locked"}],
    }})

    async with _gateway(handler) as gateway:
        with pytest.raises(CatalogMutationError) as excinfo:
            await gateway.set_status("gid://shopify/Product/1", "DRAFT")

    assert excinfo.value.operation == "productUpdate"
    assert excinfo.value.user_errors[0].message == "Product is locked"


@pytest.mark.asyncio
async def test_reactivate_checks_both_mutations():
    handler = _respond(data={
        "productUpdate": {"product": {"id": "gid://shopify/Product/1", "status": "ACTIVE"}, "userErrors": []},
        "tagsRemove": {"userErrors": [{"field": None, "message": "Tag not found"}]},
    })

    async with _gateway(handler) as gateway:
        with pytest.raises(CatalogMutationError) as excinfo:
            await gateway.reactivate("gid://shopify/Product/1", "auto-archived-oos")

    assert excinfo.value.operation == "tagsRemove"


@pytest.mark.asyncio
async def test_reactivate_reports_rejected_status_change_first():
    handler = _respond(data={
        "productUpdate": {"product": None, "userErrors": [{"field": ["status"], "message": "Product is locked"}]},
        "tagsRemove": {"userErrors": []},
    })

    async with _gateway(handler) as gateway:
        with pytest.raises(CatalogMutationError) as excinfo:
            await gateway.reactivate("gid://shopify/Product/1", "auto-archived-oos")

    assert excinfo.value.operation == "productUpdate"


@pytest.mark.asyncio
async def test_products_by_ids_skips_missing_nodes():
    handler = _respond(data={"nodes": [
        None,
        {"id": "gid://shopify/Product/2", "title": "Two", "status": "ACTIVE", "variants": {"nodes": [{"sku": "S2"}]}},
    ]})

    async with _gateway(handler) as gateway:
        found = await gateway.fetch_products_by_ids(["gid://shopify/Product/1", "gid://shopify/Product/2"])

    assert list(found) == ["gid://shopify/Product/2"]
    assert found["gid://shopify/Product/2"].sku == "S2"


def test_build_gateway_without_token():
    with pytest.raises(CatalogQueryError):
        build_gateway("no-token.myshopify.com")
