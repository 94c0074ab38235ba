import json
import logging
import re
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx

from oos_autopilot.core.config import settings
from oos_autopilot.schemas.catalog import (
    InventoryLevelRecord,
    ProductPage,
    ProductRecord,
    ProductRef,
    ProductSummary,
    UserError,
    VariantRecord,
)

logger = logging.getLogger(__name__)

ZERO_STOCK_ACTIVE_QUERY = "status:active AND inventory_total:<=0"
NODES_CHUNK_SIZE = 50

_FRACTION = re.compile(r"\.(\d+)")


class CatalogQueryError(Exception):
    """Transport, HTTP, GraphQL or response-shape failure."""


class CatalogMutationError(CatalogQueryError):
    def __init__(self, operation: str, user_errors: List[UserError]):
        self.operation = operation
        self.user_errors = user_errors
        messages = "; ".join(e.message for e in user_errors)
        super().__init__(f"{operation} rejected: {messages}")


# =========================
# GraphQL documents
# =========================

QUERY_ZERO_STOCK_PAGE = """
query ZeroStockProducts($first: Int!, $cursor: String, $query: String!) {
  products(first: $first, after: $cursor, query: $query) {
    pageInfo { hasNextPage endCursor }
    nodes {
      id
      title
      productType
      featuredImage { url }
      variants(first: 10) {
        nodes {
          sku
          inventoryItem {
            tracked
            inventoryLevels(first: 1) {
              edges {
                node {
                  updatedAt
                  quantities(names: ["available"]) { name quantity }
                }
              }
            }
          }
        }
      }
    }
  }
}
"""

QUERY_PRODUCT_BY_INVENTORY_ITEM = """
query ProductByInventoryItem($inventoryItemId: ID!) {
  inventoryItem(id: $inventoryItemId) {
    variant {
      sku
      product { id title status tags }
    }
  }
}
"""

QUERY_PRODUCT_NODES = """
query ProductNodes($ids: [ID!]!) {
  nodes(ids: $ids) {
    ... on Product {
      id
      title
      handle
      status
      featuredImage { url }
      variants(first: 1) { nodes { sku } }
    }
  }
}
"""

QUERY_PRODUCTS_COUNT = """
query ProductsCount($query: String) {
  productsCount(query: $query, limit: null) { count }
}
"""

MUTATION_TAGS_ADD = """
mutation TagsAdd($id: ID!, $tags: [String!]!) {
  tagsAdd(id: $id, tags: $tags) {
    userErrors { field message }
  }
}
"""

MUTATION_SET_STATUS = """
mutation SetStatus($input: ProductInput!) {
  productUpdate(input: $input) {
    product { id status }
    userErrors { field message }
  }
}
"""

MUTATION_REACTIVATE = """
mutation Reactivate($input: ProductInput!, $id: ID!, $tags: [String!]!) {
  productUpdate(input: $input) {
    product { id status }
    userErrors { field message }
  }
  tagsRemove(id: $id, tags: $tags) {
    userErrors { field message }
  }
}
"""


# =========================
# Parsing helpers
# =========================

def inventory_item_gid(inventory_item_id: Any) -> str:
    value = str(inventory_item_id).strip()
    if value.startswith("gid://"):
        return value
    return f"gid://shopify/InventoryItem/{value}"


def _parse_timestamp(raw: Optional[str]) -> Optional[datetime]:
    if not raw:
        return None
    try:
        value = raw.replace("Z", "+00:00")
        # fromisoformat wants exactly 3 or 6 fractional digits
        value = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), value, count=1)
        return datetime.fromisoformat(value)
    except ValueError:
        logger.warning("Unparseable inventory timestamp %r", raw)
        return None


def _parse_level(item: Dict[str, Any]) -> Optional[InventoryLevelRecord]:
    levels = item.get("inventoryLevels")
    if not levels:
        return None
    edges = levels.get("edges") or []
    if not edges or not edges[0].get("node"):
        return None
    node = edges[0]["node"]

    available = None
    quantities = node.get("quantities")
    if quantities is not None:
        for q in quantities:
            if q.get("name", "available") == "available":
                available = q.get("quantity")
                break

    return InventoryLevelRecord(
        updated_at=_parse_timestamp(node.get("updatedAt")),
        available=available,
    )


def _parse_variant(node: Dict[str, Any]) -> VariantRecord:
    item = node.get("inventoryItem")
    if item is None:
        return VariantRecord(sku=node.get("sku"))
    return VariantRecord(
        sku=node.get("sku"),
        tracked=item.get("tracked"),
        inventory_level=_parse_level(item),
    )


def parse_product_node(node: Dict[str, Any]) -> ProductRecord:
    image = node.get("featuredImage") or {}
    variants = (node.get("variants") or {}).get("nodes") or []
    return ProductRecord(
        id=node["id"],
        title=node.get("title") or "",
        product_type=node.get("productType"),
        image_url=image.get("url"),
        variants=[_parse_variant(v) for v in variants],
    )


def _user_errors(payload: Optional[Dict[str, Any]]) -> List[UserError]:
    if not payload:
        return []
    return [UserError(**e) for e in payload.get("userErrors") or []]


# =========================
# Gateway
# =========================

class ShopifyCatalogGateway:
    """
    Async Admin GraphQL client for one shop.

    Use as ``async with ShopifyCatalogGateway(shop, token) as gateway: ...``
    """

    def __init__(
        self,
        shop: str,
        access_token: str,
        *,
        api_version: Optional[str] = None,
        timeout: Optional[float] = None,
        page_size: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.shop = shop
        self.page_size = page_size or settings.SCAN_PAGE_SIZE
        version = api_version or settings.SHOPIFY_API_VERSION
        self.endpoint = f"https://{shop}/admin/api/{version}/graphql.json"
        self._client = httpx.AsyncClient(
            headers={
                "X-Shopify-Access-Token": access_token,
                "Content-Type": "application/json",
            },
            timeout=httpx.Timeout(timeout or settings.CATALOG_TIMEOUT_SECONDS),
            transport=transport,
        )

    async def __aenter__(self) -> "ShopifyCatalogGateway":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _graphql(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        payload = {"query": query, "variables": variables or {}}
        try:
            r = await self._client.post(self.endpoint, json=payload)
        except httpx.HTTPError as e:
            raise CatalogQueryError(f"{self.shop}: {type(e).__name__}: {e}") from e

        if r.status_code != 200:
            raise CatalogQueryError(f"{self.shop}: GraphQL HTTP {r.status_code}: {r.text[:500]}")
        try:
            data = r.json()
        except ValueError as e:
            raise CatalogQueryError(f"{self.shop}: response is not JSON") from e

        if data.get("errors"):
            raise CatalogQueryError(f"{self.shop}: GraphQL errors: {json.dumps(data['errors'])}")
        if not isinstance(data.get("data"), dict):
            raise CatalogQueryError(f"{self.shop}: response has no data")
        return data["data"]

    # ---------- READS ----------

    async def fetch_zero_stock_active_page(self, cursor: Optional[str] = None) -> ProductPage:
        data = await self._graphql(
            QUERY_ZERO_STOCK_PAGE,
            {"first": self.page_size, "cursor": cursor, "query": ZERO_STOCK_ACTIVE_QUERY},
        )
        products = data.get("products")
        if not products or "nodes" not in products:
            raise CatalogQueryError(f"{self.shop}: products connection missing from response")

        page_info = products.get("pageInfo") or {}
        try:
            records = [parse_product_node(n) for n in products["nodes"]]
        except (KeyError, TypeError, ValueError) as e:
            raise CatalogQueryError(f"{self.shop}: malformed product node: {e}") from e

        return ProductPage(
            products=records,
            end_cursor=page_info.get("endCursor"),
            has_next_page=bool(page_info.get("hasNextPage")),
        )

    async def fetch_product_by_inventory_item(self, inventory_item_id: Any) -> Optional[ProductRef]:
        data = await self._graphql(
            QUERY_PRODUCT_BY_INVENTORY_ITEM,
            {"inventoryItemId": inventory_item_gid(inventory_item_id)},
        )
        variant = (data.get("inventoryItem") or {}).get("variant")
        product = (variant or {}).get("product")
        if not product:
            return None
        return ProductRef(
            id=product["id"],
            title=product.get("title") or "",
            status=product.get("status"),
            tags=product.get("tags") or [],
            sku=variant.get("sku"),
        )

    async def fetch_products_by_ids(self, ids: List[str]) -> Dict[str, ProductSummary]:
        found: Dict[str, ProductSummary] = {}
        for i in range(0, len(ids), NODES_CHUNK_SIZE):
            chunk = ids[i:i + NODES_CHUNK_SIZE]
            data = await self._graphql(QUERY_PRODUCT_NODES, {"ids": chunk})
            for node in data.get("nodes") or []:
                if not node or not node.get("id"):
                    continue
                variants = (node.get("variants") or {}).get("nodes") or []
                found[node["id"]] = ProductSummary(
                    id=node["id"],
                    title=node.get("title") or "",
                    handle=node.get("handle"),
                    status=node.get("status"),
                    image_url=(node.get("featuredImage") or {}).get("url"),
                    sku=variants[0].get("sku") if variants else None,
                )
        return found

    async def count_products(self, query: str) -> int:
        data = await self._graphql(QUERY_PRODUCTS_COUNT, {"query": query})
        return int((data.get("productsCount") or {}).get("count") or 0)

    # ---------- MUTATIONS ----------

    async def add_tags(self, product_id: str, tags: List[str]) -> None:
        data = await self._graphql(MUTATION_TAGS_ADD, {"id": product_id, "tags": tags})
        errors = _user_errors(data.get("tagsAdd"))
        if errors:
            raise CatalogMutationError("tagsAdd", errors)

    async def set_status(self, product_id: str, status: str) -> None:
        data = await self._graphql(MUTATION_SET_STATUS, {"input": {"id": product_id, "status": status}})
        errors = _user_errors(data.get("productUpdate"))
        if errors:
            raise CatalogMutationError("productUpdate", errors)

    async def reactivate(self, product_id: str, tag: str) -> None:
        data = await self._graphql(
            MUTATION_REACTIVATE,
            {"input": {"id": product_id, "status": "ACTIVE"}, "id": product_id, "tags": [tag]},
        )
        # root mutation fields run in order; tagsRemove has already run when productUpdate fails
        status_errors = _user_errors(data.get("productUpdate"))
        if status_errors:
            raise CatalogMutationError("productUpdate", status_errors)
        tag_errors = _user_errors(data.get("tagsRemove"))
        if tag_errors:
            raise CatalogMutationError("tagsRemove", tag_errors)


def build_gateway(shop: str) -> ShopifyCatalogGateway:
    """Gateway for a shop using its stored offline access token."""
    token = settings.SHOP_ACCESS_TOKENS.get(shop)
    if not token:
        raise CatalogQueryError(f"No offline access token configured for {shop}")
    return ShopifyCatalogGateway(shop, token)
