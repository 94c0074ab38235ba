"""Typed views of the Admin GraphQL responses consumed by the app.

``None`` always means the field was absent from the response; an empty
string or list means it was present and empty.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


class InventoryLevelRecord(BaseModel):
    updated_at: Optional[datetime] = None
    available: Optional[int] = None


class VariantRecord(BaseModel):
    sku: Optional[str] = None
    tracked: Optional[bool] = None
    inventory_level: Optional[InventoryLevelRecord] = None


class ProductRecord(BaseModel):
    id: str
    title: str
    product_type: Optional[str] = None
    image_url: Optional[str] = None
    variants: List[VariantRecord] = []


class ProductPage(BaseModel):
    products: List[ProductRecord] = []
    end_cursor: Optional[str] = None
    has_next_page: bool = False


class ProductRef(BaseModel):
    id: str
    title: str
    status: Optional[str] = None
    tags: List[str] = []
    sku: Optional[str] = None


class ProductSummary(BaseModel):
    id: str
    title: str
    handle: Optional[str] = None
    status: Optional[str] = None
    image_url: Optional[str] = None
    sku: Optional[str] = None


class UserError(BaseModel):
    field: Optional[List[str]] = None
    message: str


class StoreStats(BaseModel):
    active: int = 0
    draft: int = 0
    archived: int = 0
    active_no_stock: int = 0
    inactive_with_stock: int = 0
