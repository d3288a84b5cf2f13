"""
Pydantic schemas for request/response validation (Http/Requests).
"""
from typing import List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Shopify backfill
class SyncRequest(CamelModel):
    sync_orders: bool = True
    sync_customers: bool = True
    sync_products: bool = False
    overwrite: bool = False
    background: bool = False


class SyncResults(CamelModel):
    customers: int = 0
    orders: int = 0
    products: int = 0
    skipped: int = 0
    failed: int = 0
    cancelled: bool = False
    errors: List[str] = []


class SyncResponse(CamelModel):
    success: bool
    results: Optional[SyncResults] = None
    status: Optional[str] = None


# Shopify webhook registration
class RegisterWebhooksRequest(CamelModel):
    shop: Optional[str] = None
    token: Optional[str] = None


class RegisterWebhooksResponse(CamelModel):
    success: bool
    registered: List[str] = []
    skipped: List[str] = []
    failed: List[str] = []
