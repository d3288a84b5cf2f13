"""
Shopify backfill engine: pull historical customers, orders and products page by page
and upsert them through the same mappers and writes the webhooks use.
Sequential by design (each page needs the previous page's cursor); run it as a
background task when the caller must stay responsive.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional

import httpx

from app.config import Settings
from app.services import shop_connection
from app.services.firestore import FirestoreClient
from app.services.shop_connection import ShopConnection
from app.services.shopify_mappers import map_customer, map_invoice, map_product_variants
from app.services.shopify_persist import (
    CUSTOMERS,
    INVOICES,
    PRODUCTS,
    save_customer,
    save_invoice,
    save_product,
)
from app.services.shopify_service import fetch_all_pages

logger = logging.getLogger(__name__)


@dataclass
class SyncOptions:
    sync_customers: bool = True
    sync_orders: bool = True
    sync_products: bool = False
    # Existing documents are skipped unless overwrite is set, so POS edits survive a re-run
    overwrite: bool = False


@dataclass
class SyncResult:
    customers: int = 0
    orders: int = 0
    products: int = 0
    skipped: int = 0
    failed: int = 0
    cancelled: bool = False
    errors: list = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "customers": self.customers,
            "orders": self.orders,
            "products": self.products,
            "skipped": self.skipped,
            "failed": self.failed,
            "cancelled": self.cancelled,
            "errors": list(self.errors),
        }


class SyncEngine:
    """Backfill from the connected Shopify store into the POS collections."""

    def __init__(self, settings: Settings, client: httpx.AsyncClient, store: FirestoreClient):
        self.settings = settings
        self.client = client
        self.store = store

    async def _fetch(
        self, connection: ShopConnection, endpoint: str, key: str, cancel_event: Optional[asyncio.Event]
    ) -> list[dict]:
        return await fetch_all_pages(
            self.client,
            connection.store_domain,
            connection.access_token,
            endpoint,
            key,
            api_version=self.settings.SHOPIFY_API_VERSION,
            page_limit=self.settings.SHOPIFY_PAGE_LIMIT,
            cancel_event=cancel_event,
        )

    async def _upsert(
        self,
        result: SyncResult,
        counter: str,
        collection: str,
        doc_id: Optional[str],
        write: Callable[[], Awaitable[bool]],
        overwrite: bool,
    ) -> None:
        if doc_id is None:
            logger.warning("Shopify backfill %s: record without a Shopify id skipped", collection)
            result.skipped += 1
            return
        if not overwrite and await self.store.exists(collection, doc_id):
            result.skipped += 1
            return
        if await write():
            setattr(result, counter, getattr(result, counter) + 1)
        else:
            result.failed += 1

    async def sync_customers(self, connection, result, options, cancel_event=None) -> None:
        for raw in await self._fetch(connection, "/customers.json", "customers", cancel_event):
            if cancel_event is not None and cancel_event.is_set():
                result.cancelled = True
                return
            customer = map_customer(raw)
            await self._upsert(
                result, "customers", CUSTOMERS, customer.id,
                lambda: save_customer(self.store, customer), options.overwrite,
            )

    async def sync_orders(self, connection, result, options, cancel_event=None) -> None:
        for raw in await self._fetch(connection, "/orders.json?status=any", "orders", cancel_event):
            if cancel_event is not None and cancel_event.is_set():
                result.cancelled = True
                return
            invoice = map_invoice(raw)
            await self._upsert(
                result, "orders", INVOICES, invoice.id,
                lambda: save_invoice(self.store, invoice), options.overwrite,
            )

    async def sync_products(self, connection, result, options, cancel_event=None) -> None:
        for raw in await self._fetch(connection, "/products.json", "products", cancel_event):
            for product in map_product_variants(raw):
                if cancel_event is not None and cancel_event.is_set():
                    result.cancelled = True
                    return
                await self._upsert(
                    result, "products", PRODUCTS, product.sku,
                    lambda: save_product(self.store, product), options.overwrite,
                )

    async def run(self, options: Optional[SyncOptions] = None, cancel_event: Optional[asyncio.Event] = None) -> SyncResult:
        """
        Run the backfill. Raises ShopNotConnectedError when no credential is stored.
        A failure in one resource kind is recorded and the others still run.
        """
        options = options or SyncOptions()
        connection = await shop_connection.require(self.store)
        result = SyncResult()
        logger.info(
            "Shopify backfill started for %s (customers=%s orders=%s products=%s overwrite=%s)",
            connection.store_domain, options.sync_customers, options.sync_orders,
            options.sync_products, options.overwrite,
        )
        steps = [
            ("Customers", options.sync_customers, self.sync_customers),
            ("Orders", options.sync_orders, self.sync_orders),
            ("Products", options.sync_products, self.sync_products),
        ]
        for label, enabled, step in steps:
            if not enabled:
                continue
            if cancel_event is not None and cancel_event.is_set():
                result.cancelled = True
                break
            try:
                await step(connection, result, options, cancel_event)
            except Exception as e:
                logger.exception("Shopify backfill %s failed: %s", label, e)
                result.errors.append(f"{label}: {e}")
        if cancel_event is not None and cancel_event.is_set():
            result.cancelled = True

        await shop_connection.mark_synced(self.store)
        logger.info("Shopify backfill finished: %s", result.to_dict())
        return result
