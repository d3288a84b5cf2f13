"""
Shopify webhook processing after HMAC verification: map payload, upsert POS documents.
Write failures are reported to the caller and logged; they never change the acknowledgment
sent to Shopify.
"""
import json
import logging
from typing import Any, Optional, Union

from app.services.firestore import FirestoreClient
from app.services.shopify_mappers import map_customer, map_invoice, map_product_variants
from app.services.shopify_persist import save_customer, save_invoice, save_product

logger = logging.getLogger(__name__)

RESOURCE_CUSTOMERS = "customers"
RESOURCE_ORDERS = "orders"
RESOURCE_PRODUCTS = "products"


def parse_payload(raw_body: Union[bytes, str]) -> Optional[dict]:
    """Decode the verified raw body. None if it is not a JSON object."""
    try:
        payload = json.loads(raw_body)
    except (ValueError, UnicodeDecodeError):
        return None
    return payload if isinstance(payload, dict) else None


async def process_customer_webhook(store: FirestoreClient, payload: dict) -> bool:
    customer = map_customer(payload)
    if customer.id is None:
        logger.warning("Webhook customers: payload has no customer id, nothing written")
        return True
    ok = await save_customer(store, customer)
    logger.info("Webhook customers: upserted %s ok=%s", customer.id, ok)
    return ok


async def process_order_webhook(store: FirestoreClient, payload: dict) -> bool:
    invoice = map_invoice(payload)
    if invoice.id is None:
        logger.warning("Webhook orders: payload has neither order_number nor id, invoice not written")
        ok = True
    else:
        ok = await save_invoice(store, invoice)
        logger.info("Webhook orders: upserted %s ok=%s", invoice.id, ok)
    # The order carries its customer: keep the customer record current too
    customer_payload = payload.get("customer")
    if isinstance(customer_payload, dict):
        ok = await process_customer_webhook(store, customer_payload) and ok
    return ok


async def process_product_webhook(store: FirestoreClient, payload: dict) -> bool:
    products = map_product_variants(payload)
    ok = True
    for product in products:
        if product.sku is None:
            logger.warning(
                "Webhook products: variant %s of product %s has no sku and no id, not written",
                product.shopify_variant_id or "?", payload.get("id"),
            )
            continue
        ok = await save_product(store, product) and ok
    logger.info("Webhook products: upserted %s variant(s) of product %s ok=%s", len(products), payload.get("id"), ok)
    return ok


_PROCESSORS = {
    RESOURCE_CUSTOMERS: process_customer_webhook,
    RESOURCE_ORDERS: process_order_webhook,
    RESOURCE_PRODUCTS: process_product_webhook,
}


async def process_shopify_webhook(store: FirestoreClient, resource: str, payload: dict) -> bool:
    """Dispatch by resource kind. Returns False if any write failed; never raises for store errors."""
    processor = _PROCESSORS.get(resource)
    if processor is None:
        logger.debug("Webhook resource %s: no handler", resource)
        return False
    ok = await processor(store, payload)
    if not ok:
        logger.error("Webhook %s: document write failed for payload id=%s", resource, _payload_id(payload))
    return ok


def _payload_id(payload: Any) -> Any:
    return payload.get("id") if isinstance(payload, dict) else None
