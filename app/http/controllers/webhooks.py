"""
Shopify webhook receivers (one per resource). Public endpoints (no session); HMAC verified
on the raw body before anything is parsed.
"""
import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from app.config import Settings
from app.http.dependencies import get_document_store, get_settings
from app.services.firestore import FirestoreClient
from app.services.shopify_hmac import verify_webhook_hmac
from app.services.shopify_webhook_handler import (
    RESOURCE_CUSTOMERS,
    RESOURCE_ORDERS,
    RESOURCE_PRODUCTS,
    parse_payload,
    process_shopify_webhook,
)

logger = logging.getLogger(__name__)
router = APIRouter()

HMAC_HEADER = "X-Shopify-Hmac-Sha256"


async def _receive(request: Request, resource: str, settings: Settings, store: FirestoreClient) -> JSONResponse:
    raw_body = await request.body()
    hmac_header = request.headers.get(HMAC_HEADER)
    if not verify_webhook_hmac(raw_body, hmac_header, settings.SHOPIFY_WEBHOOK_SECRET):
        logger.warning(
            "Shopify webhook %s: HMAC verification failed (shop=%s topic=%s)",
            resource, request.headers.get("X-Shopify-Shop-Domain"), request.headers.get("X-Shopify-Topic"),
        )
        return JSONResponse(status_code=status.HTTP_401_UNAUTHORIZED, content={"error": "Unauthorized"})

    payload = parse_payload(raw_body)
    if payload is None:
        logger.warning("Shopify webhook %s: body is not a JSON object", resource)
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": "Invalid JSON payload"})

    # Acknowledge regardless of the write outcome; failures are logged by the handler
    await process_shopify_webhook(store, resource, payload)
    return JSONResponse(content={"ok": True})


@router.post("/webhooks/customers")
async def shopify_customers_webhook(
    request: Request,
    settings: Settings = Depends(get_settings),
    store: FirestoreClient = Depends(get_document_store),
):
    """customers/create, customers/update -> customers/shopify-<id>"""
    return await _receive(request, RESOURCE_CUSTOMERS, settings, store)


@router.post("/webhooks/orders")
async def shopify_orders_webhook(
    request: Request,
    settings: Settings = Depends(get_settings),
    store: FirestoreClient = Depends(get_document_store),
):
    """orders/create, orders/updated -> invoices/SHOPIFY-<order_number> (+ the order's customer)"""
    return await _receive(request, RESOURCE_ORDERS, settings, store)


@router.post("/webhooks/products")
async def shopify_products_webhook(
    request: Request,
    settings: Settings = Depends(get_settings),
    store: FirestoreClient = Depends(get_document_store),
):
    """products/create, products/update -> products/<sku>, one document per variant"""
    return await _receive(request, RESOURCE_PRODUCTS, settings, store)
