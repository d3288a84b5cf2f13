"""
Shopify backfill and webhook registration routes.
"""
import logging
from typing import Optional

import httpx
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse

from app.config import Settings
from app.http.dependencies import get_document_store, get_http_client, get_settings, get_sync_engine
from app.http.requests.schemas import (
    RegisterWebhooksRequest,
    RegisterWebhooksResponse,
    SyncRequest,
    SyncResponse,
)
from app.services import shop_connection
from app.services.firestore import FirestoreClient
from app.services.shop_connection import ShopNotConnectedError
from app.services.shopify_oauth import app_url_for_host, is_valid_shop_domain
from app.services.shopify_service import ensure_webhooks
from app.services.sync_engine import SyncEngine, SyncOptions

logger = logging.getLogger(__name__)
router = APIRouter()


async def _run_backfill_task(engine: SyncEngine, options: SyncOptions) -> None:
    try:
        await engine.run(options)
    except ShopNotConnectedError as e:
        logger.warning("Background Shopify backfill skipped: %s", e)
    except Exception as e:
        logger.exception("Background Shopify backfill failed: %s", e)


@router.post("/sync", response_model=SyncResponse)
async def sync_shopify(
    background_tasks: BackgroundTasks,
    body: Optional[SyncRequest] = None,
    engine: SyncEngine = Depends(get_sync_engine),
    store: FirestoreClient = Depends(get_document_store),
):
    """Backfill customers / orders / products from the connected store."""
    body = body or SyncRequest()
    options = SyncOptions(
        sync_customers=body.sync_customers,
        sync_orders=body.sync_orders,
        sync_products=body.sync_products,
        overwrite=body.overwrite,
    )

    if body.background:
        if await shop_connection.load(store) is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Shopify not connected.")
        background_tasks.add_task(_run_backfill_task, engine, options)
        return JSONResponse(
            status_code=status.HTTP_202_ACCEPTED,
            content={"success": True, "status": "scheduled"},
        )

    try:
        result = await engine.run(options)
    except ShopNotConnectedError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return {"success": True, "results": result.to_dict()}


@router.post("/register-webhooks", response_model=RegisterWebhooksResponse)
async def register_webhooks(
    request: Request,
    body: Optional[RegisterWebhooksRequest] = None,
    settings: Settings = Depends(get_settings),
    store: FirestoreClient = Depends(get_document_store),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    """Subscribe the store to every webhook topic not already registered."""
    if body and body.shop and body.token:
        if not is_valid_shop_domain(body.shop):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid shop parameter")
        shop, token = body.shop.lower(), body.token
    else:
        connection = await shop_connection.load(store)
        if connection is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Shopify not connected.")
        shop, token = connection.store_domain, connection.access_token

    app_url = settings.APP_URL or app_url_for_host(request.headers.get("host") or "")
    result = await ensure_webhooks(client, shop, token, app_url, settings.SHOPIFY_API_VERSION)
    return {"success": True, **result}
