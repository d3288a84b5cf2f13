"""
Shopify OAuth routes: install redirect with CSRF state cookie, and the callback that
verifies state + HMAC, exchanges the code, persists the connection and registers webhooks.
"""
import logging
import secrets
from typing import Optional

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import RedirectResponse

from app.config import Settings
from app.http.dependencies import get_document_store, get_http_client, get_oauth_service, get_settings
from app.services import shop_connection
from app.services.firestore import FirestoreClient
from app.services.shopify_oauth import (
    CALLBACK_PATH,
    STATE_COOKIE,
    STATE_MAX_AGE,
    ShopifyOAuthService,
    app_url_for_host,
    generate_state,
    is_local_host,
    is_valid_shop_domain,
)
from app.services.shopify_service import ensure_webhooks

logger = logging.getLogger(__name__)
router = APIRouter()


def _states_match(returned: Optional[str], stored: Optional[str]) -> bool:
    if not returned or not stored:
        return False
    return secrets.compare_digest(returned.encode("utf-8"), stored.encode("utf-8"))


@router.get("/auth")
async def shopify_oauth_install(
    request: Request,
    shop: Optional[str] = Query(None, description="Shop domain, e.g. mystore.myshopify.com"),
    settings: Settings = Depends(get_settings),
    oauth_service: ShopifyOAuthService = Depends(get_oauth_service),
):
    """Redirect the merchant to Shopify's consent screen with a fresh state cookie."""
    if not is_valid_shop_domain(shop):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or missing shop parameter")
    if not settings.SHOPIFY_API_KEY:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="SHOPIFY_API_KEY is not configured")

    host = request.headers.get("host") or ""
    redirect_uri = f"{app_url_for_host(host)}{CALLBACK_PATH}"
    state = generate_state()
    oauth_url = oauth_service.get_install_url(shop.lower(), redirect_uri, state)

    response = RedirectResponse(url=oauth_url, status_code=status.HTTP_302_FOUND)
    response.set_cookie(
        STATE_COOKIE,
        state,
        max_age=STATE_MAX_AGE,
        path="/",
        httponly=True,
        secure=not is_local_host(host),
        samesite="lax",
    )
    return response


@router.get(
    "/callback",
    summary="Shopify OAuth callback: state + HMAC verify, token exchange, persist, redirect",
)
async def shopify_oauth_callback(
    request: Request,
    settings: Settings = Depends(get_settings),
    oauth_service: ShopifyOAuthService = Depends(get_oauth_service),
    store: FirestoreClient = Depends(get_document_store),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    """
    Receives state, hmac, shop, code, timestamp from Shopify.
    Always answers with a redirect to the settings page: connected, or error with a reason code.
    """
    params = request.query_params
    host = request.headers.get("host") or ""
    app_url = app_url_for_host(host)

    def _fail(reason: str) -> RedirectResponse:
        logger.warning("Shopify OAuth callback rejected: reason=%s shop=%s", reason, params.get("shop"))
        return RedirectResponse(url=f"{app_url}/settings?shopify=error&reason={reason}", status_code=status.HTTP_302_FOUND)

    if not _states_match(params.get("state"), request.cookies.get(STATE_COOKIE)):
        return _fail("state")
    if not oauth_service.verify_hmac(params.multi_items()):
        return _fail("hmac")

    shop = (params.get("shop") or "").lower()
    if not is_valid_shop_domain(shop):
        return _fail("shop")

    access_token = await oauth_service.exchange_code_for_token(shop, params.get("code"))
    if not access_token:
        return _fail("token")

    if not await shop_connection.save(store, shop, access_token):
        return _fail("store")

    # Webhooks keep the POS current from now on; a failure here must not undo the connection
    try:
        await ensure_webhooks(
            client, shop, access_token, settings.APP_URL or app_url, settings.SHOPIFY_API_VERSION
        )
    except Exception as e:
        logger.exception("Webhook registration after OAuth failed for shop %s: %s", shop, e)

    response = RedirectResponse(url=f"{app_url}/settings?shopify=connected", status_code=status.HTTP_302_FOUND)
    response.delete_cookie(STATE_COOKIE, path="/")
    return response
