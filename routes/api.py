"""
Central API route registration. All HTTP controllers are mounted here.
Shopify integration routes live under /api/shopify.
"""
import logging
from fastapi import FastAPI

from app.http.controllers import (
    shopify_auth,
    sync,
    webhooks,
)

logger = logging.getLogger(__name__)

SHOPIFY_PREFIX = "/api/shopify"


def register_routes(app: FastAPI, settings) -> None:
    """Register all API routers. Call from main.py after creating the FastAPI app."""
    app.include_router(shopify_auth.router, prefix=SHOPIFY_PREFIX, tags=["shopify-auth"])
    app.include_router(webhooks.router, prefix=SHOPIFY_PREFIX, tags=["shopify-webhooks"])
    app.include_router(sync.router, prefix=SHOPIFY_PREFIX, tags=["shopify-sync"])
    logger.info("Registered Shopify routes under %s (env=%s)", SHOPIFY_PREFIX, settings.ENV)
