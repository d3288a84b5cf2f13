"""
HOM POS Shopify integration - FastAPI Backend
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import Settings
from app.services.http_client import build_http_client
from routes.api import register_routes

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def _warn_on_missing_config(settings: Settings) -> None:
    """Startup config validation (warn only)."""
    if not settings.shopify_configured:
        logger.warning("⚠️ SHOPIFY_API_KEY / SHOPIFY_API_SECRET not set. OAuth and webhook verification will fail.")
    if not settings.firestore_configured:
        logger.warning("⚠️ FIRESTORE_PROJECT_ID / FIRESTORE_API_KEY not set. Document store writes will fail.")
    if settings.IS_PRODUCTION and not settings.APP_URL:
        logger.warning("⚠️ APP_URL is not set in production. Webhook addresses will follow the request host.")


def create_app(settings: Optional[Settings] = None, http_client: Optional[httpx.AsyncClient] = None) -> FastAPI:
    """Build the API. Tests pass their own Settings and an httpx client backed by MockTransport."""
    settings = settings or Settings()
    owns_client = http_client is None
    client = http_client or build_http_client(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if owns_client:
            await client.aclose()

    app = FastAPI(
        title="HOM POS Shopify Integration API",
        description="Shopify OAuth, webhooks and backfill into the POS document store",
        version="1.0.0",
        docs_url="/docs" if settings.IS_DEVELOPMENT else None,  # Disable docs in production
        redoc_url="/redoc" if settings.IS_DEVELOPMENT else None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.http_client = client

    logger.info("🚀 Starting HOM POS Shopify integration")
    logger.info(f"📊 Environment: {settings.ENV}")
    _warn_on_missing_config(settings)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"Validation error: {exc.errors()}")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "error": "Validation error: Please check your request format",
                "detail": jsonable_encoder(exc.errors()),
            },
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "Internal server error",
                "message": str(exc) if settings.IS_DEVELOPMENT else "An error occurred",
            },
        )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    register_routes(app, settings)

    @app.get("/health")
    async def health():
        """Health check. No outbound calls; reports which integrations are configured."""
        return {
            "status": "ok",
            "service": "api",
            "environment": settings.ENV,
            "shopifyConfigured": settings.shopify_configured,
            "firestoreConfigured": settings.firestore_configured,
        }

    return app


settings = Settings()
configure_logging(settings)
app = create_app(settings)


if __name__ == "__main__":
    uvicorn.run("main:app", host=settings.HOST, port=settings.PORT, log_level=settings.LOG_LEVEL.lower())
