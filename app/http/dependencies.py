"""
FastAPI dependencies. Everything is built from the Settings and HTTP client stored on app.state
at startup, so tests can swap both without touching the environment.
"""
import httpx
from fastapi import Depends, Request

from app.config import Settings
from app.services.firestore import FirestoreClient
from app.services.shopify_oauth import ShopifyOAuthService
from app.services.sync_engine import SyncEngine


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_http_client(request: Request) -> httpx.AsyncClient:
    return request.app.state.http_client


def get_document_store(
    settings: Settings = Depends(get_settings),
    client: httpx.AsyncClient = Depends(get_http_client),
) -> FirestoreClient:
    return FirestoreClient(settings, client)


def get_oauth_service(
    settings: Settings = Depends(get_settings),
    client: httpx.AsyncClient = Depends(get_http_client),
) -> ShopifyOAuthService:
    return ShopifyOAuthService(settings, client)


def get_sync_engine(
    settings: Settings = Depends(get_settings),
    client: httpx.AsyncClient = Depends(get_http_client),
    store: FirestoreClient = Depends(get_document_store),
) -> SyncEngine:
    return SyncEngine(settings, client, store)
