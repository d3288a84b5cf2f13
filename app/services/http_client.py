"""
Shared HTTP client for Shopify and Firestore calls.
One AsyncClient per process, created at startup and closed at shutdown; every call has a timeout
so a slow upstream cannot hang a webhook or the OAuth callback.
"""
import logging
from typing import Optional

import httpx

from app.config import Settings

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


def build_http_client(settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> httpx.AsyncClient:
    """AsyncClient with the configured timeout. `transport` lets tests plug in httpx.MockTransport."""
    timeout = settings.HTTP_TIMEOUT or DEFAULT_TIMEOUT
    logger.debug("HTTP client timeout=%ss", timeout)
    return httpx.AsyncClient(timeout=timeout, transport=transport)
