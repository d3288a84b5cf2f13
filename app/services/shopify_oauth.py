"""
Shopify OAuth service: install URL, callback HMAC verification, code -> token exchange.
"""
import logging
import re
import secrets
from typing import Iterable, Mapping, Optional, Tuple, Union
from urllib.parse import urlencode, urlparse

import httpx

from app.config import Settings
from app.services.shopify_hmac import verify_oauth_hmac

logger = logging.getLogger(__name__)

STATE_COOKIE = "shopify_oauth_state"
STATE_MAX_AGE = 3600  # 1 hour
CALLBACK_PATH = "/api/shopify/callback"

_SHOP_DOMAIN_RE = re.compile(r"^[a-z0-9][a-z0-9-]*\.myshopify\.com$")


def is_valid_shop_domain(shop: Optional[str]) -> bool:
    """Only bare <name>.myshopify.com hosts; no scheme, path, port or query."""
    return bool(shop) and bool(_SHOP_DOMAIN_RE.match(shop.lower()))


def generate_state() -> str:
    """Random opaque CSRF token for the OAuth round trip."""
    return secrets.token_hex(16)


def is_local_host(host: str) -> bool:
    return host.startswith("localhost") or host.startswith("127.0.0.1")


def app_url_for_host(host: str) -> str:
    """Public base URL derived from the request Host header, so every environment works unchanged."""
    return f"http://{host}" if is_local_host(host) else f"https://{host}"


class ShopifyOAuthService:
    """Handle Shopify OAuth flow with the configured app credentials."""

    def __init__(self, settings: Settings, client: httpx.AsyncClient):
        self.api_key = settings.SHOPIFY_API_KEY
        self.api_secret = settings.SHOPIFY_API_SECRET
        self.scopes = settings.SHOPIFY_SCOPES
        self.client = client

    def get_install_url(self, shop: str, redirect_uri: str, state: str) -> str:
        """https://{shop}/admin/oauth/authorize with client_id, scope, redirect_uri and state."""
        if not is_valid_shop_domain(shop):
            raise ValueError(f"Invalid shop domain: {shop}")
        parsed_redirect = urlparse(redirect_uri)
        if not parsed_redirect.scheme or not parsed_redirect.netloc:
            raise ValueError(f"Invalid redirect_uri: {redirect_uri}")
        params = {
            "client_id": self.api_key,
            "scope": self.scopes,
            "redirect_uri": redirect_uri,
            "state": state,
        }
        oauth_url = f"https://{shop.lower()}/admin/oauth/authorize?{urlencode(params)}"
        logger.info("Generated OAuth install URL for shop: %s (redirect_uri: %s)", shop, redirect_uri[:50])
        return oauth_url

    def verify_hmac(self, params: Union[Mapping[str, str], Iterable[Tuple[str, str]]]) -> bool:
        return verify_oauth_hmac(params, self.api_secret)

    async def exchange_code_for_token(self, shop: str, code: Optional[str]) -> Optional[str]:
        """Server-to-server POST to /admin/oauth/access_token. None when no token comes back."""
        if not is_valid_shop_domain(shop) or not code:
            return None
        url = f"https://{shop.lower()}/admin/oauth/access_token"
        logger.info("Exchanging code for token for shop: %s", shop)
        try:
            response = await self.client.post(
                url,
                json={
                    "client_id": self.api_key,
                    "client_secret": self.api_secret,
                    "code": code,
                },
            )
        except httpx.HTTPError as e:
            logger.error("Token exchange error for shop %s: %s", shop, e)
            return None
        if not response.is_success:
            logger.error("Token exchange failed for shop %s: HTTP %s - %s", shop, response.status_code, (response.text or "")[:200])
            return None
        try:
            token_data = response.json()
        except ValueError:
            logger.error("Token exchange for shop %s returned invalid JSON", shop)
            return None
        access_token = token_data.get("access_token") if isinstance(token_data, dict) else None
        if not isinstance(access_token, str) or not access_token.strip():
            logger.error("Token exchange for shop %s: no access_token in response", shop)
            return None
        # Log success (but not the token itself)
        logger.info("Successfully exchanged code for token for shop: %s", shop)
        return access_token.strip()
