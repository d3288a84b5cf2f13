"""
Shopify Admin API service - authenticated requests.
Cursor pagination (Link header) so backfills fetch every page, not just the first 250.
Never expose access_token to the frontend or the logs.
"""
import asyncio
import logging
import re
from typing import Any, Optional
from urllib.parse import urlsplit

import httpx

DEFAULT_API_VERSION = "2024-01"
DEFAULT_PAGE_LIMIT = 250
logger = logging.getLogger(__name__)

_LINK_NEXT_RE = re.compile(r'<([^>]+)>\s*;\s*rel="?next"?', re.IGNORECASE)

# Topic -> webhook receiver path (relative to the public app URL)
WEBHOOK_TOPICS = [
    ("orders/create", "/api/shopify/webhooks/orders"),
    ("orders/updated", "/api/shopify/webhooks/orders"),
    ("customers/create", "/api/shopify/webhooks/customers"),
    ("customers/update", "/api/shopify/webhooks/customers"),
    ("products/create", "/api/shopify/webhooks/products"),
    ("products/update", "/api/shopify/webhooks/products"),
]


def _parse_link_next(link_header: Optional[str]) -> Optional[str]:
    """Parse Link header; return the URL whose rel is next, if any."""
    if not link_header:
        return None
    # Format: <url>; rel="previous", <url>; rel="next"
    match = _LINK_NEXT_RE.search(link_header)
    return match.group(1).strip() if match else None


def _next_path(next_url: str) -> Optional[str]:
    """Path + query of the next-page URL. The host is always the shop's own."""
    try:
        parts = urlsplit(next_url)
    except ValueError:
        return None
    if not parts.path:
        return None
    return f"{parts.path}?{parts.query}" if parts.query else parts.path


def _log_shopify_response(method: str, url: str, status: int, body_preview: str = "") -> None:
    """Log every Shopify API call for debugging. No sensitive data."""
    if status >= 400:
        logger.warning("Shopify API %s %s -> %s %s", method, url, status, body_preview[:200] if body_preview else "")
    else:
        logger.info("Shopify API %s %s -> %s", method, url, status)


def _shop_base_url(shop_domain: str) -> str:
    """Base URL for shop (admin/oauth), not API versioned path."""
    return f"https://{shop_domain.lower().strip()}"


def _base_url(shop_domain: str, api_version: str = DEFAULT_API_VERSION) -> str:
    return f"{_shop_base_url(shop_domain)}/admin/api/{api_version}"


def _headers(access_token: str) -> dict:
    return {
        "X-Shopify-Access-Token": access_token,
        "Content-Type": "application/json",
    }


async def fetch_all_pages(
    client: httpx.AsyncClient,
    shop_domain: str,
    access_token: str,
    endpoint: str,
    key: str,
    *,
    api_version: str = DEFAULT_API_VERSION,
    page_limit: int = DEFAULT_PAGE_LIMIT,
    cancel_event: Optional[asyncio.Event] = None,
) -> list[dict]:
    """
    Walk a cursor-paginated collection (e.g. "/orders.json?status=any", key "orders").
    Pages are requested one at a time; results keep page order and in-page order.
    Stops on a non-success page, a network error, a missing rel=next, or cancellation;
    whatever was fetched before that point is returned. No retries.
    """
    sep = "&" if "?" in endpoint else "?"
    url = f"{_base_url(shop_domain, api_version)}{endpoint}{sep}limit={page_limit}"
    h = _headers(access_token)
    results: list[dict] = []
    page = 0
    while url:
        if cancel_event is not None and cancel_event.is_set():
            logger.info("Shopify %s: cancelled after %s page(s)", key, page)
            break
        page += 1
        try:
            response = await client.get(url, headers=h)
        except httpx.HTTPError as e:
            logger.warning("Shopify %s page %s failed: %s", key, page, e)
            break
        _log_shopify_response("GET", urlsplit(url).path, response.status_code, response.text if not response.is_success else "")
        if not response.is_success:
            break
        try:
            data = response.json()
        except ValueError:
            logger.warning("Shopify %s page %s: invalid JSON", key, page)
            break
        items = data.get(key) if isinstance(data, dict) else None
        if isinstance(items, list):
            results.extend(items)
            logger.info("Shopify %s page %s: got %s (total so far: %s)", key, page, len(items), len(results))

        next_url = _parse_link_next(response.headers.get("link"))
        next_path = _next_path(next_url) if next_url else None
        url = f"{_shop_base_url(shop_domain)}{next_path}" if next_path else ""
    logger.info("Shopify %s: got %s record(s) across %s page(s)", key, len(results), page)
    return results


async def get_webhooks(
    client: httpx.AsyncClient, shop_domain: str, access_token: str, api_version: str = DEFAULT_API_VERSION
) -> list[dict]:
    """Existing webhook subscriptions. Empty list on error."""
    url = f"{_base_url(shop_domain, api_version)}/webhooks.json"
    try:
        response = await client.get(url, headers=_headers(access_token))
    except httpx.HTTPError as e:
        logger.warning("Could not list Shopify webhooks: %s", e)
        return []
    _log_shopify_response("GET", "/webhooks.json", response.status_code, response.text if not response.is_success else "")
    if not response.is_success:
        return []
    try:
        data = response.json()
    except ValueError:
        return []
    webhooks = data.get("webhooks") if isinstance(data, dict) else None
    return [w for w in webhooks or [] if isinstance(w, dict)]


async def create_webhook(
    client: httpx.AsyncClient,
    shop_domain: str,
    access_token: str,
    topic: str,
    address: str,
    api_version: str = DEFAULT_API_VERSION,
) -> bool:
    url = f"{_base_url(shop_domain, api_version)}/webhooks.json"
    try:
        response = await client.post(
            url,
            headers=_headers(access_token),
            json={"webhook": {"topic": topic, "address": address, "format": "json"}},
        )
    except httpx.HTTPError as e:
        logger.warning("Shopify webhook %s registration failed: %s", topic, e)
        return False
    _log_shopify_response("POST", "/webhooks.json", response.status_code, response.text if not response.is_success else "")
    return response.is_success


async def ensure_webhooks(
    client: httpx.AsyncClient,
    shop_domain: str,
    access_token: str,
    app_url: str,
    api_version: str = DEFAULT_API_VERSION,
) -> dict[str, Any]:
    """Register every webhook topic that is not already subscribed at the same address."""
    base = app_url.rstrip("/")
    existing = await get_webhooks(client, shop_domain, access_token, api_version)
    subscribed = {(w.get("topic"), w.get("address")) for w in existing}
    result: dict[str, Any] = {"registered": [], "skipped": [], "failed": []}
    for topic, path in WEBHOOK_TOPICS:
        address = f"{base}{path}"
        if (topic, address) in subscribed:
            result["skipped"].append(topic)
        elif await create_webhook(client, shop_domain, access_token, topic, address, api_version):
            result["registered"].append(topic)
        else:
            result["failed"].append(topic)
    logger.info(
        "Shopify webhooks for %s: registered=%s skipped=%s failed=%s",
        shop_domain, len(result["registered"]), len(result["skipped"]), len(result["failed"]),
    )
    return result
