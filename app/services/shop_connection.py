"""
Shop connection (store domain + access token) persisted in the document store.
Re-read on every use; no in-process cache, so a re-authorized token is picked up at once.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from app.services.firestore import FirestoreClient

logger = logging.getLogger(__name__)

SETTINGS_COLLECTION = "app_settings"
SETTINGS_DOC_ID = "global"


class ShopNotConnectedError(Exception):
    """No Shopify store has completed the OAuth flow yet."""


@dataclass(frozen=True)
class ShopConnection:
    store_domain: str
    access_token: str
    connected_at: Optional[str] = None

    def __repr__(self) -> str:
        return f"ShopConnection(store_domain={self.store_domain!r}, connected_at={self.connected_at!r})"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


async def load(store: FirestoreClient) -> Optional[ShopConnection]:
    doc = await store.get(SETTINGS_COLLECTION, SETTINGS_DOC_ID)
    if not doc:
        return None
    domain = doc.get("shopifyStoreDomain")
    token = doc.get("shopifyAccessToken")
    if not isinstance(domain, str) or not isinstance(token, str) or not domain or not token:
        return None
    connected_at = doc.get("shopifyConnectedAt")
    return ShopConnection(domain, token, connected_at if isinstance(connected_at, str) else None)


async def require(store: FirestoreClient) -> ShopConnection:
    connection = await load(store)
    if connection is None:
        raise ShopNotConnectedError("Shopify not connected.")
    return connection


async def save(store: FirestoreClient, store_domain: str, access_token: str) -> bool:
    """Overwrite the connection fields only; other app settings are left alone."""
    ok = await store.set(
        SETTINGS_COLLECTION,
        SETTINGS_DOC_ID,
        {
            "shopifyAccessToken": access_token,
            "shopifyStoreDomain": store_domain,
            "shopifyConnectedAt": _now_iso(),
        },
    )
    if ok:
        logger.info("Saved Shopify connection for shop: %s", store_domain)
    else:
        logger.error("Could not save Shopify connection for shop: %s", store_domain)
    return ok


async def mark_synced(store: FirestoreClient) -> bool:
    return await store.set(SETTINGS_COLLECTION, SETTINGS_DOC_ID, {"shopifyLastSyncedAt": _now_iso()})
