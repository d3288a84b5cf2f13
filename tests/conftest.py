"""
Shared fixtures: test Settings, and one httpx.MockTransport that plays both Shopify
(Admin API, OAuth token endpoint) and the Firestore REST document store.
"""
import json
from typing import Dict, List, Optional
from urllib.parse import unquote

import httpx
import pytest
from fastapi.testclient import TestClient

from app.config import Settings
from app.services.firestore import decode_fields, encode_fields
from main import create_app

SHOP = "test-shop.myshopify.com"
API_SECRET = "test-secret"
ACCESS_TOKEN = "shpat_test_token"


class FakeBackend:
    """In-memory Firestore + Shopify. Records every request it receives."""

    def __init__(self):
        self.documents: Dict[tuple, dict] = {}
        self.requests: List[httpx.Request] = []
        self.pages: Dict[str, list] = {}
        self.page_failures: Dict[str, int] = {}
        self.token_status = 200
        self.token_body: dict = {"access_token": ACCESS_TOKEN, "scope": "read_orders,read_customers,read_products"}
        self.webhooks: List[dict] = []
        self.fail_writes = False

    # --- helpers for tests ---

    def put_document(self, collection: str, doc_id: str, fields: dict) -> None:
        self.documents[(collection, doc_id)] = encode_fields(fields)

    def document(self, collection: str, doc_id: str) -> Optional[dict]:
        wire = self.documents.get((collection, doc_id))
        return decode_fields(wire) if wire is not None else None

    def connect_shop(self, shop: str = SHOP, token: str = ACCESS_TOKEN) -> None:
        self.put_document("app_settings", "global", {"shopifyStoreDomain": shop, "shopifyAccessToken": token})

    def add_pages(self, resource: str, pages: List[list], fail_at: Optional[int] = None) -> None:
        """resource like "customers.json"; pages are the per-page record lists."""
        self.pages[resource] = pages
        if fail_at is not None:
            self.page_failures[resource] = fail_at

    def requests_to(self, fragment: str, method: Optional[str] = None) -> List[httpx.Request]:
        return [
            r for r in self.requests
            if fragment in r.url.path and (method is None or r.method == method)
        ]

    # --- transport ---

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.host == "firestore.googleapis.com":
            return self._firestore(request)
        return self._shopify(request)

    def _firestore(self, request: httpx.Request) -> httpx.Response:
        rest = request.url.path.split("/documents/", 1)[1]
        collection, doc_id = rest.split("/", 1)
        key = (unquote(collection), unquote(doc_id))
        if request.method == "GET":
            if key not in self.documents:
                return httpx.Response(404, json={"error": {"code": 404, "status": "NOT_FOUND"}})
            return httpx.Response(200, json={"name": rest, "fields": self.documents[key]})
        if request.method == "PATCH":
            if self.fail_writes:
                return httpx.Response(500, json={"error": {"code": 500}})
            fields = json.loads(request.content)["fields"]
            mask = [p.strip("`") for p in request.url.params.get_list("updateMask.fieldPaths")]
            if not mask:
                self.documents[key] = dict(fields)
            else:
                doc = self.documents.setdefault(key, {})
                for name in mask:
                    if name in fields:
                        doc[name] = fields[name]
                    else:
                        doc.pop(name, None)
            return httpx.Response(200, json={"name": rest, "fields": self.documents[key]})
        return httpx.Response(405)

    def _shopify(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/admin/oauth/access_token" and request.method == "POST":
            return httpx.Response(self.token_status, json=self.token_body)
        if path.endswith("/webhooks.json"):
            if request.method == "GET":
                return httpx.Response(200, json={"webhooks": self.webhooks})
            webhook = json.loads(request.content)["webhook"]
            webhook["id"] = len(self.webhooks) + 1
            self.webhooks.append(webhook)
            return httpx.Response(201, json={"webhook": webhook})

        resource = path.rsplit("/", 1)[-1]
        if resource in self.pages:
            key = resource.split(".", 1)[0]
            pages = self.pages[resource]
            index = int(request.url.params.get("page_info") or 0)
            if self.page_failures.get(resource) == index:
                return httpx.Response(503, json={"errors": "Service unavailable"})
            links = []
            if index > 0:
                links.append(f'<https://{request.url.host}{path}?limit=250&page_info={index - 1}>; rel="previous"')
            if index + 1 < len(pages):
                links.append(f'<https://{request.url.host}{path}?limit=250&page_info={index + 1}>; rel="next"')
            headers = {"Link": ", ".join(links)} if links else {}
            return httpx.Response(200, json={key: pages[index]}, headers=headers)
        return httpx.Response(404, json={"errors": "Not Found"})


@pytest.fixture
def settings():
    return Settings(
        ENV="TEST",
        SHOPIFY_API_KEY="test-key",
        SHOPIFY_API_SECRET=API_SECRET,
        SHOPIFY_WEBHOOK_SECRET="",
        FIRESTORE_PROJECT_ID="test-project",
        FIRESTORE_API_KEY="test-firestore-key",
        FIRESTORE_BASE_URL="https://firestore.googleapis.com/v1",
        APP_URL="",
        SHOPIFY_API_VERSION="2024-01",
        SHOPIFY_PAGE_LIMIT=250,
        LOG_LEVEL="DEBUG",
    )


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def http_client(backend):
    return httpx.AsyncClient(transport=httpx.MockTransport(backend.handle))


@pytest.fixture
def client(settings, http_client):
    return TestClient(create_app(settings, http_client))
