"""
Shopify webhook receivers: HMAC gate, mapping and document writes
"""
import json

from app.services.shopify_hmac import compute_webhook_hmac
from conftest import API_SECRET


def _post(client, resource, payload, secret=API_SECRET, body=None):
    raw = body if body is not None else json.dumps(payload).encode("utf-8")
    headers = {
        "Content-Type": "application/json",
        "X-Shopify-Hmac-Sha256": compute_webhook_hmac(raw, secret),
        "X-Shopify-Topic": f"{resource}/create",
        "X-Shopify-Shop-Domain": "test-shop.myshopify.com",
    }
    return client.post(f"/api/shopify/webhooks/{resource}", content=raw, headers=headers)


ORDER = {
    "id": 5551234,
    "order_number": 1001,
    "email": "buyer@example.com",
    "financial_status": "paid",
    "subtotal_price": "150000.00",
    "total_discounts": "0.00",
    "total_price": "150000.00",
    "created_at": "2024-03-01T10:15:00+05:00",
    "customer": {"id": 42, "first_name": "A", "last_name": "B", "email": "a@b.com"},
    "line_items": [{"id": 1, "sku": "NECK-1", "title": "Necklace", "price": "150000.00", "quantity": 1}],
}


class TestCustomersWebhook:
    def test_signed_customer_is_written(self, client, backend):
        response = _post(client, "customers", {"id": 42, "first_name": "A", "last_name": "B"})
        assert response.status_code == 200
        assert response.json() == {"ok": True}
        doc = backend.document("customers", "shopify-42")
        assert doc["name"] == "A B"
        assert doc["shopifyCustomerId"] == "42"

    def test_unsigned_request_is_401_and_writes_nothing(self, client, backend):
        body = json.dumps({"id": 42}).encode("utf-8")
        response = client.post("/api/shopify/webhooks/customers", content=body)
        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}
        assert backend.requests == []

    def test_wrong_secret_is_401(self, client, backend):
        response = _post(client, "customers", {"id": 42}, secret="not-the-secret")
        assert response.status_code == 401
        assert backend.document("customers", "shopify-42") is None

    def test_invalid_json_is_400(self, client, backend):
        response = _post(client, "customers", None, body=b"{not json")
        assert response.status_code == 400
        assert backend.requests == []

    def test_non_object_json_is_400(self, client):
        assert _post(client, "customers", [1, 2]).status_code == 400

    def test_update_overwrites_previous_version(self, client, backend):
        _post(client, "customers", {"id": 42, "first_name": "A", "last_name": "B"})
        _post(client, "customers", {"id": 42, "first_name": "A", "last_name": "C", "phone": "0300"})
        doc = backend.document("customers", "shopify-42")
        assert doc["name"] == "A C"
        assert doc["phone"] == "0300"

    def test_customer_without_id_is_acknowledged_but_not_written(self, client, backend):
        response = _post(client, "customers", {"first_name": "A"})
        assert response.status_code == 200
        assert response.json() == {"ok": True}
        assert backend.requests == []

    def test_write_failure_still_acknowledged(self, client, backend):
        backend.fail_writes = True
        response = _post(client, "customers", {"id": 42, "first_name": "A"})
        assert response.status_code == 200
        assert backend.document("customers", "shopify-42") is None


class TestOrdersWebhook:
    def test_order_becomes_invoice(self, client, backend):
        response = _post(client, "orders", ORDER)
        assert response.status_code == 200
        invoice = backend.document("invoices", "SHOPIFY-1001")
        assert invoice["customerName"] == "A B"
        assert invoice["customerId"] == "shopify-42"
        assert invoice["grandTotal"] == 150000.0
        assert invoice["amountPaid"] == 150000.0
        assert invoice["balanceDue"] == 0.0
        assert invoice["items"][0]["sku"] == "NECK-1"
        assert invoice["source"] == "shopify"

    def test_order_customer_is_upserted(self, client, backend):
        _post(client, "orders", ORDER)
        assert backend.document("customers", "shopify-42")["email"] == "a@b.com"

    def test_order_without_number_or_id_still_upserts_customer(self, client, backend):
        order = dict(ORDER)
        del order["id"], order["order_number"]
        assert _post(client, "orders", order).status_code == 200
        assert backend.requests_to("/documents/invoices/") == []
        assert backend.document("customers", "shopify-42")["name"] == "A B"

    def test_pending_order_has_balance(self, client, backend):
        _post(client, "orders", dict(ORDER, financial_status="pending"))
        invoice = backend.document("invoices", "SHOPIFY-1001")
        assert invoice["amountPaid"] == 0.0
        assert invoice["balanceDue"] == 150000.0

    def test_guest_order_writes_only_invoice(self, client, backend):
        _post(client, "orders", dict(ORDER, customer=None))
        assert backend.document("invoices", "SHOPIFY-1001")["customerName"] == "buyer@example.com"
        assert backend.requests_to("/documents/customers/") == []


class TestProductsWebhook:
    def test_one_document_per_variant(self, client, backend):
        product = {
            "id": 10,
            "title": "Gold Ring",
            "body_html": "<p>22k hand finished</p>",
            "variants": [
                {"id": 20, "sku": "RING-S", "title": "Small", "price": "1000.00"},
                {"id": 21, "sku": "", "title": "Large", "price": "1500.00"},
            ],
        }
        response = _post(client, "products", product)
        assert response.status_code == 200
        small = backend.document("products", "RING-S")
        large = backend.document("products", "SHOPIFY-PROD-21")
        assert small["name"] == "Gold Ring - Small"
        assert large["name"] == "Gold Ring - Large"
        assert large["customPrice"] == 1500.0
        assert small["description"] == "22k hand finished"

    def test_variants_without_sku_or_id_are_not_written(self, client, backend):
        product = {
            "id": 10,
            "title": "Gold Ring",
            "variants": [{"title": "Small", "price": "1000.00"}, {"title": "Large", "sku": "", "price": "1500.00"}],
        }
        response = _post(client, "products", product)
        assert response.status_code == 200
        assert backend.requests == []

    def test_product_without_variants_writes_nothing(self, client, backend):
        response = _post(client, "products", {"id": 10, "title": "Draft"})
        assert response.status_code == 200
        assert backend.requests == []
