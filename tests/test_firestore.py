"""
Firestore document store tests: tagged-value encoding and get / patch semantics
"""
from decimal import Decimal

import httpx
import pytest

from app.config import Settings
from app.services.firestore import (
    ArrayValue,
    BooleanValue,
    DoubleValue,
    FirestoreClient,
    MapValue,
    NullValue,
    StringValue,
    decode_fields,
    decode_value,
    encode_fields,
    encode_value,
)
from app.services.shopify_mappers import map_invoice


class TestEncoding:
    """Native values -> tagged wire values"""

    def test_scalars(self):
        assert encode_value(None) == NullValue()
        assert encode_value("ring") == StringValue("ring")
        assert encode_value(True) == BooleanValue(True)
        assert encode_value(3) == DoubleValue(3.0)
        assert encode_value(2.5) == DoubleValue(2.5)
        assert encode_value(Decimal("150000.00")) == DoubleValue(150000.0)

    def test_bool_is_not_a_number(self):
        assert encode_value(False).to_wire() == {"booleanValue": False}

    def test_wire_shapes(self):
        assert encode_value(None).to_wire() == {"nullValue": None}
        assert encode_value([1, "a"]).to_wire() == {
            "arrayValue": {"values": [{"doubleValue": 1.0}, {"stringValue": "a"}]}
        }
        assert encode_value({"a": {"b": True}}).to_wire() == {
            "mapValue": {"fields": {"a": {"mapValue": {"fields": {"b": {"booleanValue": True}}}}}}
        }
        assert encode_value([]).to_wire() == {"arrayValue": {"values": []}}

    def test_nested_values_are_tagged(self):
        value = encode_value({"items": [{"sku": "X"}]})
        assert isinstance(value, MapValue)
        items = dict(value.fields)["items"]
        assert isinstance(items, ArrayValue)
        assert isinstance(items.values[0], MapValue)

    def test_unknown_types_fall_back_to_string(self):
        assert encode_value(object) == StringValue(str(object))

    def test_non_finite_numbers_become_zero(self):
        assert encode_value(float("nan")) == DoubleValue(0.0)

    def test_decode_integer_and_timestamp(self):
        assert decode_value({"integerValue": "7"}) == 7
        assert decode_value({"timestampValue": "2024-01-01T00:00:00Z"}) == "2024-01-01T00:00:00Z"
        assert decode_value({"arrayValue": {}}) == []
        assert decode_value({"mysteryValue": 1}) is None

    def test_mapped_invoice_survives_the_wire(self):
        invoice = map_invoice({
            "id": 5001, "order_number": 1001, "financial_status": "paid", "total_price": "99.50",
            "line_items": [{"id": 1, "sku": "R-1", "price": "49.75", "quantity": 2}],
        }).to_document()
        assert decode_fields(encode_fields(invoice)) == invoice


@pytest.fixture
def store(settings, http_client):
    return FirestoreClient(settings, http_client)


class TestFirestoreClient:
    """get / set against the in-memory REST fake"""

    @pytest.mark.asyncio
    async def test_get_missing_document_is_none(self, store):
        assert await store.get("customers", "shopify-1") is None
        assert await store.exists("customers", "shopify-1") is False

    @pytest.mark.asyncio
    async def test_set_then_get(self, store, backend):
        assert await store.set("customers", "shopify-1", {"name": "A B", "tags": ["vip"], "active": True}) is True
        assert await store.get("customers", "shopify-1") == {"name": "A B", "tags": ["vip"], "active": True}
        assert backend.document("customers", "shopify-1")["name"] == "A B"

    @pytest.mark.asyncio
    async def test_set_patches_only_supplied_fields(self, store, backend):
        backend.put_document("app_settings", "global", {"goldRate": 21000.0, "shopifyAccessToken": "old"})
        assert await store.set("app_settings", "global", {"shopifyAccessToken": "new"})
        assert backend.document("app_settings", "global") == {"goldRate": 21000.0, "shopifyAccessToken": "new"}

    @pytest.mark.asyncio
    async def test_set_sends_update_mask_and_api_key(self, store, backend):
        await store.set("products", "RING-1", {"sku": "RING-1", "name": "Ring"})
        request = backend.requests_to("/documents/products/RING-1", "PATCH")[0]
        assert request.url.params.get_list("updateMask.fieldPaths") == ["sku", "name"]
        assert request.url.params["key"] == "test-firestore-key"

    @pytest.mark.asyncio
    async def test_odd_field_names_are_quoted_in_mask(self, store, backend):
        await store.set("products", "P1", {"weight-g": 1})
        request = backend.requests_to("/documents/products/P1", "PATCH")[0]
        assert request.url.params.get_list("updateMask.fieldPaths") == ["`weight-g`"]

    @pytest.mark.asyncio
    async def test_failed_write_returns_false(self, store, backend):
        backend.fail_writes = True
        assert await store.set("customers", "shopify-1", {"name": "A"}) is False

    @pytest.mark.asyncio
    async def test_server_error_on_get_is_absence(self, settings):
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(500)))
        assert await FirestoreClient(settings, client).get("customers", "x") is None

    @pytest.mark.asyncio
    async def test_network_errors_do_not_raise(self, settings):
        def boom(request):
            raise httpx.ConnectError("connection refused", request=request)

        store = FirestoreClient(settings, httpx.AsyncClient(transport=httpx.MockTransport(boom)))
        assert await store.get("customers", "x") is None
        assert await store.set("customers", "x", {"name": "A"}) is False

    @pytest.mark.asyncio
    async def test_unconfigured_store_does_not_call_out(self, backend, http_client):
        store = FirestoreClient(Settings(FIRESTORE_PROJECT_ID="", FIRESTORE_API_KEY=""), http_client)
        assert await store.set("customers", "x", {"name": "A"}) is False
        assert await store.get("customers", "x") is None
        assert backend.requests == []
