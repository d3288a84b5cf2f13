"""
Firestore REST document store: get / patch over HTTP with the tagged-value envelope
({"fields": {name: {"stringValue": ...}}}).
Never raises for upstream failures: get returns None, set returns False.
"""
import logging
import math
import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union
from urllib.parse import quote

import httpx

from app.config import Settings

logger = logging.getLogger(__name__)


# --- Tagged values ---

@dataclass(frozen=True)
class NullValue:
    def to_wire(self) -> dict:
        return {"nullValue": None}


@dataclass(frozen=True)
class StringValue:
    value: str

    def to_wire(self) -> dict:
        return {"stringValue": self.value}


@dataclass(frozen=True)
class BooleanValue:
    value: bool

    def to_wire(self) -> dict:
        return {"booleanValue": self.value}


@dataclass(frozen=True)
class DoubleValue:
    value: float

    def to_wire(self) -> dict:
        return {"doubleValue": self.value}


@dataclass(frozen=True)
class ArrayValue:
    values: tuple

    def to_wire(self) -> dict:
        return {"arrayValue": {"values": [v.to_wire() for v in self.values]}}


@dataclass(frozen=True)
class MapValue:
    fields: tuple  # ((name, value), ...) keeps it hashable and ordered

    def to_wire(self) -> dict:
        return {"mapValue": {"fields": {k: v.to_wire() for k, v in self.fields}}}


FirestoreValue = Union[NullValue, StringValue, BooleanValue, DoubleValue, ArrayValue, MapValue]


def encode_value(val: Any) -> FirestoreValue:
    """Native value -> tagged value. Total: unknown types fall back to their string form."""
    if val is None:
        return NullValue()
    if isinstance(val, str):
        return StringValue(val)
    # bool before int: bool is an int subclass
    if isinstance(val, bool):
        return BooleanValue(val)
    if isinstance(val, (int, float, Decimal)):
        number = float(val)
        return DoubleValue(number if math.isfinite(number) else 0.0)
    if isinstance(val, (list, tuple)):
        return ArrayValue(tuple(encode_value(v) for v in val))
    if isinstance(val, dict):
        return MapValue(tuple((str(k), encode_value(v)) for k, v in val.items()))
    return StringValue(str(val))


def decode_value(wire: Any) -> Any:
    """Wire value -> native value. Unknown tags decode to None."""
    if not isinstance(wire, dict):
        return None
    if "stringValue" in wire:
        return wire["stringValue"]
    if "booleanValue" in wire:
        return bool(wire["booleanValue"])
    if "doubleValue" in wire:
        return float(wire["doubleValue"])
    if "integerValue" in wire:
        # Firestore sends 64-bit integers as strings
        try:
            return int(wire["integerValue"])
        except (TypeError, ValueError):
            return None
    if "timestampValue" in wire:
        return wire["timestampValue"]
    if "arrayValue" in wire:
        return [decode_value(v) for v in (wire["arrayValue"] or {}).get("values") or []]
    if "mapValue" in wire:
        return decode_fields((wire["mapValue"] or {}).get("fields") or {})
    return None


def encode_fields(obj: Dict[str, Any]) -> Dict[str, dict]:
    return {str(k): encode_value(v).to_wire() for k, v in obj.items()}


def decode_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    return {k: decode_value(v) for k, v in (fields or {}).items()}


_SIMPLE_FIELD = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _field_path(name: str) -> str:
    if _SIMPLE_FIELD.match(name):
        return name
    escaped = name.replace("\\", "\\\\").replace("`", "\\`")
    return f"`{escaped}`"


# --- Client ---

class FirestoreClient:
    """Thin client over the Firestore REST documents API (API-key auth)."""

    def __init__(self, settings: Settings, client: httpx.AsyncClient):
        self.documents_url = settings.FIRESTORE_DOCUMENTS_URL
        self.api_key = settings.FIRESTORE_API_KEY
        self.client = client

    def _doc_url(self, collection: str, doc_id: str) -> str:
        return f"{self.documents_url}/{quote(collection, safe='')}/{quote(str(doc_id), safe='')}"

    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Return the document's fields, or None if it does not exist or cannot be read."""
        if not self.documents_url:
            logger.warning("Firestore get %s/%s skipped: FIRESTORE_PROJECT_ID not configured", collection, doc_id)
            return None
        try:
            response = await self.client.get(self._doc_url(collection, doc_id), params={"key": self.api_key})
        except httpx.HTTPError as e:
            logger.warning("Firestore GET %s/%s failed: %s", collection, doc_id, e)
            return None
        if response.status_code == 404:
            return None
        if not response.is_success:
            logger.warning("Firestore GET %s/%s -> %s", collection, doc_id, response.status_code)
            return None
        try:
            data = response.json()
        except ValueError:
            logger.warning("Firestore GET %s/%s returned invalid JSON", collection, doc_id)
            return None
        if not isinstance(data, dict):
            return None
        return decode_fields(data.get("fields") or {})

    async def exists(self, collection: str, doc_id: str) -> bool:
        return bool(await self.get(collection, doc_id))

    async def set(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> bool:
        """
        Patch the document: supplied fields overwrite, others are left untouched.
        Creates the document if absent. Returns False when the write did not succeed.
        """
        if not self.documents_url:
            logger.warning("Firestore set %s/%s skipped: FIRESTORE_PROJECT_ID not configured", collection, doc_id)
            return False
        if not fields:
            # An empty mask would replace the whole document
            return True
        params: List[tuple] = [("key", self.api_key)]
        params.extend(("updateMask.fieldPaths", _field_path(str(name))) for name in fields)
        try:
            response = await self.client.patch(
                self._doc_url(collection, doc_id),
                params=params,
                json={"fields": encode_fields(fields)},
            )
        except httpx.HTTPError as e:
            logger.error("Firestore PATCH %s/%s failed: %s", collection, doc_id, e)
            return False
        if not response.is_success:
            logger.error(
                "Firestore PATCH %s/%s -> %s %s",
                collection, doc_id, response.status_code, (response.text or "")[:200],
            )
            return False
        logger.debug("Firestore PATCH %s/%s -> %s", collection, doc_id, response.status_code)
        return True
