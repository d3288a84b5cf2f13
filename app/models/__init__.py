"""
Pydantic models for the Shopify integration.
Shopify payload models are lenient views of the webhook / Admin API JSON: any field of the
wrong shape parses as absent instead of failing, so mappers always get a usable object.
POS models are the documents written to the store (camelCase on the wire).
"""
import enum
import logging
import math
from typing import Annotated, Any, List, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)


# Enums
class MetalType(str, enum.Enum):
    GOLD = "gold"
    SILVER = "silver"
    PLATINUM = "platinum"


class Karat(str, enum.Enum):
    K24 = "24k"
    K22 = "22k"
    K21 = "21k"
    K18 = "18k"


class FinancialStatus(str, enum.Enum):
    PENDING = "pending"
    AUTHORIZED = "authorized"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"
    PARTIALLY_REFUNDED = "partially_refunded"
    REFUNDED = "refunded"
    VOIDED = "voided"


# --- Lenient coercion for payload fields ---

def _loose_str(v: Any) -> Optional[str]:
    if v is None or isinstance(v, bool):
        return None
    if isinstance(v, str):
        return v
    if isinstance(v, int):
        return str(v)
    if isinstance(v, float):
        if not math.isfinite(v):
            return None
        return str(int(v)) if v.is_integer() else str(v)
    return None


def _loose_int(v: Any) -> Optional[int]:
    if v is None or isinstance(v, bool):
        return None
    if isinstance(v, int):
        return v
    if isinstance(v, float):
        return int(v) if math.isfinite(v) else None
    if isinstance(v, str):
        try:
            return int(v.strip())
        except ValueError:
            try:
                f = float(v)
            except ValueError:
                return None
            return int(f) if math.isfinite(f) else None
    return None


def _dict_or_none(v: Any) -> Optional[dict]:
    return v if isinstance(v, dict) else None


def _list_of_dicts(v: Any) -> list:
    if not isinstance(v, list):
        return []
    return [item for item in v if isinstance(item, dict)]


LooseStr = Annotated[Optional[str], BeforeValidator(_loose_str)]
LooseInt = Annotated[Optional[int], BeforeValidator(_loose_int)]


class ShopifyPayload(BaseModel):
    """Base for Shopify JSON shapes: unknown keys are ignored."""
    model_config = ConfigDict(extra="ignore")

    @classmethod
    def parse(cls, payload: Any):
        if not isinstance(payload, dict):
            payload = {}
        try:
            return cls.model_validate(payload)
        except ValidationError as e:
            logger.warning("Unparseable %s payload, using defaults: %s", cls.__name__, e.error_count())
            return cls()


class ShopifyAddress(ShopifyPayload):
    first_name: LooseStr = None
    last_name: LooseStr = None
    address1: LooseStr = None
    address2: LooseStr = None
    city: LooseStr = None
    province: LooseStr = None
    zip: LooseStr = None
    country: LooseStr = None
    phone: LooseStr = None


class ShopifyCustomer(ShopifyPayload):
    id: LooseStr = None
    first_name: LooseStr = None
    last_name: LooseStr = None
    email: LooseStr = None
    phone: LooseStr = None
    default_address: Annotated[Optional[ShopifyAddress], BeforeValidator(_dict_or_none)] = None


class ShopifyLineItem(ShopifyPayload):
    id: LooseStr = None
    variant_id: LooseStr = None
    sku: LooseStr = None
    name: LooseStr = None
    title: LooseStr = None
    quantity: LooseInt = None
    price: LooseStr = None


class ShopifyOrder(ShopifyPayload):
    id: LooseStr = None
    order_number: LooseInt = None
    email: LooseStr = None
    financial_status: LooseStr = None
    subtotal_price: LooseStr = None
    total_discounts: LooseStr = None
    total_price: LooseStr = None
    created_at: LooseStr = None
    customer: Annotated[Optional[ShopifyCustomer], BeforeValidator(_dict_or_none)] = None
    line_items: Annotated[List[ShopifyLineItem], BeforeValidator(_list_of_dicts)] = Field(default_factory=list)


class ShopifyImage(ShopifyPayload):
    src: LooseStr = None


class ShopifyVariant(ShopifyPayload):
    id: LooseStr = None
    sku: LooseStr = None
    title: LooseStr = None
    price: LooseStr = None
    weight: LooseStr = None


class ShopifyProduct(ShopifyPayload):
    id: LooseStr = None
    title: LooseStr = None
    body_html: LooseStr = None
    image: Annotated[Optional[ShopifyImage], BeforeValidator(_dict_or_none)] = None
    variants: Annotated[List[ShopifyVariant], BeforeValidator(_list_of_dicts)] = Field(default_factory=list)


# --- POS documents ---

class PosDocument(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, use_enum_values=True, validate_default=True
    )

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True)


class Customer(PosDocument):
    # None when the Shopify record had no id; such documents are never written
    id: Optional[str] = None
    name: str
    phone: str = ""
    email: str = ""
    address: str = ""
    shopify_customer_id: str = ""


class InvoiceItem(PosDocument):
    sku: str
    name: str
    category_id: str = ""
    metal_type: MetalType = MetalType.GOLD
    karat: Karat = Karat.K21
    metal_weight_g: float = 0
    stone_weight_g: float = 0
    quantity: int = 1
    unit_price: float = 0
    item_total: float = 0
    metal_cost: float = 0
    wastage_cost: float = 0
    wastage_percentage: float = 0
    making_charges: float = 0
    diamond_charges_if_any: float = 0
    stone_charges_if_any: float = 0
    misc_charges_if_any: float = 0


class RatesApplied(PosDocument):
    gold_rate_per_gram_24k: float = Field(0, alias="goldRatePerGram24k")
    gold_rate_per_gram_22k: float = Field(0, alias="goldRatePerGram22k")
    gold_rate_per_gram_21k: float = Field(0, alias="goldRatePerGram21k")
    gold_rate_per_gram_18k: float = Field(0, alias="goldRatePerGram18k")


class Invoice(PosDocument):
    id: Optional[str] = None
    shopify_order_id: str = ""
    shopify_order_number: Optional[int] = None
    customer_name: str
    customer_id: str = ""
    customer_contact: str = ""
    items: List[InvoiceItem] = Field(default_factory=list)
    subtotal: float = 0
    discount_amount: float = 0
    grand_total: float = 0
    amount_paid: float = 0
    balance_due: float = 0
    created_at: str = ""
    rates_applied: RatesApplied = Field(default_factory=RatesApplied)
    payment_history: List[dict] = Field(default_factory=list)
    source: str = "shopify"
    notes: str = ""


class Product(PosDocument):
    sku: Optional[str] = None
    name: str
    category_id: str = ""
    metal_type: MetalType = MetalType.GOLD
    karat: Karat = Karat.K21
    metal_weight_g: float = 0
    stone_weight_g: float = 0
    has_stones: bool = False
    wastage_percentage: float = 0
    making_charges: float = 0
    has_diamonds: bool = False
    diamond_charges: float = 0
    stone_charges: float = 0
    misc_charges: float = 0
    is_custom_price: bool = True
    custom_price: float = 0
    image_url: str = ""
    description: str = ""
    shopify_product_id: str = ""
    shopify_variant_id: str = ""
