"""
Shopify -> POS record mappers. Pure and total: no I/O, never raise.
Missing fields resolve to 0, "" or False. Ids are derived from Shopify ids with a fixed
prefix per record kind so re-imports upsert the same document and never collide with
records created in the POS. A record whose Shopify id is missing gets no id (None);
callers skip writing it.
"""
import math
import re
from typing import Any, Optional, Union

from app.models import (
    Customer,
    FinancialStatus,
    Invoice,
    InvoiceItem,
    Product,
    RatesApplied,
    ShopifyCustomer,
    ShopifyLineItem,
    ShopifyOrder,
    ShopifyProduct,
    ShopifyVariant,
)

CUSTOMER_ID_PREFIX = "shopify-"
INVOICE_ID_PREFIX = "SHOPIFY-"
LINE_ITEM_SKU_PREFIX = "SHOPIFY-"
PRODUCT_SKU_PREFIX = "SHOPIFY-PROD-"

CUSTOMER_PLACEHOLDER_NAME = "Shopify Customer"
LINE_ITEM_PLACEHOLDER_NAME = "Shopify Item"
DESCRIPTION_MAX_LENGTH = 200

PAID_STATUSES = (FinancialStatus.PAID.value, FinancialStatus.PARTIALLY_PAID.value)

_TAG_RE = re.compile(r"<[^>]*?>")


def parse_price(value: Optional[str]) -> float:
    """Shopify decimal string -> float; 0 on absence or parse failure."""
    if value is None:
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def strip_html(html: Optional[str], max_length: int = DESCRIPTION_MAX_LENGTH) -> str:
    """Drop markup tags in one pass, then cut to max_length characters."""
    if not html:
        return ""
    return _TAG_RE.sub("", html)[:max_length]


def customer_id(shopify_id: Any) -> Optional[str]:
    """None when Shopify sent no id: there is nothing stable to key the document on."""
    if shopify_id is None or shopify_id == "":
        return None
    return f"{CUSTOMER_ID_PREFIX}{shopify_id}"


def invoice_id(order: ShopifyOrder) -> Optional[str]:
    number = order.order_number if order.order_number is not None else order.id
    if number is None or number == "":
        return None
    return f"{INVOICE_ID_PREFIX}{number}"


def product_sku(variant: ShopifyVariant) -> Optional[str]:
    if variant.sku:
        return variant.sku
    return f"{PRODUCT_SKU_PREFIX}{variant.id}" if variant.id else None


def _customer_name(customer: Optional[ShopifyCustomer], email: Optional[str]) -> str:
    if customer is not None:
        full = " ".join(p for p in (customer.first_name, customer.last_name) if p)
        if full:
            return full
    return email or CUSTOMER_PLACEHOLDER_NAME


def map_customer(payload: Union[ShopifyCustomer, dict]) -> Customer:
    sc = payload if isinstance(payload, ShopifyCustomer) else ShopifyCustomer.parse(payload)
    address = ""
    if sc.default_address is not None:
        addr = sc.default_address
        address = ", ".join(p for p in (addr.address1, addr.city) if p)
    return Customer(
        id=customer_id(sc.id),
        name=_customer_name(sc, sc.email),
        phone=sc.phone or "",
        email=sc.email or "",
        address=address,
        shopify_customer_id=sc.id or "",
    )


def map_invoice_item(payload: Union[ShopifyLineItem, dict]) -> InvoiceItem:
    line = payload if isinstance(payload, ShopifyLineItem) else ShopifyLineItem.parse(payload)
    price = parse_price(line.price)
    qty = line.quantity or 1
    total = price * qty
    # Shopify has no metal/stone cost breakdown: making charges carry the whole line
    return InvoiceItem(
        sku=line.sku or (f"{LINE_ITEM_SKU_PREFIX}{line.id}" if line.id else ""),
        name=line.name or line.title or LINE_ITEM_PLACEHOLDER_NAME,
        quantity=qty,
        unit_price=price,
        item_total=total,
        making_charges=total,
    )


def map_invoice(payload: Union[ShopifyOrder, dict]) -> Invoice:
    order = payload if isinstance(payload, ShopifyOrder) else ShopifyOrder.parse(payload)
    subtotal = parse_price(order.subtotal_price)
    discount = parse_price(order.total_discounts)
    grand_total = parse_price(order.total_price)
    # Partial payments are not reconciled; anything paid counts as settled
    amount_paid = grand_total if order.financial_status in PAID_STATUSES else 0.0
    customer = order.customer
    number = order.order_number if order.order_number is not None else order.id

    return Invoice(
        id=invoice_id(order),
        shopify_order_id=order.id or "",
        shopify_order_number=order.order_number,
        customer_name=_customer_name(customer, order.email),
        customer_id=(customer_id(customer.id) if customer is not None else None) or "",
        customer_contact=(customer.phone if customer is not None else None) or "",
        items=[map_invoice_item(line) for line in order.line_items],
        subtotal=subtotal,
        discount_amount=discount,
        grand_total=grand_total,
        amount_paid=amount_paid,
        balance_due=grand_total - amount_paid,
        created_at=order.created_at or "",
        rates_applied=RatesApplied(),
        payment_history=[],
        source="shopify",
        notes=f"Imported from Shopify Order #{number}. Status: {order.financial_status or 'unknown'}",
    )


def map_product(product: Union[ShopifyProduct, dict], variant: Union[ShopifyVariant, dict]) -> Product:
    sp = product if isinstance(product, ShopifyProduct) else ShopifyProduct.parse(product)
    sv = variant if isinstance(variant, ShopifyVariant) else ShopifyVariant.parse(variant)
    price = parse_price(sv.price)
    title = sp.title or ""
    name = f"{title} - {sv.title or ''}" if len(sp.variants) > 1 else title
    return Product(
        sku=product_sku(sv),
        name=name,
        metal_weight_g=parse_price(sv.weight),
        making_charges=price,
        is_custom_price=True,
        custom_price=price,
        image_url=(sp.image.src if sp.image is not None else None) or "",
        description=strip_html(sp.body_html),
        shopify_product_id=sp.id or "",
        shopify_variant_id=sv.id or "",
    )


def map_product_variants(payload: Union[ShopifyProduct, dict]) -> list[Product]:
    """One POS product per Shopify variant."""
    sp = payload if isinstance(payload, ShopifyProduct) else ShopifyProduct.parse(payload)
    return [map_product(sp, variant) for variant in sp.variants]
