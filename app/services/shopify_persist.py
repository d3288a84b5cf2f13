"""
Write mapped Shopify records to the POS collections. Shared by webhooks and backfill.
Every write is an upsert keyed by the mapper-derived id.
"""
import logging

from app.models import Customer, Invoice, Product
from app.services.firestore import FirestoreClient

logger = logging.getLogger(__name__)

CUSTOMERS = "customers"
INVOICES = "invoices"
PRODUCTS = "products"


async def save_customer(store: FirestoreClient, customer: Customer) -> bool:
    return await store.set(CUSTOMERS, customer.id, customer.to_document())


async def save_invoice(store: FirestoreClient, invoice: Invoice) -> bool:
    return await store.set(INVOICES, invoice.id, invoice.to_document())


async def save_product(store: FirestoreClient, product: Product) -> bool:
    return await store.set(PRODUCTS, product.sku, product.to_document())
