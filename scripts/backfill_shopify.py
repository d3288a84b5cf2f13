#!/usr/bin/env python3
"""
Backfill Shopify Script

Pulls historical customers, orders and (optionally) products from the connected Shopify
store into the POS document store. Same mapping and writes as the webhooks.

Usage: python scripts/backfill_shopify.py [--products] [--no-orders] [--no-customers] [--overwrite]
"""
import argparse
import asyncio
import logging
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.config import Settings
from app.services.firestore import FirestoreClient
from app.services.http_client import build_http_client
from app.services.shop_connection import ShopNotConnectedError
from app.services.sync_engine import SyncEngine, SyncOptions

logger = logging.getLogger(__name__)


async def backfill(settings: Settings, options: SyncOptions) -> dict:
    async with build_http_client(settings) as client:
        engine = SyncEngine(settings, client, FirestoreClient(settings, client))
        result = await engine.run(options)
    return result.to_dict()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Backfill Shopify records into the POS")
    parser.add_argument("--no-customers", action="store_true", help="skip customers")
    parser.add_argument("--no-orders", action="store_true", help="skip orders")
    parser.add_argument("--products", action="store_true", help="also import products (one per variant)")
    parser.add_argument("--overwrite", action="store_true", help="overwrite documents that already exist")
    args = parser.parse_args(argv)

    settings = Settings()
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    options = SyncOptions(
        sync_customers=not args.no_customers,
        sync_orders=not args.no_orders,
        sync_products=args.products,
        overwrite=args.overwrite,
    )

    print("🚀 Starting Shopify Backfill")
    print("=" * 50)
    try:
        summary = asyncio.run(backfill(settings, options))
    except ShopNotConnectedError as e:
        print(f"❌ {e} Connect the store via /api/shopify/auth first.")
        return 1

    print(f"\n🎉 BACKFILL SUMMARY:")
    print(f"   Customers imported: {summary['customers']}")
    print(f"   Orders imported: {summary['orders']}")
    print(f"   Products imported: {summary['products']}")
    print(f"   Skipped (already present): {summary['skipped']}")
    print(f"   Failed writes: {summary['failed']}")
    if summary["errors"]:
        print(f"\n❌ ERRORS:")
        for error in summary["errors"]:
            print(f"   - {error}")
    print("=" * 50)
    return 0 if not summary["errors"] and not summary["failed"] else 1


if __name__ == "__main__":
    sys.exit(main())
