#!/usr/bin/env python3
"""
Load a sample catalog into the storefront database.

Usage:
    python seed_products.py            # insert sample products
    python seed_products.py --reset    # delete existing products first
"""
import asyncio
import argparse
import os
import sys
from decimal import Decimal

ROOT = os.path.dirname(os.path.abspath(__file__))
sys.path.append(ROOT)
sys.path.append(os.path.join(ROOT, "services", "storefront-service"))

from shared.utils import get_db_client, settings
from app.store import MongoStore, PRODUCTS
from app.schemas import ProductCreate
from app import products as catalog

SAMPLE_PRODUCTS = [
    ProductCreate(
        name="Wireless Bluetooth Headphones",
        description="Noise cancelling wireless headphones with 30-hour battery life.",
        price=Decimal("299.99"),
        stock=15,
    ),
    ProductCreate(
        name="Organic Cotton T-Shirt",
        description="Comfortable and sustainable organic cotton t-shirt.",
        price=Decimal("29.99"),
        stock=50,
    ),
    ProductCreate(
        name="Smart Fitness Watch",
        description="Heart rate monitoring, GPS and 7-day battery life.",
        price=Decimal("199.99"),
        stock=25,
    ),
    ProductCreate(
        name="Artisan Coffee Beans",
        description="Single-origin medium roast with notes of chocolate and caramel.",
        price=Decimal("24.99"),
        stock=30,
    ),
    ProductCreate(
        name="Ergonomic Office Chair",
        description="Lumbar support and adjustable height for long work sessions.",
        price=Decimal("449.99"),
        stock=8,
    ),
]

# --- Colors ---
class Colors:
    HEADER = '\033[95m'
    GREEN = '\033[92m'
    WARNING = '\033[93m'
    FAIL = '\033[91m'
    ENDC = '\033[0m'

def log(msg, color=Colors.ENDC):
    print(f"{color}{msg}{Colors.ENDC}")

async def seed(reset: bool):
    store = MongoStore(get_db_client(), settings.DATABASE_NAME)
    try:
        if reset:
            existing = await store.find(PRODUCTS)
            removed = await store.delete_many(PRODUCTS, [doc["_id"] for doc in existing])
            log(f"Removed {removed} existing products", Colors.WARNING)
        for product in SAMPLE_PRODUCTS:
            created = await catalog.create_product(store, product)
            log(f"✓ {created.name} ({created.id})", Colors.GREEN)
    finally:
        store.close()

def main():
    parser = argparse.ArgumentParser(description="Seed the storefront catalog")
    parser.add_argument("--reset", action="store_true", help="Delete existing products first")
    args = parser.parse_args()

    log("\nSeeding products...", Colors.HEADER)
    try:
        asyncio.run(seed(args.reset))
    except Exception as e:
        log(f"❌ Seeding failed: {e}", Colors.FAIL)
        sys.exit(1)

if __name__ == "__main__":
    main()
