#!/usr/bin/env python3
"""
Delete completed orders older than the retention window.

Usage (cron, daily at 02:00 UTC):
    0 2 * * * python cleanup_orders.py
"""
import asyncio
import argparse
import os
import sys

ROOT = os.path.dirname(os.path.abspath(__file__))
sys.path.append(ROOT)
sys.path.append(os.path.join(ROOT, "services", "storefront-service"))

from shared.utils import get_db_client, settings
from shared.logging_config import setup_logging
from app.store import MongoStore
from app.maintenance import cleanup_old_orders

# --- Colors ---
class Colors:
    HEADER = '\033[95m'
    GREEN = '\033[92m'
    FAIL = '\033[91m'
    ENDC = '\033[0m'

def log(msg, color=Colors.ENDC):
    print(f"{color}{msg}{Colors.ENDC}")

async def run(retention_days: int, limit: int):
    store = MongoStore(get_db_client(), settings.DATABASE_NAME)
    try:
        return await cleanup_old_orders(store, retention_days=retention_days, limit=limit)
    finally:
        store.close()

def main():
    parser = argparse.ArgumentParser(description="Remove old completed orders")
    parser.add_argument("--days", type=int, default=settings.ORDER_RETENTION_DAYS, help="Retention window in days")
    parser.add_argument("--limit", type=int, default=settings.ORDER_CLEANUP_LIMIT, help="Max orders deleted per run")
    args = parser.parse_args()

    setup_logging("storefront-maintenance")
    log(f"\nCleaning up done orders older than {args.days} days...", Colors.HEADER)
    try:
        deleted, cutoff = asyncio.run(run(args.days, args.limit))
    except Exception as e:
        log(f"❌ Cleanup failed: {e}", Colors.FAIL)
        sys.exit(1)
    log(f"✓ Deleted {deleted} orders created before {cutoff.isoformat()}", Colors.GREEN)

if __name__ == "__main__":
    main()
