import logging
from datetime import datetime, timedelta
from typing import Optional, Tuple

from app.models import OrderStatus
from app.store import ORDERS, DocumentStore
from shared.utils import settings

logger = logging.getLogger("storefront-service.maintenance")


async def cleanup_old_orders(
    store: DocumentStore,
    now: Optional[datetime] = None,
    retention_days: Optional[int] = None,
    limit: Optional[int] = None,
) -> Tuple[int, datetime]:
    """Delete completed orders older than the retention window.

    Only ``done`` orders are touched, so no order that still holds stock or
    awaits a status change is ever removed. At most ``limit`` orders go per run.
    """
    now = now or datetime.utcnow()
    retention_days = retention_days or settings.ORDER_RETENTION_DAYS
    limit = limit or settings.ORDER_CLEANUP_LIMIT
    cutoff = now - timedelta(days=retention_days)

    old_orders = await store.find(
        ORDERS,
        {"status": OrderStatus.DONE.value, "created_at": {"$lt": cutoff}},
        sort=[("created_at", 1)],
        limit=limit,
    )
    deleted = await store.delete_many(ORDERS, [doc["_id"] for doc in old_orders])
    logger.info(f"Cleaned up {deleted} old orders")
    return deleted, cutoff
