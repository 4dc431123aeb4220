"""Admin dashboard statistics."""
from decimal import Decimal
from typing import Optional

from app.models import OrderStatus
from app.schemas import AdminStats
from app.store import ORDERS, PRODUCTS, DocumentStore
from shared.utils import settings

# Orders whose total counts as earned revenue
REVENUE_STATUSES = {OrderStatus.PAID.value, OrderStatus.DONE.value}


async def admin_stats(store: DocumentStore, low_stock_threshold: Optional[int] = None) -> AdminStats:
    if low_stock_threshold is None:
        low_stock_threshold = settings.LOW_STOCK_THRESHOLD

    orders = await store.find(ORDERS)
    products = await store.find(PRODUCTS)

    status_counts = {s.value: 0 for s in OrderStatus}
    revenue = Decimal("0")
    for order in orders:
        status_counts[order["status"]] = status_counts.get(order["status"], 0) + 1
        if order["status"] in REVENUE_STATUSES:
            revenue += Decimal(str(order.get("total", 0)))

    return AdminStats(
        total_orders=len(orders),
        total_products=len(products),
        total_revenue=revenue,
        status_counts=status_counts,
        low_stock_products=sum(1 for p in products if 0 < p.get("stock", 0) <= low_stock_threshold),
        out_of_stock_products=sum(1 for p in products if p.get("stock", 0) == 0),
    )
