"""Stock adjustments driven by order status transitions.

Stock is consumed when the order is created, so the only transition with a
stock effect is a cancellation, which puts the ordered quantities back.
"""
import logging
from collections import OrderedDict
from typing import Optional

from app.errors import CompensationFailed, TransactionFailed
from app.models import OrderDB, OrderStatus
from app.store import PRODUCTS, SERVER_TIMESTAMP, DocumentStore
from app.transactions import run_transaction

logger = logging.getLogger("storefront-service.compensation")

# Statuses in which the order still holds the stock it consumed at creation
RESTOCK_FROM = {OrderStatus.PENDING, OrderStatus.PAID}


def restores_stock(before: OrderStatus, after: OrderStatus) -> bool:
    return after == OrderStatus.CANCELLED and before in RESTOCK_FROM


async def on_status_change(
    store: DocumentStore,
    before: OrderDB,
    after: OrderDB,
    max_attempts: Optional[int] = None,
    backoff: Optional[float] = None,
) -> int:
    """Apply the stock effect of ``before.status -> after.status``.

    Returns the number of units put back into stock.
    """
    if before.status == after.status:
        return 0
    if restores_stock(before.status, after.status):
        return await restore_stock(store, after, max_attempts=max_attempts, backoff=backoff)
    return 0


async def restore_stock(
    store: DocumentStore,
    order: OrderDB,
    max_attempts: Optional[int] = None,
    backoff: Optional[float] = None,
) -> int:
    quantities = OrderedDict()
    names = {}
    for item in order.items:
        quantities[item.product_id] = quantities.get(item.product_id, 0) + item.quantity
        names.setdefault(item.product_id, item.name)

    async def work(tx):
        restored = 0
        for product_id, quantity in quantities.items():
            doc = await tx.get(PRODUCTS, product_id)
            if doc is None:
                logger.warning(
                    f"Skipping stock restore for missing product {names[product_id]}",
                    extra={"order_id": order.id, "product_id": product_id},
                )
                continue
            tx.update(
                PRODUCTS,
                product_id,
                {"stock": doc["stock"] + quantity, "updated_at": SERVER_TIMESTAMP},
                expected={"stock": doc["stock"]},
            )
            restored += quantity
        return restored

    try:
        restored = await run_transaction(
            store, work, max_attempts=max_attempts, backoff=backoff, name="restore_stock"
        )
    except TransactionFailed as exc:
        logger.error(
            "Stock restore failed, manual reconciliation required",
            extra={"order_id": order.id},
        )
        raise CompensationFailed(order.id, exc.message) from exc

    logger.info(f"Stock restored for cancelled order: {restored} units", extra={"order_id": order.id})
    return restored
