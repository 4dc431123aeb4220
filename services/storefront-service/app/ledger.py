"""Order lifecycle rules.

pending -> paid -> preparing -> shipped -> done, moving forward only (steps
may be skipped). An order can be cancelled while it is pending or paid.
done and cancelled are terminal.
"""
import logging
from datetime import datetime
from typing import Optional, Tuple

from app.errors import InvalidStatus, InvalidTransition, OrderNotFound
from app.models import OrderDB, OrderStatus
from app.store import ORDERS, DocumentStore
from app.transactions import run_transaction

logger = logging.getLogger("storefront-service.ledger")

STATUS_FLOW = [
    OrderStatus.PENDING,
    OrderStatus.PAID,
    OrderStatus.PREPARING,
    OrderStatus.SHIPPED,
    OrderStatus.DONE,
]
CANCELLABLE = {OrderStatus.PENDING, OrderStatus.PAID}
TERMINAL = {OrderStatus.DONE, OrderStatus.CANCELLED}


def parse_status(value) -> OrderStatus:
    try:
        return OrderStatus(value)
    except ValueError:
        raise InvalidStatus(value)


def check_transition(current: OrderStatus, target: OrderStatus):
    if current == target:
        return
    if current in TERMINAL:
        raise InvalidTransition(current.value, target.value)
    if target == OrderStatus.CANCELLED:
        if current not in CANCELLABLE:
            raise InvalidTransition(current.value, target.value)
        return
    if STATUS_FLOW.index(target) < STATUS_FLOW.index(current):
        raise InvalidTransition(current.value, target.value)


async def get_order(store: DocumentStore, order_id: str) -> OrderDB:
    doc = await store.get(ORDERS, order_id)
    if doc is None:
        raise OrderNotFound(order_id)
    return OrderDB.model_validate(doc)


async def set_status(
    store: DocumentStore,
    order_id: str,
    new_status,
    payment_id: Optional[str] = None,
    max_attempts: Optional[int] = None,
    backoff: Optional[float] = None,
) -> Tuple[OrderDB, OrderDB]:
    """Persist a new status for an order and return ``(before, after)``.

    The value and the transition are validated before anything is written.
    The write is conditional on the status that was read, so two concurrent
    updates cannot both observe the same ``before``. ``after`` is the state
    this call committed, not a later read, so a concurrent change landing
    right after it cannot be mistaken for this call's transition.
    """
    target = parse_status(new_status)

    async def work(tx):
        doc = await tx.get(ORDERS, order_id)
        if doc is None:
            raise OrderNotFound(order_id)
        before = OrderDB.model_validate(doc)
        check_transition(before.status, target)

        changes = {"status": target.value, "updated_at": datetime.utcnow()}
        if payment_id:
            changes["payment_id"] = payment_id
        tx.update(ORDERS, order_id, changes, expected={"status": before.status.value})
        return before, before.model_copy(update={**changes, "status": target})

    before, after = await run_transaction(
        store, work, max_attempts=max_attempts, backoff=backoff, name="set_status"
    )

    logger.info(
        f"Order status updated: {before.status.value} -> {after.status.value}",
        extra={"order_id": order_id, "from_status": before.status.value, "to_status": after.status.value},
    )
    return before, after
