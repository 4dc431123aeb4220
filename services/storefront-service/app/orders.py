"""Order creation and status changes.

``create_order`` is the stock-consistent checkout: every cart line is
validated against the product stock read inside one transaction, and the
order document plus every stock decrement are committed together or not at
all. Stock writes are conditional on the value that was read; when another
checkout got there first the commit conflicts and the whole transaction is
replayed against fresh stock.
"""
import logging
from collections import OrderedDict
from decimal import Decimal
from typing import Dict, List, Optional

from app import compensation, ledger
from app.errors import EmptyCart, InsufficientStock, ProductNotFound
from app.models import ClientInfo, OrderDB, OrderItemDB, OrderStatus, ProductDB
from app.schemas import CartLine
from app.store import ORDERS, PRODUCTS, SERVER_TIMESTAMP, DocumentStore, new_id
from app.transactions import run_transaction

logger = logging.getLogger("storefront-service.orders")

PAYMENT_EVENT_STATUS = {
    "succeeded": OrderStatus.PAID,
    "failed": OrderStatus.CANCELLED,
}


class OrderService:
    def __init__(
        self,
        store: DocumentStore,
        max_attempts: Optional[int] = None,
        backoff: Optional[float] = None,
    ):
        self.store = store
        self.max_attempts = max_attempts
        self.backoff = backoff

    async def create_order(self, client: ClientInfo, lines: List[CartLine]) -> OrderDB:
        if not lines:
            raise EmptyCart()

        order_id = new_id()

        async def work(tx):
            # A replay after a lost commit result finds the order already written
            if await tx.get(ORDERS, order_id) is not None:
                return order_id

            snapshots: Dict[str, ProductDB] = {}
            requested: Dict[str, int] = OrderedDict()

            # Validate in caller order; the first bad line aborts everything
            for line in lines:
                product = snapshots.get(line.product_id)
                if product is None:
                    doc = await tx.get(PRODUCTS, line.product_id)
                    if doc is None:
                        raise ProductNotFound(line.name or line.product_id)
                    product = snapshots[line.product_id] = ProductDB.model_validate(doc)

                wanted = requested.get(line.product_id, 0) + line.quantity
                if product.stock < wanted:
                    raise InsufficientStock(line.name or product.name)
                requested[line.product_id] = wanted

            items = [
                OrderItemDB(
                    product_id=line.product_id,
                    name=snapshots[line.product_id].name,
                    price=snapshots[line.product_id].price,
                    quantity=line.quantity,
                )
                for line in lines
            ]
            total = sum((item.subtotal for item in items), Decimal("0"))

            tx.create(ORDERS, {
                "_id": order_id,
                "client": client.model_dump(),
                "items": [item.model_dump() for item in items],
                "total": total,
                "status": OrderStatus.PENDING.value,
                "created_at": SERVER_TIMESTAMP,
            })

            for product_id, quantity in requested.items():
                current = snapshots[product_id].stock
                tx.update(
                    PRODUCTS,
                    product_id,
                    {"stock": current - quantity},
                    expected={"stock": current},
                )
            return order_id

        await run_transaction(
            self.store,
            work,
            max_attempts=self.max_attempts,
            backoff=self.backoff,
            name="create_order",
            replay_safe=True,
        )
        order = await ledger.get_order(self.store, order_id)
        logger.info(f"Order created, total {order.total}", extra={"order_id": order_id})
        return order

    async def get_order(self, order_id: str) -> OrderDB:
        return await ledger.get_order(self.store, order_id)

    async def list_orders(
        self, status: Optional[str] = None, skip: int = 0, limit: int = 0
    ) -> List[OrderDB]:
        query = {}
        if status is not None:
            query["status"] = ledger.parse_status(status).value
        docs = await self.store.find(ORDERS, query, sort=[("created_at", -1)], skip=skip, limit=limit)
        return [OrderDB.model_validate(doc) for doc in docs]

    async def set_status(self, order_id: str, status, payment_id: Optional[str] = None) -> OrderDB:
        """Change an order's status and apply the stock effect of the transition.

        Raises ``CompensationFailed`` when the status was saved but the stock
        could not be restored.
        """
        before, after = await ledger.set_status(
            self.store,
            order_id,
            status,
            payment_id=payment_id,
            max_attempts=self.max_attempts,
            backoff=self.backoff,
        )
        await compensation.on_status_change(
            self.store, before, after, max_attempts=self.max_attempts, backoff=self.backoff
        )
        return after

    async def apply_payment_event(self, order_id: str, event: str, payment_id: Optional[str] = None) -> OrderDB:
        return await self.set_status(order_id, PAYMENT_EVENT_STATUS[event], payment_id=payment_id)
