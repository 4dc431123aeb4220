import logging
from typing import Optional

import httpx

from app.models import OrderDB

logger = logging.getLogger("storefront-service.notifications")


class OrderNotifier:
    """Tells the outside world about new orders.

    Always logs the order; when a webhook URL is configured the order summary
    is also POSTed there (e-mail relay, admin chat, ...).
    """

    def __init__(self, webhook_url: Optional[str] = None, timeout: float = 5.0, transport=None):
        self.webhook_url = webhook_url
        self.timeout = timeout
        self.transport = transport

    async def order_created(self, order: OrderDB):
        logger.info(
            f"New order created for {order.client.name}, total {order.total}",
            extra={"order_id": order.id},
        )
        if not self.webhook_url:
            return

        payload = {
            "event": "order.created",
            "order_id": order.id,
            "client": order.client.model_dump(),
            "total": str(order.total),
            "items": len(order.items),
        }
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.post(self.webhook_url, json=payload)
            response.raise_for_status()


async def notify_order_created(notifier: OrderNotifier, order: OrderDB):
    # Runs after the order is committed; a failure here must not reach the caller
    try:
        await notifier.order_created(order)
    except Exception:
        logger.exception("Order notification failed", extra={"order_id": order.id})
