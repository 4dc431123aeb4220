import json
import logging
from decimal import Decimal

import httpx

from app.models import ClientInfo, OrderDB, OrderItemDB
from app.notifications import OrderNotifier, notify_order_created


def make_order():
    return OrderDB(
        _id="order-123",
        client=ClientInfo(name="John Doe", phone="+1234567890", address="123 Main St"),
        items=[OrderItemDB(product_id="1", name="Test Product 1", price=Decimal("10.99"), quantity=2)],
        total=Decimal("21.98"),
    )


async def test_webhook_receives_order_summary():
    received = []

    def handler(request):
        received.append(json.loads(request.content))
        return httpx.Response(204)

    notifier = OrderNotifier("https://hooks.example.com/orders", transport=httpx.MockTransport(handler))
    await notifier.order_created(make_order())

    assert received == [{
        "event": "order.created",
        "order_id": "order-123",
        "client": {"name": "John Doe", "phone": "+1234567890", "address": "123 Main St", "email": None},
        "total": "21.98",
        "items": 1,
    }]


async def test_without_webhook_only_logs(caplog):
    caplog.set_level(logging.INFO)
    await OrderNotifier().order_created(make_order())

    assert "John Doe" in caplog.text


async def test_notification_failure_is_swallowed(caplog):
    notifier = OrderNotifier(
        "https://hooks.example.com/orders",
        transport=httpx.MockTransport(lambda request: httpx.Response(500)),
    )

    await notify_order_created(notifier, make_order())

    assert "Order notification failed" in caplog.text
