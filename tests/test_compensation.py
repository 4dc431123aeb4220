"""Stock effects of status transitions."""
import asyncio
import logging

import pytest

from app import compensation
from app.errors import CompensationFailed, InvalidTransition
from app.models import OrderStatus
from app.orders import OrderService
from app.schemas import CartLine
from app.store import ORDERS, PRODUCTS


async def place(service, client_info, *lines):
    return await service.create_order(
        client_info, [CartLine(product_id=pid, quantity=qty) for pid, qty in lines]
    )


async def test_cancel_after_payment_restores_stock(service, store, products, client_info):
    order = await place(service, client_info, (products["p1"], 2))
    assert store.stock(products["p1"]) == 3

    await service.set_status(order.id, "paid")
    assert store.stock(products["p1"]) == 3

    cancelled = await service.set_status(order.id, "cancelled")

    assert cancelled.status == OrderStatus.CANCELLED
    assert store.stock(products["p1"]) == 5


async def test_cancel_pending_order_restores_stock(service, store, products, client_info):
    order = await place(service, client_info, (products["p1"], 1), (products["p2"], 3))

    await service.set_status(order.id, "cancelled")

    assert store.stock(products["p1"]) == 5
    assert store.stock(products["p2"]) == 3


@pytest.mark.parametrize("path", [
    ["paid"],
    ["paid", "preparing"],
    ["paid", "preparing", "shipped"],
    ["paid", "preparing", "shipped", "done"],
])
async def test_forward_transitions_do_not_touch_stock(service, store, products, client_info, path):
    order = await place(service, client_info, (products["p2"], 2))

    for status in path:
        await service.set_status(order.id, status)

    assert store.stock(products["p2"]) == 1


async def test_repeating_status_is_not_a_transition(service, store, products, client_info):
    order = await place(service, client_info, (products["p1"], 2))
    await service.set_status(order.id, "paid")

    await service.set_status(order.id, "paid")

    assert store.stock(products["p1"]) == 3


async def test_restore_skips_deleted_product(service, store, products, client_info, caplog):
    order = await place(service, client_info, (products["p1"], 2), (products["p2"], 1))
    del store.docs[PRODUCTS][products["p2"]]

    with caplog.at_level(logging.WARNING):
        await service.set_status(order.id, "cancelled")

    assert store.stock(products["p1"]) == 5
    assert "Test Product 2" in caplog.text


async def test_restore_failure_keeps_status(store, products, client_info):
    service = OrderService(store, max_attempts=2, backoff=0)
    order = await place(service, client_info, (products["p1"], 2))
    store.conflict_collections = {PRODUCTS}

    with pytest.raises(CompensationFailed) as exc:
        await service.set_status(order.id, "cancelled")

    assert exc.value.order_id == order.id
    assert store.docs[ORDERS][order.id]["status"] == "cancelled"
    assert store.stock(products["p1"]) == 3


async def test_restore_is_all_or_nothing(store, products, client_info):
    service = OrderService(store, max_attempts=1, backoff=0)
    order = await place(service, client_info, (products["p1"], 2), (products["p2"], 1))
    store.fail_commits = 1

    with pytest.raises(CompensationFailed):
        await compensation.restore_stock(store, order, max_attempts=1, backoff=0)

    assert store.stock(products["p1"]) == 3
    assert store.stock(products["p2"]) == 2


def test_restores_stock_rules():
    assert compensation.restores_stock(OrderStatus.PAID, OrderStatus.CANCELLED)
    assert compensation.restores_stock(OrderStatus.PENDING, OrderStatus.CANCELLED)
    assert not compensation.restores_stock(OrderStatus.PENDING, OrderStatus.PAID)
    assert not compensation.restores_stock(OrderStatus.SHIPPED, OrderStatus.DONE)


async def test_concurrent_pay_and_cancel_restock_once(service, store, products, client_info):
    order = await place(service, client_info, (products["p1"], 2))
    store.read_delay = 5

    paid, cancelled = await asyncio.gather(
        service.set_status(order.id, "paid"),
        service.set_status(order.id, "cancelled"),
        return_exceptions=True,
    )

    assert cancelled.status == OrderStatus.CANCELLED
    # Cancel may win the race, leaving nothing to pay
    assert isinstance(paid, InvalidTransition) or paid.status == OrderStatus.PAID
    assert store.docs[ORDERS][order.id]["status"] == "cancelled"
    assert store.stock(products["p1"]) == 5


async def test_lost_restore_result_is_not_replayed(service, store, products, client_info):
    order = await place(service, client_info, (products["p1"], 2), (products["p2"], 1))
    store.lose_commit_results = 1

    with pytest.raises(CompensationFailed):
        await compensation.restore_stock(store, order, backoff=0)

    assert store.stock(products["p1"]) == 5
    assert store.stock(products["p2"]) == 3
