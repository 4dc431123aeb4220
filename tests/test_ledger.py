"""Order status rules."""
import asyncio

import pytest

from app import ledger
from app.errors import CommitUncertain, InvalidStatus, InvalidTransition, OrderNotFound
from app.models import OrderStatus
from app.schemas import CartLine
from app.store import ORDERS


@pytest.fixture
async def order(service, products, client_info):
    return await service.create_order(client_info, [CartLine(product_id=products["p1"], quantity=2)])


def test_parse_status():
    assert ledger.parse_status("shipped") == OrderStatus.SHIPPED
    assert ledger.parse_status(OrderStatus.DONE) == OrderStatus.DONE
    with pytest.raises(InvalidStatus):
        ledger.parse_status("bogus")
    with pytest.raises(InvalidStatus):
        ledger.parse_status(None)


@pytest.mark.parametrize("current,target", [
    ("pending", "paid"),
    ("paid", "preparing"),
    ("preparing", "shipped"),
    ("shipped", "done"),
    ("pending", "shipped"),
    ("pending", "cancelled"),
    ("paid", "cancelled"),
    ("shipped", "shipped"),
])
def test_allowed_transitions(current, target):
    ledger.check_transition(OrderStatus(current), OrderStatus(target))


@pytest.mark.parametrize("current,target", [
    ("paid", "pending"),
    ("shipped", "preparing"),
    ("done", "shipped"),
    ("preparing", "cancelled"),
    ("done", "cancelled"),
    ("cancelled", "paid"),
    ("cancelled", "pending"),
])
def test_rejected_transitions(current, target):
    with pytest.raises(InvalidTransition):
        ledger.check_transition(OrderStatus(current), OrderStatus(target))


async def test_set_status_persists(store, order):
    before, after = await ledger.set_status(store, order.id, "paid", payment_id="pay_123")

    assert before.status == OrderStatus.PENDING
    assert after.status == OrderStatus.PAID
    assert after.payment_id == "pay_123"
    assert after.updated_at is not None
    assert store.docs[ORDERS][order.id]["status"] == "paid"


async def test_bogus_status_leaves_order_untouched(store, order):
    calls = store.calls

    with pytest.raises(InvalidStatus):
        await ledger.set_status(store, order.id, "bogus")

    assert store.calls == calls
    assert store.docs[ORDERS][order.id]["status"] == "pending"
    assert "updated_at" not in store.docs[ORDERS][order.id]


async def test_backward_transition_leaves_order_untouched(store, order):
    await ledger.set_status(store, order.id, "shipped")

    with pytest.raises(InvalidTransition):
        await ledger.set_status(store, order.id, "paid")

    assert store.docs[ORDERS][order.id]["status"] == "shipped"


async def test_unknown_order(store):
    with pytest.raises(OrderNotFound):
        await ledger.set_status(store, "nope", "paid")


async def test_concurrent_update_is_replayed(store, order):
    # A conflicting commit forces a re-read; the transition is checked again
    store.fail_commits = 1

    before, after = await ledger.set_status(store, order.id, "paid", backoff=0)

    assert store.commit_attempts >= 2
    assert before.status == OrderStatus.PENDING
    assert after.status == OrderStatus.PAID


async def test_set_status_reports_its_own_transition(store, order):
    # The order moves on right after this call commits; the result must still
    # describe the write this call made
    store.read_delay = 5

    async def cancel_after_payment():
        while store.docs[ORDERS][order.id]["status"] != "paid":
            await asyncio.sleep(0)
        await ledger.set_status(store, order.id, "cancelled", backoff=0)

    (before, after), _ = await asyncio.gather(
        ledger.set_status(store, order.id, "paid", backoff=0),
        cancel_after_payment(),
    )

    assert (before.status, after.status) == (OrderStatus.PENDING, OrderStatus.PAID)
    assert store.docs[ORDERS][order.id]["status"] == "cancelled"


async def test_lost_commit_result_is_not_replayed(store, order):
    store.lose_commit_results = 1

    with pytest.raises(CommitUncertain):
        await ledger.set_status(store, order.id, "paid", backoff=0)

    assert store.commit_attempts == 1
    assert store.docs[ORDERS][order.id]["status"] == "paid"
