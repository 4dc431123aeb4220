from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from app import products as catalog
from app.errors import InsufficientStock
from app.schemas import ProductCreate, ProductUpdate
from shared.utils import NotFoundException


async def test_create_and_get(store):
    created = await catalog.create_product(
        store, ProductCreate(name="Artisan Coffee Beans", price=Decimal("24.99"), stock=30)
    )

    fetched = await catalog.get_product(store, created.id)
    assert fetched.name == "Artisan Coffee Beans"
    assert fetched.stock == 30
    assert fetched.created_at is not None


async def test_get_missing_product(store):
    assert await catalog.get_product(store, "missing") is None
    with pytest.raises(NotFoundException):
        await catalog.require_product(store, "missing")


async def test_list_newest_first(store):
    ticks = (datetime(2024, 1, 1) + timedelta(minutes=i) for i in range(10))
    store.clock = lambda: next(ticks)
    for name in ("First", "Second", "Third"):
        await catalog.create_product(store, ProductCreate(name=name, price=Decimal("1.00")))

    names = [p.name for p in await catalog.list_products(store)]
    assert names == ["Third", "Second", "First"]


async def test_update_keeps_stock(store, products):
    updated = await catalog.update_product(store, products["p1"], ProductUpdate(price=Decimal("12.50")))

    assert updated.price == Decimal("12.50")
    assert updated.stock == 5
    assert updated.updated_at is not None


async def test_update_missing(store):
    with pytest.raises(NotFoundException):
        await catalog.update_product(store, "missing", ProductUpdate(name="x"))


async def test_delete(store, products):
    await catalog.delete_product(store, products["p1"])

    assert await catalog.get_product(store, products["p1"]) is None
    with pytest.raises(NotFoundException):
        await catalog.delete_product(store, products["p1"])


async def test_adjust_stock(store, products):
    product = await catalog.adjust_stock(store, products["p2"], 7)
    assert product.stock == 10

    product = await catalog.adjust_stock(store, products["p2"], -10)
    assert product.stock == 0


async def test_adjust_stock_never_negative(store, products):
    with pytest.raises(InsufficientStock):
        await catalog.adjust_stock(store, products["p2"], -4)

    assert store.stock(products["p2"]) == 3


def test_image_url_is_stored_verbatim():
    url = "https://cdn.example.com/mug.png?w=200&h=200"

    product = ProductCreate(name="<b>Mug</b>", price="4.50", image_url=url)
    update = ProductUpdate(image_url=url)

    assert product.image_url == url
    assert update.image_url == url
    assert product.name == "&lt;b&gt;Mug&lt;/b&gt;"
