"""Catalog reads and admin edits."""
import logging
from typing import List, Optional

from app.errors import InsufficientStock
from app.models import ProductDB
from app.schemas import ProductCreate, ProductUpdate
from app.store import PRODUCTS, SERVER_TIMESTAMP, DocumentStore
from app.transactions import run_transaction
from shared.utils import NotFoundException

logger = logging.getLogger("storefront-service.products")


async def get_product(store: DocumentStore, product_id: str) -> Optional[ProductDB]:
    doc = await store.get(PRODUCTS, product_id)
    if doc is None:
        return None
    return ProductDB.model_validate(doc)


async def require_product(store: DocumentStore, product_id: str) -> ProductDB:
    product = await get_product(store, product_id)
    if product is None:
        raise NotFoundException("Product not found")
    return product


async def list_products(store: DocumentStore, skip: int = 0, limit: int = 0) -> List[ProductDB]:
    docs = await store.find(PRODUCTS, sort=[("created_at", -1)], skip=skip, limit=limit)
    return [ProductDB.model_validate(doc) for doc in docs]


async def create_product(store: DocumentStore, product: ProductCreate) -> ProductDB:
    data = product.model_dump()
    data["created_at"] = SERVER_TIMESTAMP
    product_id = await store.insert(PRODUCTS, data)
    logger.info(f"Product created: {product.name}", extra={"product_id": product_id})
    return await require_product(store, product_id)


async def update_product(store: DocumentStore, product_id: str, update: ProductUpdate) -> ProductDB:
    changes = {k: v for k, v in update.model_dump().items() if v is not None}
    if changes:
        changes["updated_at"] = SERVER_TIMESTAMP
        if not await store.update(PRODUCTS, product_id, changes):
            raise NotFoundException("Product not found")
    return await require_product(store, product_id)


async def delete_product(store: DocumentStore, product_id: str):
    # Orders keep their own item snapshots, so nothing else references the document
    if not await store.delete(PRODUCTS, product_id):
        raise NotFoundException("Product not found")
    logger.info("Product deleted", extra={"product_id": product_id})


async def adjust_stock(store: DocumentStore, product_id: str, delta: int) -> ProductDB:
    """Add (positive delta) or remove (negative delta) units of stock."""

    async def work(tx):
        doc = await tx.get(PRODUCTS, product_id)
        if doc is None:
            raise NotFoundException("Product not found")
        current = doc["stock"]
        if current + delta < 0:
            raise InsufficientStock(doc["name"])
        tx.update(
            PRODUCTS,
            product_id,
            {"stock": current + delta, "updated_at": SERVER_TIMESTAMP},
            expected={"stock": current},
        )

    await run_transaction(store, work, name="adjust_stock")
    logger.info(f"Stock adjusted by {delta}", extra={"product_id": product_id})
    return await require_product(store, product_id)
