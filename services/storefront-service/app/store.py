"""Document store access.

The order/stock core only talks to a ``DocumentStore``. A ``Transaction``
reads documents as of its snapshot and buffers writes; nothing reaches the
database until ``commit`` applies every buffered write atomically. Updates may
carry preconditions (``expected`` field values); when one no longer holds at
commit time the whole transaction fails with ``WriteConflict`` and the caller
is expected to retry with fresh reads.

``MongoStore`` is the production implementation on top of motor and MongoDB
multi-document transactions (requires a replica set).
"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from decimal import Decimal
from typing import AsyncIterator, List, NamedTuple, Optional, Tuple

from bson import ObjectId
from bson.codec_options import CodecOptions, TypeCodec, TypeRegistry
from bson.decimal128 import Decimal128
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.errors import ConnectionFailure, OperationFailure, PyMongoError

logger = logging.getLogger("storefront-service.store")

PRODUCTS = "products"
ORDERS = "orders"

# Mongo server error code for a write-write conflict inside a transaction
MONGO_WRITE_CONFLICT = 112


class _ServerTimestamp:
    def __repr__(self):
        return "SERVER_TIMESTAMP"


# Placeholder resolved to the commit time when a write is applied
SERVER_TIMESTAMP = _ServerTimestamp()


class WriteConflict(Exception):
    """A snapshot read or write precondition was invalidated by a concurrent writer."""


class StoreError(Exception):
    """Transient store failure (connection lost, aborted transaction)."""


class CommitOutcomeUnknown(Exception):
    """The commit was sent but its result was lost; the writes may have been applied."""


class Write(NamedTuple):
    kind: str  # "create" or "update"
    collection: str
    doc_id: str
    data: dict
    expected: dict


def new_id() -> str:
    return str(ObjectId())


def resolve_timestamps(data: dict, now: datetime) -> dict:
    return {k: (now if v is SERVER_TIMESTAMP else v) for k, v in data.items()}


class Transaction:
    def __init__(self):
        self.writes: List[Write] = []

    async def get(self, collection: str, doc_id: str) -> Optional[dict]:
        raise NotImplementedError

    def create(self, collection: str, data: dict) -> str:
        doc_id = data.get("_id") or new_id()
        self.writes.append(Write("create", collection, doc_id, {**data, "_id": doc_id}, {}))
        return doc_id

    def update(self, collection: str, doc_id: str, changes: dict, expected: Optional[dict] = None):
        self.writes.append(Write("update", collection, doc_id, dict(changes), dict(expected or {})))

    async def commit(self):
        raise NotImplementedError


class DocumentStore:
    def transaction(self):
        """Async context manager yielding a ``Transaction``; commits on clean exit."""
        raise NotImplementedError

    async def get(self, collection: str, doc_id: str) -> Optional[dict]:
        raise NotImplementedError

    async def find(
        self,
        collection: str,
        query: Optional[dict] = None,
        sort: Optional[List[Tuple[str, int]]] = None,
        skip: int = 0,
        limit: int = 0,
    ) -> List[dict]:
        raise NotImplementedError

    async def count(self, collection: str, query: Optional[dict] = None) -> int:
        raise NotImplementedError

    async def insert(self, collection: str, data: dict) -> str:
        raise NotImplementedError

    async def update(self, collection: str, doc_id: str, changes: dict) -> bool:
        raise NotImplementedError

    async def delete(self, collection: str, doc_id: str) -> bool:
        raise NotImplementedError

    async def delete_many(self, collection: str, doc_ids: List[str]) -> int:
        raise NotImplementedError

    async def ping(self) -> bool:
        raise NotImplementedError


# --- MongoDB ---

class DecimalCodec(TypeCodec):
    python_type = Decimal
    bson_type = Decimal128

    def transform_python(self, value):
        return Decimal128(value)

    def transform_bson(self, value):
        return value.to_decimal()


CODEC_OPTIONS = CodecOptions(type_registry=TypeRegistry([DecimalCodec()]))


class MongoTransaction(Transaction):
    def __init__(self, db, session):
        super().__init__()
        self._db = db
        self._session = session

    async def get(self, collection, doc_id):
        return await self._db[collection].find_one({"_id": doc_id}, session=self._session)

    async def commit(self):
        now = datetime.utcnow()
        for write in self.writes:
            coll = self._db[write.collection]
            data = resolve_timestamps(write.data, now)
            if write.kind == "create":
                await coll.insert_one(data, session=self._session)
                continue
            result = await coll.update_one(
                {"_id": write.doc_id, **write.expected},
                {"$set": data},
                session=self._session,
            )
            if result.matched_count == 0:
                raise WriteConflict(f"{write.collection}/{write.doc_id} changed since it was read")
        try:
            await self._session.commit_transaction()
        except PyMongoError as exc:
            if isinstance(exc, ConnectionFailure) or exc.has_error_label("UnknownTransactionCommitResult"):
                raise CommitOutcomeUnknown(str(exc)) from exc
            raise


class MongoStore(DocumentStore):
    def __init__(self, client: AsyncIOMotorClient, database_name: str):
        self.client = client
        self.db = client.get_database(database_name, codec_options=CODEC_OPTIONS)

    async def create_indexes(self):
        await self.db[PRODUCTS].create_index("created_at")
        await self.db[ORDERS].create_index("created_at")
        await self.db[ORDERS].create_index([("status", 1), ("created_at", 1)])

    def close(self):
        self.client.close()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[MongoTransaction]:
        try:
            async with await self.client.start_session() as session:
                session.start_transaction()
                tx = MongoTransaction(self.db, session)
                try:
                    yield tx
                    await tx.commit()
                except BaseException:
                    if session.in_transaction:
                        await session.abort_transaction()
                    raise
        except OperationFailure as exc:
            if exc.code == MONGO_WRITE_CONFLICT or exc.has_error_label("TransientTransactionError"):
                raise WriteConflict(str(exc)) from exc
            raise StoreError(str(exc)) from exc
        except (ConnectionFailure, PyMongoError) as exc:
            raise StoreError(str(exc)) from exc

    async def get(self, collection, doc_id):
        return await self.db[collection].find_one({"_id": doc_id})

    async def find(self, collection, query=None, sort=None, skip=0, limit=0):
        cursor = self.db[collection].find(query or {})
        if sort:
            cursor = cursor.sort(sort)
        if skip:
            cursor = cursor.skip(skip)
        if limit:
            cursor = cursor.limit(limit)
        return await cursor.to_list(length=None)

    async def count(self, collection, query=None):
        return await self.db[collection].count_documents(query or {})

    async def insert(self, collection, data):
        data = resolve_timestamps({"_id": new_id(), **data}, datetime.utcnow())
        result = await self.db[collection].insert_one(data)
        return result.inserted_id

    async def update(self, collection, doc_id, changes):
        changes = resolve_timestamps(changes, datetime.utcnow())
        result = await self.db[collection].update_one({"_id": doc_id}, {"$set": changes})
        return result.matched_count == 1

    async def delete(self, collection, doc_id):
        result = await self.db[collection].delete_one({"_id": doc_id})
        return result.deleted_count == 1

    async def delete_many(self, collection, doc_ids):
        if not doc_ids:
            return 0
        result = await self.db[collection].delete_many({"_id": {"$in": list(doc_ids)}})
        return result.deleted_count

    async def ping(self):
        await self.client.admin.command("ping")
        return True
