#!/usr/bin/env python3
"""
Record store capability consumed by the user query engine.

`RecordStore` is the contract; `MongoRecordStore` fulfils it over a Motor
collection. Write plans are plain dicts ({"filter", "update", "upsert"}) so
the engine never touches driver types, and unique-key violations come back as
ConflictError instead of driver exceptions.
"""

import contextlib
import logging
from typing import Any, Dict, Iterator, List, Optional, Protocol, Sequence, Tuple

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import ReturnDocument, UpdateOne
from pymongo.errors import BulkWriteError, DuplicateKeyError

from mongo.constants import DUPLICATE_KEY_ERROR
from users.errors import ConflictError

logger = logging.getLogger(__name__)

Document = Dict[str, Any]
SortSpec = Sequence[Tuple[str, int]]


class RecordStore(Protocol):
    async def find(
        self,
        filter: Document,
        projection: Optional[Document] = None,
        sort: Optional[SortSpec] = None,
        skip: int = 0,
        limit: int = 0,
    ) -> List[Document]: ...

    async def count(self, filter: Document) -> int: ...

    async def bulk_write(self, plan: List[Document]) -> Dict[str, int]: ...

    async def aggregate(self, pipeline: List[Document]) -> List[Document]: ...

    async def find_by_id(self, record_id: ObjectId, projection: Optional[Document] = None) -> Optional[Document]: ...

    async def insert_one(self, document: Document) -> ObjectId: ...

    async def find_one_and_update(
        self,
        filter: Document,
        update: Document,
        projection: Optional[Document] = None,
    ) -> Optional[Document]: ...


def _is_duplicate_key(error: BulkWriteError) -> bool:
    write_errors = (error.details or {}).get("writeErrors", [])
    return any(err.get("code") == DUPLICATE_KEY_ERROR for err in write_errors)


@contextlib.contextmanager
def _conflicts_as_errors(message: str) -> Iterator[None]:
    """Translate unique-index violations into ConflictError."""
    try:
        yield
    except DuplicateKeyError as e:
        raise ConflictError(message) from e
    except BulkWriteError as e:
        if _is_duplicate_key(e):
            raise ConflictError(message) from e
        logger.error(f"Bulk write failed: {e.details}")
        raise


class MongoRecordStore:
    """RecordStore over a Motor collection"""

    def __init__(self, collection: AsyncIOMotorCollection):
        self.collection = collection

    async def find(self, filter, projection=None, sort=None, skip=0, limit=0):
        cursor = self.collection.find(filter, projection)
        if sort:
            cursor = cursor.sort(list(sort))
        if skip:
            cursor = cursor.skip(skip)
        if limit:
            cursor = cursor.limit(limit)
        return await cursor.to_list(length=None)

    async def count(self, filter):
        return await self.collection.count_documents(filter)

    async def bulk_write(self, plan):
        operations = [
            UpdateOne(op["filter"], op["update"], upsert=op.get("upsert", False))
            for op in plan
        ]
        with _conflicts_as_errors("Email already exists"):
            result = await self.collection.bulk_write(operations, ordered=True)
        return {
            "matched": result.matched_count,
            "modified": result.modified_count,
            "upserted": result.upserted_count,
        }

    async def aggregate(self, pipeline):
        cursor = self.collection.aggregate(pipeline)
        return await cursor.to_list(length=None)

    async def find_by_id(self, record_id, projection=None):
        return await self.collection.find_one({"_id": record_id}, projection)

    async def insert_one(self, document):
        with _conflicts_as_errors("Email already exists"):
            result = await self.collection.insert_one(document)
        return result.inserted_id

    async def find_one_and_update(self, filter, update, projection=None):
        with _conflicts_as_errors("Email already exists"):
            return await self.collection.find_one_and_update(
                filter,
                update,
                projection=projection,
                return_document=ReturnDocument.AFTER,
            )
