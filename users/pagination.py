"""
Offset and cursor (keyset) pagination over a RecordStore.

Offset pages fetch data and the total count concurrently. Cursor pages walk
the collection in ascending `_id` order and fetch one extra record to learn
whether another page exists, so they stay stable when records are appended.
"""

import asyncio
import logging
import math
from typing import Any, Dict, Optional

from bson import ObjectId

from mongo.constants import str_to_object_id
from users.constants import MAX_CURSOR_LIMIT, MAX_PAGE_SIZE
from users.errors import ValidationError
from users.models import CursorPage, CursorPageInfo, PagedResult, PageMeta
from users.sorting import SortPairs
from users.store import RecordStore

logger = logging.getLogger(__name__)

CURSOR_SORT = [("_id", 1)]


def encode_cursor(record_id: ObjectId) -> str:
    return str(record_id)


def decode_cursor(cursor: str) -> ObjectId:
    """Turn an opaque cursor back into the `_id` it was issued for."""
    try:
        return str_to_object_id(cursor)
    except ValueError as e:
        raise ValidationError(f"Invalid cursor '{cursor}'", invalid=[cursor]) from e


def _check_bound(name: str, value: int, upper: int) -> None:
    if not 1 <= value <= upper:
        raise ValidationError(f"{name} must be between 1 and {upper}, got {value}", invalid=[str(value)])


async def paginate(
    store: RecordStore,
    filter: Dict[str, Any],
    projection: Optional[Dict[str, Any]],
    page: int,
    page_size: int,
    sort: Optional[SortPairs] = None,
) -> PagedResult:
    """Return one offset page plus total/page metadata.

    A page past the end is not an error: it comes back empty with the
    metadata still computed from the real total.
    """
    if page < 1:
        raise ValidationError(f"page must be at least 1, got {page}", invalid=[str(page)])
    _check_bound("pageSize", page_size, MAX_PAGE_SIZE)

    skip = (page - 1) * page_size

    # Independent reads against the same filter
    data, total = await asyncio.gather(
        store.find(filter, projection, sort, skip, page_size),
        store.count(filter),
    )

    total_pages = math.ceil(total / page_size)
    logger.debug(f"Offset page {page}/{total_pages} ({len(data)} of {total} records)")

    return PagedResult(
        data=data,
        meta=PageMeta(
            total=total,
            page=page,
            pageSize=page_size,
            totalPages=total_pages,
            hasNextPage=page < total_pages,
            hasPrevPage=page > 1,
        ),
    )


async def paginate_cursor(
    store: RecordStore,
    filter: Dict[str, Any],
    projection: Optional[Dict[str, Any]],
    limit: int,
    after: Optional[str] = None,
) -> CursorPage:
    """Return up to `limit` records with `_id` strictly greater than the cursor."""
    _check_bound("limit", limit, MAX_CURSOR_LIMIT)

    query = dict(filter)
    if after:
        bound = {"$gt": decode_cursor(after)}
        if "_id" in query:
            query = {"$and": [query, {"_id": bound}]}
        else:
            query["_id"] = bound

    items = await store.find(query, projection, CURSOR_SORT, 0, limit + 1)

    has_next_page = len(items) > limit
    if has_next_page:
        items = items[:limit]

    end_cursor = encode_cursor(items[-1]["_id"]) if items else None

    return CursorPage(
        items=items,
        pageInfo=CursorPageInfo(endCursor=end_cursor, hasNextPage=has_next_page),
    )
