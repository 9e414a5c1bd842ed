#!/usr/bin/env python3
"""
UserService - the operations the request layer calls.

List, cursor, bulk and stats operations go through the query engine
(filters, projection, sorting, pagination, bulk, stats). The identity-targeted
create/find/update/remove/restore operations and text search are thin
passthroughs to the record store that still keep the emailLower and
soft-delete invariants.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from bson import ObjectId

from mongo.constants import str_to_object_id
from users.bulk import bulk_upsert, normalize_email
from users.constants import VERSION_FIELD
from users.errors import NotFoundError, ValidationError
from users.filters import build_filter
from users.models import (
    BulkUpsertResult,
    CursorPage,
    CursorQuery,
    PagedResult,
    SoftDelete,
    UserCreate,
    UserListQuery,
    UserUpdate,
)
from users.pagination import paginate, paginate_cursor
from users.projection import hidden_projection, resolve_projection
from users.sorting import parse_sort
from users.stats import compute_stats
from users.store import RecordStore

logger = logging.getLogger(__name__)

ACTIVE = {"isDeleted": False}


def _object_id(value: str, label: str = "id") -> ObjectId:
    try:
        return str_to_object_id(value)
    except ValueError as e:
        raise ValidationError(f"Invalid {label} '{value}'", invalid=[value]) from e


def _now() -> datetime:
    return datetime.now(timezone.utc)


class UserService:
    """Request-scoped operations over a user RecordStore; holds no mutable state."""

    def __init__(self, store: RecordStore):
        self.store = store

    # ------------------------------------------------------------------
    # Query engine
    # ------------------------------------------------------------------

    async def resolve_paged_list(self, query: UserListQuery) -> PagedResult:
        """Offset page of users matching the query's filters and visibility."""
        # Compile everything before the first store call
        filter = build_filter(query)
        projection = resolve_projection(query.visibility, query.custom_fields)
        sort = parse_sort(query.sort)

        return await paginate(
            self.store,
            filter,
            projection,
            page=query.page,
            page_size=query.page_size,
            sort=sort,
        )

    async def resolve_cursor_list(self, query: CursorQuery) -> CursorPage:
        """Keyset page of active users; always the basic view."""
        return await paginate_cursor(
            self.store,
            dict(ACTIVE),
            hidden_projection(),
            limit=query.limit,
            after=query.after,
        )

    async def bulk_upsert(self, candidates: Sequence[UserCreate]) -> BulkUpsertResult:
        return await bulk_upsert(self.store, candidates)

    async def compute_stats(self) -> Dict[str, List[Dict[str, Any]]]:
        return await compute_stats(self.store)

    async def search(self, q: Optional[str]) -> List[Dict[str, Any]]:
        """Full-text search over name/email, best matches first."""
        if not q or not q.strip():
            raise ValidationError("Search query is required", invalid=[q or ""])

        projection = {"score": {"$meta": "textScore"}, **hidden_projection()}
        return await self.store.find(
            {"$text": {"$search": q.strip()}, **ACTIVE},
            projection,
            [("score", {"$meta": "textScore"})],
        )

    # ------------------------------------------------------------------
    # Identity-targeted passthroughs
    # ------------------------------------------------------------------

    async def create(self, user: UserCreate) -> Dict[str, Any]:
        now = _now()
        document = {
            **user.model_dump(),
            "emailLower": normalize_email(user.email),
            "isDeleted": False,
            "deletedAt": None,
            "deletedBy": None,
            "deleteReason": None,
            "createdAt": now,
            "updatedAt": now,
            VERSION_FIELD: 0,
        }
        inserted_id = await self.store.insert_one(document)
        logger.info(f"Created user {inserted_id}")
        return await self.store.find_by_id(inserted_id, hidden_projection())

    async def find_one(self, user_id: str) -> Dict[str, Any]:
        """Any record by id, deleted or not, in the admin view."""
        user = await self.store.find_by_id(_object_id(user_id), {VERSION_FIELD: 0})
        if not user:
            raise NotFoundError("User not found")
        return user

    async def update(self, user_id: str, changes: UserUpdate) -> Dict[str, Any]:
        """Partial update of an active user; keeps emailLower in step with email."""
        record_id = _object_id(user_id)
        fields = changes.model_dump(exclude_unset=True)
        # name/email/age are required on the record and cannot be cleared
        for key in ("name", "email", "age"):
            if key in fields and fields[key] is None:
                del fields[key]
        if "email" in fields:
            fields["emailLower"] = normalize_email(fields["email"])
        fields["updatedAt"] = _now()

        user = await self.store.find_one_and_update(
            {"_id": record_id, **ACTIVE},
            {"$set": fields},
            hidden_projection(),
        )
        if not user:
            raise NotFoundError("User not found")
        return user

    async def remove(self, user_id: str, request: Optional[SoftDelete] = None) -> Dict[str, Any]:
        """Soft delete an active user."""
        record_id = _object_id(user_id)
        request = request or SoftDelete()
        deleted_by = _object_id(request.deleted_by, "deletedBy") if request.deleted_by else None

        user = await self.store.find_one_and_update(
            {"_id": record_id, **ACTIVE},
            {"$set": {
                "isDeleted": True,
                "deletedAt": _now(),
                "deletedBy": deleted_by,
                "deleteReason": request.delete_reason,
            }},
            {VERSION_FIELD: 0},
        )
        if not user:
            raise NotFoundError("User not found")
        logger.info(f"Soft-deleted user {record_id}")
        return user

    async def restore(self, user_id: str) -> Dict[str, Any]:
        """Clear delete metadata; restoring an active user is a no-op update."""
        record_id = _object_id(user_id)
        user = await self.store.find_one_and_update(
            {"_id": record_id},
            {"$set": {
                "isDeleted": False,
                "deletedAt": None,
                "deletedBy": None,
                "deleteReason": None,
                "updatedAt": _now(),
            }},
            {VERSION_FIELD: 0},
        )
        if not user:
            raise NotFoundError("User not found")
        logger.info(f"Restored user {record_id}")
        return user
