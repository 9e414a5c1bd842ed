"""
Shared fixtures: an in-memory RecordStore that understands the subset of the
MongoDB query language the user engine emits.
"""

import copy
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pytest
from bson import ObjectId

from users.errors import ConflictError
from users.service import UserService

_MISSING = object()


def _get(doc: Dict[str, Any], key: str) -> Any:
    return doc.get(key, _MISSING)


def _matches_condition(value: Any, condition: Any) -> bool:
    if isinstance(condition, dict) and condition and all(k.startswith("$") for k in condition):
        for op, arg in condition.items():
            present = value is not _MISSING
            actual = value if present else None
            if op == "$exists":
                if present != bool(arg):
                    return False
            elif op == "$gt":
                if not present or actual is None or not actual > arg:
                    return False
            elif op == "$in":
                if actual not in arg:
                    return False
            elif op == "$nin":
                if actual in arg:
                    return False
            elif op == "$ne":
                if actual == arg:
                    return False
            elif op == "$regex":
                flags = re.IGNORECASE if "i" in condition.get("$options", "") else 0
                if not isinstance(actual, str) or not re.search(arg, actual, flags):
                    return False
            elif op == "$options":
                continue
            else:
                raise NotImplementedError(op)
        return True

    if condition is None:
        return value is _MISSING or value is None
    return value is not _MISSING and value == condition


def matches(doc: Dict[str, Any], query: Dict[str, Any]) -> bool:
    for key, condition in query.items():
        if key == "$or":
            if not any(matches(doc, sub) for sub in condition):
                return False
        elif key == "$and":
            if not all(matches(doc, sub) for sub in condition):
                return False
        elif key == "$text":
            words = condition["$search"].lower().split()
            haystack = f"{doc.get('name', '')} {doc.get('email', '')}".lower()
            if not any(word in haystack for word in words):
                return False
        elif not _matches_condition(_get(doc, key), condition):
            return False
    return True


def project(doc: Dict[str, Any], projection: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    if not projection:
        return copy.deepcopy(doc)
    plain = {k: v for k, v in projection.items() if not isinstance(v, dict)}
    included = [k for k, v in plain.items() if v and k != "_id"]
    if included:
        out = {k: copy.deepcopy(doc[k]) for k in included if k in doc}
        if plain.get("_id", 1):
            out["_id"] = doc["_id"]
        return out
    if plain.get("_id") == 1 and len(plain) == 1:
        return {"_id": doc["_id"]}
    return {k: copy.deepcopy(v) for k, v in doc.items() if plain.get(k, 1)}


class InMemoryRecordStore:
    """RecordStore fake; records every call in `calls`."""

    def __init__(self, documents: Optional[List[Dict[str, Any]]] = None):
        self.documents: List[Dict[str, Any]] = []
        self.calls: List[str] = []
        for document in documents or []:
            self._insert(document)

    def _insert(self, document: Dict[str, Any]) -> ObjectId:
        document = copy.deepcopy(document)
        email_lower = document.get("emailLower")
        if email_lower and any(d.get("emailLower") == email_lower for d in self.documents):
            raise ConflictError("Email already exists")
        document.setdefault("_id", ObjectId())
        self.documents.append(document)
        return document["_id"]

    async def find(self, filter, projection=None, sort=None, skip=0, limit=0):
        self.calls.append("find")
        found = [d for d in self.documents if matches(d, filter)]
        for key, direction in reversed(list(sort or [])):
            if isinstance(direction, dict):
                continue
            found.sort(
                key=lambda d: (d.get(key) is not None, d.get(key) if d.get(key) is not None else 0),
                reverse=direction == -1,
            )
        found = found[skip:]
        if limit:
            found = found[:limit]
        return [project(d, projection) for d in found]

    async def count(self, filter):
        self.calls.append("count")
        return sum(1 for d in self.documents if matches(d, filter))

    async def bulk_write(self, plan):
        self.calls.append("bulk_write")
        matched = modified = upserted = 0
        for op in plan:
            target = next((d for d in self.documents if matches(d, op["filter"])), None)
            update = op["update"]
            if target is not None:
                matched += 1
                changed = {k: v for k, v in update.get("$set", {}).items() if target.get(k, _MISSING) != v}
                if changed:
                    target.update(changed)
                    modified += 1
            elif op.get("upsert"):
                document = {**op["filter"], **update.get("$set", {}), **update.get("$setOnInsert", {})}
                self._insert(document)
                upserted += 1
        return {"matched": matched, "modified": modified, "upserted": upserted}

    async def aggregate(self, pipeline):
        self.calls.append("aggregate")
        raise NotImplementedError("aggregate is asserted with AsyncMock")

    async def find_by_id(self, record_id, projection=None):
        self.calls.append("find_by_id")
        for d in self.documents:
            if d["_id"] == record_id:
                return project(d, projection)
        return None

    async def insert_one(self, document):
        self.calls.append("insert_one")
        return self._insert(document)

    async def find_one_and_update(self, filter, update, projection=None):
        self.calls.append("find_one_and_update")
        target = next((d for d in self.documents if matches(d, filter)), None)
        if target is None:
            return None
        changes = update.get("$set", {})
        email_lower = changes.get("emailLower")
        if email_lower and any(d is not target and d.get("emailLower") == email_lower for d in self.documents):
            raise ConflictError("Email already exists")
        target.update(copy.deepcopy(changes))
        return project(target, projection)


def make_user(name: str, email: str, age: int, **extra) -> Dict[str, Any]:
    """Fully populated active user document."""
    now = datetime(2024, 1, 15, tzinfo=timezone.utc)
    document = {
        "name": name,
        "email": email,
        "emailLower": email.lower(),
        "age": age,
        "phone": None,
        "address": None,
        "isDeleted": False,
        "deletedAt": None,
        "deletedBy": None,
        "deleteReason": None,
        "createdAt": now,
        "updatedAt": now,
        "__v": 0,
    }
    document.update(extra)
    return document


@pytest.fixture
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def seeded_store() -> InMemoryRecordStore:
    """Twelve active users plus two soft-deleted ones, inserted in _id order."""
    users = [make_user(f"User {i:02d}", f"User{i:02d}@Example.com", 18 + i) for i in range(12)]
    users.append(make_user("Gone One", "gone1@example.com", 40, isDeleted=True, deleteReason="spam"))
    users.append(make_user("Gone Two", "gone2@example.com", 41, isDeleted=True))
    return InMemoryRecordStore(users)


@pytest.fixture
def service(seeded_store) -> UserService:
    return UserService(seeded_store)
