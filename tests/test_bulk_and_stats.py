#!/usr/bin/env python3
"""
Bulk Upsert and Stats Tests
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from users.bulk import build_upsert_plan, bulk_upsert, dedupe_by_email
from users.errors import ConflictError, ValidationError
from users.models import UserCreate
from users.stats import build_stats_pipeline, compute_stats


def candidate(email: str, name: str = "Ann", age: int = 30, **extra) -> UserCreate:
    return UserCreate(name=name, email=email, age=age, **extra)


class TestDedupe:
    def test_first_occurrence_wins(self):
        """A@x.com and a@x.com collapse to one operation, keeping the first"""
        plan = build_upsert_plan([candidate("A@x.com", name="First"), candidate("a@x.com", name="Second")])
        assert len(plan) == 1
        assert plan[0]["filter"] == {"emailLower": "a@x.com"}
        assert plan[0]["update"]["$set"]["name"] == "First"
        assert plan[0]["update"]["$set"]["email"] == "A@x.com"

    def test_order_is_preserved(self):
        survivors, dropped = dedupe_by_email([
            candidate("b@x.com"),
            candidate("a@x.com"),
            candidate("B@X.com"),
            candidate("c@x.com"),
        ])
        assert [email for email, _ in survivors] == ["b@x.com", "a@x.com", "c@x.com"]
        assert [d.email for d in dropped] == ["B@X.com"]


class TestUpsertPlan:
    def test_operation_shape(self):
        now = datetime(2024, 5, 1, tzinfo=timezone.utc)
        plan = build_upsert_plan([candidate("Bob@Example.com", name="Bob", age=41, phone="555")], now=now)
        assert plan == [{
            "filter": {"emailLower": "bob@example.com"},
            "update": {
                "$set": {
                    "name": "Bob",
                    "email": "Bob@Example.com",
                    "age": 41,
                    "phone": "555",
                    "updatedAt": now,
                },
                "$setOnInsert": {
                    "emailLower": "bob@example.com",
                    "createdAt": now,
                    "isDeleted": False,
                },
            },
            "upsert": True,
        }]


class TestBulkUpsert:
    @pytest.mark.asyncio
    async def test_second_run_inserts_nothing(self, store):
        batch = [candidate("one@x.com"), candidate("two@x.com"), candidate("ONE@x.com")]

        first = await bulk_upsert(store, batch)
        assert (first.matched, first.upserted) == (0, 2)
        assert first.errors == []

        second = await bulk_upsert(store, batch)
        assert second.upserted == 0
        assert second.matched == 2
        assert len(store.documents) == 2

    @pytest.mark.asyncio
    async def test_upsert_updates_existing_and_keeps_created_at(self, store):
        await bulk_upsert(store, [candidate("one@x.com", age=20)])
        created_at = store.documents[0]["createdAt"]

        result = await bulk_upsert(store, [candidate("One@X.com", age=21)])
        assert (result.matched, result.modified, result.upserted) == (1, 1, 0)
        doc = store.documents[0]
        assert doc["age"] == 21
        assert doc["email"] == "One@X.com"
        assert doc["emailLower"] == "one@x.com"
        assert doc["createdAt"] == created_at
        assert doc["isDeleted"] is False

    @pytest.mark.asyncio
    async def test_omitted_optional_fields_keep_stored_values(self, store):
        await bulk_upsert(store, [candidate("a@x.com", phone="555", address="Main St")])

        result = await bulk_upsert(store, [candidate("A@x.com", age=31)])
        assert (result.matched, result.upserted) == (1, 0)
        doc = store.documents[0]
        assert doc["age"] == 31
        assert doc["phone"] == "555"
        assert doc["address"] == "Main St"

    def test_explicit_none_clears_phone(self):
        plan = build_upsert_plan([candidate("a@x.com", phone=None)])
        assert plan[0]["update"]["$set"]["phone"] is None
        assert "address" not in plan[0]["update"]["$set"]

    @pytest.mark.asyncio
    async def test_single_batched_write(self):
        store = AsyncMock()
        store.bulk_write.return_value = {"matched": 0, "modified": 0, "upserted": 2}
        await bulk_upsert(store, [candidate("a@x.com"), candidate("b@x.com")])
        store.bulk_write.assert_awaited_once()
        assert len(store.bulk_write.await_args.args[0]) == 2

    @pytest.mark.asyncio
    async def test_conflict_propagates(self):
        store = AsyncMock()
        store.bulk_write.side_effect = ConflictError("Email already exists")
        with pytest.raises(ConflictError):
            await bulk_upsert(store, [candidate("a@x.com")])

    @pytest.mark.asyncio
    async def test_batch_bounds(self):
        store = AsyncMock()
        with pytest.raises(ValidationError):
            await bulk_upsert(store, [])
        with pytest.raises(ValidationError):
            await bulk_upsert(store, [candidate(f"u{i}@x.com") for i in range(101)])
        store.bulk_write.assert_not_called()


class TestStats:
    def test_pipeline_facets(self):
        pipeline = build_stats_pipeline()
        assert pipeline[0] == {"$match": {"isDeleted": False}}
        facets = pipeline[1]["$facet"]
        assert set(facets) == {"summary", "byAgeRange", "byCreatedMonth"}
        bucket = facets["byAgeRange"][0]["$bucket"]
        assert bucket["boundaries"] == [0, 18, 25, 35, 50, 120]
        assert bucket["default"] == "Others"
        assert facets["byCreatedMonth"][0]["$group"]["_id"]["$dateToString"]["format"] == "%Y-%m"
        assert facets["byCreatedMonth"][-1] == {"$sort": {"_id": 1}}

    @pytest.mark.asyncio
    async def test_single_aggregation_call(self):
        store = AsyncMock()
        store.aggregate.return_value = [{
            "summary": [{"_id": None, "total": 3, "avgAge": 30.0, "minAge": 20, "maxAge": 40}],
            "byAgeRange": [{"_id": 18, "count": 1}, {"_id": 35, "count": 2}],
            "byCreatedMonth": [{"_id": "2024-01", "count": 3}],
        }]
        stats = await compute_stats(store)
        store.aggregate.assert_awaited_once_with(build_stats_pipeline())
        assert stats["summary"][0]["total"] == 3
        assert stats["byCreatedMonth"] == [{"_id": "2024-01", "count": 3}]

    @pytest.mark.asyncio
    async def test_empty_result(self):
        store = AsyncMock()
        store.aggregate.return_value = []
        assert await compute_stats(store) == {"summary": [], "byAgeRange": [], "byCreatedMonth": []}
