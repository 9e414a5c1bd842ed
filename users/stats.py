"""Faceted statistics over active (non-deleted) users in one aggregation."""

from typing import Any, Dict, List

from users.constants import AGE_BUCKET_BOUNDARIES, AGE_BUCKET_OVERFLOW, CREATED_MONTH_FORMAT
from users.store import RecordStore

FACETS = ("summary", "byAgeRange", "byCreatedMonth")


def build_stats_pipeline() -> List[Dict[str, Any]]:
    """$match active users, then compute all facets from the same input set."""
    return [
        {"$match": {"isDeleted": False}},
        {
            "$facet": {
                "summary": [
                    {
                        "$group": {
                            "_id": None,
                            "total": {"$sum": 1},
                            "avgAge": {"$avg": "$age"},
                            "minAge": {"$min": "$age"},
                            "maxAge": {"$max": "$age"},
                        }
                    }
                ],
                "byAgeRange": [
                    {
                        "$bucket": {
                            "groupBy": "$age",
                            "boundaries": list(AGE_BUCKET_BOUNDARIES),
                            "default": AGE_BUCKET_OVERFLOW,
                            "output": {"count": {"$sum": 1}},
                        }
                    }
                ],
                "byCreatedMonth": [
                    {
                        "$group": {
                            "_id": {"$dateToString": {"format": CREATED_MONTH_FORMAT, "date": "$createdAt"}},
                            "count": {"$sum": 1},
                        }
                    },
                    {"$sort": {"_id": 1}},
                ],
            }
        },
    ]


async def compute_stats(store: RecordStore) -> Dict[str, List[Dict[str, Any]]]:
    results = await store.aggregate(build_stats_pipeline())
    facets = results[0] if results else {}
    return {name: facets.get(name, []) for name in FACETS}
