"""
Deduplicating, idempotent bulk upsert keyed by normalized email.

A batch is normalized, deduplicated (first occurrence of each emailLower
wins), turned into one upsert per survivor and sent as a single ordered
bulk write. Re-running the same batch matches every record and inserts none.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

from users.constants import MAX_BULK_BATCH, MIN_BULK_BATCH
from users.errors import ValidationError
from users.models import BulkUpsertResult, UserCreate
from users.store import RecordStore

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def dedupe_by_email(candidates: Sequence[UserCreate]) -> Tuple[List[Tuple[str, UserCreate]], List[UserCreate]]:
    """Stable dedupe on emailLower.

    Returns (survivors as (emailLower, candidate) pairs, dropped candidates).
    """
    seen = set()
    survivors: List[Tuple[str, UserCreate]] = []
    dropped: List[UserCreate] = []
    for candidate in candidates:
        email_lower = normalize_email(candidate.email)
        if email_lower in seen:
            dropped.append(candidate)
            continue
        seen.add(email_lower)
        survivors.append((email_lower, candidate))
    return survivors, dropped


def build_upsert_plan(candidates: Sequence[UserCreate], now: Optional[datetime] = None) -> List[Dict[str, Any]]:
    """One upsert per distinct emailLower, in first-seen order."""
    now = now or datetime.now(timezone.utc)
    survivors, dropped = dedupe_by_email(candidates)
    if dropped:
        logger.debug(f"Dropped {len(dropped)} in-batch duplicate email(s) from bulk upsert")

    plan = []
    for email_lower, user in survivors:
        # optional fields the caller left out keep their stored value
        fields = user.model_dump(exclude_unset=True)
        fields["updatedAt"] = now
        plan.append({
            "filter": {"emailLower": email_lower},
            "update": {
                "$set": fields,
                "$setOnInsert": {
                    "emailLower": email_lower,
                    "createdAt": now,
                    "isDeleted": False,
                },
            },
            "upsert": True,
        })
    return plan


async def bulk_upsert(store: RecordStore, candidates: Sequence[UserCreate]) -> BulkUpsertResult:
    """Write the deduplicated plan as one batch and summarize the outcome.

    A store failure aborts the whole batch; a unique-key race with another
    writer surfaces as ConflictError from the store.
    """
    if not MIN_BULK_BATCH <= len(candidates) <= MAX_BULK_BATCH:
        raise ValidationError(
            f"Bulk upsert accepts between {MIN_BULK_BATCH} and {MAX_BULK_BATCH} users, got {len(candidates)}",
            invalid=[str(len(candidates))],
        )

    plan = build_upsert_plan(candidates)
    summary = await store.bulk_write(plan)
    logger.info(
        f"Bulk upsert of {len(plan)} operation(s): matched={summary['matched']} "
        f"modified={summary['modified']} upserted={summary['upserted']}"
    )

    return BulkUpsertResult(
        matched=summary["matched"],
        modified=summary["modified"],
        upserted=summary["upserted"],
        errors=[],
    )
