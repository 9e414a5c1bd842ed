#!/usr/bin/env python3
"""
Backfill emailLower for user records written before the field existed.

Run this before creating the unique emailLower index on an older collection:
    python -m mongo.backfill_email_lower --batch-size 100
"""

import argparse
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from pymongo import MongoClient, UpdateOne
from pymongo.collection import Collection

from mongo.constants import DATABASE_NAME, MONGODB_CONNECTION_STRING, USERS_COLLECTION

logger = logging.getLogger(__name__)

MISSING_EMAIL_LOWER = {
    "$or": [
        {"emailLower": {"$exists": False}},
        {"emailLower": None},
        {"emailLower": ""},
    ]
}


def build_backfill_ops(users: Iterable[Dict[str, Any]], now: Optional[datetime] = None) -> List[UpdateOne]:
    """One $set per user that has an email to normalize."""
    now = now or datetime.now(timezone.utc)
    ops = []
    for user in users:
        email = user.get("email")
        if not email:
            logger.warning(f"User {user.get('_id')} has no email; skipping")
            continue
        ops.append(UpdateOne(
            {"_id": user["_id"]},
            {"$set": {"emailLower": email.strip().lower(), "updatedAt": now}},
        ))
    return ops


def backfill_email_lower(collection: Collection, batch_size: int = 100, dry_run: bool = False) -> int:
    """Backfill in batches; returns how many users were (or would be) updated."""
    users = list(collection.find(MISSING_EMAIL_LOWER, {"email": 1}))
    logger.info(f"Found {len(users)} users without emailLower")

    if not users:
        return 0

    processed = 0
    for start in range(0, len(users), batch_size):
        ops = build_backfill_ops(users[start:start + batch_size])
        if ops and not dry_run:
            collection.bulk_write(ops, ordered=False)
        processed += len(ops)
        logger.info(f"Processed {processed}/{len(users)} users")

    return processed


def main() -> None:
    parser = argparse.ArgumentParser(description="Backfill emailLower on user records")
    parser.add_argument("--batch-size", type=int, default=100)
    parser.add_argument("--dry-run", action="store_true", help="Count affected users without writing")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')

    client = MongoClient(MONGODB_CONNECTION_STRING)
    try:
        backfill_email_lower(client[DATABASE_NAME][USERS_COLLECTION], args.batch_size, args.dry_run)
    except Exception as exc:
        logger.error(f"emailLower backfill failed: {exc}")
        sys.exit(1)
    finally:
        client.close()


if __name__ == "__main__":
    main()
