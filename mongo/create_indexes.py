#!/usr/bin/env python3
"""
MongoDB Index Creation Script for the User Directory
This script creates the indexes the user query engine relies on, using the MongoDB Python driver.
"""

import logging
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.collection import Collection
from mongo.constants import MONGODB_CONNECTION_STRING, DATABASE_NAME, USERS_COLLECTION

# Configure logging
logger = logging.getLogger(__name__)

# name -> (keys, options)
USER_INDEXES = {
    # Uniqueness of normalized email, regardless of delete state
    "emailLower_unique": ([("emailLower", ASCENDING)], {"unique": True}),
    # Free-text search, name weighted over email
    "text_search_index": ([("name", "text"), ("email", "text")], {"weights": {"name": 3, "email": 1}}),
    # Age filters sorted by recency
    "age_createdAt": ([("age", ASCENDING), ("createdAt", DESCENDING)], {}),
    # Soft-delete visibility
    "isDeleted": ([("isDeleted", ASCENDING)], {}),
    # Default sort and monthly stats
    "createdAt": ([("createdAt", ASCENDING)], {}),
}


def create_index_if_not_exists(collection: Collection, index_spec, index_name: str, **options) -> bool:
    """Create index only if it doesn't already exist"""
    try:
        existing_indexes = list(collection.list_indexes())
        index_names = [idx['name'] for idx in existing_indexes]

        if index_name in index_names:
            logger.info(f"Index '{index_name}' already exists")
            return True

        collection.create_index(index_spec, name=index_name, **options)
        logger.info(f"Created index '{index_name}'")
        return True
    except Exception as e:
        logger.error(f"Error creating index '{index_name}': {e}")
        return False


def ensure_user_indexes(collection: Collection) -> bool:
    """Create every user index; returns False if any of them failed."""
    results = [
        create_index_if_not_exists(collection, keys, name, **options)
        for name, (keys, options) in USER_INDEXES.items()
    ]

    for idx in collection.list_indexes():
        logger.info(f"  {idx['name']}: {dict(idx['key'])}")

    return all(results)


def create_indexes() -> bool:
    """Create all necessary indexes on the users collection"""

    # Connect to MongoDB
    client = MongoClient(MONGODB_CONNECTION_STRING)
    try:
        return ensure_user_indexes(client[DATABASE_NAME][USERS_COLLECTION])
    finally:
        client.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
    raise SystemExit(0 if create_indexes() else 1)
