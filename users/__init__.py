"""
User Directory Module

Query resolution, pagination, bulk upsert and statistics for user records
stored in MongoDB.
"""

from users.errors import (
    ConflictError,
    NotFoundError,
    UserServiceError,
    ValidationError,
)

from users.service import UserService
from users.store import MongoRecordStore, RecordStore

__all__ = [
    # Errors
    "UserServiceError",
    "ValidationError",
    "ConflictError",
    "NotFoundError",
    # Service
    "UserService",
    "RecordStore",
    "MongoRecordStore",
]
