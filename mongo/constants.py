import os
from bson import ObjectId
from bson.errors import InvalidId
from dotenv import load_dotenv
import logging

# Load environment variables from .env file
load_dotenv()

# Configure logging
logger = logging.getLogger(__name__)

# Database configuration
DATABASE_NAME = os.getenv("MONGODB_DATABASE", "UserDirectory")
USERS_COLLECTION = os.getenv("USERS_COLLECTION", "users")
_DEFAULT_MONGODB_URI = "mongodb://localhost:27017"

def _resolve_mongo_uri() -> str:
    """Resolve the MongoDB connection string with sane fallbacks."""
    candidates = [
        os.getenv("MONGODB_URI"),
        os.getenv("MONGODB_CONNECTION_STRING"),
    ]

    for candidate in candidates:
        if candidate and candidate.strip():
            return candidate.strip()

    if any(candidate == "" for candidate in candidates):
        logger.warning("MONGODB connection string env var was empty; falling back to default URI.")

    return _DEFAULT_MONGODB_URI

MONGODB_CONNECTION_STRING = _resolve_mongo_uri()

# Connection pool tuning, overridable per deployment
MONGO_MAX_POOL_SIZE: int = int(os.getenv("MONGO_MAX_POOL_SIZE", "50"))
MONGO_MIN_POOL_SIZE: int = int(os.getenv("MONGO_MIN_POOL_SIZE", "5"))
MONGO_SERVER_SELECTION_TIMEOUT_MS: int = int(os.getenv("MONGO_SERVER_SELECTION_TIMEOUT_MS", "5000"))

# MongoDB duplicate key error code
DUPLICATE_KEY_ERROR = 11000


def str_to_object_id(value: str) -> ObjectId:
    """Convert a 24-char hex string to an ObjectId.

    Raises ValueError for anything that is not a valid ObjectId so callers can
    treat malformed ids the same way as other malformed input.
    """
    if not isinstance(value, str) or not value:
        raise ValueError("object id must be a non-empty string")

    # Strip surrounding quotes if present (handles JSON-serialized ids)
    cleaned = value.strip('"\'')

    try:
        return ObjectId(cleaned)
    except (InvalidId, TypeError) as e:
        raise ValueError(f"Invalid ObjectId '{value}': {e}") from e
