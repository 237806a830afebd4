"""MongoDB and Redis connection helpers."""
import logging

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, MongoClient, TEXT
import redis

logger = logging.getLogger(__name__)

MOVIES_COLLECTION = "movies"
USERS_COLLECTION = "users"
QUEUE_COLLECTION = "queue"


def connect_mongo(uri: str, db_name: str):
    """
    Open a MongoDB database handle.

    Args:
        uri (str): Connection string.
        db_name (str): Database name.

    Returns:
        Database: PyMongo database handle.
    """
    client = MongoClient(uri, serverSelectionTimeoutMS=5000, socketTimeoutMS=45000)
    logger.info(f"MongoDB client created for database {db_name}")
    return client[db_name]


def connect_redis(host: str, port: int, db: int):
    """
    Build a Redis client for the read cache.

    Args:
        host (str): Redis host.
        port (int): Redis port.
        db (int): Redis database index.

    Returns:
        Redis: Client instance (connects lazily).
    """
    return redis.Redis(host=host, port=port, db=db)


def ensure_indexes(database):
    """Create the indexes the API relies on."""
    database[MOVIES_COLLECTION].create_index([("title", TEXT), ("description", TEXT)])
    database[USERS_COLLECTION].create_index("email", unique=True)
    database[QUEUE_COLLECTION].create_index([("status", ASCENDING), ("created_at", ASCENDING)])


def to_object_id(value):
    """
    Convert an identifier to an ObjectId when it has the right shape.

    Args:
        value (Any): Identifier from a path segment or payload.

    Returns:
        ObjectId | str: ObjectId when parseable, otherwise the raw string.
    """
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        return str(value)
