import logging
from functools import wraps
from datetime import datetime, timezone
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient
from bson import ObjectId
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import PyMongoError

from config import settings
from exceptions import StoreUnavailableError

logger = logging.getLogger(__name__)

client = AsyncIOMotorClient(settings.mongo_url)
db = client[settings.mongo_db_name]


def obj_to_str(obj):
    return str(obj) if isinstance(obj, ObjectId) else obj


def to_object_id(value) -> Optional[ObjectId]:
    """Parse an id from a path or token. Returns None for malformed ids."""
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


def utcnow() -> datetime:
    # Mongo hands back naive UTC datetimes, so everything we compare against is naive too
    return datetime.now(timezone.utc).replace(tzinfo=None)


async def ensure_indexes(database):
    try:
        await database.books.create_index("isbn", unique=True)
        await database.books.create_index([("created_at", DESCENDING), ("_id", DESCENDING)])
        await database.users.create_index("email", unique=True)
        await database.users.create_index("username", unique=True)
        await database.borrow_records.create_index([("user_id", ASCENDING), ("_id", ASCENDING)])
        await database.borrow_records.create_index(
            [("user_id", ASCENDING), ("book_id", ASCENDING)],
            unique=True,
            partialFilterExpression={"returned": False},
            name="one_active_borrow_per_user_book",
        )
    except PyMongoError as e:
        logger.error(f"Index creation failed: {e}")
        raise StoreUnavailableError("Could not create database indexes") from e


async def check_connection(database=None) -> bool:
    database = database if database is not None else db
    try:
        await database.command("ping")
        return True
    except PyMongoError as e:
        logger.error(f"MongoDB connection failed: {e}")
        return False


def wrap_store_errors(func):
    """Turn driver failures escaping a store operation into StoreUnavailableError."""
    @wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except PyMongoError as e:
            logger.error(f"{func.__name__} failed: {e}")
            raise StoreUnavailableError() from e
    return wrapper
