"""
MongoDB connection helpers.

The client is only created when DATABASE_URL and DATABASE_NAME are set;
otherwise `db` stays None and the API falls back to the in-memory stores.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel
from pymongo import MongoClient
from pymongo.errors import PyMongoError

from config import Config
from errors import ValidationError

logger = logging.getLogger(__name__)

client: Optional[MongoClient] = None
db = None


def connect(url: str, name: str, timeout_seconds: float):
    """Create the client and return (client, database)."""
    # timeoutMS gives every operation a default client-side deadline;
    # tz_aware keeps stored UTC datetimes aware when read back
    mongo_client = MongoClient(
        url,
        timeoutMS=int(timeout_seconds * 1000),
        tz_aware=True,
    )
    return mongo_client, mongo_client[name]


if Config.database_configured():
    try:
        client, db = connect(Config.DATABASE_URL, Config.DATABASE_NAME, Config.STORE_TIMEOUT_SECONDS)
    except PyMongoError:
        logger.exception("Could not create MongoDB client")
        client = None
        db = None


def db_available() -> bool:
    return db is not None


def to_obj_id(id_str: Union[str, ObjectId]) -> ObjectId:
    if isinstance(id_str, ObjectId):
        return id_str
    try:
        return ObjectId(id_str)
    except (InvalidId, TypeError):
        raise ValidationError("Invalid id", details={"id": id_str})


def to_str_id(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if doc is None:
        return doc
    d = dict(doc)
    if "_id" in d:
        d["id"] = str(d.pop("_id"))
    return d


def create_document(collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
    """Insert a document with created/updated timestamps and return its id."""
    if db is None:
        raise RuntimeError("Database not available. Check DATABASE_URL and DATABASE_NAME.")

    if isinstance(data, BaseModel):
        data_dict = data.model_dump(exclude={"id"})
    else:
        data_dict = dict(data)
    now = datetime.now(timezone.utc)
    data_dict.setdefault("created_at", now)
    data_dict["updated_at"] = now

    result = db[collection_name].insert_one(data_dict)
    return str(result.inserted_id)
