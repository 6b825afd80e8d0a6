"""
MongoDB connection lifecycle and document helpers.

The client is opened once by the application lifespan and the database
handle is handed to request handlers through the `get_db` dependency.
"""
from typing import Any, Dict

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import Request
from pymongo import MongoClient
from pymongo.database import Database

import errors
from config import Settings
from logger import get_logger
from schemas import User, collection_name

log = get_logger("database")


def connect(settings: Settings) -> MongoClient:
    client = MongoClient(settings.mongodb_url)
    log.info("Connected to MongoDB database %s", settings.database_name)
    return client


def ensure_indexes(db: Database) -> None:
    """Create the indexes the collections rely on; safe to call on every start."""
    db[collection_name(User)].create_index("email", unique=True)


def close(client: MongoClient) -> None:
    client.close()
    log.info("MongoDB connection closed")


def get_db(request: Request) -> Database:
    """
    Dependency function that provides the database handle opened at startup.

    Usage in FastAPI:
        @app.get("/endpoint")
        def my_endpoint(db: Database = Depends(get_db)):
            ...
    """
    return request.app.state.db


def to_object_id(value: Any) -> ObjectId:
    """Parse a client supplied id, raising ValidationError when malformed."""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise errors.ValidationError(f"Invalid id: {value}")


def serialize_doc(doc: Dict[str, Any]) -> Dict[str, Any]:
    if not doc:
        return doc
    doc = dict(doc)
    _id = doc.pop("_id", None)
    if _id is not None:
        doc["id"] = str(_id)
    # Convert ObjectId in nested fields, including lists of references
    for k, v in list(doc.items()):
        if isinstance(v, ObjectId):
            doc[k] = str(v)
        elif isinstance(v, list):
            doc[k] = [str(i) if isinstance(i, ObjectId) else i for i in v]
    return doc
