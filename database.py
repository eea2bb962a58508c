"""
Database access

One MongoClient per process, created on first use and reused afterwards.
Routes receive the database through `Depends(get_db)`; tests override that
dependency with an isolated database.

Collection names are resolved here, from the resource name, so handlers never
spell a collection name themselves.
"""

import logging
import os
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from dotenv import load_dotenv
from pydantic import BaseModel
from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.database import Database

load_dotenv()

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL", "mongodb://localhost:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "PWS")

# resource -> collection
COLLECTIONS: Dict[str, str] = {
    "users": "Users",
    "products": "Products",
    "cart": "Cart",
    "orders": "Orders",
    "order_items": "OrderItems",
    "reviews": "Reviews",
}


@lru_cache(maxsize=None)
def get_client() -> MongoClient:
    logger.info("Connecting to MongoDB database %s", DATABASE_NAME)
    return MongoClient(DATABASE_URL, tz_aware=True)


def get_db() -> Database:
    return get_client()[DATABASE_NAME]


def get_collection(db: Database, resource: str) -> Collection:
    try:
        name = COLLECTIONS[resource]
    except KeyError:
        raise KeyError(f"Unknown resource: {resource}")
    return db[name]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def create_document(db: Database, resource: str, data: Union[BaseModel, Dict[str, Any]]) -> Dict[str, Any]:
    """Insert one document and return it, `_id` included."""
    if isinstance(data, BaseModel):
        doc = data.model_dump()
    else:
        doc = dict(data)
    result = get_collection(db, resource).insert_one(doc)
    doc["_id"] = result.inserted_id
    return doc


def get_documents(db: Database, resource: str, filter_dict: Optional[Dict[str, Any]] = None, projection: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
    cursor = get_collection(db, resource).find(filter_dict or {}, projection)
    return [serialize_doc(d) for d in cursor]


def serialize_doc(doc: Dict[str, Any]) -> Dict[str, Any]:
    if not doc:
        return doc
    doc = dict(doc)
    _id = doc.get("_id")
    if isinstance(_id, ObjectId):
        doc["id"] = str(_id)
        del doc["_id"]
    # Convert ObjectId in nested fields if any
    for k, v in list(doc.items()):
        if isinstance(v, ObjectId):
            doc[k] = str(v)
    return doc
