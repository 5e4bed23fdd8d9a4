"""
Datastore access

Thin pass-through to MongoDB. Each collection stands in for one table of the
storefront schema: product, product_variant, order, order_item, admin,
inventory_log, settings.
"""
import logging
import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel
from pymongo import MongoClient

import config
from errors import PersistenceFailure

logger = logging.getLogger(__name__)

_client = None
db = None

if config.DATABASE_URL and config.DATABASE_NAME:
    _client = MongoClient(config.DATABASE_URL)
    db = _client[config.DATABASE_NAME]
else:
    logger.warning("DATABASE_URL / DATABASE_NAME not set, datastore unavailable")


def get_db():
    """FastAPI dependency returning the live database handle."""
    if db is None:
        raise PersistenceFailure("Database not available")
    return db


def now() -> datetime:
    return datetime.now(timezone.utc)


def to_object_id(id_str: Optional[str]) -> Optional[ObjectId]:
    """Parse an id string, returning None when it is not a valid ObjectId."""
    if not id_str:
        return None
    try:
        return ObjectId(id_str)
    except (InvalidId, TypeError):
        return None


def serialize(doc: Optional[dict]) -> Optional[dict]:
    if not doc:
        return doc
    d = dict(doc)
    d["id"] = str(d.pop("_id"))
    return d


def create_document(database, collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
    """Insert a document stamped with created_at/updated_at and return its id."""
    if isinstance(data, BaseModel):
        doc = data.model_dump()
    else:
        doc = dict(data)
    stamp = now()
    doc.setdefault("created_at", stamp)
    doc["updated_at"] = stamp
    res = database[collection_name].insert_one(doc)
    return str(res.inserted_id)


def get_documents(database, collection_name: str, filter_dict: Optional[dict] = None,
                  limit: Optional[int] = None, sort: Optional[list] = None) -> List[dict]:
    cursor = database[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def paginate(database, collection_name: str, query: dict, page: int, limit: int,
             sort: Optional[list] = None):
    """Return (documents, pagination) for an offset/limit page of ``query``."""
    page = max(page, 1)
    skip = (page - 1) * limit
    total = database[collection_name].count_documents(query)
    cursor = database[collection_name].find(query)
    if sort:
        cursor = cursor.sort(sort)
    docs = list(cursor.skip(skip).limit(limit))
    pagination = {
        "page": page,
        "limit": limit,
        "total": total,
        "totalPages": math.ceil(total / limit) if limit else 0,
    }
    return docs, pagination
