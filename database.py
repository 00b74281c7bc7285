"""
MongoDB access helpers.

The client is opened once when the application starts and closed when it
shuts down; handlers receive the database handle through ``get_db``.
Collections are named after the lowercased schema class.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from bson import ObjectId
from fastapi import Request
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database

import config
from errors import NotFoundError

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    """Current time as naive UTC, the form pymongo hands back by default."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def connect(url: Optional[str] = None, name: Optional[str] = None) -> Tuple[MongoClient, Database]:
    client = MongoClient(url or config.DATABASE_URL)
    db = client[name or config.DATABASE_NAME]
    logger.info("MongoDB connected: %s", db.name)
    return client, db


def ensure_indexes(db: Database) -> None:
    db["user"].create_index("phone", unique=True)
    db["author"].create_index("name", unique=True)
    db["author"].create_index("slug", unique=True)
    db["author"].create_index([("average_rating", DESCENDING), ("total_ratings", DESCENDING)])
    db["book"].create_index("author_id")
    db["book"].create_index([("category", ASCENDING), ("average_rating", DESCENDING)])
    db["book"].create_index([("average_rating", DESCENDING), ("total_reviews", DESCENDING)])
    db["bookreview"].create_index([("book_id", ASCENDING), ("user_id", ASCENDING)], unique=True)
    db["bookreview"].create_index([("book_id", ASCENDING), ("created_at", DESCENDING)])
    db["authorrating"].create_index([("author_id", ASCENDING), ("user_id", ASCENDING)], unique=True)
    db["event"].create_index([("category", ASCENDING), ("date", ASCENDING)])
    db["event"].create_index([("date", ASCENDING), ("is_approved", ASCENDING)])
    db["event"].create_index("organizer_id")
    db["post"].create_index([("user_id", ASCENDING), ("created_at", DESCENDING)])
    db["post"].create_index([("category", ASCENDING), ("created_at", DESCENDING)])
    db["comment"].create_index([("post_id", ASCENDING), ("created_at", DESCENDING)])


def get_db(request: Request) -> Database:
    return request.app.state.db


def to_object_id(value: Union[str, ObjectId], resource: str = "Resource") -> ObjectId:
    """Parse a document id; malformed ids are reported like missing ones."""
    if isinstance(value, ObjectId):
        return value
    if not ObjectId.is_valid(value):
        raise NotFoundError(resource)
    return ObjectId(value)


def create_document(db: Database, collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
    doc = data.model_dump() if isinstance(data, BaseModel) else dict(data)
    now = utcnow()
    doc.setdefault("created_at", now)
    doc.setdefault("updated_at", now)
    result = db[collection_name].insert_one(doc)
    return str(result.inserted_id)


def get_documents(
    db: Database,
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    limit: Optional[int] = None,
    skip: int = 0,
    sort: Optional[Sequence[Tuple[str, int]]] = None,
) -> List[Dict[str, Any]]:
    cursor = db[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(list(sort))
    if skip:
        cursor = cursor.skip(skip)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def _serialize_value(value: Any) -> Any:
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, dict):
        return serialize_doc(value)
    if isinstance(value, list):
        return [_serialize_value(item) for item in value]
    return value


def serialize_doc(doc: Dict[str, Any]) -> Dict[str, Any]:
    out = {key: _serialize_value(value) for key, value in doc.items() if key != "_id"}
    if "_id" in doc:
        out["id"] = str(doc["_id"])
    return out


def populate(
    db: Database,
    docs: List[Dict[str, Any]],
    field: str,
    collection_name: str,
    fields: Iterable[str],
) -> List[Dict[str, Any]]:
    """Replace the id stored in ``field`` with a summary of the referenced document.

    ``docs`` must already be serialized. References that no longer resolve
    become ``None``.
    """
    ids = {doc.get(field) for doc in docs if doc.get(field)}
    object_ids = [ObjectId(i) for i in ids if ObjectId.is_valid(i)]
    found: Dict[str, Dict[str, Any]] = {}
    if object_ids:
        projection = {name: 1 for name in fields}
        for ref in db[collection_name].find({"_id": {"$in": object_ids}}, projection):
            found[str(ref["_id"])] = serialize_doc(ref)
    for doc in docs:
        if doc.get(field):
            doc[field] = found.get(str(doc[field]))
    return docs
