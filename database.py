"""
Database Helper Functions

Table-oriented helpers over MongoDB for the storefront. Each table
(products, categories, users, orders) is a collection; the helpers mirror the
select / insert / update / delete / count primitives the views consume.
"""

from pymongo import MongoClient, ReturnDocument, ASCENDING, DESCENDING
from bson import ObjectId
from bson.errors import InvalidId
from datetime import datetime, timezone
import logging
import os
from dotenv import load_dotenv
from typing import Union, Optional, Dict, Any, List
from pydantic import BaseModel

# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)

PRODUCTS = "products"
CATEGORIES = "categories"
USERS = "users"
ORDERS = "orders"
COUNTERS = "counters"

_client = None
db = None

database_url = os.getenv("DATABASE_URL")
database_name = os.getenv("DATABASE_NAME")

if database_url and database_name:
    _client = MongoClient(database_url)
    db = _client[database_name]


class DatabaseUnavailable(Exception):
    pass


def _ensure_db():
    if db is None:
        raise DatabaseUnavailable("Database not available. Check DATABASE_URL and DATABASE_NAME environment variables.")


def _to_dict(data: Union[BaseModel, dict]) -> dict:
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json", exclude_none=True, by_alias=True)
    return dict(data)


def _match(key: str, value: Any) -> dict:
    # Rows keyed by Mongo's _id arrive as strings from the API.
    if key == "_id" and isinstance(value, str):
        try:
            return {"_id": ObjectId(value)}
        except InvalidId:
            return {"_id": value}
    return {key: value}


def ensure_indexes():
    """Create the unique keys the storefront relies on (users.phone, orders.id)."""
    _ensure_db()
    db[USERS].create_index("phone", unique=True)
    db[ORDERS].create_index("id", unique=True)
    db[ORDERS].create_index([("user_phone", ASCENDING), ("timestamp", DESCENDING)])


# Table helpers

def select(table: str, eq: Optional[Dict[str, Any]] = None, order: Optional[str] = None,
           ascending: bool = True, limit: Optional[int] = None) -> List[dict]:
    _ensure_db()
    filter_dict = {}
    for key, value in (eq or {}).items():
        filter_dict.update(_match(key, value))
    cursor = db[table].find(filter_dict)
    if order:
        cursor = cursor.sort(order, ASCENDING if ascending else DESCENDING)
    if limit:
        cursor = cursor.limit(int(limit))
    return [serialize_doc(doc) for doc in cursor]


def select_one(table: str, key: str, value: Any) -> Optional[dict]:
    _ensure_db()
    doc = db[table].find_one(_match(key, value))
    return serialize_doc(doc) if doc else None


def insert(table: str, rows: List[Union[BaseModel, dict]]) -> List[str]:
    _ensure_db()
    payloads = [_to_dict(row) for row in rows]
    if len(payloads) == 1:
        # single inserts surface DuplicateKeyError rather than BulkWriteError
        return [str(db[table].insert_one(payloads[0]).inserted_id)]
    result = db[table].insert_many(payloads)
    return [str(_id) for _id in result.inserted_ids]


def update(table: str, changes: Union[BaseModel, Dict[str, Any]], key: str, value: Any,
           expect: Optional[Dict[str, Any]] = None) -> bool:
    """Set ``changes`` on the row matching ``key``; with ``expect``, only while those fields still hold."""
    _ensure_db()
    payload = _to_dict(changes)
    payload.pop("_id", None)
    if not payload:
        return False
    query = _match(key, value)
    if expect:
        query.update(expect)
    result = db[table].update_one(query, {"$set": payload})
    return result.matched_count > 0


def delete(table: str, key: str, value: Any) -> bool:
    _ensure_db()
    result = db[table].delete_one(_match(key, value))
    return result.deleted_count > 0


def count(table: str, eq: Optional[Dict[str, Any]] = None) -> int:
    _ensure_db()
    return db[table].count_documents(eq or {})


def next_sequence(name: str) -> int:
    """Atomically increment and return the named counter (starts at 1)."""
    _ensure_db()
    doc = db[COUNTERS].find_one_and_update(
        {"_id": name},
        {"$inc": {"seq": 1}},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )
    return int(doc["seq"])


def collection_names() -> List[str]:
    _ensure_db()
    return db.list_collection_names()


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# Utility

def serialize_doc(doc: Optional[dict]) -> Optional[dict]:
    if not doc:
        return None
    d = dict(doc)
    if "_id" in d:
        d["_id"] = str(d["_id"])  # convert ObjectId to string
    return d
