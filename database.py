"""Document store access. Collection names are the lowercased schema names."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from fastapi import Request
from pydantic import BaseModel
from pymongo import MongoClient
from pymongo.database import Database

from config import Settings
from errors import NotFound

USERS = "user"
PRODUCTS = "product"
CATEGORIES = "category"
CARTS = "cart"
ORDERS = "order"

# Never leaves the store
PRIVATE_FIELDS = ("passwordHash", "tokenVersion")


class Lifecycle(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


ACTIVE = {"status": Lifecycle.ACTIVE.value}


def is_active(doc: Optional[Dict[str, Any]]) -> bool:
    return bool(doc) and doc.get("status", Lifecycle.ACTIVE.value) == Lifecycle.ACTIVE.value


def is_visible(doc: Optional[Dict[str, Any]], role: Optional[str] = None) -> bool:
    """Inactive documents exist only for admins."""
    if not doc:
        return False
    return role == "admin" or is_active(doc)


def connect(settings: Settings) -> Database:
    client = MongoClient(settings.database_url, tz_aware=True)
    return client[settings.database_name]


def get_db(request: Request) -> Database:
    return request.app.state.db


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_object_id(value: Any, label: str = "Document") -> ObjectId:
    if isinstance(value, ObjectId):
        return value
    if not ObjectId.is_valid(str(value)):
        raise NotFound(f"{label} not found")
    return ObjectId(str(value))


def create_document(db: Database, collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
    if isinstance(data, BaseModel):
        data = data.model_dump(mode="json", by_alias=True)
    else:
        data = dict(data)
    now = utcnow()
    data.setdefault("createdAt", now)
    data["updatedAt"] = now
    result = db[collection_name].insert_one(data)
    return str(result.inserted_id)


def get_documents(db: Database, collection_name: str, filter_dict: Optional[Dict[str, Any]] = None,
                  limit: Optional[int] = None) -> List[Dict[str, Any]]:
    cursor = db[collection_name].find(filter_dict or {})
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def serialize_doc(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not doc:
        return doc
    doc = dict(doc)
    _id = doc.pop("_id", None)
    if _id is not None:
        doc["id"] = str(_id)
    for field in PRIVATE_FIELDS:
        doc.pop(field, None)
    for k, v in list(doc.items()):
        if isinstance(v, ObjectId):
            doc[k] = str(v)
    return doc
