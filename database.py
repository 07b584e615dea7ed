"""
Database helpers

The MongoDB handle is created once by `connect()` during application startup and
handed to every route through the `get_db` dependency. Nothing in this module
keeps a global connection.
"""

import logging
import os
from datetime import datetime, timezone
from typing import Optional, Union

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import Request
from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient
from pymongo.database import Database

from errors import NotFound, ValidationFailed

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_NAME = "ecommerce"


def connect(url: Optional[str] = None, name: Optional[str] = None) -> Database:
    url = url or os.getenv("DATABASE_URL")
    name = name or os.getenv("DATABASE_NAME", DEFAULT_DATABASE_NAME)
    if not url:
        raise RuntimeError("Missing DATABASE_URL in environment variables")
    client = MongoClient(url, serverSelectionTimeoutMS=10_000)
    db = client[name]
    logger.info("Connected to MongoDB database %s", name)
    return db


def get_db(request: Request) -> Database:
    return request.app.state.db


def ensure_indexes(db: Database) -> None:
    db["user"].create_index([("email", ASCENDING)], unique=True)
    db["category"].create_index([("name", ASCENDING)], unique=True)
    db["cart"].create_index([("user_id", ASCENDING)], unique=True)
    db["wishlist"].create_index([("user_id", ASCENDING)], unique=True)
    db["review"].create_index([("user_id", ASCENDING), ("product_id", ASCENDING)], unique=True)


def utcnow() -> datetime:
    # pymongo hands datetimes back as naive UTC, so store and compare them that way
    return datetime.now(timezone.utc).replace(tzinfo=None)


def oid(id_str: str) -> ObjectId:
    try:
        return ObjectId(id_str)
    except (InvalidId, TypeError):
        raise ValidationFailed(f"Invalid id: {id_str}")


def serialize(doc: Optional[dict]) -> Optional[dict]:
    if doc is None:
        return None
    doc = dict(doc)
    if "_id" in doc:
        doc["id"] = str(doc.pop("_id"))
    doc.pop("password_hash", None)
    return doc


def create_document(db: Database, collection_name: str, data: Union[BaseModel, dict]) -> str:
    if isinstance(data, BaseModel):
        data_dict = data.model_dump()
    else:
        data_dict = dict(data)
    now = utcnow()
    data_dict.setdefault("created_at", now)
    data_dict["updated_at"] = now
    result = db[collection_name].insert_one(data_dict)
    return str(result.inserted_id)


def get_documents(db: Database, collection_name: str, filter_dict: Optional[dict] = None):
    return list(db[collection_name].find(filter_dict or {}))


def get_or_404(db: Database, collection_name: str, id_str: str, label: Optional[str] = None) -> dict:
    doc = db[collection_name].find_one({"_id": oid(id_str)})
    if not doc:
        raise NotFound(f"No {label or collection_name} found with id: {id_str}")
    return doc
