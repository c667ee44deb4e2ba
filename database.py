"""
Database helpers

The MongoDB handle is built once at startup by connect() and stored on
app.state; request handlers receive it through the get_db dependency.
"""
import json
import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Union

from bson import ObjectId
from dotenv import load_dotenv
from fastapi import Request
from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient
from pymongo.database import Database

from errors import StorageError

load_dotenv()

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL", "mongodb://localhost:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "storefront")

DEFAULT_SITE_SETTINGS = [
    {"key": "hero_emoji", "value": "👕", "description": "Hero section t-shirt emoji"},
    {"key": "classic_white_emoji", "value": "👕", "description": "Classic White product emoji"},
    {"key": "color_bold_emoji", "value": "🎨", "description": "Color Bold product emoji"},
    {"key": "premium_comfort_emoji", "value": "✨", "description": "Premium Comfort product emoji"},
    {"key": "signature_edition_emoji", "value": "🌟", "description": "Signature Edition product emoji"},
    {"key": "shipping_icon", "value": "🚚", "description": "Shipping feature icon"},
    {"key": "returns_icon", "value": "🔄", "description": "Returns feature icon"},
    {"key": "support_icon", "value": "💬", "description": "Support feature icon"},
]

SAMPLE_PRODUCTS = [
    {
        "name": "Classic White",
        "description": "Premium classic white t-shirt",
        "price": 19.99,
        "category": "Classic",
        "sizes": ["XS", "S", "M", "L", "XL"],
        "colors": ["White", "Black", "Navy"],
        "stock": 50,
        "image": "👕",
    },
    {
        "name": "Color Bold",
        "description": "Vibrant colored t-shirt with bold design",
        "price": 22.99,
        "category": "Premium",
        "sizes": ["XS", "S", "M", "L", "XL"],
        "colors": ["Red", "Blue", "Green", "Yellow"],
        "stock": 40,
        "image": "🎨",
    },
    {
        "name": "Premium Comfort",
        "description": "Ultra-soft premium comfort t-shirt",
        "price": 24.99,
        "category": "Premium",
        "sizes": ["S", "M", "L", "XL", "XXL"],
        "colors": ["White", "Grey", "Black"],
        "stock": 35,
        "image": "✨",
    },
    {
        "name": "Signature Edition",
        "description": "Exclusive signature edition limited t-shirt",
        "price": 29.99,
        "category": "Limited",
        "sizes": ["M", "L", "XL"],
        "colors": ["Black", "Gold"],
        "stock": 20,
        "image": "🌟",
    },
]


def connect(url: str = DATABASE_URL, name: str = DATABASE_NAME) -> Database:
    client = MongoClient(url)
    logger.info("Using MongoDB database %r", name)
    return client[name]


def init_db(db: Database, seed_products: bool = True) -> None:
    """Create unique indexes and insert the default rows if they are missing."""
    db["user"].create_index([("email", ASCENDING)], unique=True)
    db["admin"].create_index([("user_id", ASCENDING)], unique=True)
    db["product"].create_index([("name", ASCENDING)], unique=True)
    db["order"].create_index([("order_number", ASCENDING)], unique=True)
    db["order"].create_index([("user_id", ASCENDING)])
    db["wishlist"].create_index([("user_id", ASCENDING)])
    db["sitesetting"].create_index([("key", ASCENDING)], unique=True)

    now = datetime.now(timezone.utc)
    for setting in DEFAULT_SITE_SETTINGS:
        db["sitesetting"].update_one(
            {"key": setting["key"]},
            {"$setOnInsert": {**setting, "updated_at": now}},
            upsert=True,
        )

    if seed_products:
        for product in SAMPLE_PRODUCTS:
            db["product"].update_one(
                {"name": product["name"]},
                {"$setOnInsert": {**product, "is_active": True, "created_at": now, "updated_at": now}},
                upsert=True,
            )
    logger.info("Database indexes and defaults initialized")


def get_db(request: Request) -> Database:
    db = getattr(request.app.state, "db", None)
    if db is None:
        raise StorageError("Database not configured")
    return db


def create_document(db: Database, collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
    if isinstance(data, BaseModel):
        data_dict = data.model_dump()
    else:
        data_dict = dict(data)
    now = datetime.now(timezone.utc)
    data_dict.setdefault("created_at", now)
    data_dict["updated_at"] = now
    result = db[collection_name].insert_one(data_dict)
    return str(result.inserted_id)


def get_documents(db: Database, collection_name: str, filter_dict: Optional[dict] = None,
                  sort: Optional[List[tuple]] = None) -> List[Dict[str, Any]]:
    cursor = db[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    return [serialize_doc(d) for d in cursor]


def to_object_id(value: str) -> Optional[ObjectId]:
    if not ObjectId.is_valid(value):
        return None
    return ObjectId(value)


def serialize_doc(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not doc:
        return doc
    doc = dict(doc)
    _id = doc.pop("_id", None)
    if _id is not None:
        doc["id"] = str(_id)
    for k, v in list(doc.items()):
        if isinstance(v, ObjectId):
            doc[k] = str(v)
    return doc


def parse_list_field(value: Union[str, Iterable[str], None]) -> List[str]:
    """Accept an ordered list or its JSON-encoded form and return the list."""
    if value is None:
        return []
    if isinstance(value, str):
        if not value.strip():
            return []
        try:
            decoded = json.loads(value)
        except ValueError:
            return [part.strip() for part in value.split(",") if part.strip()]
        if isinstance(decoded, list):
            return [str(item) for item in decoded]
        return [str(decoded)]
    return [str(item) for item in value]
