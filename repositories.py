"""
Repositories over the storefront collections.

Each repository is constructed with the injected database handle and raises
the errors from errors.py; none of them know about HTTP.
"""
import itertools
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import urlparse

from bson import ObjectId
from pydantic import ValidationError as SchemaError
from pymongo import DESCENDING, ASCENDING
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from database import DEFAULT_SITE_SETTINGS, create_document, get_documents, serialize_doc, to_object_id
from errors import (
    AccessDenied,
    AlreadyAdmin,
    DuplicateEmail,
    DuplicateProduct,
    InvalidCredentials,
    NotAnAdmin,
    NotFound,
    SelfDeletionForbidden,
    SelfRevocationForbidden,
    StorageError,
    ValidationError,
    WeakPassword,
)
from schemas import (
    ORDER_STATUSES,
    AdminGrant as AdminGrantSchema,
    Order as OrderSchema,
    OrderItem as OrderItemSchema,
    Product as ProductSchema,
    SiteSetting as SiteSettingSchema,
    User as UserSchema,
    Wishlist as WishlistSchema,
)
from security import MIN_PASSWORD_LENGTH, hash_password, verify_password

logger = logging.getLogger(__name__)

HIDDEN_USER_FIELDS = {"password_hash": 0}
PROFILE_FIELDS = ("first_name", "last_name", "phone", "address", "city", "zip_code", "newsletter")
REQUIRED_PROFILE_FIELDS = ("first_name", "last_name", "newsletter")
SITE_SETTING_KEYS = tuple(s["key"] for s in DEFAULT_SITE_SETTINGS)


def _now():
    return datetime.now(timezone.utc)


class UserRepository:
    """Credential store: user records and password checks."""

    def __init__(self, db: Database):
        self.db = db
        self.collection = db["user"]

    def register(self, profile: Dict[str, Any], password: str) -> str:
        email = profile["email"].lower()
        # duplicate check runs first so a repeated email is always reported as such
        if self.collection.find_one({"email": email}, {"_id": 1}):
            raise DuplicateEmail()
        if len(password) < MIN_PASSWORD_LENGTH:
            raise WeakPassword()

        user = UserSchema(**{**profile, "email": email}, password_hash=hash_password(password))
        try:
            user_id = create_document(self.db, "user", user)
        except DuplicateKeyError:
            raise DuplicateEmail()
        logger.info("Registered user %s (%s)", user_id, email)
        return user_id

    def verify(self, email: str, password: str) -> Dict[str, Any]:
        user = self.collection.find_one({"email": email.lower()})
        if not user or not verify_password(password, user.get("password_hash", "")):
            logger.info("Failed login for %s", email.lower())
            raise InvalidCredentials()
        user = serialize_doc(user)
        user.pop("password_hash", None)
        return user

    def get(self, user_id: str) -> Dict[str, Any]:
        oid = to_object_id(user_id)
        user = self.collection.find_one({"_id": oid}, HIDDEN_USER_FIELDS) if oid else None
        if not user:
            raise NotFound("User not found")
        return serialize_doc(user)

    def exists(self, user_id: str) -> bool:
        oid = to_object_id(user_id)
        return bool(oid and self.collection.find_one({"_id": oid}, {"_id": 1}))

    def update_profile(self, user_id: str, fields: Dict[str, Any]) -> None:
        updates = {k: v for k, v in fields.items() if k in PROFILE_FIELDS}
        if not updates:
            raise ValidationError("No fields to update")
        for field in REQUIRED_PROFILE_FIELDS:
            if field in updates and updates[field] is None:
                raise ValidationError(f"{field} may not be null")
        oid = to_object_id(user_id)
        if oid is None:
            raise NotFound("User not found")
        updates["updated_at"] = _now()
        res = self.collection.update_one({"_id": oid}, {"$set": updates})
        if res.matched_count == 0:
            raise NotFound("User not found")

    def delete_user(self, user_id: str, acting_admin_id: str) -> None:
        if user_id == acting_admin_id:
            raise SelfDeletionForbidden()
        oid = to_object_id(user_id)
        res = self.collection.delete_one({"_id": oid}) if oid else None
        if res is None or res.deleted_count == 0:
            raise NotFound("User not found")
        # grants and wishlist rows must not outlive the user
        self.db["admin"].delete_many({"user_id": user_id})
        self.db["wishlist"].delete_many({"user_id": user_id})
        logger.info("User %s deleted by admin %s", user_id, acting_admin_id)

    def list_users(self) -> List[Dict[str, Any]]:
        cursor = self.collection.find({}, HIDDEN_USER_FIELDS).sort("created_at", DESCENDING)
        return [serialize_doc(u) for u in cursor]

    def count(self) -> int:
        return self.collection.count_documents({})


class AdminRegistry:
    """Set of user ids holding admin privilege."""

    def __init__(self, db: Database):
        self.db = db
        self.collection = db["admin"]

    def is_admin(self, user_id: str) -> bool:
        return self.collection.find_one({"user_id": user_id}, {"_id": 1}) is not None

    def grant(self, user_id: str) -> None:
        if not UserRepository(self.db).exists(user_id):
            raise NotFound("User not found")
        if self.is_admin(user_id):
            raise AlreadyAdmin()
        try:
            create_document(self.db, "admin", AdminGrantSchema(user_id=user_id))
        except DuplicateKeyError:
            raise AlreadyAdmin()
        logger.info("Granted admin to user %s", user_id)

    def revoke(self, user_id: str, caller_id: str) -> None:
        if user_id == caller_id:
            raise SelfRevocationForbidden()
        res = self.collection.delete_one({"user_id": user_id})
        if res.deleted_count == 0:
            raise NotAnAdmin()
        logger.info("Revoked admin from user %s by %s", user_id, caller_id)

    def bootstrap(self, emails: Iterable[str]) -> List[str]:
        """Grant admin to existing users with the given emails; returns granted ids."""
        granted = []
        for email in emails:
            user = self.db["user"].find_one({"email": email.strip().lower()}, {"_id": 1})
            if not user:
                logger.warning("Admin bootstrap: no user registered as %s", email)
                continue
            user_id = str(user["_id"])
            if not self.is_admin(user_id):
                self.grant(user_id)
                granted.append(user_id)
        return granted


def normalize_image(value: Optional[str]) -> Optional[str]:
    """Images are emoji or URLs; a URL that does not parse is kept as raw text."""
    if not value:
        return value
    value = value.strip()
    if "://" not in value:
        return value
    try:
        parsed = urlparse(value)
    except ValueError:
        logger.warning("Could not parse image URL %r, storing as text", value)
        return value
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        logger.warning("Unsupported image URL %r, storing as text", value)
        return value
    return parsed.geturl()


class ProductRepository:
    def __init__(self, db: Database):
        self.db = db
        self.collection = db["product"]

    def list_active(self) -> List[Dict[str, Any]]:
        cursor = self.collection.find({"is_active": True}).sort("created_at", ASCENDING)
        return [serialize_doc(p) for p in cursor]

    def list_all(self) -> List[Dict[str, Any]]:
        cursor = self.collection.find().sort("created_at", DESCENDING)
        return [serialize_doc(p) for p in cursor]

    def get(self, product_id: str, active_only: bool = False) -> Dict[str, Any]:
        oid = to_object_id(product_id)
        query: Dict[str, Any] = {"_id": oid}
        if active_only:
            query["is_active"] = True
        product = self.collection.find_one(query) if oid else None
        if not product:
            raise NotFound("Product not found")
        return serialize_doc(product)

    def create(self, data: Dict[str, Any]) -> str:
        if not data.get("name") or data.get("price") is None:
            raise ValidationError("Name and price are required")
        data = {**data, "image": normalize_image(data.get("image"))}
        try:
            product = ProductSchema(**data)
        except SchemaError as exc:
            raise ValidationError(exc.errors()[0]["msg"])
        try:
            product_id = create_document(self.db, "product", product)
        except DuplicateKeyError:
            raise DuplicateProduct()
        logger.info("Created product %s (%s)", product_id, product.name)
        return product_id

    def update(self, product_id: str, fields: Dict[str, Any]) -> None:
        if not fields:
            raise ValidationError("No fields to update")
        if "name" in fields and not fields["name"]:
            raise ValidationError("Name is required")
        if "price" in fields and (fields["price"] is None or fields["price"] <= 0):
            raise ValidationError("Price must be greater than 0")
        oid = to_object_id(product_id)
        if oid is None:
            raise NotFound("Product not found")
        updates = dict(fields)
        if "image" in updates:
            updates["image"] = normalize_image(updates["image"])
        updates["updated_at"] = _now()
        try:
            res = self.collection.update_one({"_id": oid}, {"$set": updates})
        except DuplicateKeyError:
            raise DuplicateProduct()
        if res.matched_count == 0:
            raise NotFound("Product not found")
        logger.info("Updated product %s", product_id)

    def delete(self, product_id: str) -> None:
        oid = to_object_id(product_id)
        res = self.collection.delete_one({"_id": oid}) if oid else None
        if res is None or res.deleted_count == 0:
            raise NotFound("Product not found")
        logger.info("Deleted product %s", product_id)

    def count(self) -> int:
        return self.collection.count_documents({})


_order_sequence = itertools.count()


def make_order_number() -> str:
    # epoch milliseconds plus a rolling sequence for orders placed in the same millisecond
    return f"ORD-{int(time.time() * 1000)}{next(_order_sequence) % 1000:03d}"


class OrderRepository:
    def __init__(self, db: Database):
        self.db = db
        self.collection = db["order"]

    def create(self, user_id: str, items: List[Dict[str, Any]]) -> Dict[str, str]:
        """Insert the order and its item snapshots as one document."""
        if not items:
            raise ValidationError("Order must contain at least one item")
        try:
            order_items = [OrderItemSchema(id=str(ObjectId()), **item) for item in items]
        except SchemaError as exc:
            raise ValidationError(exc.errors()[0]["msg"])
        total = round(sum(i.price * i.quantity for i in order_items), 2)
        order = OrderSchema(
            user_id=user_id,
            order_number=make_order_number(),
            total_amount=total,
            items=order_items,
        )
        try:
            order_id = create_document(self.db, "order", order)
        except DuplicateKeyError:
            raise StorageError("Could not allocate an order number")
        logger.info("Order %s (%s) created for user %s", order_id, order.order_number, user_id)
        return {"id": order_id, "order_number": order.order_number}

    def list_for_user(self, user_id: str) -> List[Dict[str, Any]]:
        cursor = self.collection.find({"user_id": user_id}, {"items": 0}).sort("created_at", DESCENDING)
        return [serialize_doc(o) for o in cursor]

    def list_all(self) -> List[Dict[str, Any]]:
        cursor = self.collection.find({}, {"items": 0}).sort("created_at", DESCENDING)
        return [serialize_doc(o) for o in cursor]

    def get(self, order_id: str) -> Dict[str, Any]:
        oid = to_object_id(order_id)
        order = self.collection.find_one({"_id": oid}) if oid else None
        if not order:
            raise NotFound("Order not found")
        return serialize_doc(order)

    def update_status(self, order_id: str, status: Optional[str]) -> None:
        if status not in ORDER_STATUSES:
            raise ValidationError("Invalid status")
        oid = to_object_id(order_id)
        if oid is None:
            raise NotFound("Order not found")
        res = self.collection.update_one({"_id": oid}, {"$set": {"status": status, "updated_at": _now()}})
        if res.matched_count == 0:
            raise NotFound("Order not found")
        logger.info("Order %s status set to %s", order_id, status)

    def count(self) -> int:
        return self.collection.count_documents({})

    def revenue(self) -> float:
        pipeline = [{"$group": {"_id": None, "total": {"$sum": "$total_amount"}}}]
        rows = list(self.collection.aggregate(pipeline))
        return round(rows[0]["total"], 2) if rows else 0


class WishlistRepository:
    def __init__(self, db: Database):
        self.db = db
        self.collection = db["wishlist"]

    def add(self, user_id: str, product_name: str, price: Optional[float] = None) -> str:
        item = WishlistSchema(user_id=user_id, product_name=product_name, price=price, added_at=_now())
        return create_document(self.db, "wishlist", item)

    def list_for_user(self, user_id: str) -> List[Dict[str, Any]]:
        cursor = self.collection.find({"user_id": user_id}).sort("added_at", DESCENDING)
        return [serialize_doc(w) for w in cursor]

    def remove(self, item_id: str, user_id: str) -> None:
        oid = to_object_id(item_id)
        item = self.collection.find_one({"_id": oid}) if oid else None
        if not item:
            raise NotFound("Wishlist item not found")
        if item["user_id"] != user_id:
            raise AccessDenied()
        self.collection.delete_one({"_id": oid})


class SiteSettingsRepository:
    def __init__(self, db: Database):
        self.db = db
        self.collection = db["sitesetting"]

    def as_mapping(self) -> Dict[str, str]:
        return {s["key"]: s["value"] for s in self.collection.find({}, {"_id": 0, "key": 1, "value": 1})}

    def list_all(self) -> List[Dict[str, Any]]:
        return get_documents(self.db, "sitesetting", sort=[("key", ASCENDING)])

    def update(self, key: str, value: Optional[str]) -> None:
        if not value:
            raise ValidationError("Value is required")
        if key not in SITE_SETTING_KEYS:
            raise NotFound("Setting not found")
        default = next(s for s in DEFAULT_SITE_SETTINGS if s["key"] == key)
        setting = SiteSettingSchema(key=key, value=value, description=default["description"])
        self.collection.update_one(
            {"key": key},
            {
                "$set": {"value": setting.value, "updated_at": _now()},
                "$setOnInsert": {"description": setting.description},
            },
            upsert=True,
        )
        logger.info("Site setting %s updated", key)
