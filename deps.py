"""
FastAPI dependencies: repository providers and the two authorization tiers.

require_user trusts the token claims as of issuance; require_admin adds one
registry lookup per request so a revoked admin loses access immediately.
"""
from typing import Optional

from fastapi import Depends, Header
from pymongo.database import Database

from database import get_db
from errors import AccessDenied, AdminRequired, NoToken
from repositories import (
    AdminRegistry,
    OrderRepository,
    ProductRepository,
    SiteSettingsRepository,
    UserRepository,
    WishlistRepository,
)
from security import decode_token


def get_users(db: Database = Depends(get_db)) -> UserRepository:
    return UserRepository(db)


def get_admin_registry(db: Database = Depends(get_db)) -> AdminRegistry:
    return AdminRegistry(db)


def get_products(db: Database = Depends(get_db)) -> ProductRepository:
    return ProductRepository(db)


def get_orders(db: Database = Depends(get_db)) -> OrderRepository:
    return OrderRepository(db)


def get_wishlist(db: Database = Depends(get_db)) -> WishlistRepository:
    return WishlistRepository(db)


def get_site_settings(db: Database = Depends(get_db)) -> SiteSettingsRepository:
    return SiteSettingsRepository(db)


def bearer_token(authorization: Optional[str]) -> str:
    if not authorization:
        raise NoToken()
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise NoToken()
    return token.strip()


def require_user(authorization: Optional[str] = Header(default=None)) -> dict:
    return decode_token(bearer_token(authorization))


def require_admin(claims: dict = Depends(require_user),
                  registry: AdminRegistry = Depends(get_admin_registry)) -> dict:
    if not registry.is_admin(claims["id"]):
        raise AdminRequired()
    return claims


def ensure_self(claims: dict, user_id: str) -> None:
    if claims["id"] != user_id:
        raise AccessDenied()
