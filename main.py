import logging
import os
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pymongo.database import Database
from pymongo.errors import PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

from database import connect, get_db, init_db, parse_list_field
from deps import (
    ensure_self,
    get_admin_registry,
    get_orders,
    get_products,
    get_site_settings,
    get_users,
    get_wishlist,
    require_admin,
    require_user,
)
from errors import AccessDenied, StoreError
from repositories import (
    AdminRegistry,
    OrderRepository,
    ProductRepository,
    SiteSettingsRepository,
    UserRepository,
    WishlistRepository,
)
from security import create_access_token, token_claims

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("storefront")

ADMIN_EMAILS = [e for e in os.getenv("ADMIN_EMAILS", "").split(",") if e.strip()]
SEED_SAMPLE_PRODUCTS = os.getenv("SEED_SAMPLE_PRODUCTS", "true").lower() not in ("0", "false", "no")


@asynccontextmanager
async def lifespan(app: FastAPI):
    if getattr(app.state, "db", None) is None:
        app.state.db = connect()
        init_db(app.state.db, seed_products=SEED_SAMPLE_PRODUCTS)
        AdminRegistry(app.state.db).bootstrap(ADMIN_EMAILS)
    yield


app = FastAPI(title="Storefront API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Error rendering: every failure is {"message": ...}

@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if not errors:
        return JSONResponse(status_code=400, content={"message": "Invalid request"})
    first = errors[0]
    loc = ".".join(str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path"))
    message = f"{loc}: {first.get('msg')}" if loc else first.get("msg", "Invalid request")
    return JSONResponse(status_code=400, content={"message": message})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"message": str(exc.detail)})


@app.exception_handler(PyMongoError)
async def storage_error_handler(request: Request, exc: PyMongoError):
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"message": "Database error"})


# Models (request bodies). Unknown fields are rejected.

class RequestModel(BaseModel):
    model_config = ConfigDict(extra="forbid")


class RegisterInput(RequestModel):
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=1)
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    zip_code: Optional[str] = None
    newsletter: bool = False


class LoginInput(RequestModel):
    email: EmailStr
    password: str


class ProfileUpdate(RequestModel):
    first_name: Optional[str] = Field(None, min_length=1)
    last_name: Optional[str] = Field(None, min_length=1)
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    zip_code: Optional[str] = None
    newsletter: Optional[bool] = None

    @field_validator("first_name", "last_name", "newsletter")
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("may not be null")
        return v


class ProductIn(RequestModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    price: float = Field(..., gt=0)
    category: Optional[str] = None
    sizes: List[str] = []
    colors: List[str] = []
    stock: int = Field(0, ge=0)
    image: Optional[str] = None
    is_active: bool = True

    @field_validator("sizes", "colors", mode="before")
    @classmethod
    def decode_list(cls, v):
        return parse_list_field(v)


class ProductUpdate(RequestModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    price: Optional[float] = Field(None, gt=0)
    category: Optional[str] = None
    sizes: Optional[List[str]] = None
    colors: Optional[List[str]] = None
    stock: Optional[int] = Field(None, ge=0)
    image: Optional[str] = None
    is_active: Optional[bool] = None

    @field_validator("sizes", "colors", mode="before")
    @classmethod
    def decode_list(cls, v):
        if v is None:
            return v
        return parse_list_field(v)


class OrderItemIn(RequestModel):
    product_name: str = Field(..., min_length=1)
    size: Optional[str] = None
    color: Optional[str] = None
    quantity: int = Field(1, ge=1)
    price: float = Field(..., ge=0)


class OrderIn(RequestModel):
    items: List[OrderItemIn] = Field(..., min_length=1)


class WishlistIn(RequestModel):
    product_name: str = Field(..., min_length=1)
    price: Optional[float] = Field(None, ge=0)


class StatusUpdate(RequestModel):
    status: Optional[str] = None


class SettingValue(RequestModel):
    value: Optional[str] = None


# Routes
@app.get("/")
def read_root():
    return {"message": "Storefront API"}


@app.get("/api/health")
def health():
    return {"status": "Server is running"}


@app.get("/test")
def test_database(db: Database = Depends(get_db)):
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_name": db.name,
        "collections": [],
    }
    try:
        response["collections"] = db.list_collection_names()
        response["database"] = "✅ Connected"
    except PyMongoError as e:
        response["database"] = f"❌ Error: {str(e)[:80]}"
    return response


# Auth
@app.post("/api/register", status_code=201)
def register(payload: RegisterInput, users: UserRepository = Depends(get_users)):
    profile = payload.model_dump(exclude={"password"})
    user_id = users.register(profile, payload.password)
    return {"message": "User registered successfully", "userId": user_id}


@app.post("/api/login")
def login(payload: LoginInput, users: UserRepository = Depends(get_users)):
    user = users.verify(payload.email, payload.password)
    token = create_access_token(token_claims(user))
    return {"message": "Login successful", "token": token, "user": user}


# User account
@app.get("/api/user/{user_id}")
def get_profile(user_id: str, claims: dict = Depends(require_user),
                users: UserRepository = Depends(get_users)):
    ensure_self(claims, user_id)
    return users.get(user_id)


@app.put("/api/user/{user_id}")
def update_profile(user_id: str, payload: ProfileUpdate, claims: dict = Depends(require_user),
                   users: UserRepository = Depends(get_users)):
    ensure_self(claims, user_id)
    users.update_profile(user_id, payload.model_dump(exclude_unset=True))
    return {"message": "Profile updated successfully"}


@app.get("/api/user/{user_id}/orders")
def user_orders(user_id: str, claims: dict = Depends(require_user),
                orders: OrderRepository = Depends(get_orders)):
    ensure_self(claims, user_id)
    return orders.list_for_user(user_id)


@app.get("/api/user/{user_id}/wishlist")
def user_wishlist(user_id: str, claims: dict = Depends(require_user),
                  wishlist: WishlistRepository = Depends(get_wishlist)):
    ensure_self(claims, user_id)
    return wishlist.list_for_user(user_id)


@app.post("/api/wishlist", status_code=201)
def add_to_wishlist(payload: WishlistIn, claims: dict = Depends(require_user),
                    wishlist: WishlistRepository = Depends(get_wishlist)):
    item_id = wishlist.add(claims["id"], payload.product_name, payload.price)
    return {"message": "Added to wishlist", "id": item_id}


@app.delete("/api/wishlist/{item_id}")
def remove_from_wishlist(item_id: str, claims: dict = Depends(require_user),
                         wishlist: WishlistRepository = Depends(get_wishlist)):
    wishlist.remove(item_id, claims["id"])
    return {"message": "Removed from wishlist"}


# Orders
@app.post("/api/orders", status_code=201)
def create_order(payload: OrderIn, claims: dict = Depends(require_user),
                 orders: OrderRepository = Depends(get_orders)):
    created = orders.create(claims["id"], [i.model_dump() for i in payload.items])
    return {"message": "Order created successfully", "orderId": created["id"], "orderNumber": created["order_number"]}


@app.get("/api/orders/{order_id}/items")
def order_items(order_id: str, claims: dict = Depends(require_user),
                orders: OrderRepository = Depends(get_orders),
                registry: AdminRegistry = Depends(get_admin_registry)):
    order = orders.get(order_id)
    if order["user_id"] != claims["id"] and not registry.is_admin(claims["id"]):
        raise AccessDenied()
    return order.get("items", [])


# Catalog (public)
@app.get("/api/products")
def list_products(products: ProductRepository = Depends(get_products)):
    return products.list_active()


@app.get("/api/products/{product_id}")
def get_product(product_id: str, products: ProductRepository = Depends(get_products)):
    return products.get(product_id, active_only=True)


@app.get("/api/site-settings")
def site_settings(settings: SiteSettingsRepository = Depends(get_site_settings)):
    return settings.as_mapping()


# Admin
@app.get("/api/admin/products", dependencies=[Depends(require_admin)])
def admin_list_products(products: ProductRepository = Depends(get_products)):
    return products.list_all()


@app.post("/api/admin/products", status_code=201, dependencies=[Depends(require_admin)])
def create_product(data: ProductIn, products: ProductRepository = Depends(get_products)):
    product_id = products.create(data.model_dump())
    return {"message": "Product created successfully", "productId": product_id}


@app.put("/api/admin/products/{product_id}", dependencies=[Depends(require_admin)])
def update_product(product_id: str, data: ProductUpdate, products: ProductRepository = Depends(get_products)):
    fields = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}
    products.update(product_id, fields)
    return {"message": "Product updated successfully"}


@app.delete("/api/admin/products/{product_id}", dependencies=[Depends(require_admin)])
def delete_product(product_id: str, products: ProductRepository = Depends(get_products)):
    products.delete(product_id)
    return {"message": "Product deleted successfully"}


@app.get("/api/admin/stats", dependencies=[Depends(require_admin)])
def admin_stats(users: UserRepository = Depends(get_users),
                products: ProductRepository = Depends(get_products),
                orders: OrderRepository = Depends(get_orders)):
    return {
        "users": users.count(),
        "products": products.count(),
        "orders": orders.count(),
        "revenue": orders.revenue(),
    }


@app.get("/api/admin/users", dependencies=[Depends(require_admin)])
def admin_list_users(users: UserRepository = Depends(get_users)):
    return users.list_users()


@app.delete("/api/admin/users/{user_id}")
def admin_delete_user(user_id: str, admin: dict = Depends(require_admin),
                      users: UserRepository = Depends(get_users)):
    users.delete_user(user_id, admin["id"])
    return {"message": "User deleted successfully"}


@app.get("/api/admin/orders", dependencies=[Depends(require_admin)])
def admin_list_orders(orders: OrderRepository = Depends(get_orders)):
    return orders.list_all()


@app.put("/api/admin/orders/{order_id}", dependencies=[Depends(require_admin)])
def admin_update_order(order_id: str, payload: StatusUpdate, orders: OrderRepository = Depends(get_orders)):
    orders.update_status(order_id, payload.status)
    return {"message": "Order status updated successfully"}


@app.post("/api/admin/make-admin/{user_id}", status_code=201, dependencies=[Depends(require_admin)])
def make_admin(user_id: str, registry: AdminRegistry = Depends(get_admin_registry)):
    registry.grant(user_id)
    return {"message": "User is now an admin"}


@app.delete("/api/admin/remove-admin/{user_id}")
def remove_admin(user_id: str, admin: dict = Depends(require_admin),
                 registry: AdminRegistry = Depends(get_admin_registry)):
    registry.revoke(user_id, admin["id"])
    return {"message": "Admin privileges removed"}


@app.get("/api/admin/site-settings", dependencies=[Depends(require_admin)])
def admin_site_settings(settings: SiteSettingsRepository = Depends(get_site_settings)):
    return settings.list_all()


@app.put("/api/admin/site-settings/{key}", dependencies=[Depends(require_admin)])
def update_site_setting(key: str, payload: SettingValue,
                        settings: SiteSettingsRepository = Depends(get_site_settings)):
    settings.update(key, payload.value)
    return {"message": "Setting updated successfully"}


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
