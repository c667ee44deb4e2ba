"""
Database Schemas for the storefront

Each Pydantic model represents a MongoDB collection. The collection name is the
lowercased class name (AdminGrant is stored in "admin"). Order items are
embedded in their order document.
"""
from pydantic import BaseModel, Field, EmailStr
from typing import Optional, List, Literal
from datetime import datetime

ORDER_STATUSES = ("pending", "processing", "shipped", "delivered", "cancelled")

OrderStatus = Literal["pending", "processing", "shipped", "delivered", "cancelled"]


class User(BaseModel):
    first_name: str = Field(..., description="Given name")
    last_name: str = Field(..., description="Family name")
    email: EmailStr = Field(..., description="Unique, lowercased email address")
    password_hash: str = Field(..., description="BCrypt hashed password")
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    zip_code: Optional[str] = None
    newsletter: bool = Field(False, description="Opted into the newsletter")


class AdminGrant(BaseModel):
    user_id: str = Field(..., description="Id of the privileged user")
    role: str = Field("admin")


class Product(BaseModel):
    name: str = Field(..., min_length=1, description="Unique product name")
    description: Optional[str] = None
    price: float = Field(..., gt=0)
    category: Optional[str] = None
    sizes: List[str] = Field(default_factory=list, description="Ordered size labels")
    colors: List[str] = Field(default_factory=list, description="Ordered color names")
    stock: int = Field(0, ge=0)
    image: Optional[str] = Field(None, description="Emoji or image URL")
    is_active: bool = True


class OrderItem(BaseModel):
    id: str
    product_name: str
    size: Optional[str] = None
    color: Optional[str] = None
    quantity: int = Field(1, ge=1)
    price: float = Field(..., ge=0)


class Order(BaseModel):
    user_id: str
    order_number: str
    total_amount: float
    status: OrderStatus = "pending"
    items: List[OrderItem]


class Wishlist(BaseModel):
    user_id: str
    product_name: str
    price: Optional[float] = None
    added_at: datetime


class SiteSetting(BaseModel):
    key: str
    value: str
    description: Optional[str] = None
