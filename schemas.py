"""
Database Schemas for the shop backend

Each Pydantic model correlates to a MongoDB collection. The collection name is the lowercase of the class name.
- User -> "user"
- Category -> "category"
- Product -> "product"
- Cart -> "cart"
- Order -> "order"
- Review -> "review"
- Wishlist -> "wishlist"

References between documents are stored as id strings. Request payloads live at the bottom of the module.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

Role = Literal["user", "admin"]
Company = Literal["ikea", "liddy", "marcos"]
OrderStatus = Literal["pending", "processing", "shipped", "delivered", "cancelled"]

DEFAULT_PRODUCT_IMAGE = "/uploads/example.jpeg"


class User(BaseModel):
    name: str = Field(..., min_length=1, max_length=50, description="Full name")
    email: EmailStr = Field(..., description="Email address")
    password_hash: str = Field(..., description="BCrypt password hash")
    role: Role = Field("user", description="Role: user or admin")


class Category(BaseModel):
    name: str = Field(..., min_length=1, max_length=50, description="Category name (unique)")
    user_id: str = Field(..., description="Admin who created the category")


class Product(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    price: float = Field(0, ge=0)
    description: str = Field(..., max_length=1000)
    images: List[str] = Field(default_factory=lambda: [DEFAULT_PRODUCT_IMAGE])
    category_id: str
    company: Company
    colors: List[str] = Field(default_factory=lambda: ["#222"])
    featured: bool = False
    free_shipping: bool = False
    inventory: int = Field(15, ge=0)
    average_rating: float = Field(0, ge=0, le=5)
    num_of_reviews: int = Field(0, ge=0)
    user_id: str = Field(..., description="Admin who owns the listing")


class CartItem(BaseModel):
    """Snapshot of a product at the time it was put in the cart."""

    name: str
    image: str
    price: float = Field(..., ge=0)
    amount: int = Field(..., gt=0)
    product_id: str


class Cart(BaseModel):
    items: List[CartItem] = Field(default_factory=list)
    item_count: int = 0
    total: float = 0
    user_id: str


class Order(BaseModel):
    items: List[CartItem]
    subtotal: float
    tax: float
    shipping_fee: float
    total: float
    user_id: str
    is_paid: bool = False
    paid_at: Optional[datetime] = None
    is_delivered: bool = False
    delivered_at: Optional[datetime] = None
    status: OrderStatus = "pending"
    payment_intent_id: Optional[str] = None
    client_secret: str = "pending"


class Review(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    title: str = Field(..., min_length=1, max_length=100)
    comment: str
    product_id: str
    user_id: str


class Wishlist(BaseModel):
    products: List[str] = Field(default_factory=list)
    user_id: str


# Request payloads
class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=6)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class CategoryPayload(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)


class ProductPayload(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    price: float = Field(0, ge=0)
    description: str = Field(..., max_length=1000)
    images: List[str] = Field(default_factory=lambda: [DEFAULT_PRODUCT_IMAGE])
    category_id: str
    company: Company
    colors: List[str] = Field(default_factory=lambda: ["#222"])
    featured: bool = False
    free_shipping: bool = False
    inventory: int = Field(15, ge=0)


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    price: Optional[float] = Field(None, ge=0)
    description: Optional[str] = Field(None, max_length=1000)
    images: Optional[List[str]] = None
    category_id: Optional[str] = None
    company: Optional[Company] = None
    colors: Optional[List[str]] = None
    featured: Optional[bool] = None
    free_shipping: Optional[bool] = None
    inventory: Optional[int] = Field(None, ge=0)

    @field_validator("*", mode="before")
    @classmethod
    def reject_null(cls, value):
        # omit a field to leave it unchanged; null would clear a required product field
        if value is None:
            raise ValueError("may be omitted but not null")
        return value


class AddToCartRequest(BaseModel):
    product_id: str
    amount: int = Field(1, gt=0)


class UpdateCartItemRequest(BaseModel):
    # zero or negative removes the line
    amount: int


class OrderUpdate(BaseModel):
    payment_intent_id: Optional[str] = None
    status: Optional[OrderStatus] = None


class ReviewPayload(BaseModel):
    product_id: str
    rating: int = Field(..., ge=1, le=5)
    title: str = Field(..., min_length=1, max_length=100)
    comment: str


class ReviewUpdate(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    title: str = Field(..., min_length=1, max_length=100)
    comment: str


class WishlistRequest(BaseModel):
    product_id: str
