"""
Database Schemas

MongoDB collection schemas as Pydantic models.
Each model represents a collection in the database; the model name lowercased
is the collection name (Product -> "product").

Documents are stored with camelCase keys (``averageRating``, ``orderStatus``),
python code uses snake_case attributes.
"""

from enum import Enum
from typing import List, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class MongoModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        arbitrary_types_allowed=True,
        use_enum_values=True,
        validate_default=True,
    )


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"


class Category(str, Enum):
    RUNNING = "running"
    CASUAL = "casual"
    SPORTS = "sports"
    FORMAL = "formal"
    SNEAKERS = "sneakers"


class OrderStatus(str, Enum):
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class User(MongoModel):
    name: str = Field(..., description="Full name")
    email: EmailStr = Field(..., description="Email address")
    password_hash: str = Field(..., alias="password_hash", description="BCrypt hashed password")
    role: Role = Field(Role.USER, description="Role: user | admin")
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None


class SizeStock(MongoModel):
    size: float
    stock: int = Field(0, ge=0)


class Product(MongoModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., max_length=2000)
    price: float = Field(..., ge=0)
    brand: str = Field(..., min_length=1)
    category: Category = Category.CASUAL
    sizes: List[SizeStock] = Field(default_factory=list)
    images: List[str] = Field(default_factory=list)
    featured: bool = False
    average_rating: float = Field(0, ge=0, le=5)
    total_reviews: int = Field(0, ge=0)

    @field_validator("name", "brand")
    @classmethod
    def strip_text(cls, v: str) -> str:
        return v.strip()

    @field_validator("sizes")
    @classmethod
    def sizes_unique(cls, v: List[SizeStock]) -> List[SizeStock]:
        seen = [s.size for s in v]
        if len(seen) != len(set(seen)):
            raise ValueError("size values must be unique per product")
        return v


class CartItem(MongoModel):
    product: ObjectId
    size: float
    quantity: int = Field(1, ge=1)


class OrderItem(MongoModel):
    """Line item snapshot, decoupled from the live product once written."""
    product: ObjectId
    name: str
    price: float
    size: float
    quantity: int = Field(..., ge=1)
    image: Optional[str] = None


class ShippingInfo(MongoModel):
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    email: EmailStr
    phone: str = Field(..., min_length=1)
    address: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    zip_code: str = Field(..., min_length=1)
    country: str = "US"


class Pricing(MongoModel):
    subtotal: float = Field(..., ge=0)
    shipping: float = Field(..., ge=0)
    tax: float = Field(..., ge=0)
    total: float = Field(..., ge=0)

    @model_validator(mode="after")
    def total_matches_parts(self):
        if abs(self.subtotal + self.shipping + self.tax - self.total) > 0.01:
            raise ValueError("total must equal subtotal + shipping + tax")
        return self


class PaymentInfo(MongoModel):
    stripe_payment_intent_id: Optional[str] = None
    payment_method: Optional[str] = None
    payment_status: PaymentStatus = PaymentStatus.PENDING


class Order(MongoModel):
    user: Optional[ObjectId] = Field(None, description="None for guest checkout")
    order_number: str
    items: List[OrderItem] = Field(..., min_length=1)
    shipping_info: ShippingInfo
    pricing: Pricing
    payment_info: PaymentInfo = Field(default_factory=PaymentInfo)
    order_status: OrderStatus = OrderStatus.PROCESSING


class Review(MongoModel):
    product: ObjectId
    user: ObjectId
    order: Optional[ObjectId] = None
    rating: int = Field(..., ge=1, le=5)
    title: str = Field(..., min_length=1, max_length=100)
    comment: str = Field(..., min_length=1, max_length=1000)
    is_verified_purchase: bool = False
    helpful: int = Field(0, ge=0)
    helpful_by: List[ObjectId] = Field(default_factory=list)
